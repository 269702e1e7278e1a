# libs/amounts.py
"""Single point of truth for the amount pattern and the unit-multiplier table.

Новая единица = достаточно добавить строку в ``UNIT_TABLE`` – регулярка
собирается из таблицы автоматически.

Only the *first* numeric token of a message is used. "Ăn 2 bát phở 60k"
therefore yields ``2``; this is a known limitation of the rule path.
"""
from __future__ import annotations

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from libs.models import AmountUnit, ParsedAmount
from libs.normalizer import fold

__all__ = ["UNIT_TABLE", "extract_amount", "strip_amount", "to_decimal"]

# ---------------------------------------------------------------------------
# Unit table
# ---------------------------------------------------------------------------
UNIT_TABLE: dict[str, tuple[AmountUnit, int]] = {
    "k": (AmountUnit.THOUSAND, 1_000),
    "nghìn": (AmountUnit.THOUSAND, 1_000),
    "ngàn": (AmountUnit.THOUSAND, 1_000),
    "triệu": (AmountUnit.MILLION, 1_000_000),
    "trieu": (AmountUnit.MILLION, 1_000_000),
    "tr": (AmountUnit.MILLION, 1_000_000),
    "tỷ": (AmountUnit.BILLION, 1_000_000_000),
    "ty": (AmountUnit.BILLION, 1_000_000_000),
}

# Длинные маркеры первыми, иначе "tr" съест "triệu"
_UNITS_RE = "|".join(re.escape(u) for u in sorted(UNIT_TABLE, key=len, reverse=True))

AMOUNT_RE = re.compile(
    rf"""
    (?<!\d)
    (?P<number>\d+(?:[.,]\d+)*)
    \s*
    (?:(?P<unit>{_UNITS_RE})(?!\w))?
    """,
    re.VERBOSE | re.IGNORECASE,
)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def extract_amount(text: str) -> ParsedAmount:
    """Find the first amount in *text* and convert it to integer VND.

    Returns
    -------
    ParsedAmount
        ``value == 0`` when nothing numeric was found.
    """
    match = AMOUNT_RE.search(fold(text))
    if match is None:
        return ParsedAmount()

    try:
        number = to_decimal(match["number"])
    except ValueError:
        return ParsedAmount()

    unit_token = match["unit"]
    unit, multiplier = UNIT_TABLE.get(unit_token, (AmountUnit.NONE, 1)) if unit_token else (AmountUnit.NONE, 1)
    value = int((number * multiplier).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    return ParsedAmount(
        raw_token=match.group(0).strip(),
        value=max(value, 0),
        unit_applied=unit,
    )


def to_decimal(num_str: str) -> Decimal:
    """Convert a numeric token using Vietnamese separator conventions.

    * один разделитель – десятичный: ``"1,5"`` / ``"1.5"`` → 1.5
    * несколько разделителей – разделители тысяч: ``"1.500.000"`` → 1500000
    """
    cleaned = num_str.strip().replace(" ", "")
    if not cleaned:
        raise ValueError("Input string cannot be empty")

    separators = re.findall(r"[.,]", cleaned)
    if len(separators) > 1:
        final_str = re.sub(r"[.,]", "", cleaned)
    else:
        final_str = cleaned.replace(",", ".")

    try:
        return Decimal(final_str)
    except InvalidOperation:
        raise ValueError(f"Cannot convert '{num_str}' to a number")


def strip_amount(text: str) -> str:
    """*text* without its first amount token: "Ăn tối 50k" → "Ăn tối"."""
    stripped = AMOUNT_RE.sub(" ", text, count=1)
    return " ".join(stripped.split()).strip(" ,.;:-/")
