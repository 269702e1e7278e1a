# libs/intents.py
"""Keyword tables and the fixed-precedence intent classifier.

Порядок правил важен: первое совпадение побеждает. "Tạo ngân sách ăn uống
500k" содержит и "ngân sách", и "ăn" + сумму – это бюджет, а не расход.
"""
from __future__ import annotations

import re
from typing import NamedTuple, Optional

from libs.amounts import extract_amount
from libs.models import ActionType, BudgetPeriod, ParsedAmount, TxnType
from libs.normalizer import fold

__all__ = [
    "IntentMatch",
    "classify_intent",
    "classify_txn_type",
    "detect_period",
    "has_daily_phrasing",
]

# ---------------------------------------------------------------------------
# Keyword sets
# ---------------------------------------------------------------------------
BUDGET_KEYWORDS = ("ngân sách", "budget")
CATEGORY_KEYWORDS = ("tạo danh mục", "danh mục mới")
WALLET_KEYWORDS = ("tạo ví", "ví mới")
TRANSACTION_KEYWORDS = (
    "ăn", "uống", "mua", "chi", "trả", "thu", "nhận", "lương",
    "cafe", "cà phê", "đổ xăng", "salary", "income",
)
INCOME_KEYWORDS = ("thu", "nhận", "lương", "salary", "income")

WEEKLY_KEYWORDS = ("tuần", "weekly", "week")
MONTHLY_KEYWORDS = ("tháng", "monthly", "month")
DAILY_KEYWORDS = ("ngày", "daily", "day")

INSIGHT_CONFIDENCE = 0.3


class IntentMatch(NamedTuple):
    action_type: ActionType
    amount: ParsedAmount
    confidence: float


def _contains_word(text: str, keyword: str) -> bool:
    """Совпадение по границам слов: "chi" не должно ловиться в "chiếc"."""
    return re.search(rf"(?<!\w){re.escape(keyword)}(?!\w)", text) is not None


def _any_word(text: str, keywords: tuple[str, ...]) -> bool:
    return any(_contains_word(text, kw) for kw in keywords)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def classify_intent(text: str, amount: Optional[ParsedAmount] = None) -> IntentMatch:
    """Classify *text* into one of the five action types.

    1. budget      – "ngân sách" / "budget"
    2. category    – "tạo danh mục" / "danh mục mới"
    3. wallet      – "tạo ví" / "ví mới"
    4. transaction – amount found **and** a spend/earn keyword present
    5. insight     – everything else, low confidence
    """
    folded = fold(text)
    if amount is None:
        amount = extract_amount(folded)

    if _any_word(folded, BUDGET_KEYWORDS):
        return IntentMatch(ActionType.CREATE_BUDGET, amount, 0.85)
    if _any_word(folded, CATEGORY_KEYWORDS):
        return IntentMatch(ActionType.CREATE_CATEGORY, amount, 0.8)
    if _any_word(folded, WALLET_KEYWORDS):
        return IntentMatch(ActionType.CREATE_WALLET, amount, 0.8)
    if amount.found and _any_word(folded, TRANSACTION_KEYWORDS):
        return IntentMatch(ActionType.CREATE_TRANSACTION, amount, 0.8)
    return IntentMatch(ActionType.FINANCIAL_INSIGHT, amount, INSIGHT_CONFIDENCE)


def classify_txn_type(text: str) -> TxnType:
    """income, если есть "thu"/"nhận"/"lương"/…, иначе expense."""
    if _any_word(fold(text), INCOME_KEYWORDS):
        return TxnType.INCOME
    return TxnType.EXPENSE


def detect_period(text: str) -> Optional[BudgetPeriod]:
    """weekly / monthly, если период назван явно; для "ngày" без недели – monthly.

    None означает, что пользователь период вообще не упомянул.
    """
    folded = fold(text)
    if _any_word(folded, WEEKLY_KEYWORDS):
        return BudgetPeriod.WEEKLY
    if _any_word(folded, MONTHLY_KEYWORDS):
        return BudgetPeriod.MONTHLY
    if has_daily_phrasing(folded):
        return BudgetPeriod.MONTHLY
    return None


def has_daily_phrasing(text: str) -> bool:
    return _any_word(fold(text), DAILY_KEYWORDS)
