# libs/normalizer.py
"""Приведение входного текста к единому виду перед разбором."""
from __future__ import annotations

import unicodedata

__all__ = ["InputError", "normalize_message", "fold"]


class InputError(ValueError):
    """Пустое или нечитаемое сообщение пользователя. Не восстанавливается."""


def normalize_message(raw: object) -> str:
    """Return *raw* trimmed and NFC-normalised.

    Vietnamese text arrives both precomposed and with combining marks
    (``"tuần"`` vs ``"tu\\u0300\\u0302n"``); keyword tables are written in NFC so
    everything is folded to NFC here.
    """
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise InputError("Message is not valid UTF-8") from exc
    if not isinstance(raw, str):
        raise InputError("Message must be a string")

    text = unicodedata.normalize("NFC", raw).strip()
    if not text:
        raise InputError("Message must not be empty")
    return " ".join(text.split())


def fold(text: str) -> str:
    """Lower-case NFC form used for every keyword lookup."""
    return unicodedata.normalize("NFC", text).lower()
