# libs/results.py
"""Typed outcomes of the provider path.

Провайдер никогда не бросает исключения наружу – вместо этого возвращает
один из вариантов ниже. Дальше по конвейеру остаётся либо ``Ok`` с уже
провалидированным предложением, либо явный сигнал "используй fallback".
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, TypeVar, Union

__all__ = [
    "Ok",
    "ProviderUnavailable",
    "ParseError",
    "ValidationError",
    "ProviderFailure",
    "ProviderResult",
    "or_else",
]

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T
    kind: str = "ok"


@dataclass(frozen=True)
class ProviderUnavailable:
    """Провайдер не настроен, упал по сети или не ответил вовремя."""

    reason: str
    kind: str = "unavailable"


@dataclass(frozen=True)
class ParseError:
    """В ответе не нашлось JSON-объекта или он не декодируется."""

    reason: str
    raw_text: str = ""
    kind: str = "parse_error"


@dataclass(frozen=True)
class ValidationError:
    """JSON есть, но не совпадает с ожидаемой схемой."""

    reason: str
    kind: str = "validation_error"


ProviderFailure = Union[ProviderUnavailable, ParseError, ValidationError]
ProviderResult = Union[Ok[T], ProviderFailure]


def or_else(result: "ProviderResult[T]", fallback: Callable[[ProviderFailure], T]) -> T:
    """Unwrap *result* or compute the value from *fallback* on any failure."""
    if isinstance(result, Ok):
        return result.value
    return fallback(result)
