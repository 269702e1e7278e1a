# libs/llm_core.py
"""Мини-схемы ответов Gemini и разбор «сырого» текста в них.

Ответ модели – недоверенная граница: сначала вырезаем JSON-подстроку, потом
валидируем строгой Pydantic-схемой, и только потом отдаём дальше.
"""
from __future__ import annotations

import json
import re
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt, StrictStr
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from libs.models import ActionType, TransactionExtraction
from libs.proposals import ActionDraft
from libs.results import Ok, ParseError, ProviderResult, ValidationError

__all__ = [
    "ProviderReply",
    "ProviderActionData",
    "extract_json",
    "extract_json_array",
    "reply_to_draft",
    "reply_to_extraction",
]

_JSON_RE = re.compile(r"\{.*\}", re.S)  # от первой «{» до последней «}»
_JSON_ARRAY_RE = re.compile(r"\[.*\]", re.S)

# bool – подкласс int, строгие типы его не пропускают
Number = Union[StrictInt, StrictFloat]


class _StrictCamel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class ProviderActionData(_StrictCamel):
    """``actionData`` как его прислала модель. Все поля опциональны,
    обязательность проверяет validation gate, здесь – только типы."""

    amount: Optional[Number] = None
    description: Optional[StrictStr] = None
    type: Optional[StrictStr] = None
    category_id: Optional[StrictStr] = None
    wallet_id: Optional[StrictStr] = None
    suggested_category: Optional[StrictStr] = None
    suggested_wallet: Optional[StrictStr] = None
    name: Optional[StrictStr] = None
    default_type: Optional[StrictStr] = None
    color: Optional[StrictStr] = None
    balance: Optional[Number] = None
    period: Optional[StrictStr] = None


class ProviderReply(_StrictCamel):
    message: StrictStr
    action_type: Optional[StrictStr] = None
    action_data: Optional[ProviderActionData] = None
    confidence: Optional[Number] = None


class ProviderTransaction(_StrictCamel):
    amount: Number
    type: StrictStr
    description: StrictStr
    suggested_category: Optional[StrictStr] = None
    confidence: Optional[Number] = None


def extract_json(text: str) -> ProviderResult[dict[str, Any]]:
    """Locate the JSON object in free-form model output and decode it."""
    match = _JSON_RE.search(text or "")
    if match is None:
        return ParseError("no JSON object in provider reply", raw_text=text or "")
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        return ParseError(f"invalid JSON: {exc.msg}", raw_text=text)
    if not isinstance(data, dict):
        return ParseError("JSON root is not an object", raw_text=text)
    return Ok(data)


def extract_json_array(text: str) -> ProviderResult[list[Any]]:
    match = _JSON_ARRAY_RE.search(text or "")
    if match is None:
        return ParseError("no JSON array in provider reply", raw_text=text or "")
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        return ParseError(f"invalid JSON: {exc.msg}", raw_text=text)
    if not isinstance(data, list):
        return ParseError("JSON root is not an array", raw_text=text)
    return Ok(data)


def _to_vnd(value: Optional[Number]) -> int:
    if value is None or value < 0:
        return 0
    return int(round(value))


def _clamp(value: Optional[Number], default: float) -> float:
    if value is None:
        return default
    return max(0.0, min(1.0, float(value)))


def reply_to_draft(data: dict[str, Any], text: str) -> ProviderResult[ActionDraft]:
    """Validate a decoded chat reply into a draft.

    ``actionType`` values outside the known set are rejected, never passed on.
    """
    try:
        reply = ProviderReply.model_validate(data)
    except PydanticValidationError as exc:
        return ValidationError(f"reply shape mismatch: {exc.error_count()} error(s)")

    action_type: Optional[ActionType] = None
    if reply.action_type not in (None, "", "null"):
        try:
            action_type = ActionType(reply.action_type)
        except ValueError:
            return ValidationError(f"unknown actionType {reply.action_type!r}")

    payload = reply.action_data or ProviderActionData()
    draft = ActionDraft(
        source="provider",
        text=text,
        message=reply.message.strip(),
        action_type=action_type,
        confidence=_clamp(reply.confidence, 0.5),
        amount=_to_vnd(payload.amount),
        description=payload.description,
        type=payload.type,
        suggested_category=payload.category_id or payload.suggested_category,
        suggested_wallet=payload.wallet_id or payload.suggested_wallet,
        category_id=payload.category_id,
        period=payload.period,
        name=payload.name,
        default_type=payload.default_type,
        color=payload.color,
        balance=_to_vnd(payload.balance),
    )
    return Ok(draft)


def reply_to_extraction(data: dict[str, Any]) -> ProviderResult[TransactionExtraction]:
    try:
        reply = ProviderTransaction.model_validate(data)
        extraction = TransactionExtraction(
            amount=_to_vnd(reply.amount),
            type=reply.type,
            description=reply.description,
            suggested_category=reply.suggested_category,
            confidence=_clamp(reply.confidence, 0.8),
        )
    except PydanticValidationError as exc:
        return ValidationError(f"transaction shape mismatch: {exc.error_count()} error(s)")
    return Ok(extraction)


class KeywordList(BaseModel):
    keywords: list[str] = Field(..., min_length=1, max_length=3)
