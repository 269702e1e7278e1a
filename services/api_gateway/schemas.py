# services/api_gateway/schemas.py
"""Pydantic DTO-models used by *API Gateway*.

Отделяем их от `main.py`, чтобы:
1. Избежать циклических импортов.
2. Упростить автогенерацию OpenAPI-документации.
"""
from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from libs.models import Category, ConversationTurn, Transaction, Wallet


class _Payload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChatContextPayload(_Payload):
    """Контекст от клиента. Не переданные списки подгружаются из хранилища."""

    categories: Optional[list[Category]] = None
    wallets: Optional[list[Wallet]] = None
    recent_transactions: Optional[list[Transaction]] = None
    history: list[ConversationTurn] = Field(default_factory=list)


class ChatPayload(_Payload):
    message: str = Field(...)  # example="Ăn tối 50k"
    context: Optional[ChatContextPayload] = None

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={"description": "Free-form user message plus optional conversation context."},
    )


class ConfirmPayload(_Payload):
    action_type: str = Field(...)  # example="create_transaction"
    action_data: dict[str, Any] = Field(...)


class ParseTransactionPayload(_Payload):
    input: str = Field(...)  # example="chi 50k cafe"


class SuggestCategoryPayload(_Payload):
    description: str = Field(...)  # example="grab đi làm"


class SuggestCategoryResponse(_Payload):
    suggested_category: Optional[str] = None


class SuggestKeywordsResponse(_Payload):
    keywords: list[str]


class ErrorResponse(BaseModel):
    error: str
