# libs/execution.py
"""Confirmation bridge: a confirmed proposal becomes one create-request.

Предложение не имеет идентификатора, поэтому повторное подтверждение того же
payload создаст вторую транзакцию. Для категорий, кошельков и бюджетов от
дублей защищают проверки уникальности в хранилище.
"""
from __future__ import annotations

import logging
from typing import Any, Mapping, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from libs.interpreter import InterpreterState, log_state
from libs.metrics import EXECUTIONS
from libs.models import (
    ACTION_PAYLOADS,
    ActionType,
    BudgetAction,
    CategoryAction,
    CreatedEntity,
    TransactionAction,
    WalletAction,
)
from libs.normalizer import InputError
from libs.sentry import sentry_capture
from libs.store import FinanceStore, StoreError

__all__ = ["ExecutionBridge", "ExecutionError"]

logger = logging.getLogger(__name__)


class ExecutionError(Exception):
    """Хранилище отказало в создании. Сообщение показывается как есть."""

    def __init__(self, message: str, *, action_type: ActionType, status_code: int = 500) -> None:
        super().__init__(message)
        self.message = message
        self.action_type = action_type
        self.status_code = status_code


def _coerce_payload(action_type: ActionType, action_data: Union[BaseModel, Mapping[str, Any]]) -> BaseModel:
    model = ACTION_PAYLOADS.get(action_type)
    if model is None:
        raise InputError(f"{action_type.value} is not an executable action")
    if isinstance(action_data, model):
        return action_data
    payload = action_data.model_dump() if isinstance(action_data, BaseModel) else dict(action_data)
    try:
        return model.model_validate(payload)
    except PydanticValidationError as exc:
        raise InputError(f"Invalid {action_type.value} payload: {exc.error_count()} error(s)") from exc


class ExecutionBridge:
    def __init__(self, store: FinanceStore) -> None:
        self._store = store

    async def confirm(
        self,
        action_type: Union[ActionType, str],
        action_data: Union[BaseModel, Mapping[str, Any]],
    ) -> CreatedEntity:
        """Dispatch a confirmed action to the matching store create-operation.

        Raises
        ------
        InputError
            Unknown / non-executable action type or malformed payload.
        ExecutionError
            The store rejected the create (duplicate name, missing category…).
        """
        try:
            action_type = ActionType(action_type)
        except ValueError as exc:
            raise InputError(f"Unknown action type {action_type!r}") from exc

        payload = _coerce_payload(action_type, action_data)
        log_state(InterpreterState.CONFIRMED, action_type.value)

        log_state(InterpreterState.EXECUTING, action_type.value)
        try:
            if isinstance(payload, TransactionAction):
                record = await self._store.create_transaction(payload)
            elif isinstance(payload, CategoryAction):
                record = await self._store.create_category(payload)
            elif isinstance(payload, WalletAction):
                record = await self._store.create_wallet(payload)
            elif isinstance(payload, BudgetAction):
                record = await self._store.create_budget(payload)
            else:
                raise InputError(f"{action_type.value} is not an executable action")
        except StoreError as exc:
            EXECUTIONS.labels(action_type=action_type.value, status="failed").inc()
            log_state(InterpreterState.FAILED, exc.message)
            if exc.status_code >= 500:
                sentry_capture(exc, extras={"action_type": action_type.value}, tags={"component": "execution"})
            raise ExecutionError(exc.message, action_type=action_type, status_code=exc.status_code) from exc

        EXECUTIONS.labels(action_type=action_type.value, status="done").inc()
        log_state(InterpreterState.DONE, str(record.get("id")))
        logger.info("✅ %s created: %s", action_type.value, record.get("id"))
        return CreatedEntity(
            id=str(record["id"]),
            action_type=action_type,
            created=record.get("created"),
            updated=record.get("updated"),
            record=dict(record),
        )
