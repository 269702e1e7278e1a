# libs/validation.py
"""Validation gate: the only way from an :class:`ActionDraft` to a proposal.

| action              | required                                   |
|---------------------|--------------------------------------------|
| create_transaction  | amount > 0                                 |
| create_category     | non-empty name                             |
| create_wallet       | non-empty name                             |
| create_budget       | resolvable category, amount > 0, period    |
| financial_insight   | –                                          |

Anything missing becomes a clarification turn (``action_type=None``).
Category and wallet references are resolved to ids here, once, so
downstream code only ever sees ids.
"""
from __future__ import annotations

import logging
from typing import Optional

from libs.intents import classify_txn_type
from libs.keywords import match_category, match_category_name
from libs.models import (
    ActionProposal,
    ActionType,
    BudgetAction,
    BudgetPeriod,
    CategoryAction,
    ConversationContext,
    DEFAULT_CATEGORY_COLOR,
    TransactionAction,
    TxnType,
    WalletAction,
)
from libs.proposals import (
    ActionDraft,
    budget_message,
    category_message,
    clarification_message,
    help_message,
    transaction_message,
    wallet_message,
)

__all__ = ["finalize", "missing_fields", "resolve_category"]

logger = logging.getLogger(__name__)

# Порядок важен: сообщение перечисляет поля в этом порядке
BUDGET_FIELDS = ("category", "amount", "period")


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


def _txn_type(raw: Optional[str], text: str) -> TxnType:
    try:
        return TxnType(raw) if raw else classify_txn_type(text)
    except ValueError:
        return classify_txn_type(text)


def _period(raw: Optional[str]) -> Optional[BudgetPeriod]:
    try:
        return BudgetPeriod(raw) if raw else None
    except ValueError:
        return None


def resolve_category(text: str, ref: Optional[str], context: ConversationContext) -> Optional[str]:
    """Keyword table → explicit reference (id or name) → category name in text."""
    by_keyword = match_category(text, context.keyword_mappings)
    if by_keyword:
        return by_keyword
    category = context.find_category(ref)
    if category is not None:
        return category.id
    return match_category_name(text, context.categories)


def missing_fields(draft: ActionDraft, context: ConversationContext) -> list[str]:
    """Which required fields the draft lacks for its action type."""
    if draft.action_type == ActionType.CREATE_TRANSACTION:
        return [] if draft.amount > 0 else ["amount"]
    if draft.action_type in (ActionType.CREATE_CATEGORY, ActionType.CREATE_WALLET):
        return [] if (draft.name or "").strip() else ["name"]
    if draft.action_type == ActionType.CREATE_BUDGET:
        present = {
            "category": resolve_category(draft.text, draft.category_id, context) is not None,
            "amount": draft.amount > 0,
            "period": _period(draft.period) is not None,
        }
        return [f for f in BUDGET_FIELDS if not present[f]]
    return []


def _clarify(
    draft: ActionDraft, action_type: ActionType, missing: list[str], context: ConversationContext
) -> ActionProposal:
    logger.info("❓ %s draft (%s) is missing %s", action_type.value, draft.source, ", ".join(missing))
    return ActionProposal(
        message=clarification_message(action_type, missing, context),
        action_type=None,
        action_data=None,
        confidence=0.8 if len(missing) == 1 else 0.7,
    )


def finalize(draft: ActionDraft, context: ConversationContext) -> ActionProposal:
    """Apply the required-field rules and build the final proposal."""
    if draft.action_type is None:
        # Провайдер сам задал уточняющий вопрос
        return ActionProposal(
            message=draft.message or help_message(),
            confidence=_clamp(draft.confidence),
        )

    if draft.action_type == ActionType.FINANCIAL_INSIGHT:
        return ActionProposal(
            message=draft.message or help_message(),
            action_type=ActionType.FINANCIAL_INSIGHT,
            confidence=_clamp(draft.confidence),
        )

    missing = missing_fields(draft, context)
    if missing:
        return _clarify(draft, draft.action_type, missing, context)

    data: TransactionAction | CategoryAction | WalletAction | BudgetAction
    if draft.action_type == ActionType.CREATE_TRANSACTION:
        description = (draft.description or "").strip() or draft.text
        wallet = context.find_wallet(draft.suggested_wallet)
        if wallet is None and context.wallets:
            wallet = context.wallets[0]
        # Ключевое слово ищем в исходном сообщении: модель может переписать описание
        category_id = match_category(draft.text, context.keyword_mappings) or resolve_category(
            description, draft.suggested_category, context
        )
        data = TransactionAction(
            amount=draft.amount,
            description=description,
            type=_txn_type(draft.type, draft.text),
            suggested_category=category_id,
            suggested_wallet=wallet.id if wallet else None,
        )
        default_message = transaction_message(data, context)
    elif draft.action_type == ActionType.CREATE_CATEGORY:
        data = CategoryAction(
            name=draft.name or "",
            default_type=_txn_type(draft.default_type, draft.text),
            color=draft.color or DEFAULT_CATEGORY_COLOR,
        )
        default_message = category_message(data)
    elif draft.action_type == ActionType.CREATE_WALLET:
        data = WalletAction(name=draft.name or "", balance=draft.balance)
        default_message = wallet_message(data)
    else:
        period = _period(draft.period)
        category_id = resolve_category(draft.text, draft.category_id, context)
        if period is None or category_id is None:
            return _clarify(draft, draft.action_type, missing_fields(draft, context), context)
        data = BudgetAction(category_id=category_id, amount=draft.amount, period=period)
        default_message = budget_message(data, context)

    return ActionProposal(
        message=draft.message or default_message,
        action_type=draft.action_type,
        action_data=data,
        confidence=_clamp(draft.confidence),
    )
