# libs/fallback.py
"""Deterministic rule engine used whenever the provider is absent or fails.

Цепочка: сумма → намерение → (бюджет: период) → категория по ключевым словам.
Никакого I/O и случайности: одинаковый вход и одинаковый контекст дают
побайтно одинаковый результат.
"""
from __future__ import annotations

import re

from libs.amounts import AMOUNT_RE, extract_amount, strip_amount
from libs.intents import classify_intent, classify_txn_type, detect_period, has_daily_phrasing
from libs.keywords import match_category
from libs.models import ActionType, BudgetPeriod, ConversationContext, TransactionExtraction
from libs.proposals import ActionDraft, help_message
from libs.validation import resolve_category

__all__ = ["fallback_draft", "fallback_transaction"]

# Confidence heuristics
TXN_WITH_CATEGORY = 0.9
TXN_WITHOUT_CATEGORY = 0.8
BUDGET_CONFIDENCE = 0.85
ENTITY_CONFIDENCE = 0.8
INSIGHT_CONFIDENCE = 0.3
EXTRACTION_CONFIDENCE = 0.5

DAYS_PER_WEEK = 7
DAYS_PER_MONTH = 30

_CATEGORY_TRIGGERS = re.compile(
    r"(?<!\w)(?:tạo\s+danh\s+mục(?:\s+mới)?|danh\s+mục\s+mới|cho|tên\s+là|tên)(?!\w)",
    re.IGNORECASE,
)
_WALLET_TRIGGERS = re.compile(
    r"(?<!\w)(?:tạo\s+ví(?:\s+mới)?|ví\s+mới|với\s+số\s+dư|số\s+dư|tên\s+là|tên)(?!\w)",
    re.IGNORECASE,
)


def _entity_name(text: str, triggers: re.Pattern[str]) -> str:
    name = triggers.sub(" ", AMOUNT_RE.sub(" ", text, count=1))
    return " ".join(name.split()).strip(" ,.;:-\"'")


def _budget_draft(text: str, context: ConversationContext) -> ActionDraft:
    amount = extract_amount(text).value
    period = detect_period(text)

    if has_daily_phrasing(text) and period is not None:
        amount *= DAYS_PER_WEEK if period == BudgetPeriod.WEEKLY else DAYS_PER_MONTH

    return ActionDraft(
        source="fallback",
        text=text,
        action_type=ActionType.CREATE_BUDGET,
        amount=amount,
        period=period.value if period else None,
        category_id=resolve_category(text, None, context),
        confidence=BUDGET_CONFIDENCE,
    )


def fallback_draft(text: str, context: ConversationContext) -> ActionDraft:
    """Interpret *text* with rules only. *text* must already be normalised."""
    intent = classify_intent(text)

    if intent.action_type == ActionType.CREATE_BUDGET:
        return _budget_draft(text, context)

    if intent.action_type == ActionType.CREATE_CATEGORY:
        return ActionDraft(
            source="fallback",
            text=text,
            action_type=ActionType.CREATE_CATEGORY,
            name=_entity_name(text, _CATEGORY_TRIGGERS),
            default_type=classify_txn_type(text).value,
            confidence=ENTITY_CONFIDENCE,
        )

    if intent.action_type == ActionType.CREATE_WALLET:
        return ActionDraft(
            source="fallback",
            text=text,
            action_type=ActionType.CREATE_WALLET,
            name=_entity_name(text, _WALLET_TRIGGERS),
            balance=intent.amount.value,
            confidence=ENTITY_CONFIDENCE,
        )

    if intent.action_type == ActionType.CREATE_TRANSACTION:
        description = strip_amount(text) or text
        category_id = resolve_category(description, None, context)
        return ActionDraft(
            source="fallback",
            text=text,
            action_type=ActionType.CREATE_TRANSACTION,
            amount=intent.amount.value,
            description=description,
            type=classify_txn_type(text).value,
            suggested_category=category_id,
            confidence=TXN_WITH_CATEGORY if category_id else TXN_WITHOUT_CATEGORY,
        )

    return ActionDraft(
        source="fallback",
        text=text,
        message=help_message(),
        action_type=ActionType.FINANCIAL_INSIGHT,
        confidence=INSIGHT_CONFIDENCE,
    )


def fallback_transaction(text: str, context: ConversationContext | None = None) -> TransactionExtraction:
    """Rule-based single-transaction extraction (no dialogue, no validation)."""
    mappings = context.keyword_mappings if context else []
    return TransactionExtraction(
        amount=extract_amount(text).value,
        type=classify_txn_type(text),
        description=text.strip(),
        suggested_category=match_category(text, mappings),
        confidence=EXTRACTION_CONFIDENCE,
    )
