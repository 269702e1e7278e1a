# libs/interpreter.py
"""Natural-language financial command interpreter.

Точка входа: ``await Interpreter(adapter).interpret(message, context)``.

    text → normalize → provider attempt ──ok──────────┐
                              └─unavailable→ fallback ─┴→ validation gate → proposal

Состояние между вызовами не хранится: всё, что нужно, приходит в
``ConversationContext``.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Iterable, Optional

from libs.fallback import fallback_draft, fallback_transaction
from libs.gemini_provider import ProviderAdapter
from libs.keywords import match_category
from libs.metrics import CLARIFICATIONS, PROPOSALS
from libs.models import ActionProposal, ConversationContext, KeywordMapping, TransactionExtraction
from libs.normalizer import normalize_message
from libs.proposals import ActionDraft
from libs.results import Ok, ProviderFailure, or_else
from libs.validation import finalize

__all__ = ["Interpreter", "InterpreterState"]

logger = logging.getLogger(__name__)


class InterpreterState(str, Enum):
    AWAITING_INPUT = "awaiting_input"
    PARSING = "parsing"
    PROVIDER_ATTEMPT = "provider_attempt"
    VALIDATING = "validating"
    PROPOSAL_READY = "proposal_ready"
    NEEDS_CLARIFICATION = "needs_clarification"
    CONFIRMED = "confirmed"
    EXECUTING = "executing"
    DONE = "done"
    FAILED = "failed"


def log_state(state: InterpreterState, detail: str = "") -> None:
    logger.debug("⏱  %s %s", state.value, detail)


class Interpreter:
    """Stateless pipeline; one instance may serve concurrent requests."""

    def __init__(self, adapter: ProviderAdapter) -> None:
        self._adapter = adapter

    @property
    def provider_available(self) -> bool:
        return self._adapter.available

    async def interpret(self, message: str, context: ConversationContext) -> ActionProposal:
        """Turn *message* into a validated proposal or a clarification turn.

        Raises
        ------
        InputError
            *message* is empty after trimming.
        """
        log_state(InterpreterState.PARSING)
        text = normalize_message(message)

        log_state(InterpreterState.PROVIDER_ATTEMPT)
        result = await self._adapter.propose(text, context)

        def _use_fallback(failure: ProviderFailure) -> ActionDraft:
            logger.info("🔁 fallback parser for %r (provider: %s)", text[:60], failure.kind)
            return fallback_draft(text, context)

        draft = or_else(result, _use_fallback)

        log_state(InterpreterState.VALIDATING, draft.source)
        proposal = finalize(draft, context)

        if proposal.is_clarification:
            CLARIFICATIONS.labels(source=draft.source).inc()
            log_state(InterpreterState.NEEDS_CLARIFICATION)
        else:
            PROPOSALS.labels(action_type=proposal.action_type.value, source=draft.source).inc()
            log_state(InterpreterState.PROPOSAL_READY, proposal.action_type.value)
        return proposal

    async def parse_transaction(
        self, message: str, context: Optional[ConversationContext] = None
    ) -> TransactionExtraction:
        """Single-transaction extraction without dialogue or validation."""
        text = normalize_message(message)
        result = await self._adapter.extract_transaction(text)
        extraction = or_else(result, lambda _failure: fallback_transaction(text, context))
        if context is not None and isinstance(result, Ok):
            by_keyword = match_category(text, context.keyword_mappings)
            if by_keyword:
                extraction = extraction.model_copy(update={"suggested_category": by_keyword})
        return extraction

    async def suggest_category(
        self,
        description: str,
        mappings: Iterable[KeywordMapping],
        context: Optional[ConversationContext] = None,
    ) -> Optional[str]:
        """Category id for *description*: keyword table first, provider second."""
        text = normalize_message(description)
        by_keyword = match_category(text, mappings)
        if by_keyword:
            return by_keyword
        if context is None or not context.categories:
            return None

        result = await self._adapter.suggest_category(text, [c.name for c in context.categories])
        name = or_else(result, lambda _failure: None)
        category = context.find_category(name)
        return category.id if category else None

    async def suggest_keywords(self, description: str) -> list[str]:
        text = normalize_message(description)
        result = await self._adapter.suggest_keywords(text)
        return or_else(result, lambda _failure: [text.lower()])
