# libs/gemini_provider.py
"""
Адаптер внешнего текстового провайдера (Google Gemini).

Контракт: ни один публичный метод :class:`ProviderAdapter` не бросает
исключений. Результат – :class:`~libs.results.Ok` или один из типизированных
отказов (``ProviderUnavailable``/``ParseError``/``ValidationError``), после
чего вызывающий код переключается на fallback.
"""
from __future__ import annotations

import asyncio
import functools
import hashlib
import json
import logging
import time
from functools import lru_cache
from typing import Any, Awaitable, Callable, Optional, Protocol, TypeVar

import diskcache
from google import genai
from google.genai import types

from libs.config import Settings, get_settings
from libs.llm_core import (
    KeywordList,
    extract_json,
    extract_json_array,
    reply_to_draft,
    reply_to_extraction,
)
from libs.metrics import PROVIDER_LATENCY, PROVIDER_RESULTS
from libs.models import ConversationContext, TransactionExtraction
from libs.proposals import ActionDraft
from libs.results import Ok, ProviderResult, ProviderUnavailable, ValidationError
from libs.sentry import sentry_capture

__all__ = ["TextProvider", "GeminiTextProvider", "ProviderAdapter", "get_adapter"]

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ────────────────────────────────
# 1. Провайдер как capability
# ────────────────────────────────
class TextProvider(Protocol):
    """Anything that turns a prompt into text. Tests pass a fake."""

    async def generate(self, prompt: str, *, json_mode: bool = False) -> str: ...


class GeminiTextProvider:
    """:class:`TextProvider` backed by the ``google-genai`` async client."""

    def __init__(self, *, api_key: str, model: str, temperature: float = 0.1) -> None:
        self._client = genai.Client(api_key=api_key)
        self._model = model
        self._temperature = temperature

    @property
    def model(self) -> str:
        return self._model

    async def generate(self, prompt: str, *, json_mode: bool = False) -> str:
        config = types.GenerateContentConfig(
            temperature=self._temperature,
            response_mime_type="application/json" if json_mode else "text/plain",
        )
        response = await self._client.aio.models.generate_content(
            model=self._model,
            contents=[types.Content(role="user", parts=[types.Part.from_text(text=prompt)])],
            config=config,
        )
        return response.text or ""


# ────────────────────────────────
# 2. Промпты
# ────────────────────────────────
CHAT_INSTRUCTIONS = """
You are a Vietnamese financial assistant chatbot. Respond naturally in Vietnamese to help users manage their finances.

IMPORTANT VALIDATION RULES:
1. For budgets: ONLY create action if categoryId AND amount AND period are clearly specified
2. For transactions: ONLY create action if amount is clearly specified
3. For categories/wallets: ONLY create action if name is clearly specified
4. If missing critical information, ASK for it (actionType null) instead of creating an incomplete action
5. Amounts are integer VND: "50k" = 50000, "2 triệu" = 2000000, "1,5 triệu" = 1500000
6. Daily budget amounts ("/ngày") are converted: x7 with period "weekly" if a week is mentioned, otherwise x30 with period "monthly"

Respond with ONLY one JSON object, no Markdown:
{
  "message": "Vietnamese response message",
  "actionType": "create_transaction|create_category|create_wallet|create_budget|financial_insight|null",
  "actionData": {
    // create_transaction: "amount" (number, REQUIRED), "description" (REQUIRED), "type": "income|expense" (REQUIRED),
    //                     "suggestedCategory": "category name or id", "suggestedWallet": "wallet name or id"
    // create_category:    "name" (REQUIRED), "defaultType": "income|expense", "color": "#hex"
    // create_wallet:      "name" (REQUIRED), "balance": number
    // create_budget:      "categoryId" (REQUIRED, existing category), "amount" (REQUIRED), "period": "weekly|monthly" (REQUIRED)
  },
  "confidence": 0.0-1.0
}

EXAMPLES:
User: "Tạo ngân sách ăn uống 100k/ngày"
{"message": "Tôi sẽ giúp bạn tạo ngân sách ăn uống 3.000.000 VNĐ/tháng (100.000 VNĐ x 30 ngày). Bạn có muốn tạo ngân sách này không?", "actionType": "create_budget", "actionData": {"categoryId": "Ăn uống", "amount": 3000000, "period": "monthly"}, "confidence": 0.9}

User: "Tạo ngân sách ăn uống 100k/ngày theo tuần"
{"message": "Tôi sẽ giúp bạn tạo ngân sách ăn uống 700.000 VNĐ/tuần (100.000 VNĐ x 7 ngày). Bạn có muốn tạo ngân sách này không?", "actionType": "create_budget", "actionData": {"categoryId": "Ăn uống", "amount": 700000, "period": "weekly"}, "confidence": 0.9}

User: "Tạo ngân sách ăn uống 500k"
{"message": "Bạn muốn thiết lập ngân sách ăn uống theo tuần hay tháng?", "actionType": null, "actionData": null, "confidence": 0.8}

User: "Tạo ngân sách ăn uống 700k/tuần"
{"message": "Tôi sẽ giúp bạn tạo ngân sách ăn uống 700.000 VNĐ/tuần. Bạn có muốn tạo ngân sách này không?", "actionType": "create_budget", "actionData": {"categoryId": "Ăn uống", "amount": 700000, "period": "weekly"}, "confidence": 0.95}

User: "Ăn tối 50k"
{"message": "Tôi sẽ giúp bạn tạo giao dịch ăn tối 50.000 VNĐ. Bạn có muốn tạo giao dịch này không?", "actionType": "create_transaction", "actionData": {"amount": 50000, "description": "Ăn tối", "type": "expense", "suggestedCategory": "Ăn uống"}, "confidence": 0.9}
""".strip()

TRANSACTION_INSTRUCTIONS = """
Parse this Vietnamese transaction input and extract:
1. Amount (integer VND; "k"/"nghìn" = thousands, "triệu"/"tr" = millions, "tỷ" = billions)
2. Type (income or expense, based on keywords like "chi", "thu", "nhận", "trả", "lương")
3. Description (clean description of the transaction)
4. Suggested category name if clear from context

Respond with ONLY valid JSON:
{"amount": number, "type": "income" | "expense", "description": "string", "suggestedCategory": "string or null", "confidence": number}

Examples:
"chi 50k cafe" -> {"amount": 50000, "type": "expense", "description": "cafe", "suggestedCategory": "Ăn uống", "confidence": 0.9}
"thu 2 triệu lương" -> {"amount": 2000000, "type": "income", "description": "lương", "suggestedCategory": "Lương", "confidence": 0.95}
""".strip()


def _dump(items: Any) -> str:
    return json.dumps(items, ensure_ascii=False, default=str)


def build_chat_prompt(text: str, context: ConversationContext) -> str:
    ctx = context.model_dump(mode="json", by_alias=True)
    return (
        f"{CHAT_INSTRUCTIONS}\n\n"
        f"Categories: {_dump(ctx['categories'])}\n"
        f"Wallets: {_dump(ctx['wallets'])}\n"
        f"Recent Transactions: {_dump(ctx['recentTransactions'][:5])}\n"
        f"Conversation History: {_dump(ctx['history'])}\n\n"
        f'User Message: "{text}"'
    )


def build_transaction_prompt(text: str) -> str:
    return f'{TRANSACTION_INSTRUCTIONS}\n\nVietnamese Transaction Input: "{text}"'


def build_category_prompt(description: str, category_names: list[str]) -> str:
    names = "\n".join(f"- {name}" for name in category_names)
    return (
        "Suggest a category for this Vietnamese transaction description.\n\n"
        f'Description: "{description}"\n\n'
        f"Available categories (respond with exact name):\n{names}\n\n"
        'Respond with ONLY the category name or "null" if unclear.'
    )


def build_keywords_prompt(description: str) -> str:
    return (
        "Extract meaningful keywords from this Vietnamese transaction description "
        "that could be used for future categorization.\n\n"
        f'Description: "{description}"\n\n'
        "Return 1-3 relevant keywords (vendors, activities, product types). "
        'Respond with ONLY a JSON array of strings: ["keyword1", "keyword2"]'
    )


# ────────────────────────────────
# 3. Адаптер
# ────────────────────────────────
def _never_raises(func: Callable[..., Awaitable[ProviderResult[T]]]) -> Callable[..., Awaitable[ProviderResult[T]]]:
    """Last-resort guard: unexpected exceptions become ``ProviderUnavailable``."""

    @functools.wraps(func)
    async def _wrapper(self: "ProviderAdapter", *args: Any, **kwargs: Any) -> ProviderResult[T]:
        try:
            result = await func(self, *args, **kwargs)
        except Exception as exc:  # noqa: BLE001 – контракт адаптера
            logger.exception("Provider adapter %s crashed", func.__name__)
            sentry_capture(exc, extras={"operation": func.__name__}, tags={"component": "provider"})
            result = ProviderUnavailable(f"{func.__name__} failed: {exc}")
        PROVIDER_RESULTS.labels(kind=result.kind).inc()
        if not isinstance(result, Ok):
            logger.warning("↩️  provider %s → %s: %s", func.__name__, result.kind, result.reason)
        return result

    return _wrapper


class ProviderAdapter:
    """Calls the provider, bounds it with a timeout and validates the reply."""

    def __init__(
        self,
        provider: Optional[TextProvider] = None,
        *,
        timeout: float = 10.0,
        cache: Optional[diskcache.Cache] = None,
        cache_namespace: str = "",
    ) -> None:
        self._provider = provider
        self._timeout = timeout
        self._cache = cache
        self._cache_namespace = cache_namespace

    @property
    def available(self) -> bool:
        return self._provider is not None

    async def _complete(self, prompt: str, *, json_mode: bool) -> ProviderResult[str]:
        if self._provider is None:
            return ProviderUnavailable("provider not configured")

        cache_key = hashlib.sha256(f"{self._cache_namespace}\n{json_mode}\n{prompt}".encode()).hexdigest()
        if self._cache is not None and cache_key in self._cache:
            logger.debug("💾 provider cache hit %s", cache_key[:12])
            return Ok(self._cache[cache_key])  # type: ignore[arg-type]

        started = time.perf_counter()
        try:
            raw_answer = await asyncio.wait_for(
                self._provider.generate(prompt, json_mode=json_mode),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            return ProviderUnavailable(f"provider timed out after {self._timeout}s")
        except Exception as exc:  # noqa: BLE001 – сеть, квоты, ошибки SDK
            sentry_capture(exc, tags={"component": "provider"})
            return ProviderUnavailable(f"provider call failed: {exc}")
        finally:
            PROVIDER_LATENCY.observe(time.perf_counter() - started)

        if not isinstance(raw_answer, str):
            return ProviderUnavailable("provider returned non-text reply")
        if self._cache is not None:
            self._cache[cache_key] = raw_answer
        return Ok(raw_answer)

    @_never_raises
    async def propose(self, text: str, context: ConversationContext) -> ProviderResult[ActionDraft]:
        """Ask the provider for a full chat reply and validate it into a draft."""
        raw = await self._complete(build_chat_prompt(text, context), json_mode=True)
        if not isinstance(raw, Ok):
            return raw
        decoded = extract_json(raw.value)
        if not isinstance(decoded, Ok):
            return decoded
        return reply_to_draft(decoded.value, text)

    @_never_raises
    async def extract_transaction(self, text: str) -> ProviderResult[TransactionExtraction]:
        raw = await self._complete(build_transaction_prompt(text), json_mode=True)
        if not isinstance(raw, Ok):
            return raw
        decoded = extract_json(raw.value)
        if not isinstance(decoded, Ok):
            return decoded
        return reply_to_extraction(decoded.value)

    @_never_raises
    async def suggest_category(self, description: str, category_names: list[str]) -> ProviderResult[Optional[str]]:
        """One of *category_names* (exact) or ``Ok(None)`` when the model is unsure."""
        raw = await self._complete(build_category_prompt(description, category_names), json_mode=False)
        if not isinstance(raw, Ok):
            return raw
        answer = raw.value.strip().strip("'\"").strip()
        if not answer or answer.lower() == "null":
            return Ok(None)
        by_folded = {name.lower(): name for name in category_names}
        if answer.lower() not in by_folded:
            return ValidationError(f"unknown category {answer!r}")
        return Ok(by_folded[answer.lower()])

    @_never_raises
    async def suggest_keywords(self, description: str) -> ProviderResult[list[str]]:
        raw = await self._complete(build_keywords_prompt(description), json_mode=True)
        if not isinstance(raw, Ok):
            return raw
        decoded = extract_json_array(raw.value)
        if not isinstance(decoded, Ok):
            return decoded
        keywords = [k.strip().lower() for k in decoded.value if isinstance(k, str) and k.strip()]
        if not keywords:
            return ValidationError("no string keywords in reply")
        return Ok(KeywordList(keywords=keywords[:3]).keywords)


# ────────────────────────────────
# 4. Фабрика
# ────────────────────────────────
def build_adapter(settings: Settings) -> ProviderAdapter:
    provider: Optional[TextProvider] = None
    if settings.gemini_api_key:
        provider = GeminiTextProvider(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            temperature=settings.gemini_temperature,
        )
    else:
        logger.warning("Gemini API key not configured. AI features will use fallback parsing.")

    cache = diskcache.Cache(str(settings.llm_cache_dir)) if settings.llm_cache_dir else None
    if cache is not None:
        logger.info("Кеш ответов Gemini загружен: %s записей", len(cache))
    return ProviderAdapter(
        provider,
        timeout=settings.gemini_timeout_seconds,
        cache=cache,
        cache_namespace=settings.gemini_model,
    )


@lru_cache(maxsize=1)
def get_adapter() -> ProviderAdapter:
    """Return singleton ProviderAdapter configured from *libs.config*."""
    return build_adapter(get_settings())
