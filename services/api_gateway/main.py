# services/api_gateway/main.py
"""FastAPI шлюз финансового ассистента.

* **POST /ai/chat**               сообщение пользователя → ActionProposal.
* **POST /ai/confirm**            подтверждённое действие → запись в хранилище.
* **POST /ai/parse-transaction**  разбор одной фразы о транзакции.
* **POST /ai/suggest-category**   категория по описанию.
* **POST /ai/suggest-keywords**   ключевые слова для будущей категоризации.
* **GET  /health**                проверка живости.

❗ DTO-модели вынесены в `services.api_gateway.schemas`.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict

import uvicorn
from fastapi import Depends, FastAPI, status
from fastapi.responses import JSONResponse

from libs.config import get_settings
from libs.execution import ExecutionBridge, ExecutionError
from libs.gemini_provider import get_adapter
from libs.interpreter import Interpreter
from libs.metrics import start_metrics_server
from libs.models import ConversationContext
from libs.normalizer import InputError
from libs.sentry import init_sentry, sentry_capture
from libs.store import FinanceStore, get_store, load_context
from services.api_gateway.schemas import (
    ChatPayload,
    ConfirmPayload,
    ParseTransactionPayload,
    SuggestCategoryPayload,
    SuggestCategoryResponse,
    SuggestKeywordsResponse,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("API Gateway started (provider enabled: %s)", get_settings().provider_enabled)
    yield
    logger.info("API Gateway shutting down…")


app = FastAPI(title="Finance Assistant API", version="0.1.0", lifespan=lifespan)


# ---------------------------------------------------------------------------#
# Dependencies                                                               #
# ---------------------------------------------------------------------------#
def get_interpreter() -> Interpreter:
    return Interpreter(get_adapter())


def get_finance_store() -> FinanceStore:
    return get_store()


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def _build_context(payload: ChatPayload, store: FinanceStore) -> ConversationContext:
    """Контекст клиента дополняется свежими данными из хранилища."""
    client_ctx = payload.context
    history = client_ctx.history if client_ctx else []
    context = await load_context(store, history=history)
    if client_ctx is None:
        return context
    update: dict[str, Any] = {}
    if client_ctx.categories is not None:
        update["categories"] = client_ctx.categories
    if client_ctx.wallets is not None:
        update["wallets"] = client_ctx.wallets
    if client_ctx.recent_transactions is not None:
        update["recent_transactions"] = client_ctx.recent_transactions
    return context.model_copy(update=update)


# ---------------------------------------------------------------------------#
# Routes                                                                     #
# ---------------------------------------------------------------------------#
@app.post("/ai/chat", status_code=status.HTTP_200_OK, response_model=None)
async def chat(
    payload: ChatPayload,
    interpreter: Interpreter = Depends(get_interpreter),
    store: FinanceStore = Depends(get_finance_store),
) -> Dict[str, Any] | JSONResponse:
    """Интерпретируем сообщение. Пустое сообщение – 400, сбой провайдера не виден."""
    if not payload.message.strip():
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid message provided")
    try:
        context = await _build_context(payload, store)
        proposal = await interpreter.interpret(payload.message, context)
    except InputError as exc:
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))
    except Exception as exc:  # pragma: no cover – store down etc.
        sentry_capture(exc, extras={"message": payload.message}, tags={"component": "api"})
        logger.exception("Failed to process chat message")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to process chat message")
    return proposal.to_wire()


@app.post("/ai/confirm", status_code=status.HTTP_201_CREATED, response_model=None)
async def confirm(
    payload: ConfirmPayload,
    store: FinanceStore = Depends(get_finance_store),
) -> Dict[str, Any] | JSONResponse:
    """Выполняем подтверждённое действие. Ошибку хранилища возвращаем как есть."""
    bridge = ExecutionBridge(store)
    try:
        created = await bridge.confirm(payload.action_type, payload.action_data)
    except InputError as exc:
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))
    except ExecutionError as exc:
        code = exc.status_code if 400 <= exc.status_code < 600 else status.HTTP_500_INTERNAL_SERVER_ERROR
        return _error(code, exc.message)
    return created.model_dump(mode="json", by_alias=True)


@app.post("/ai/parse-transaction", response_model=None)
async def parse_transaction(
    payload: ParseTransactionPayload,
    interpreter: Interpreter = Depends(get_interpreter),
) -> Dict[str, Any] | JSONResponse:
    try:
        extraction = await interpreter.parse_transaction(payload.input)
    except InputError:
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid input provided")
    return extraction.model_dump(mode="json", by_alias=True)


@app.post("/ai/suggest-category", response_model=None)
async def suggest_category(
    payload: SuggestCategoryPayload,
    interpreter: Interpreter = Depends(get_interpreter),
    store: FinanceStore = Depends(get_finance_store),
) -> Dict[str, Any] | JSONResponse:
    try:
        context = await load_context(store, recent_limit=0)
        category_id = await interpreter.suggest_category(payload.description, context.keyword_mappings, context)
    except InputError:
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid description provided")
    except Exception as exc:  # pragma: no cover – store down
        sentry_capture(exc, tags={"component": "api"})
        logger.exception("Failed to suggest category")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to suggest category")
    return SuggestCategoryResponse(suggested_category=category_id).model_dump(by_alias=True)


@app.post("/ai/suggest-keywords", response_model=None)
async def suggest_keywords(
    payload: SuggestCategoryPayload,
    interpreter: Interpreter = Depends(get_interpreter),
) -> Dict[str, Any] | JSONResponse:
    try:
        keywords = await interpreter.suggest_keywords(payload.description)
    except InputError:
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid description provided")
    return SuggestKeywordsResponse(keywords=keywords).model_dump(by_alias=True)


@app.get("/health", status_code=status.HTTP_200_OK)
async def health(interpreter: Interpreter = Depends(get_interpreter)) -> Dict[str, Any]:  # noqa: D401
    """Проверка готовности. Провайдер опционален, поэтому на статус не влияет."""
    return {"status": "ok", "provider": interpreter.provider_available}


# ---------------------------------------------------------------------------#
# Entrypoint                                                                 #
# ---------------------------------------------------------------------------#
def main() -> None:  # pragma: no cover
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    settings = get_settings()
    init_sentry(release="api_gateway@0.1.0")
    start_metrics_server()
    uvicorn.run(
        "services.api_gateway.main:app",
        host=settings.api_host,
        port=settings.api_port,
        lifespan="on",
    )


if __name__ == "__main__":  # pragma: no cover
    main()
