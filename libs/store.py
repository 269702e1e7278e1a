# libs/store.py
"""A *very* thin async wrapper around the PocketBase HTTP API that owns the
finance data (categories, wallets, transactions, budgets, keyword mappings).

* Authenticates once with admin e-mail/password (from settings).
* Reads are retried with exponential back-off on transport errors.
* Creates are **not** retried – a create is not idempotent, and a half-known
  outcome must reach the user as an error rather than as a duplicate row.
* Uniqueness rules (category / wallet name, budget category+period) are
  checked here, before insert, and surface as :class:`StoreError` with 409.

Dependencies
------------
``httpx`` and ``tenacity``.
"""
from __future__ import annotations

import asyncio
import logging
from functools import lru_cache
from typing import Any, List, Mapping, Optional, Protocol

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from libs.config import get_settings
from libs.models import (
    BudgetAction,
    Category,
    CategoryAction,
    ConversationContext,
    KeywordMapping,
    Transaction,
    TransactionAction,
    Wallet,
    WalletAction,
)

__all__ = [
    "FinanceStore",
    "PocketBaseStore",
    "StoreError",
    "get_store",
    "load_context",
]

logger = logging.getLogger(__name__)

COLLECTION_CATEGORIES = "categories"
COLLECTION_WALLETS = "wallets"
COLLECTION_TRANSACTIONS = "transactions"
COLLECTION_BUDGETS = "budgets"
COLLECTION_KEYWORDS = "keyword_mappings"


class StoreError(Exception):
    """Ошибка хранилища; ``message`` показывается пользователю как есть."""

    def __init__(self, message: str, *, status_code: int = 500) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class FinanceStore(Protocol):
    """What the interpreter and the execution bridge need from storage."""

    async def list_categories(self) -> List[Category]: ...

    async def list_wallets(self) -> List[Wallet]: ...

    async def list_recent_transactions(self, limit: int = 10) -> List[Transaction]: ...

    async def list_keyword_mappings(self) -> List[KeywordMapping]: ...

    async def create_transaction(self, action: TransactionAction) -> Mapping[str, Any]: ...

    async def create_category(self, action: CategoryAction) -> Mapping[str, Any]: ...

    async def create_wallet(self, action: WalletAction) -> Mapping[str, Any]: ...

    async def create_budget(self, action: BudgetAction) -> Mapping[str, Any]: ...


def _quote(value: str) -> str:
    """Экранирование строки для PocketBase filter-синтаксиса."""
    return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or f"HTTP {resp.status_code}"
    return str(body.get("message") or body.get("error") or f"HTTP {resp.status_code}")


_read_retry = retry(
    retry=retry_if_exception_type(httpx.TransportError),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    stop=stop_after_attempt(3),
    reraise=True,
)


class PocketBaseStore:
    """
    Tiny async-client for the subset of PocketBase endpoints we use.
    """

    def __init__(
        self,
        *,
        base_url: str,
        email: str,
        password: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._email = email
        self._password = password
        self._client = httpx.AsyncClient(base_url=self._base_url, timeout=timeout, transport=transport)
        self._token: str | None = None

    # ------------------------------------------------------------------ auth
    async def _ensure_token(self) -> None:
        if self._token is not None or not self._email:
            return
        resp = await self._client.post(
            "/api/admins/auth-with-password",
            json={"identity": self._email, "password": self._password},
        )
        resp.raise_for_status()
        self._token = resp.json()["token"]
        self._client.headers["Authorization"] = f"Bearer {self._token}"

    # ------------------------------------------------------------- low level
    async def _get(self, path: str, **kwargs: Any) -> httpx.Response:
        await self._ensure_token()
        return await self._client.get(path, **kwargs)

    async def _post(self, path: str, **kwargs: Any) -> httpx.Response:
        await self._ensure_token()
        return await self._client.post(path, **kwargs)

    async def _patch(self, path: str, **kwargs: Any) -> httpx.Response:
        await self._ensure_token()
        return await self._client.patch(path, **kwargs)

    @_read_retry
    async def _list(
        self,
        collection: str,
        *,
        filter_: Optional[str] = None,
        sort: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Mapping[str, Any]]:
        """Все записи коллекции (постранично) или первые *limit*."""
        items: list[Mapping[str, Any]] = []
        page = 1
        per_page = min(limit, 500) if limit else 500

        while True:
            params: dict[str, Any] = {"page": page, "perPage": per_page}
            if filter_:
                params["filter"] = filter_
            if sort:
                params["sort"] = sort
            resp = await self._get(f"/api/collections/{collection}/records", params=params)
            resp.raise_for_status()
            data = resp.json()
            batch = data.get("items", [])
            items.extend(batch)
            if not batch or (limit and len(items) >= limit) or data.get("page", page) >= data.get("totalPages", page):
                break
            page += 1
        return items[:limit] if limit else items

    async def _exists(self, collection: str, filter_: str) -> bool:
        try:
            return bool(await self._list(collection, filter_=filter_, limit=1))
        except httpx.HTTPStatusError as exc:
            raise StoreError(_error_message(exc.response), status_code=exc.response.status_code) from exc
        except httpx.TransportError as exc:
            raise StoreError(f"Store is unreachable: {exc}", status_code=503) from exc

    async def _create(self, collection: str, record: Mapping[str, Any]) -> Mapping[str, Any]:
        try:
            resp = await self._post(f"/api/collections/{collection}/records", json=dict(record))
        except httpx.HTTPStatusError as exc:  # авторизация не прошла
            raise StoreError(_error_message(exc.response), status_code=exc.response.status_code) from exc
        except httpx.TransportError as exc:
            raise StoreError(f"Store is unreachable: {exc}", status_code=503) from exc
        if resp.is_error:
            message = _error_message(resp)
            logger.error("PocketBase insert into %s failed: %s", collection, message)
            raise StoreError(message, status_code=resp.status_code)
        logger.info("Inserted new record into %s", collection)
        return resp.json()

    # -------------------------------------------------------------- reads
    async def list_categories(self) -> List[Category]:
        rows = await self._list(COLLECTION_CATEGORIES, sort="name")
        return [
            Category(id=r["id"], name=r["name"], default_type=r.get("default_type") or "expense", color=r.get("color"))
            for r in rows
        ]

    async def list_wallets(self) -> List[Wallet]:
        rows = await self._list(COLLECTION_WALLETS, sort="created")
        return [Wallet(id=r["id"], name=r["name"], balance=int(r.get("balance") or 0)) for r in rows]

    async def list_recent_transactions(self, limit: int = 10) -> List[Transaction]:
        if limit <= 0:
            return []
        rows = await self._list(COLLECTION_TRANSACTIONS, sort="-date", limit=limit)
        return [
            Transaction(
                id=r["id"],
                amount=int(r.get("amount") or 0),
                description=r.get("description") or "",
                type=r.get("type") or "expense",
                category_id=r.get("category_id") or None,
                wallet_id=r.get("wallet_id") or None,
                date=r.get("date") or None,
            )
            for r in rows
        ]

    async def list_keyword_mappings(self) -> List[KeywordMapping]:
        rows = await self._list(COLLECTION_KEYWORDS)
        return [
            KeywordMapping(
                keyword=r["keyword"],
                category_id=r["category_id"],
                confidence=float(r.get("confidence", 1.0) or 1.0),
                frequency=int(r.get("frequency") or 0),
            )
            for r in rows
            if r.get("keyword")
        ]

    # -------------------------------------------------------------- creates
    async def create_category(self, action: CategoryAction) -> Mapping[str, Any]:
        if await self._exists(COLLECTION_CATEGORIES, f"name={_quote(action.name)}"):
            raise StoreError("Category with this name already exists", status_code=409)
        return await self._create(
            COLLECTION_CATEGORIES,
            {"name": action.name, "default_type": action.default_type.value, "color": action.color, "is_default": False},
        )

    async def create_wallet(self, action: WalletAction) -> Mapping[str, Any]:
        if await self._exists(COLLECTION_WALLETS, f"name={_quote(action.name)}"):
            raise StoreError("Wallet with this name already exists", status_code=409)
        return await self._create(COLLECTION_WALLETS, {"name": action.name, "balance": action.balance})

    async def create_budget(self, action: BudgetAction) -> Mapping[str, Any]:
        if not await self._exists(COLLECTION_CATEGORIES, f"id={_quote(action.category_id)}"):
            raise StoreError("Category not found", status_code=404)
        duplicate = f"category_id={_quote(action.category_id)} && period={_quote(action.period.value)}"
        if await self._exists(COLLECTION_BUDGETS, duplicate):
            raise StoreError("Budget already exists for this category and period", status_code=409)
        return await self._create(
            COLLECTION_BUDGETS,
            {"category_id": action.category_id, "amount": action.amount, "period": action.period.value, "spent": 0},
        )

    async def create_transaction(self, action: TransactionAction) -> Mapping[str, Any]:
        record = await self._create(
            COLLECTION_TRANSACTIONS,
            {
                "amount": action.amount,
                "description": action.description,
                "type": action.type.value,
                "category_id": action.suggested_category or "",
                "wallet_id": action.suggested_wallet or "",
            },
        )
        if action.suggested_wallet:
            delta = action.amount if action.type.value == "income" else -action.amount
            try:
                resp = await self._patch(
                    f"/api/collections/{COLLECTION_WALLETS}/records/{action.suggested_wallet}",
                    json={"balance+": delta},
                )
            except httpx.TransportError as exc:
                logger.warning("Wallet %s balance update failed: %s", action.suggested_wallet, exc)
                return record
            if resp.is_error:
                # Транзакция уже записана – баланс поправит пересчёт, не роняем запрос
                logger.warning("Wallet %s balance update failed: %s", action.suggested_wallet, _error_message(resp))
        return record

    async def close(self) -> None:
        """Closes the underlying async HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> "PocketBaseStore":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


# ---------------------------------------------------------------------------
# Public helpers
# ---------------------------------------------------------------------------


@lru_cache(maxsize=1)
def get_store() -> PocketBaseStore:
    """Return singleton PocketBaseStore configured from *libs.config*."""
    settings = get_settings()
    return PocketBaseStore(
        base_url=settings.store_url,
        email=settings.store_email,
        password=settings.store_password,
    )


async def load_context(
    store: FinanceStore,
    *,
    history: Optional[list[Any]] = None,
    recent_limit: Optional[int] = None,
) -> ConversationContext:
    """Read a fresh :class:`ConversationContext` from *store*.

    Вызывается на каждый запрос – никакого кеша, значит и никакой
    рассинхронизации между параллельными сессиями.
    """
    limit = get_settings().recent_transactions_limit if recent_limit is None else recent_limit
    categories, wallets, recent, mappings = await asyncio.gather(
        store.list_categories(),
        store.list_wallets(),
        store.list_recent_transactions(limit),
        store.list_keyword_mappings(),
    )
    return ConversationContext(
        categories=categories,
        wallets=wallets,
        recent_transactions=recent,
        keyword_mappings=mappings,
        history=history or [],
    )
