# tests/conftest.py
import asyncio
import itertools
from typing import Any, Mapping, Optional

import pytest

from libs.models import (
    BudgetAction,
    Category,
    CategoryAction,
    ConversationContext,
    KeywordMapping,
    Transaction,
    TransactionAction,
    TxnType,
    Wallet,
    WalletAction,
)
from libs.store import StoreError


CATEGORIES = [
    Category(id="cat_food", name="Ăn uống"),
    Category(id="cat_transport", name="Di chuyển"),
    Category(id="cat_fun", name="Giải trí"),
    Category(id="cat_salary", name="Lương", default_type=TxnType.INCOME),
]

WALLETS = [
    Wallet(id="w_cash", name="Tiền mặt", balance=1_000_000),
    Wallet(id="w_bank", name="Vietcombank", balance=25_000_000),
]

KEYWORDS = [
    KeywordMapping(keyword="ăn", category_id="cat_food"),
    KeywordMapping(keyword="cafe", category_id="cat_food"),
    KeywordMapping(keyword="phở", category_id="cat_food"),
    KeywordMapping(keyword="grab", category_id="cat_transport"),
    KeywordMapping(keyword="grab food", category_id="cat_food"),
    KeywordMapping(keyword="lương", category_id="cat_salary"),
]


@pytest.fixture
def context() -> ConversationContext:
    """Типичный контекст пользователя: 4 категории, 2 кошелька, таблица ключевых слов."""
    return ConversationContext(
        categories=list(CATEGORIES),
        wallets=list(WALLETS),
        recent_transactions=[
            Transaction(id="t1", amount=45_000, description="Phở bò", category_id="cat_food", wallet_id="w_cash"),
        ],
        keyword_mappings=list(KEYWORDS),
    )


@pytest.fixture
def empty_context() -> ConversationContext:
    return ConversationContext()


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------
class FakeProvider:
    """Подменяет Gemini: отдаёт заготовленные ответы по очереди.

    * ``str``         – вернуть как ответ модели
    * ``Exception``   – бросить
    * ``float``       – «зависнуть» на столько секунд
    """

    def __init__(self, *replies: Any) -> None:
        self._replies = list(replies)
        self.prompts: list[str] = []

    @property
    def calls(self) -> int:
        return len(self.prompts)

    async def generate(self, prompt: str, *, json_mode: bool = False) -> str:
        self.prompts.append(prompt)
        reply = self._replies[min(len(self.prompts), len(self._replies)) - 1]
        if isinstance(reply, BaseException):
            raise reply
        if isinstance(reply, float):
            await asyncio.sleep(reply)
            return "{}"
        return reply


class FakeStore:
    """In-memory реализация FinanceStore с теми же правилами уникальности."""

    def __init__(self, context: Optional[ConversationContext] = None) -> None:
        ctx = context or ConversationContext()
        self.categories = list(ctx.categories)
        self.wallets = list(ctx.wallets)
        self.transactions = list(ctx.recent_transactions)
        self.keyword_mappings = list(ctx.keyword_mappings)
        self.budgets: list[dict[str, Any]] = []
        self.created: list[dict[str, Any]] = []
        self._ids = itertools.count(1)

    def _record(self, **fields: Any) -> dict[str, Any]:
        record = {
            "id": f"rec_{next(self._ids)}",
            "created": "2025-06-01 10:00:00.000Z",
            "updated": "2025-06-01 10:00:00.000Z",
            **fields,
        }
        self.created.append(record)
        return record

    async def list_categories(self):
        return list(self.categories)

    async def list_wallets(self):
        return list(self.wallets)

    async def list_recent_transactions(self, limit: int = 10):
        return list(self.transactions)[:limit]

    async def list_keyword_mappings(self):
        return list(self.keyword_mappings)

    async def create_transaction(self, action: TransactionAction) -> Mapping[str, Any]:
        record = self._record(
            amount=action.amount,
            description=action.description,
            type=action.type.value,
            category_id=action.suggested_category or "",
            wallet_id=action.suggested_wallet or "",
        )
        self.transactions.append(Transaction(id=record["id"], amount=action.amount, description=action.description))
        return record

    async def create_category(self, action: CategoryAction) -> Mapping[str, Any]:
        if any(c.name == action.name for c in self.categories):
            raise StoreError("Category with this name already exists", status_code=409)
        record = self._record(name=action.name, default_type=action.default_type.value, color=action.color)
        self.categories.append(Category(id=record["id"], name=action.name))
        return record

    async def create_wallet(self, action: WalletAction) -> Mapping[str, Any]:
        if any(w.name == action.name for w in self.wallets):
            raise StoreError("Wallet with this name already exists", status_code=409)
        record = self._record(name=action.name, balance=action.balance)
        self.wallets.append(Wallet(id=record["id"], name=action.name, balance=action.balance))
        return record

    async def create_budget(self, action: BudgetAction) -> Mapping[str, Any]:
        if not any(c.id == action.category_id for c in self.categories):
            raise StoreError("Category not found", status_code=404)
        if any(b["category_id"] == action.category_id and b["period"] == action.period.value for b in self.budgets):
            raise StoreError("Budget already exists for this category and period", status_code=409)
        record = self._record(category_id=action.category_id, amount=action.amount, period=action.period.value)
        self.budgets.append(record)
        return record


@pytest.fixture
def fake_store(context: ConversationContext) -> FakeStore:
    return FakeStore(context)


@pytest.fixture
def make_provider():
    """Фабрика FakeProvider: ``make_provider('{"message": ...}')``."""
    return FakeProvider
