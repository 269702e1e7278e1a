# libs/models.py
"""Domain models shared by the interpreter, the store client and the API.

The system intentionally passes around *only* these objects (JSON-serialised)
between layers so every component speaks the same language.

Levels
------
1. **ConversationContext** – что приходит вместе с сообщением пользователя:
   категории, кошельки, последние транзакции и история диалога.
2. **ActionProposal** – результат одного вызова интерпретатора. Не хранится,
   живёт до подтверждения или отмены.
3. **CreatedEntity** – то, что вернуло хранилище после подтверждения.

Дизайн-оговорка: Pydantic v2 (BaseModel) для полной валидации и удобного
JSON-dump. На проводе поля в camelCase (``actionType``, ``actionData``), в
коде – snake_case; за это отвечает ``alias_generator``.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

__all__ = [
    "ActionProposal",
    "ActionType",
    "AmountUnit",
    "BudgetAction",
    "BudgetPeriod",
    "Category",
    "CategoryAction",
    "ConversationContext",
    "ConversationTurn",
    "CreatedEntity",
    "KeywordMapping",
    "ParsedAmount",
    "TransactionAction",
    "TransactionExtraction",
    "TxnType",
    "Transaction",
    "Wallet",
    "WalletAction",
]

DEFAULT_CATEGORY_COLOR = "#3B82F6"


class _CamelModel(BaseModel):
    """snake_case в Python, camelCase в JSON."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=False,
    )


class TxnType(str, Enum):
    """Направление денежного потока."""

    INCOME = "income"
    EXPENSE = "expense"


class AmountUnit(str, Enum):
    NONE = "none"
    THOUSAND = "thousand"
    MILLION = "million"
    BILLION = "billion"


class BudgetPeriod(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class ActionType(str, Enum):
    CREATE_TRANSACTION = "create_transaction"
    CREATE_CATEGORY = "create_category"
    CREATE_WALLET = "create_wallet"
    CREATE_BUDGET = "create_budget"
    FINANCIAL_INSIGHT = "financial_insight"


# ---------------------------------------------------------------------------
# Extraction results
# ---------------------------------------------------------------------------


class ParsedAmount(BaseModel):
    """Первая сумма, найденная в тексте, уже в целых VND."""

    raw_token: str = ""
    value: int = Field(0, ge=0)
    unit_applied: AmountUnit = AmountUnit.NONE

    @property
    def found(self) -> bool:
        return self.value > 0


class TransactionExtraction(_CamelModel):
    """Результат разбора одной фразы о транзакции (без диалога)."""

    amount: int = Field(0, ge=0)
    type: TxnType
    description: str
    suggested_category: Optional[str] = None
    confidence: float = Field(0.5, ge=0, le=1)


# ---------------------------------------------------------------------------
# Collaborator-owned read shapes
# ---------------------------------------------------------------------------


class Category(_CamelModel):
    id: str
    name: str
    default_type: TxnType = TxnType.EXPENSE
    color: Optional[str] = None


class Wallet(_CamelModel):
    id: str
    name: str
    balance: int = 0


class Transaction(_CamelModel):
    id: str
    amount: int
    description: str = ""
    type: TxnType = TxnType.EXPENSE
    category_id: Optional[str] = None
    wallet_id: Optional[str] = None
    date: Optional[str] = None


class KeywordMapping(_CamelModel):
    """keyword → category. Интерпретатор только читает эту таблицу."""

    keyword: str = Field(..., min_length=1)
    category_id: str
    confidence: float = Field(1.0, ge=0, le=1)
    frequency: int = Field(0, ge=0)


class ConversationTurn(_CamelModel):
    message: str
    response: str


class ConversationContext(_CamelModel):
    """Контекст одного запроса. Собирается заново на каждый вызов."""

    categories: list[Category] = Field(default_factory=list)
    wallets: list[Wallet] = Field(default_factory=list)
    recent_transactions: list[Transaction] = Field(default_factory=list)
    history: list[ConversationTurn] = Field(default_factory=list)
    keyword_mappings: list[KeywordMapping] = Field(default_factory=list)

    def find_category(self, ref: str | None) -> Optional[Category]:
        """Ищет категорию по id, затем по имени (без учёта регистра)."""
        if not ref:
            return None
        for cat in self.categories:
            if cat.id == ref:
                return cat
        needle = ref.strip().lower()
        for cat in self.categories:
            if cat.name.strip().lower() == needle:
                return cat
        return None

    def find_wallet(self, ref: str | None) -> Optional[Wallet]:
        if not ref:
            return None
        for wallet in self.wallets:
            if wallet.id == ref:
                return wallet
        needle = ref.strip().lower()
        for wallet in self.wallets:
            if wallet.name.strip().lower() == needle:
                return wallet
        return None


# ---------------------------------------------------------------------------
# Action payloads
# ---------------------------------------------------------------------------


class TransactionAction(_CamelModel):
    amount: int = Field(..., gt=0)
    description: str
    type: TxnType
    suggested_category: Optional[str] = None  # category id
    suggested_wallet: Optional[str] = None  # wallet id


class CategoryAction(_CamelModel):
    name: str
    default_type: TxnType = TxnType.EXPENSE
    color: Optional[str] = DEFAULT_CATEGORY_COLOR

    @field_validator("name")
    def _non_empty_name(cls, v: str) -> str:  # noqa: N805
        v = v.strip()
        if not v:
            raise ValueError("name must not be empty")
        return v


class WalletAction(_CamelModel):
    name: str
    balance: int = Field(0, ge=0)

    @field_validator("name")
    def _non_empty_name(cls, v: str) -> str:  # noqa: N805
        v = v.strip()
        if not v:
            raise ValueError("name must not be empty")
        return v


class BudgetAction(_CamelModel):
    category_id: str = Field(..., min_length=1)
    amount: int = Field(..., gt=0)
    period: BudgetPeriod


ActionData = Union[TransactionAction, CategoryAction, WalletAction, BudgetAction]

ACTION_PAYLOADS: dict[ActionType, type[BaseModel]] = {
    ActionType.CREATE_TRANSACTION: TransactionAction,
    ActionType.CREATE_CATEGORY: CategoryAction,
    ActionType.CREATE_WALLET: WalletAction,
    ActionType.CREATE_BUDGET: BudgetAction,
}


class ActionProposal(_CamelModel):
    """Неподтверждённое предложение действия, которое видит пользователь."""

    message: str
    action_type: Optional[ActionType] = None
    action_data: Optional[ActionData] = None
    confidence: float = Field(0.5, ge=0, le=1)

    @property
    def is_clarification(self) -> bool:
        return self.action_type is None

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=False)


class CreatedEntity(_CamelModel):
    """Ответ хранилища после create-запроса: id, метки времени и поля записи."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: str
    action_type: ActionType
    created: Optional[str] = None
    updated: Optional[str] = None
    record: dict[str, Any] = Field(default_factory=dict)
