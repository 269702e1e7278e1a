# libs/proposals.py
"""Intermediate *draft* of an action and the Vietnamese reply templates.

Both the provider path and the rule path produce an :class:`ActionDraft`.
A draft is loosely typed on purpose: fields may be missing or zero. Only the
validation gate (:mod:`libs.validation`) turns a draft into an
:class:`~libs.models.ActionProposal`.
"""
from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field

from libs.models import (
    ActionType,
    BudgetAction,
    BudgetPeriod,
    CategoryAction,
    ConversationContext,
    TransactionAction,
    TxnType,
    WalletAction,
)

__all__ = [
    "ActionDraft",
    "format_vnd",
    "help_message",
    "transaction_message",
    "category_message",
    "wallet_message",
    "budget_message",
    "clarification_message",
]


class ActionDraft(BaseModel):
    """Черновик действия до проверки обязательных полей."""

    source: Literal["provider", "fallback"]
    text: str = Field(..., description="Нормализованное сообщение пользователя")
    message: str = ""
    action_type: Optional[ActionType] = None
    confidence: float = Field(0.5, ge=0, le=1)

    # create_transaction / create_budget
    amount: int = Field(0, ge=0)
    description: Optional[str] = None
    type: Optional[str] = None
    suggested_category: Optional[str] = None
    suggested_wallet: Optional[str] = None

    # create_budget
    category_id: Optional[str] = None
    period: Optional[str] = None

    # create_category / create_wallet
    name: Optional[str] = None
    default_type: Optional[str] = None
    color: Optional[str] = None
    balance: int = Field(0, ge=0)


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------
_PERIOD_VN = {
    BudgetPeriod.WEEKLY: "hàng tuần",
    BudgetPeriod.MONTHLY: "hàng tháng",
}

_FIELD_QUESTIONS = {
    "category": "🏷️ Danh mục: ngân sách này dành cho danh mục nào?",
    "amount": "💰 Số tiền: bạn muốn đặt bao nhiêu?",
    "period": "📅 Chu kỳ: bạn muốn thiết lập theo tuần hay tháng?",
}


def format_vnd(amount: int) -> str:
    """50000 → "50.000 VNĐ" (разделитель тысяч – точка)."""
    return f"{amount:,}".replace(",", ".") + " VNĐ"


def help_message() -> str:
    return (
        "Xin chào! Tôi có thể giúp bạn:\n\n"
        '• Tạo giao dịch (VD: "Ăn tối 50k")\n'
        '• Tạo danh mục mới (VD: "Tạo danh mục du lịch")\n'
        '• Tạo ví mới (VD: "Tạo ví tiết kiệm")\n'
        '• Tạo ngân sách (VD: "Tạo ngân sách ăn uống 500k/tháng")\n'
        "• Phân tích tài chính\n\n"
        "Bạn muốn làm gì?"
    )


def transaction_message(action: TransactionAction, context: ConversationContext) -> str:
    category = context.find_category(action.suggested_category)
    wallet = context.find_wallet(action.suggested_wallet)
    kind = "Thu nhập" if action.type == TxnType.INCOME else "Chi tiêu"
    lines = [
        f"Tôi sẽ giúp bạn tạo giao dịch {format_vnd(action.amount)}:",
        "",
        f"💰 Số tiền: {format_vnd(action.amount)}",
        f"📝 Mô tả: {action.description}",
        f"💳 Loại: {kind}",
    ]
    if category is not None:
        lines.append(f"🏷️ Danh mục: {category.name}")
    if wallet is not None:
        lines.append(f"👛 Ví: {wallet.name}")
    lines += ["", "Bạn có muốn tạo giao dịch này không?"]
    return "\n".join(lines)


def category_message(action: CategoryAction) -> str:
    kind = "Thu nhập" if action.default_type == TxnType.INCOME else "Chi tiêu"
    return (
        f'Tôi sẽ giúp bạn tạo danh mục mới "{action.name}":\n\n'
        f"🏷️ Tên: {action.name}\n"
        f"💸 Loại: {kind}\n\n"
        "Bạn có muốn tạo danh mục này không?"
    )


def wallet_message(action: WalletAction) -> str:
    return (
        f'Tôi sẽ giúp bạn tạo ví mới "{action.name}":\n\n'
        f"💳 Tên ví: {action.name}\n"
        f"💰 Số dư ban đầu: {format_vnd(action.balance)}\n\n"
        "Bạn có muốn tạo ví này không?"
    )


def budget_message(action: BudgetAction, context: ConversationContext) -> str:
    category = context.find_category(action.category_id)
    category_name = category.name if category else action.category_id
    period_vn = _PERIOD_VN[action.period]
    return (
        f'Tôi sẽ giúp bạn tạo ngân sách {format_vnd(action.amount)} cho danh mục "{category_name}" '
        f"với chu kỳ {period_vn}:\n\n"
        f"📊 Ngân sách: {format_vnd(action.amount)}\n"
        f"📅 Chu kỳ: {period_vn.capitalize()}\n"
        f"🏷️ Danh mục: {category_name}\n\n"
        "Bạn có muốn tạo ngân sách này không?"
    )


def clarification_message(action_type: ActionType, missing: list[str], context: ConversationContext) -> str:
    """Вопрос пользователю вместо действия. *missing* – имена недостающих полей."""
    if action_type == ActionType.CREATE_TRANSACTION:
        return (
            "Bạn chưa cho mình biết số tiền của giao dịch. "
            'Hãy nhập lại kèm số tiền, ví dụ: "Ăn tối 50k" hoặc "Thu lương 15 triệu"'
        )
    if action_type == ActionType.CREATE_CATEGORY:
        return 'Bạn muốn tạo danh mục với tên gì? Ví dụ: "Tạo danh mục du lịch"'
    if action_type == ActionType.CREATE_WALLET:
        return 'Bạn muốn tạo ví với tên gì? Ví dụ: "Tạo ví tiết kiệm"'

    questions = [_FIELD_QUESTIONS[field] for field in missing]
    text = "Để tạo ngân sách, mình cần biết thêm thông tin:\n\n" + "\n".join(questions)
    if "category" in missing and context.categories:
        names = ", ".join(c.name for c in context.categories)
        text += f"\n\nDanh mục hiện có: {names}"
    text += "\n\nVí dụ: 'Tạo ngân sách ăn uống 700k/tuần' hoặc 'Tạo ngân sách ăn uống 3 triệu/tháng'"
    return text
