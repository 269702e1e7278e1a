# tests/test_intents.py
import pytest

from libs.intents import classify_intent, classify_txn_type, detect_period
from libs.models import ActionType, BudgetPeriod, TxnType


@pytest.mark.parametrize(
    "text, action_type, confidence",
    [
        ("Tạo ngân sách ăn uống 500k", ActionType.CREATE_BUDGET, 0.85),
        ("Set budget 2 triệu cho cafe", ActionType.CREATE_BUDGET, 0.85),
        ("Tạo danh mục du lịch", ActionType.CREATE_CATEGORY, 0.8),
        ("Thêm danh mục mới: thú cưng", ActionType.CREATE_CATEGORY, 0.8),
        ("Tạo ví tiết kiệm", ActionType.CREATE_WALLET, 0.8),
        ("Ăn tối 50k", ActionType.CREATE_TRANSACTION, 0.8),
        ("Thu lương 15 triệu", ActionType.CREATE_TRANSACTION, 0.8),
        ("đổ xăng 80k", ActionType.CREATE_TRANSACTION, 0.8),
        ("Ăn tối", ActionType.FINANCIAL_INSIGHT, 0.3),  # нет суммы
        ("Tháng này tôi tiêu bao nhiêu?", ActionType.FINANCIAL_INSIGHT, 0.3),
        ("chiếc áo 200k", ActionType.FINANCIAL_INSIGHT, 0.3),  # "chi" ≠ "chiếc"
    ],
)
def test_classify_intent(text: str, action_type: ActionType, confidence: float):
    match = classify_intent(text)

    assert match.action_type == action_type
    assert match.confidence == confidence


def test_budget_wins_over_transaction():
    """В "ngân sách ăn uống 500k" есть и сумма, и "ăn" – но это бюджет."""
    match = classify_intent("Tạo ngân sách ăn uống 500k")

    assert match.action_type == ActionType.CREATE_BUDGET
    assert match.amount.value == 500_000


@pytest.mark.parametrize(
    "text, expected",
    [
        ("Thu lương 15 triệu", TxnType.INCOME),
        ("Nhận tiền thưởng 2tr", TxnType.INCOME),
        ("salary 20tr", TxnType.INCOME),
        ("Ăn tối 50k", TxnType.EXPENSE),
        ("Trả tiền điện 300k", TxnType.EXPENSE),
        ("thuốc cảm 40k", TxnType.EXPENSE),  # "thu" внутри "thuốc"
    ],
)
def test_classify_txn_type(text: str, expected: TxnType):
    assert classify_txn_type(text) == expected


@pytest.mark.parametrize(
    "text, expected",
    [
        ("Tạo ngân sách ăn uống 700k/tuần", BudgetPeriod.WEEKLY),
        ("budget 1tr per week", BudgetPeriod.WEEKLY),
        ("Tạo ngân sách ăn uống 3 triệu/tháng", BudgetPeriod.MONTHLY),
        ("Tạo ngân sách ăn uống 100k/ngày", BudgetPeriod.MONTHLY),
        ("Tạo ngân sách ăn uống 100k/ngày theo tuần", BudgetPeriod.WEEKLY),
        ("Tạo ngân sách ăn uống 500k", None),
    ],
)
def test_detect_period(text: str, expected):
    assert detect_period(text) == expected
