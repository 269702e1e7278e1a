# tests/test_interpreter.py
import json

import pytest

from libs.gemini_provider import ProviderAdapter
from libs.interpreter import Interpreter
from libs.models import ActionType, BudgetPeriod, TxnType
from libs.normalizer import InputError

pytestmark = pytest.mark.asyncio

MALFORMED = "Xin lỗi, đây là JSON: {message: 'oops'"


@pytest.fixture
def offline() -> Interpreter:
    """Интерпретатор без провайдера – всегда работает через fallback."""
    return Interpreter(ProviderAdapter())


# ---------------------------------------------------------------------------
# Основные сценарии
# ---------------------------------------------------------------------------
async def test_budget_without_period_asks(offline, context):
    proposal = await offline.interpret("Tạo ngân sách ăn uống 500k", context)

    assert proposal.action_type is None
    assert proposal.action_data is None
    assert "tuần hay tháng" in proposal.message


async def test_weekly_budget(offline, context):
    proposal = await offline.interpret("Tạo ngân sách ăn uống 700k/tuần", context)

    assert proposal.action_type == ActionType.CREATE_BUDGET
    assert proposal.action_data.amount == 700_000
    assert proposal.action_data.period == BudgetPeriod.WEEKLY
    assert proposal.to_wire()["actionData"]["categoryId"] == "cat_food"


async def test_expense(offline, context):
    proposal = await offline.interpret("Ăn tối 50k", context)

    assert proposal.action_type == ActionType.CREATE_TRANSACTION
    assert proposal.action_data.amount == 50_000
    assert proposal.action_data.type == TxnType.EXPENSE


@pytest.mark.parametrize(
    "message, amount",
    [
        ("Ăn tối,50k", 50_000),
        ("Mua đồ ăn.200k", 200_000),
    ],
)
async def test_amount_glued_to_punctuation(offline, context, message: str, amount: int):
    proposal = await offline.interpret(message, context)

    assert proposal.action_type == ActionType.CREATE_TRANSACTION
    assert proposal.action_data.amount == amount
    assert proposal.action_data.suggested_category == "cat_food"


async def test_income(offline, context):
    proposal = await offline.interpret("Thu lương 15 triệu", context)

    assert proposal.action_data.type == TxnType.INCOME
    assert proposal.action_data.amount == 15_000_000


@pytest.mark.parametrize("message", ["", "   ", "\n\t"])
async def test_empty_message_is_input_error(offline, context, message: str):
    with pytest.raises(InputError):
        await offline.interpret(message, context)


async def test_fallback_is_deterministic(offline, context):
    first = await offline.interpret("Tạo ngân sách ăn uống 100k/ngày", context)
    second = await offline.interpret("Tạo ngân sách ăn uống 100k/ngày", context)

    assert json.dumps(first.to_wire(), ensure_ascii=False) == json.dumps(second.to_wire(), ensure_ascii=False)


@pytest.mark.parametrize(
    "message",
    [
        "Ăn tối 50k",
        "Tạo ngân sách",
        "Tạo ngân sách ăn uống 100k/ngày theo tuần",
        "Tạo danh mục",
        "Tạo ví mới tên Momo",
        "Tháng này tôi tiêu bao nhiêu?",
        "999999999999 tỷ",
    ],
)
async def test_confidence_in_range(offline, context, message: str):
    proposal = await offline.interpret(message, context)

    assert 0 <= proposal.confidence <= 1


# ---------------------------------------------------------------------------
# Отказы провайдера не видны вызывающему
# ---------------------------------------------------------------------------
@pytest.mark.parametrize(
    "reply",
    [
        5.0,  # таймаут
        ConnectionError("network down"),
        MALFORMED,
        '{"message": "ok", "actionType": "launch_rocket", "confidence": 0.99}',
        '{"message": "ok", "actionType": "create_transaction", "actionData": {"amount": "năm mươi nghìn"}}',
    ],
)
async def test_provider_failure_falls_back(context, make_provider, reply):
    interpreter = Interpreter(ProviderAdapter(make_provider(reply), timeout=0.05))

    proposal = await interpreter.interpret("Ăn tối 50k", context)

    assert proposal.action_type == ActionType.CREATE_TRANSACTION
    assert proposal.action_data.amount == 50_000
    assert proposal.confidence == 0.9


async def test_provider_incomplete_budget_is_gated(context, make_provider):
    """Модель предложила бюджет без периода – gate всё равно спрашивает."""
    reply = json.dumps(
        {
            "message": "Tôi sẽ tạo ngân sách",
            "actionType": "create_budget",
            "actionData": {"categoryId": "Ăn uống", "amount": 500000},
            "confidence": 0.9,
        }
    )
    interpreter = Interpreter(ProviderAdapter(make_provider(reply)))

    proposal = await interpreter.interpret("Tạo ngân sách ăn uống 500k", context)

    assert proposal.action_type is None
    assert "Chu kỳ" in proposal.message


async def test_provider_category_name_becomes_id(context, make_provider):
    reply = json.dumps(
        {
            "message": "Tạo giao dịch bữa tối 80.000 VNĐ?",
            "actionType": "create_transaction",
            "actionData": {"amount": 80000, "description": "Bữa tối", "type": "expense", "suggestedCategory": "Ăn uống"},
            "confidence": 0.92,
        }
    )
    interpreter = Interpreter(ProviderAdapter(make_provider(reply)))

    proposal = await interpreter.interpret("Bữa tối 80k", context)

    assert proposal.action_data.suggested_category == "cat_food"
    assert proposal.message == "Tạo giao dịch bữa tối 80.000 VNĐ?"
    assert proposal.confidence == 0.92


async def test_provider_guess_loses_to_keyword_in_message(context, make_provider):
    reply = json.dumps(
        {
            "message": "Tạo giao dịch Highlands 50.000 VNĐ?",
            "actionType": "create_transaction",
            "actionData": {"amount": 50000, "description": "Highlands", "type": "expense", "suggestedCategory": "Giải trí"},
            "confidence": 0.9,
        }
    )
    interpreter = Interpreter(ProviderAdapter(make_provider(reply)))

    proposal = await interpreter.interpret("chi 50k cafe Highlands", context)

    assert proposal.action_data.suggested_category == "cat_food"


# ---------------------------------------------------------------------------
# Вспомогательные операции
# ---------------------------------------------------------------------------
async def test_parse_transaction_offline(offline):
    extraction = await offline.parse_transaction("thu 2 triệu lương")

    assert extraction.type == TxnType.INCOME
    assert extraction.amount == 2_000_000
    assert extraction.confidence == 0.5


async def test_parse_transaction_keyword_overrides_provider(context, make_provider):
    reply = '{"amount": 50000, "type": "expense", "description": "cafe", "suggestedCategory": "Giải trí", "confidence": 0.9}'
    interpreter = Interpreter(ProviderAdapter(make_provider(reply)))

    extraction = await interpreter.parse_transaction("chi 50k cafe", context)

    assert extraction.suggested_category == "cat_food"
    assert extraction.confidence == 0.9


async def test_suggest_category_keyword_first(context, make_provider):
    provider = make_provider("Giải trí")
    interpreter = Interpreter(ProviderAdapter(provider))

    category_id = await interpreter.suggest_category("Grab đi làm", context.keyword_mappings, context)

    assert category_id == "cat_transport"
    assert provider.calls == 0


async def test_suggest_category_from_provider(context, make_provider):
    interpreter = Interpreter(ProviderAdapter(make_provider("Giải trí")))

    category_id = await interpreter.suggest_category("Xem phim CGV", context.keyword_mappings, context)

    assert category_id == "cat_fun"


async def test_suggest_category_offline_unknown(offline, context):
    assert await offline.suggest_category("Xem phim CGV", context.keyword_mappings, context) is None


async def test_suggest_keywords_offline(offline):
    assert await offline.suggest_keywords("Xem Phim CGV") == ["xem phim cgv"]
