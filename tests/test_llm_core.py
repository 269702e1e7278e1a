# tests/test_llm_core.py
import json

import pytest

from libs.llm_core import extract_json, extract_json_array, reply_to_draft, reply_to_extraction
from libs.models import ActionType, TxnType
from libs.results import Ok, ParseError, ProviderUnavailable, ValidationError, or_else


# ---------------------------------------------------------------------------
# Вырезание JSON из ответа модели
# ---------------------------------------------------------------------------
@pytest.mark.parametrize(
    "raw",
    [
        '{"message": "ok"}',
        'Đây là kết quả:\n```json\n{"message": "ok"}\n```',
        'prefix {"message": "ok", "actionData": {"amount": 1}} suffix',
    ],
)
def test_extract_json_finds_object(raw: str):
    result = extract_json(raw)

    assert isinstance(result, Ok)
    assert result.value["message"] == "ok"


@pytest.mark.parametrize("raw", ["", "Xin lỗi, tôi không hiểu.", '{"message": "ok",}', "[1, 2]"])
def test_extract_json_parse_error(raw: str):
    result = extract_json(raw)

    assert isinstance(result, ParseError)
    assert result.kind == "parse_error"


def test_extract_json_array():
    assert extract_json_array('Keywords: ["grab", "xe"]') == Ok(["grab", "xe"])
    assert isinstance(extract_json_array('{"a": 1}'), ParseError)


# ---------------------------------------------------------------------------
# Валидация ответа чата
# ---------------------------------------------------------------------------
def test_reply_to_draft_transaction():
    data = {
        "message": "Tôi sẽ giúp bạn tạo giao dịch",
        "actionType": "create_transaction",
        "actionData": {"amount": 50000.4, "description": "Ăn tối", "type": "expense", "suggestedCategory": "Ăn uống"},
        "confidence": 0.9,
    }

    result = reply_to_draft(data, "Ăn tối 50k")

    assert isinstance(result, Ok)
    draft = result.value
    assert draft.source == "provider"
    assert draft.action_type == ActionType.CREATE_TRANSACTION
    assert draft.amount == 50_000
    assert draft.suggested_category == "Ăn uống"
    assert draft.confidence == 0.9


def test_reply_to_draft_clarification():
    data = {"message": "Bạn muốn theo tuần hay tháng?", "actionType": None, "actionData": None, "confidence": 0.8}

    result = reply_to_draft(data, "Tạo ngân sách ăn uống 100k/ngày")

    assert isinstance(result, Ok)
    assert result.value.action_type is None
    assert result.value.message == "Bạn muốn theo tuần hay tháng?"


def test_reply_to_draft_unknown_action_type():
    data = {"message": "ok", "actionType": "delete_all_wallets", "actionData": {}, "confidence": 0.99}

    result = reply_to_draft(data, "xoá hết")

    assert isinstance(result, ValidationError)
    assert "delete_all_wallets" in result.reason


@pytest.mark.parametrize(
    "data",
    [
        {"actionType": "create_transaction"},  # нет message
        {"message": "ok", "actionType": "create_transaction", "actionData": {"amount": "50k"}},
        {"message": "ok", "actionType": "create_wallet", "actionData": {"name": 42}},
        {"message": 1, "actionType": None},
    ],
)
def test_reply_to_draft_wrong_types(data: dict):
    assert isinstance(reply_to_draft(data, "x"), ValidationError)


def test_reply_to_draft_clamps_confidence():
    data = {"message": "ok", "actionType": "financial_insight", "confidence": 1.7}

    result = reply_to_draft(data, "phân tích chi tiêu")

    assert isinstance(result, Ok)
    assert result.value.confidence == 1.0


# ---------------------------------------------------------------------------
# Разбор одной транзакции
# ---------------------------------------------------------------------------
def test_reply_to_extraction():
    raw = '{"amount": 2000000, "type": "income", "description": "lương", "suggestedCategory": "Lương"}'

    result = reply_to_extraction(json.loads(raw))

    assert isinstance(result, Ok)
    assert result.value.type == TxnType.INCOME
    assert result.value.amount == 2_000_000
    assert result.value.confidence == 0.8


def test_reply_to_extraction_bad_type():
    result = reply_to_extraction({"amount": 1, "type": "spend", "description": "x"})
    assert isinstance(result, ValidationError)


# ---------------------------------------------------------------------------
# Комбинатор
# ---------------------------------------------------------------------------
def test_or_else():
    assert or_else(Ok(1), lambda failure: 2) == 1
    assert or_else(ProviderUnavailable("no key"), lambda failure: failure.kind) == "unavailable"
    assert or_else(ParseError("broken"), lambda failure: failure.kind) == "parse_error"
