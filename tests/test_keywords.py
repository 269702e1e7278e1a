# tests/test_keywords.py
import unicodedata

import pytest

from libs.keywords import best_keyword_match, match_category, match_category_name
from libs.models import KeywordMapping


@pytest.mark.parametrize(
    "description, expected",
    [
        ("Grab đi làm", "cat_transport"),
        ("grab food trưa", "cat_food"),  # длинное ключевое слово специфичнее
        ("CAFE sáng", "cat_food"),
        ("Phở bò tái", "cat_food"),
        ("Thu lương tháng 6", "cat_salary"),
        ("Tiền điện", None),
    ],
)
def test_match_category(context, description: str, expected):
    assert match_category(description, context.keyword_mappings) == expected


def test_match_decomposed_input(context):
    description = unicodedata.normalize("NFD", "Phở gà")
    assert match_category(description, context.keyword_mappings) == "cat_food"


def test_tie_broken_by_confidence_then_frequency():
    mappings = [
        KeywordMapping(keyword="bún", category_id="cat_a", confidence=0.5, frequency=10),
        KeywordMapping(keyword="bún", category_id="cat_b", confidence=0.9, frequency=1),
        KeywordMapping(keyword="bún", category_id="cat_c", confidence=0.9, frequency=3),
    ]

    best = best_keyword_match("bún chả", mappings)

    assert best is not None
    assert best.category_id == "cat_c"


def test_empty_table():
    assert match_category("cafe", []) is None


@pytest.mark.parametrize(
    "text, expected",
    [
        ("Tạo ngân sách ăn uống 700k", "cat_food"),
        ("ngân sách GIẢI TRÍ 1 triệu/tháng", "cat_fun"),
        ("Tạo ngân sách 500k", None),
    ],
)
def test_match_category_name(context, text: str, expected):
    assert match_category_name(text, context.categories) == expected
