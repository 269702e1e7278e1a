# libs/keywords.py
"""Deterministic keyword → category lookup.

The persisted keyword table is trusted over any language-model guess: if a
known keyword occurs in the description we never ask the provider.
"""
from __future__ import annotations

from typing import Iterable, Optional

from libs.models import Category, KeywordMapping
from libs.normalizer import fold

__all__ = ["best_keyword_match", "match_category", "match_category_name"]


def best_keyword_match(description: str, mappings: Iterable[KeywordMapping]) -> Optional[KeywordMapping]:
    """Return the most specific mapping whose keyword occurs in *description*.

    Longest keyword wins; ties go to higher ``confidence``, then higher
    ``frequency``, then to the earlier row.
    """
    haystack = fold(description)
    best: Optional[KeywordMapping] = None
    best_rank: tuple[int, float, int] = (-1, -1.0, -1)

    for mapping in mappings:
        keyword = fold(mapping.keyword).strip()
        if not keyword or keyword not in haystack:
            continue
        rank = (len(keyword), mapping.confidence, mapping.frequency)
        if rank > best_rank:
            best, best_rank = mapping, rank
    return best


def match_category(description: str, mappings: Iterable[KeywordMapping]) -> Optional[str]:
    """``category_id`` of the best keyword match or None."""
    mapping = best_keyword_match(description, mappings)
    return mapping.category_id if mapping else None


def match_category_name(text: str, categories: Iterable[Category]) -> Optional[str]:
    """Id of the longest category whose *name* occurs in *text*.

    "Tạo ngân sách ăn uống 700k" → category "Ăn uống", even with an empty
    keyword table.
    """
    haystack = fold(text)
    best: Optional[Category] = None
    for category in categories:
        name = fold(category.name).strip()
        if name and name in haystack and (best is None or len(name) > len(fold(best.name).strip())):
            best = category
    return best.id if best else None
