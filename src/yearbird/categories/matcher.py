"""Keyword matching of event titles to categories."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from yearbird.categories.defaults import UNCATEGORIZED_CATEGORY
from yearbird.categories.models import Category, MatchMode


def sort_for_matching(categories: Iterable[Category]) -> list[Category]:
    """Order categories by label, case-insensitively; ties keep input order."""
    return sorted(categories, key=lambda category: category.label.casefold())


def matches(title: str, category: Category) -> bool:
    """Case-insensitive substring test of the category's keywords against *title*.

    A category without keywords never matches.
    """
    if not category.keywords:
        return False
    lower_title = title.lower()
    hits = (keyword.lower() in lower_title for keyword in category.keywords)
    if category.match_mode == MatchMode.ALL:
        return all(hits)
    return any(hits)


def match_category(
    title: str,
    categories: Sequence[Category],
    *,
    fallback: Category = UNCATEGORIZED_CATEGORY,
) -> Category:
    """Return the alphabetically first category whose rule matches *title*.

    Only the title is inspected.  When nothing matches, *fallback* is
    returned, so every event gets exactly one category.
    """
    for category in sort_for_matching(categories):
        if matches(title, category):
            return category
    return fallback
