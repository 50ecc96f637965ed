"""User-defined and built-in event categories."""

from yearbird.categories.defaults import (
    DEFAULT_CATEGORIES,
    UNCATEGORIZED_CATEGORY,
    DefaultMembership,
)
from yearbird.categories.matcher import match_category
from yearbird.categories.models import Category, CategoryInput, CategoryResult, MatchMode
from yearbird.categories.registry import CategoryRegistry
from yearbird.categories.store import CategoryStore

__all__ = [
    "DEFAULT_CATEGORIES",
    "UNCATEGORIZED_CATEGORY",
    "Category",
    "CategoryInput",
    "CategoryRegistry",
    "CategoryResult",
    "CategoryStore",
    "DefaultMembership",
    "MatchMode",
    "match_category",
]
