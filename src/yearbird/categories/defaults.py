"""Built-in categories and default-category membership.

The defaults table is immutable.  Removing a default never edits or deletes
its record; it only moves the id from ``active`` to ``removed`` in a
:class:`DefaultMembership`, which keeps restoration lossless.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from yearbird.categories.models import Category, MatchMode

DEFAULT_CATEGORIES: tuple[Category, ...] = (
    Category(
        id="birthdays",
        label="Birthdays",
        color="#F59E0B",
        keywords=("birthday", "bday", "b-day"),
        match_mode=MatchMode.ANY,
        is_default=True,
    ),
    Category(
        id="family",
        label="Family",
        color="#3B82F6",
        keywords=("family", "kids", "kid", "mom", "dad", "anniversary", "wedding", "reunion"),
        match_mode=MatchMode.ANY,
        is_default=True,
    ),
    Category(
        id="holidays",
        label="Holidays/Trips",
        color="#F97316",
        keywords=(
            "flight",
            "hotel",
            "stay at",
            "vacation",
            "holiday",
            "trip",
            "travel",
            "airport",
        ),
        match_mode=MatchMode.ANY,
        is_default=True,
    ),
    Category(
        id="races",
        label="Races",
        color="#10B981",
        keywords=("race", "marathon", "run", "hike", "summit", "climb", "trek", "5k", "10k"),
        match_mode=MatchMode.ANY,
        is_default=True,
    ),
    Category(
        id="work",
        label="Work",
        color="#8B5CF6",
        keywords=("meeting", "call", "1:1", "sync", "review", "standup", "interview", "retro"),
        match_mode=MatchMode.ANY,
        is_default=True,
    ),
)

# Fallback bucket for events matching nothing; always last, never removable.
UNCATEGORIZED_CATEGORY = Category(
    id="uncategorized",
    label="Uncategorized",
    color="#9CA3AF",
    keywords=(),
    match_mode=MatchMode.ANY,
    is_default=True,
)

DEFAULT_CATEGORY_IDS: tuple[str, ...] = tuple(category.id for category in DEFAULT_CATEGORIES)
_DEFAULTS_BY_ID = {category.id: category for category in DEFAULT_CATEGORIES}

# Labels no custom category may take (compared lowercased).
BUILT_IN_LABELS: frozenset[str] = frozenset(
    category.label.lower() for category in (*DEFAULT_CATEGORIES, UNCATEGORIZED_CATEGORY)
)


def is_default_id(category_id: str) -> bool:
    return category_id in _DEFAULTS_BY_ID


def get_default(category_id: str) -> Category | None:
    return _DEFAULTS_BY_ID.get(category_id)


@dataclass(frozen=True)
class DefaultMembership:
    """Partition of the default ids into ``active`` and ``removed``."""

    active: frozenset[str]
    removed: frozenset[str]

    @classmethod
    def baseline(cls) -> DefaultMembership:
        return cls(active=frozenset(DEFAULT_CATEGORY_IDS), removed=frozenset())

    @classmethod
    def from_removed(cls, removed_ids: Iterable[str]) -> DefaultMembership:
        removed = frozenset(i for i in removed_ids if i in _DEFAULTS_BY_ID)
        return cls(active=frozenset(DEFAULT_CATEGORY_IDS) - removed, removed=removed)

    def remove(self, category_id: str) -> DefaultMembership:
        if category_id not in self.active:
            return self
        return DefaultMembership(
            active=self.active - {category_id},
            removed=self.removed | {category_id},
        )

    def restore(self, category_id: str) -> DefaultMembership:
        if category_id not in self.removed:
            return self
        return DefaultMembership(
            active=self.active | {category_id},
            removed=self.removed - {category_id},
        )

    def active_categories(self) -> list[Category]:
        """Active defaults in table order."""
        return [category for category in DEFAULT_CATEGORIES if category.id in self.active]

    def removed_categories(self) -> list[Category]:
        """Removed defaults in table order, definitions intact."""
        return [category for category in DEFAULT_CATEGORIES if category.id in self.removed]

    def removed_ids(self) -> list[str]:
        """Removed ids in table order, for persistence."""
        return [category_id for category_id in DEFAULT_CATEGORY_IDS if category_id in self.removed]
