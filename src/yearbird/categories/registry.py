"""The active category set: built-in defaults merged with custom categories.

``CategoryRegistry`` is the only entry point the UI layer uses to change
categories.  Every confirmed change schedules a cloud sync of the full
active set; validation failures never do.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from yearbird.categories.defaults import (
    UNCATEGORIZED_CATEGORY,
    DefaultMembership,
    get_default,
    is_default_id,
)
from yearbird.categories.matcher import match_category, sort_for_matching
from yearbird.categories.models import Category, CategoryInput, CategoryResult
from yearbird.categories.store import CategoryStore

logger = logging.getLogger(__name__)

# Receives the full active category set; must not block.
SyncTrigger = Callable[[list[Category]], None]

ERROR_NOT_A_DEFAULT = "Not a default category."
ERROR_ALREADY_ACTIVE = "Category already exists."


class CategoryRegistry:
    """Merges the defaults table with :class:`CategoryStore` contents.

    ``categories`` lists active defaults in table order followed by custom
    categories sorted by label.  ``all_categories`` appends the
    uncategorized fallback.
    """

    def __init__(self, store: CategoryStore, sync: SyncTrigger | None = None) -> None:
        self._store = store
        self._sync = sync

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @property
    def membership(self) -> DefaultMembership:
        return self._store.get_membership()

    @property
    def categories(self) -> list[Category]:
        custom = sort_for_matching(self._store.get_custom_categories())
        return [*self.membership.active_categories(), *custom]

    @property
    def all_categories(self) -> list[Category]:
        return [*self.categories, UNCATEGORIZED_CATEGORY]

    @property
    def removed_defaults(self) -> list[Category]:
        return self.membership.removed_categories()

    def get(self, category_id: str) -> Category | None:
        return next((c for c in self.all_categories if c.id == category_id), None)

    def match(self, title: str) -> Category:
        return match_category(title, self.categories)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _trigger_sync(self) -> None:
        if self._sync is None:
            return
        try:
            self._sync(self.categories)
        except Exception:
            # Sync is fire-and-forget; its failures never reach the mutation caller.
            logger.exception("Failed to schedule category sync")

    def add_category(self, data: CategoryInput) -> CategoryResult:
        result = self._store.add_custom_category(data)
        if result.ok:
            self._trigger_sync()
        return result

    def update_category(self, category_id: str, data: CategoryInput) -> CategoryResult:
        result = self._store.update_custom_category(category_id, data)
        if result.ok:
            self._trigger_sync()
        return result

    def remove_category(self, category_id: str) -> None:
        if is_default_id(category_id):
            self._store.save_membership(self.membership.remove(category_id))
            logger.info("Removed default category %s", category_id)
        else:
            self._store.remove_custom_category(category_id)
        self._trigger_sync()

    def restore_default(self, category_id: str) -> CategoryResult:
        default = get_default(category_id)
        if default is None:
            return CategoryResult.failure(ERROR_NOT_A_DEFAULT)

        membership = self.membership
        if category_id not in membership.removed:
            return CategoryResult.failure(ERROR_ALREADY_ACTIVE)

        self._store.save_membership(membership.restore(category_id))
        logger.info("Restored default category %s", category_id)
        self._trigger_sync()
        return CategoryResult.success(default)

    def reset_to_defaults(self) -> list[Category]:
        self._store.clear_custom_categories()
        self._store.save_membership(DefaultMembership.baseline())
        logger.info("Reset categories to defaults")
        self._trigger_sync()
        return self.categories
