"""Local persistence for custom categories and soft-removed defaults.

Two keys are owned here:

- ``yearbird:custom-categories`` holds a ``StoredCategoriesPayload`` and is
  removed once no custom categories remain.  Reads
  migrate legacy payloads and write them back immediately, drop entries that
  fail validation or shadow a built-in label, and keep only the most
  recently updated entry per label.  A value that is not JSON (or matches no
  schema) is cleared and read as empty.
- ``yearbird:removed-default-categories`` holds the ids of defaults the user
  removed, as a JSON array.  It is written only while non-empty.

Mutations return :class:`CategoryResult`; validation problems never raise.
"""

from __future__ import annotations

import json
import logging
import re
import time
import uuid
from collections.abc import Callable, Iterable
from typing import Any

from yearbird.categories.defaults import BUILT_IN_LABELS, DefaultMembership
from yearbird.categories.migrations import (
    CURRENT_VERSION,
    PayloadFormatError,
    StoredCategoriesPayload,
    detect_version,
    migrate,
)
from yearbird.categories.models import Category, CategoryInput, CategoryResult, MatchMode
from yearbird.errors import ErrorKind
from yearbird.storage import KeyValueStore

logger = logging.getLogger(__name__)

CUSTOM_CATEGORIES_KEY = "yearbird:custom-categories"
REMOVED_DEFAULTS_KEY = "yearbird:removed-default-categories"
CUSTOM_CATEGORY_PREFIX = "custom-"
MAX_LABEL_LENGTH = 32

_HEX_COLOR_PATTERN = re.compile(r"^#[0-9a-fA-F]{6}$")

ERROR_NAME_REQUIRED = "Name is required."
ERROR_NAME_TOO_LONG = f"Name must be {MAX_LABEL_LENGTH} characters or fewer."
ERROR_NAME_IS_DEFAULT = "Name already exists as a default category."
ERROR_INVALID_COLOR = "Pick a valid color."
ERROR_NO_KEYWORDS = "Add at least one keyword."
ERROR_NAME_EXISTS = "Name already exists."
ERROR_NOT_FOUND = "Category no longer exists."


def _now_ms() -> int:
    return int(time.time() * 1000)


def _new_custom_id() -> str:
    return f"{CUSTOM_CATEGORY_PREFIX}{uuid.uuid4()}"


def normalize_keywords(keywords: Iterable[Any]) -> list[str]:
    """Trim, drop empties, and dedupe case-insensitively keeping first-seen casing."""
    cleaned: list[str] = []
    seen: set[str] = set()
    for keyword in keywords:
        if not isinstance(keyword, str):
            continue
        trimmed = keyword.strip()
        if not trimmed:
            continue
        folded = trimmed.lower()
        if folded in seen:
            continue
        seen.add(folded)
        cleaned.append(trimmed)
    return cleaned


def is_valid_color(color: object) -> bool:
    return isinstance(color, str) and _HEX_COLOR_PATTERN.fullmatch(color) is not None


def _timestamp(value: Any, fallback: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return fallback
    if value != value or value in (float("inf"), float("-inf")):
        return fallback
    return int(value)


def _sanitize_entry(entry: Any, now: int) -> Category | None:
    if not isinstance(entry, dict):
        return None
    category_id = entry.get("id")
    if not isinstance(category_id, str) or not category_id.startswith(CUSTOM_CATEGORY_PREFIX):
        return None

    label = entry.get("label")
    label = label.strip() if isinstance(label, str) else ""
    raw_keywords = entry.get("keywords")
    keywords = normalize_keywords(raw_keywords if isinstance(raw_keywords, list) else [])
    color = entry.get("color")
    if not label or not keywords or not is_valid_color(color):
        return None
    if label.lower() in BUILT_IN_LABELS:
        return None

    created_at = _timestamp(entry.get("createdAt"), now)
    updated_at = _timestamp(entry.get("updatedAt"), created_at)
    return Category(
        id=category_id,
        label=label,
        color=color,
        keywords=tuple(keywords),
        match_mode=MatchMode.normalize(entry.get("matchMode")),
        is_default=False,
        created_at=created_at,
        updated_at=updated_at,
    )


def sanitize_custom_categories(entries: Iterable[Any], *, now: int) -> list[Category]:
    """Validate raw stored entries and resolve label collisions.

    Among entries sharing a label (case-insensitive), the one with the
    greatest ``updatedAt`` wins; the winner takes the position of the first
    entry seen with that label.
    """
    deduped: dict[str, Category] = {}
    for entry in entries:
        candidate = _sanitize_entry(entry, now)
        if candidate is None:
            continue
        key = candidate.label.lower()
        existing = deduped.get(key)
        if existing is None or candidate.updated_at > existing.updated_at:
            deduped[key] = candidate
    return list(deduped.values())


class CategoryStore:
    """Validated, persisted custom categories plus removed-default ids.

    ``clock`` returns epoch milliseconds and ``id_factory`` new custom ids;
    both are injectable for deterministic tests.
    """

    def __init__(
        self,
        storage: KeyValueStore,
        *,
        clock: Callable[[], int] = _now_ms,
        id_factory: Callable[[], str] = _new_custom_id,
    ) -> None:
        self._storage = storage
        self._clock = clock
        self._id_factory = id_factory

    # ------------------------------------------------------------------
    # Custom categories
    # ------------------------------------------------------------------

    def _write_custom(self, categories: list[Category]) -> None:
        if not categories:
            self._storage.remove(CUSTOM_CATEGORIES_KEY)
            return
        payload = StoredCategoriesPayload(
            version=CURRENT_VERSION,
            categories=[category.to_payload() for category in categories],
        )
        self._storage.set(CUSTOM_CATEGORIES_KEY, json.dumps(payload.to_json_obj()))

    def get_custom_categories(self) -> list[Category]:
        raw = self._storage.get(CUSTOM_CATEGORIES_KEY)
        if not raw:
            return []

        try:
            decoded = json.loads(raw)
            payload = migrate(decoded)
        except (ValueError, PayloadFormatError):
            logger.warning(
                "Discarding unreadable custom categories payload",
                extra={"kind": ErrorKind.STORAGE_CORRUPT.value},
            )
            self._storage.remove(CUSTOM_CATEGORIES_KEY)
            return []

        version = detect_version(decoded)
        sanitized = sanitize_custom_categories(payload.categories, now=self._clock())
        if version > CURRENT_VERSION:
            # Written by a newer release; leave it untouched.
            return sanitized
        migrated = version < CURRENT_VERSION
        if migrated or len(sanitized) != len(payload.categories):
            logger.info(
                "Rewriting custom categories (migrated=%s, kept %d of %d)",
                migrated,
                len(sanitized),
                len(payload.categories),
            )
            self._write_custom(sanitized)
        return sanitized

    def _validate(
        self,
        data: CategoryInput,
        existing: list[Category],
        *,
        editing_id: str | None = None,
    ) -> tuple[str, list[str]] | str:
        """Return ``(label, keywords)`` on success or the first error message."""
        label = data.label.strip()
        if not label:
            return ERROR_NAME_REQUIRED
        if len(label) > MAX_LABEL_LENGTH:
            return ERROR_NAME_TOO_LONG

        folded = label.lower()
        if folded in BUILT_IN_LABELS:
            return ERROR_NAME_IS_DEFAULT
        if not is_valid_color(data.color):
            return ERROR_INVALID_COLOR

        keywords = normalize_keywords(data.keywords)
        if not keywords:
            return ERROR_NO_KEYWORDS

        if any(entry.id != editing_id and entry.label.lower() == folded for entry in existing):
            return ERROR_NAME_EXISTS
        return label, keywords

    def add_custom_category(self, data: CategoryInput) -> CategoryResult:
        existing = self.get_custom_categories()
        validated = self._validate(data, existing)
        if isinstance(validated, str):
            return CategoryResult.failure(validated)

        label, keywords = validated
        now = self._clock()
        category = Category(
            id=self._id_factory(),
            label=label,
            color=data.color,
            keywords=tuple(keywords),
            match_mode=MatchMode.normalize(data.match_mode),
            is_default=False,
            created_at=now,
            updated_at=now,
        )
        self._write_custom([*existing, category])
        logger.info("Added custom category %s (%s)", category.id, category.label)
        return CategoryResult.success(category)

    def update_custom_category(self, category_id: str, data: CategoryInput) -> CategoryResult:
        existing = self.get_custom_categories()
        current = next((entry for entry in existing if entry.id == category_id), None)
        if current is None:
            return CategoryResult.failure(ERROR_NOT_FOUND)

        validated = self._validate(data, existing, editing_id=category_id)
        if isinstance(validated, str):
            return CategoryResult.failure(validated)

        label, keywords = validated
        updated = current.model_copy(
            update={
                "label": label,
                "color": data.color,
                "keywords": tuple(keywords),
                "match_mode": MatchMode.normalize(data.match_mode),
                "updated_at": self._clock(),
            }
        )
        self._write_custom([updated if entry.id == category_id else entry for entry in existing])
        logger.info("Updated custom category %s", category_id)
        return CategoryResult.success(updated)

    def remove_custom_category(self, category_id: str) -> None:
        existing = self.get_custom_categories()
        remaining = [entry for entry in existing if entry.id != category_id]
        if len(remaining) == len(existing):
            return
        self._write_custom(remaining)
        logger.info("Removed custom category %s", category_id)

    def clear_custom_categories(self) -> None:
        self._storage.remove(CUSTOM_CATEGORIES_KEY)

    # ------------------------------------------------------------------
    # Removed defaults
    # ------------------------------------------------------------------

    def get_membership(self) -> DefaultMembership:
        raw = self._storage.get(REMOVED_DEFAULTS_KEY)
        if not raw:
            return DefaultMembership.baseline()

        try:
            parsed = json.loads(raw)
        except ValueError:
            logger.warning(
                "Discarding unreadable removed-defaults list",
                extra={"kind": ErrorKind.STORAGE_CORRUPT.value},
            )
            self._storage.remove(REMOVED_DEFAULTS_KEY)
            return DefaultMembership.baseline()

        entries = parsed if isinstance(parsed, list) else []
        membership = DefaultMembership.from_removed(e for e in entries if isinstance(e, str))
        if not isinstance(parsed, list) or len(membership.removed) != len(parsed):
            self.save_membership(membership)
        return membership

    def save_membership(self, membership: DefaultMembership) -> None:
        removed = membership.removed_ids()
        if not removed:
            self._storage.remove(REMOVED_DEFAULTS_KEY)
            return
        self._storage.set(REMOVED_DEFAULTS_KEY, json.dumps(removed))
