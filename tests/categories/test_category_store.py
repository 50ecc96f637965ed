"""Tests for CategoryStore persistence, validation and self-healing reads."""

from __future__ import annotations

import json

import pytest

from yearbird.categories.defaults import DefaultMembership
from yearbird.categories.models import CategoryInput, MatchMode
from yearbird.categories.store import (
    CUSTOM_CATEGORIES_KEY,
    ERROR_INVALID_COLOR,
    ERROR_NAME_EXISTS,
    ERROR_NAME_IS_DEFAULT,
    ERROR_NAME_REQUIRED,
    ERROR_NAME_TOO_LONG,
    ERROR_NO_KEYWORDS,
    ERROR_NOT_FOUND,
    REMOVED_DEFAULTS_KEY,
    CategoryStore,
    normalize_keywords,
    sanitize_custom_categories,
)
from yearbird.errors import ErrorKind

pytestmark = pytest.mark.unit


def _input(label="Gym", color="#22C55E", keywords=("gym",), match_mode="any") -> CategoryInput:
    return CategoryInput(label=label, color=color, keywords=list(keywords), match_mode=match_mode)


def _stored(storage) -> dict:
    return json.loads(storage.get(CUSTOM_CATEGORIES_KEY))


def _entry(category_id, label, *, updated_at=1, keywords=("k",), color="#111111") -> dict:
    return {
        "id": category_id,
        "label": label,
        "color": color,
        "keywords": list(keywords),
        "matchMode": "any",
        "createdAt": 1,
        "updatedAt": updated_at,
    }


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestNormalizeKeywords:
    def test_trims_and_dedupes_case_insensitively(self):
        assert normalize_keywords(["Flight", "flight", " hotel ", "", "  ", 3]) == [
            "Flight",
            "hotel",
        ]


class TestSanitizeCustomCategories:
    def test_latest_update_wins_at_first_position(self):
        entries = [
            _entry("custom-1", "Gym", updated_at=5, keywords=("old",)),
            _entry("custom-2", "Books", updated_at=1),
            _entry("custom-3", "gym", updated_at=10, keywords=("new",)),
        ]
        result = sanitize_custom_categories(entries, now=0)
        assert [c.id for c in result] == ["custom-3", "custom-2"]
        assert result[0].keywords == ("new",)

    def test_equal_timestamps_keep_first(self):
        entries = [_entry("custom-1", "Gym"), _entry("custom-2", "GYM")]
        assert [c.id for c in sanitize_custom_categories(entries, now=0)] == ["custom-1"]

    @pytest.mark.parametrize(
        "entry",
        [
            "not-a-dict",
            _entry("birthdays", "Mine"),
            _entry("custom-1", "   "),
            _entry("custom-1", "Gym", keywords=()),
            _entry("custom-1", "Gym", color="blue"),
            _entry("custom-1", "Holidays/Trips"),
            _entry("custom-1", "uncategorized"),
        ],
    )
    def test_invalid_entries_are_dropped(self, entry):
        assert sanitize_custom_categories([entry], now=0) == []

    def test_missing_timestamps_default_to_now(self):
        raw = {"id": "custom-1", "label": "Gym", "color": "#111111", "keywords": ["gym"]}
        [category] = sanitize_custom_categories([raw], now=42)
        assert category.created_at == 42
        assert category.updated_at == 42
        assert category.match_mode == MatchMode.ANY


# ---------------------------------------------------------------------------
# Add
# ---------------------------------------------------------------------------


class TestAddCustomCategory:
    def test_add_persists_versioned_payload(self, category_store, storage, clock):
        result = category_store.add_custom_category(_input(match_mode="all"))

        assert result.ok
        category = result.category
        assert category.id == "custom-1"
        assert category.is_default is False
        assert category.match_mode == MatchMode.ALL
        assert category.created_at == category.updated_at == clock.now

        stored = _stored(storage)
        assert stored["version"] == 1
        assert stored["categories"] == [
            {
                "id": "custom-1",
                "label": "Gym",
                "color": "#22C55E",
                "keywords": ["gym"],
                "matchMode": "all",
                "isDefault": False,
                "createdAt": clock.now,
                "updatedAt": clock.now,
            }
        ]

    def test_keywords_are_normalized(self, category_store):
        result = category_store.add_custom_category(
            _input(label="Travel plans", keywords=["Flight", "flight", "hotel"])
        )
        assert result.category.keywords == ("Flight", "hotel")

    def test_label_is_trimmed(self, category_store):
        assert category_store.add_custom_category(_input(label="  Gym  ")).category.label == "Gym"

    def test_unknown_match_mode_becomes_any(self, category_store):
        result = category_store.add_custom_category(_input(match_mode="most"))
        assert result.category.match_mode == MatchMode.ANY

    @pytest.mark.parametrize("label", ["Work", "work", "  FAMILY ", "Uncategorized"])
    def test_builtin_label_is_rejected_and_nothing_persisted(self, category_store, storage, label):
        result = category_store.add_custom_category(_input(label=label))

        assert not result.ok
        assert result.error == ERROR_NAME_IS_DEFAULT
        assert result.kind == ErrorKind.VALIDATION_ERROR
        assert storage.get(CUSTOM_CATEGORIES_KEY) is None

    @pytest.mark.parametrize(
        ("data", "error"),
        [
            (_input(label="", color="nope", keywords=()), ERROR_NAME_REQUIRED),
            (_input(label="x" * 33, color="nope"), ERROR_NAME_TOO_LONG),
            (_input(label="Work", color="nope", keywords=()), ERROR_NAME_IS_DEFAULT),
            (_input(color="#12345", keywords=()), ERROR_INVALID_COLOR),
            (_input(color="22C55E"), ERROR_INVALID_COLOR),
            (_input(keywords=(" ", "")), ERROR_NO_KEYWORDS),
        ],
    )
    def test_validation_order(self, category_store, data, error):
        assert category_store.add_custom_category(data).error == error

    def test_label_of_exactly_max_length_is_accepted(self, category_store):
        assert category_store.add_custom_category(_input(label="x" * 32)).ok

    def test_duplicate_label_is_rejected(self, category_store):
        category_store.add_custom_category(_input(label="Gym"))
        result = category_store.add_custom_category(_input(label="GYM", keywords=("lift",)))
        assert result.error == ERROR_NAME_EXISTS
        assert len(category_store.get_custom_categories()) == 1


# ---------------------------------------------------------------------------
# Update / remove
# ---------------------------------------------------------------------------


class TestUpdateCustomCategory:
    def test_update_preserves_created_at(self, category_store, clock):
        created = category_store.add_custom_category(_input()).category
        clock.advance(5000)

        result = category_store.update_custom_category(
            created.id, _input(label="Gym & Pool", color="#0EA5E9", keywords=("gym", "pool"))
        )

        assert result.ok
        updated = result.category
        assert updated.id == created.id
        assert updated.created_at == created.created_at
        assert updated.updated_at == clock.now
        assert updated.keywords == ("gym", "pool")
        assert category_store.get_custom_categories() == [updated]

    def test_update_keeps_own_label(self, category_store):
        created = category_store.add_custom_category(_input()).category
        assert category_store.update_custom_category(created.id, _input(label="gym")).ok

    def test_update_to_another_label_is_rejected(self, category_store):
        category_store.add_custom_category(_input(label="Gym"))
        books = category_store.add_custom_category(_input(label="Books", keywords=("read",)))
        result = category_store.update_custom_category(books.category.id, _input(label="gym"))
        assert result.error == ERROR_NAME_EXISTS

    def test_missing_category_is_reported_before_validation(self, category_store):
        result = category_store.update_custom_category("custom-missing", CategoryInput())
        assert result.error == ERROR_NOT_FOUND


class TestRemoveCustomCategory:
    def test_remove(self, category_store):
        gym = category_store.add_custom_category(_input()).category
        books = category_store.add_custom_category(_input(label="Books")).category

        category_store.remove_custom_category(gym.id)

        assert category_store.get_custom_categories() == [books]

    def test_removing_last_category_removes_key(self, category_store, storage):
        gym = category_store.add_custom_category(_input()).category
        category_store.remove_custom_category(gym.id)
        assert storage.get(CUSTOM_CATEGORIES_KEY) is None

    def test_remove_unknown_is_noop(self, category_store, storage):
        category_store.add_custom_category(_input())
        before = storage.get(CUSTOM_CATEGORIES_KEY)
        category_store.remove_custom_category("custom-unknown")
        assert storage.get(CUSTOM_CATEGORIES_KEY) == before


# ---------------------------------------------------------------------------
# Reading stored payloads
# ---------------------------------------------------------------------------


class TestGetCustomCategories:
    def test_empty_storage(self, category_store):
        assert category_store.get_custom_categories() == []

    @pytest.mark.parametrize(
        "raw",
        [
            "{not json",
            json.dumps("text"),
            json.dumps({"version": 1}),
            json.dumps({"categories": []}),
        ],
    )
    def test_unreadable_payload_is_cleared(self, category_store, storage, raw, caplog):
        storage.set(CUSTOM_CATEGORIES_KEY, raw)

        with caplog.at_level("WARNING"):
            assert category_store.get_custom_categories() == []

        assert storage.get(CUSTOM_CATEGORIES_KEY) is None
        assert any(
            getattr(r, "kind", None) == ErrorKind.STORAGE_CORRUPT.value for r in caplog.records
        )

    def test_legacy_array_is_migrated_and_rewritten(self, category_store, storage):
        storage.set(CUSTOM_CATEGORIES_KEY, json.dumps([_entry("custom-1", "Gym", updated_at=7)]))

        [category] = category_store.get_custom_categories()

        assert category.label == "Gym"
        assert category.updated_at == 7
        stored = _stored(storage)
        assert stored["version"] == 1
        assert stored["categories"][0]["id"] == "custom-1"

    def test_invalid_entries_are_dropped_and_rewritten(self, category_store, storage):
        payload = {
            "version": 1,
            "categories": [_entry("custom-1", "Gym"), _entry("custom-2", "Work"), 42],
        }
        storage.set(CUSTOM_CATEGORIES_KEY, json.dumps(payload))

        assert [c.id for c in category_store.get_custom_categories()] == ["custom-1"]
        assert [c["id"] for c in _stored(storage)["categories"]] == ["custom-1"]

    def test_clean_current_payload_is_not_rewritten(self, category_store, storage):
        raw = json.dumps({"version": 1, "categories": [_entry("custom-1", "Gym")]})
        storage.set(CUSTOM_CATEGORIES_KEY, raw)

        category_store.get_custom_categories()

        assert storage.get(CUSTOM_CATEGORIES_KEY) == raw

    def test_newer_version_is_read_as_is(self, category_store, storage):
        raw = json.dumps({"version": 2, "categories": [_entry("custom-1", "Gym")], "extra": True})
        storage.set(CUSTOM_CATEGORIES_KEY, raw)

        assert [c.id for c in category_store.get_custom_categories()] == ["custom-1"]
        assert storage.get(CUSTOM_CATEGORIES_KEY) == raw

    def test_newer_version_with_invalid_entry_is_not_rewritten(self, category_store, storage):
        raw = json.dumps({"version": 2, "categories": [_entry("custom-1", "Gym"), {"bad": 1}]})
        storage.set(CUSTOM_CATEGORIES_KEY, raw)

        assert [c.id for c in category_store.get_custom_categories()] == ["custom-1"]
        assert storage.get(CUSTOM_CATEGORIES_KEY) == raw
        assert _stored(storage)["version"] == 2


# ---------------------------------------------------------------------------
# Removed defaults
# ---------------------------------------------------------------------------


class TestMembership:
    def test_baseline_when_absent(self, category_store):
        assert category_store.get_membership() == DefaultMembership.baseline()

    def test_round_trip(self, category_store, storage):
        category_store.save_membership(DefaultMembership.baseline().remove("work"))
        assert json.loads(storage.get(REMOVED_DEFAULTS_KEY)) == ["work"]
        assert category_store.get_membership().removed == frozenset({"work"})

    def test_empty_removal_list_removes_key(self, category_store, storage):
        category_store.save_membership(DefaultMembership.baseline().remove("work"))
        category_store.save_membership(DefaultMembership.baseline())
        assert storage.get(REMOVED_DEFAULTS_KEY) is None

    def test_corrupt_value_is_cleared(self, category_store, storage):
        storage.set(REMOVED_DEFAULTS_KEY, "[oops")
        assert category_store.get_membership() == DefaultMembership.baseline()
        assert storage.get(REMOVED_DEFAULTS_KEY) is None

    def test_unknown_ids_are_dropped_and_rewritten(self, category_store, storage):
        storage.set(REMOVED_DEFAULTS_KEY, json.dumps(["races", "custom-1", 5, "uncategorized"]))

        membership = category_store.get_membership()

        assert membership.removed == frozenset({"races"})
        assert json.loads(storage.get(REMOVED_DEFAULTS_KEY)) == ["races"]


class TestStoreInjection:
    def test_default_ids_are_prefixed_uuids(self, storage):
        store = CategoryStore(storage)
        category = store.add_custom_category(_input()).category
        assert category.id.startswith("custom-")
        assert len(category.id) == len("custom-") + 36
