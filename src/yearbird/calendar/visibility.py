"""Persisted set of calendars the user has hidden from the year view."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Sequence

from yearbird.calendar.models import CalendarListEntry
from yearbird.errors import ErrorKind
from yearbird.storage import KeyValueStore

logger = logging.getLogger(__name__)

DISABLED_CALENDARS_KEY = "yearbird:disabled-calendars"


def normalize_calendar_ids(value: object) -> list[str]:
    """Keep string entries, trimmed and non-empty, deduplicated in first-seen order."""
    if not isinstance(value, list):
        return []
    cleaned: list[str] = []
    for entry in value:
        if not isinstance(entry, str):
            continue
        trimmed = entry.strip()
        if trimmed and trimmed not in cleaned:
            cleaned.append(trimmed)
    return cleaned


class CalendarVisibility:
    """Reads and writes the disabled-calendar id list.

    The list is stored only while non-empty; an empty list removes the key.
    """

    def __init__(self, storage: KeyValueStore) -> None:
        self._storage = storage

    def _write(self, disabled: list[str]) -> None:
        if not disabled:
            self._storage.remove(DISABLED_CALENDARS_KEY)
            return
        self._storage.set(DISABLED_CALENDARS_KEY, json.dumps(disabled))

    def get_disabled(self) -> list[str]:
        raw = self._storage.get(DISABLED_CALENDARS_KEY)
        if not raw:
            return []

        try:
            parsed = json.loads(raw)
        except ValueError:
            logger.warning(
                "Discarding unreadable disabled-calendar list",
                extra={"kind": ErrorKind.STORAGE_CORRUPT.value},
            )
            self._storage.remove(DISABLED_CALENDARS_KEY)
            return []

        cleaned = normalize_calendar_ids(parsed)
        if not isinstance(parsed, list) or len(cleaned) != len(parsed):
            self._write(cleaned)
        return cleaned

    def set_disabled(self, calendar_ids: Iterable[str]) -> list[str]:
        cleaned = normalize_calendar_ids(list(calendar_ids))
        self._write(cleaned)
        return cleaned

    def disable(self, calendar_id: str) -> list[str]:
        existing = self.get_disabled()
        if calendar_id in existing:
            return existing
        return self.set_disabled([*existing, calendar_id])

    def enable(self, calendar_id: str) -> list[str]:
        existing = self.get_disabled()
        if calendar_id not in existing:
            return existing
        return self.set_disabled([entry for entry in existing if entry != calendar_id])

    def filter_enabled(self, calendars: Sequence[CalendarListEntry]) -> list[CalendarListEntry]:
        disabled = set(self.get_disabled())
        return [calendar for calendar in calendars if calendar.id not in disabled]
