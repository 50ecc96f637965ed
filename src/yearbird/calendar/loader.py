"""Load one year of categorized events across several calendars."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence

from yearbird.calendar.client import CalendarClient
from yearbird.categories.matcher import sort_for_matching
from yearbird.categories.models import Category
from yearbird.events import TaggedEvent, process_events

logger = logging.getLogger(__name__)


def normalize_calendar_ids(calendar_ids: Iterable[str]) -> list[str]:
    """Drop empty ids and duplicates, keeping first-seen order."""
    seen: list[str] = []
    for calendar_id in calendar_ids:
        if calendar_id and calendar_id not in seen:
            seen.append(calendar_id)
    return seen


async def load_year(
    client: CalendarClient,
    access_token: str,
    year: int,
    calendar_ids: Iterable[str],
    categories: Sequence[Category],
    *,
    timezone: str | None = None,
    abort: asyncio.Event | None = None,
) -> list[TaggedEvent]:
    """Fetch, categorize and concatenate *year*'s events for each calendar.

    Calendars are fetched one after another in the given order.  Errors from
    the client (unauthorized, API errors, cancellation) propagate; no partial
    result is returned.
    """
    ids = normalize_calendar_ids(calendar_ids)
    if not ids:
        return []

    ordered = sort_for_matching(categories)
    tagged: list[TaggedEvent] = []
    for calendar_id in ids:
        events = await client.fetch_events_for_year(
            access_token,
            year,
            calendar_id=calendar_id,
            timezone=timezone,
            abort=abort,
        )
        processed = process_events(events, ordered, calendar_id=calendar_id)
        logger.info(
            "Loaded %d of %d events for calendar %s (%d)",
            len(processed),
            len(events),
            calendar_id,
            year,
        )
        tagged.extend(processed)
    return tagged
