"""Normalization of provider events into categorized year-view entries."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict

from yearbird.calendar.models import Event, EventStatus
from yearbird.categories.matcher import match_category
from yearbird.categories.models import Category

logger = logging.getLogger(__name__)

UNTITLED_EVENT = "Untitled event"


class TaggedEvent(BaseModel):
    """An event ready for display, with its assigned category.

    ``end_date`` is inclusive: an all-day event stored by the provider as
    ``2025-03-01`` .. ``2025-03-03`` (exclusive end) spans 1st to 2nd here.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: str | None = None
    location: str | None = None
    start_date: date
    end_date: date
    is_all_day: bool
    is_multi_day: bool
    is_single_day_timed: bool
    duration_days: int
    google_link: str = ""
    category: str
    color: str
    calendar_id: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    start_time_minutes: int | None = None
    end_time_minutes: int | None = None


def _parse_date(value: str) -> date | None:
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def _parse_datetime(value: str, timezone: str | None) -> datetime | None:
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if timezone and parsed.tzinfo is not None:
        try:
            parsed = parsed.astimezone(ZoneInfo(timezone))
        except (ZoneInfoNotFoundError, ValueError):
            logger.debug("Ignoring unknown event timezone %r", timezone)
    return parsed


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


def process_event(
    event: Event,
    categories: Sequence[Category],
    *,
    calendar_id: str | None = None,
) -> TaggedEvent | None:
    """Convert one provider event; returns ``None`` for events not shown.

    Cancelled events and events with missing or inconsistent boundaries are
    dropped.
    """
    if event.status == EventStatus.CANCELLED:
        return None

    is_all_day = bool(event.start.date) and not event.start.date_time
    start_time = end_time = None
    start_minutes = end_minutes = None

    if is_all_day:
        if not event.end.date:
            return None
        start_date = _parse_date(event.start.date or "")
        exclusive_end = _parse_date(event.end.date)
        if start_date is None or exclusive_end is None:
            return None
        span = (exclusive_end - start_date).days
        if span < 0:
            return None
        duration_days = max(1, span)
        end_date = exclusive_end - timedelta(days=1)
        if end_date < start_date:
            end_date = start_date
    else:
        if not event.start.date_time or not event.end.date_time:
            return None
        timezone = event.start.time_zone or event.end.time_zone
        start_at = _parse_datetime(event.start.date_time, timezone)
        end_at = _parse_datetime(event.end.date_time, timezone)
        if start_at is None or end_at is None:
            return None
        start_date = start_at.date()
        end_date = end_at.date()
        span = (end_date - start_date).days
        if span < 0:
            return None
        duration_days = max(1, span + 1)
        start_time = start_at.strftime("%H:%M")
        end_time = end_at.strftime("%H:%M")
        start_minutes = start_at.hour * 60 + start_at.minute
        end_minutes = end_at.hour * 60 + end_at.minute

    is_multi_day = duration_days > 1
    title = _clean(event.summary) or UNTITLED_EVENT
    category = match_category(title, categories)

    return TaggedEvent(
        id=f"{calendar_id}:{event.id}" if calendar_id else event.id,
        title=title,
        description=_clean(event.description),
        location=_clean(event.location),
        start_date=start_date,
        end_date=end_date,
        is_all_day=is_all_day,
        is_multi_day=is_multi_day,
        is_single_day_timed=not is_all_day and not is_multi_day,
        duration_days=duration_days,
        google_link=event.html_link or "",
        category=category.id,
        color=category.color,
        calendar_id=calendar_id,
        start_time=start_time,
        end_time=end_time,
        start_time_minutes=start_minutes,
        end_time_minutes=end_minutes,
    )


def process_events(
    events: Iterable[Event],
    categories: Sequence[Category],
    *,
    calendar_id: str | None = None,
) -> list[TaggedEvent]:
    processed = (process_event(e, categories, calendar_id=calendar_id) for e in events)
    return [event for event in processed if event is not None]
