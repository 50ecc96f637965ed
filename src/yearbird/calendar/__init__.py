"""Read-only access to the remote calendar provider."""

from yearbird.calendar.client import (
    CalendarClient,
    CalendarError,
    CalendarRequestError,
    CalendarResponseError,
    CalendarUnauthorizedError,
    FetchCancelledError,
)
from yearbird.calendar.models import CalendarListEntry, Event, EventStatus, EventTime
from yearbird.calendar.visibility import CalendarVisibility

__all__ = [
    "CalendarClient",
    "CalendarError",
    "CalendarListEntry",
    "CalendarRequestError",
    "CalendarResponseError",
    "CalendarUnauthorizedError",
    "CalendarVisibility",
    "Event",
    "EventStatus",
    "EventTime",
    "FetchCancelledError",
]
