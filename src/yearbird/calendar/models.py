"""Provider payload models for calendars and events.

Field names follow the Google Calendar v3 wire format through aliases so
``model_validate`` accepts raw API items; Python code uses snake_case.
Instances are frozen: fetched data is read-only for the session.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class EventStatus(StrEnum):
    CONFIRMED = "confirmed"
    TENTATIVE = "tentative"
    CANCELLED = "cancelled"


class AccessRole(StrEnum):
    FREE_BUSY_READER = "freeBusyReader"
    READER = "reader"
    WRITER = "writer"
    OWNER = "owner"


class _ProviderModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")


class EventTime(_ProviderModel):
    """Either ``date`` (all-day, ``YYYY-MM-DD``) or ``date_time`` (RFC3339) is set."""

    date: str | None = None
    date_time: str | None = Field(default=None, alias="dateTime")
    time_zone: str | None = Field(default=None, alias="timeZone")


class Event(_ProviderModel):
    """A single event as returned by the events-list endpoint."""

    id: str = Field(min_length=1)
    summary: str | None = None
    description: str | None = None
    location: str | None = None
    start: EventTime = Field(default_factory=EventTime)
    end: EventTime = Field(default_factory=EventTime)
    status: EventStatus = EventStatus.CONFIRMED
    html_link: str = Field(default="", alias="htmlLink")

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> EventStatus:
        if isinstance(value, str):
            try:
                return EventStatus(value.strip().lower())
            except ValueError:
                pass
        return EventStatus.CONFIRMED


class CalendarListEntry(_ProviderModel):
    """One calendar the signed-in user can read."""

    id: str = Field(min_length=1)
    summary: str | None = None
    primary: bool = False
    access_role: AccessRole | None = Field(default=None, alias="accessRole")
    background_color: str | None = Field(default=None, alias="backgroundColor")
    foreground_color: str | None = Field(default=None, alias="foregroundColor")

    @field_validator("access_role", mode="before")
    @classmethod
    def _coerce_access_role(cls, value: Any) -> AccessRole | None:
        if isinstance(value, str):
            try:
                return AccessRole(value)
            except ValueError:
                return None
        return None

    @property
    def display_name(self) -> str:
        return (self.summary or "").strip() or self.id
