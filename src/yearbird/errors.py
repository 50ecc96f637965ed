"""Failure kinds shared by the calendar client and the category store."""

from __future__ import annotations

from enum import StrEnum


class ErrorKind(StrEnum):
    """Classification attached to log records and raised errors.

    ``UNAUTHORIZED`` and ``API_ERROR`` are raised to callers.
    ``RATE_LIMITED`` is absorbed by the client's retry loop unless the retry
    budget runs out.  ``VALIDATION_ERROR`` travels as data inside a
    ``CategoryResult``.  ``STORAGE_CORRUPT`` is self-healed and only logged.
    """

    UNAUTHORIZED = "UNAUTHORIZED"
    RATE_LIMITED = "RATE_LIMITED"
    API_ERROR = "API_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    STORAGE_CORRUPT = "STORAGE_CORRUPT"
    CANCELLED = "CANCELLED"
