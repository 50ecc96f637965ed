"""Read-only Google Calendar client: calendar list and events for a year.

Pagination is strictly sequential: page *n+1* is requested only once page
*n*'s ``nextPageToken`` is known, so results come back in page-arrival
order.  Per response:

- ``401`` raises :class:`CalendarUnauthorizedError` immediately.
- ``429`` is retried after the wait named by ``Retry-After`` (seconds or an
  HTTP date), or a short linear backoff when the header is absent.  Retries
  are bounded by ``max_retries``; when they run out the 429 surfaces as a
  :class:`CalendarRequestError`.
- Any other non-2xx raises :class:`CalendarRequestError` without retrying.
- Transport failures (``httpx.HTTPError``) propagate unchanged.

Access tokens are opaque strings supplied by the caller; this module never
refreshes or stores them.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import Any, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from yearbird.calendar.models import CalendarListEntry, Event
from yearbird.config import CalendarConfig
from yearbird.core.telemetry import calendar_span
from yearbird.errors import ErrorKind

logger = logging.getLogger(__name__)

DEFAULT_CALENDAR_ID = "primary"
DEFAULT_TIMEZONE = "UTC"

EVENT_FIELDS = "items(id,status,summary,description,location,start,end,htmlLink),nextPageToken"
CALENDAR_LIST_FIELDS = (
    "items(id,summary,primary,accessRole,backgroundColor,foregroundColor),nextPageToken"
)

RATE_LIMIT_STATUS_CODE = 429
# Linear backoff used when a 429 carries no usable Retry-After header.
BACKOFF_STEP_SECONDS = 0.5
BACKOFF_MAX_SECONDS = 2.0

_ModelT = TypeVar("_ModelT", bound=BaseModel)


class CalendarError(RuntimeError):
    """Base error raised by the calendar client."""

    kind: ErrorKind = ErrorKind.API_ERROR


class CalendarUnauthorizedError(CalendarError):
    """Raised on 401; the caller must obtain a fresh access token."""

    kind = ErrorKind.UNAUTHORIZED

    def __init__(self) -> None:
        super().__init__("UNAUTHORIZED")


class CalendarRequestError(CalendarError):
    """Raised when the Calendar API answers with a terminal non-2xx status."""

    kind = ErrorKind.API_ERROR

    def __init__(self, status_code: int) -> None:
        self.status_code = status_code
        super().__init__(f"Calendar API error: {status_code}")


class CalendarResponseError(CalendarError):
    """Raised when a successful response body is not the expected JSON object."""


class FetchCancelledError(CalendarError):
    """Raised when the caller's abort flag is set between requests."""

    kind = ErrorKind.CANCELLED


def _utcnow() -> datetime:
    return datetime.now(UTC)


def backoff_delay_seconds(attempt: int) -> float:
    """Fallback wait for retry *attempt* (0-based): 0.5s, 1.0s, 1.5s, 2.0s, 2.0s..."""
    return min(BACKOFF_MAX_SECONDS, BACKOFF_STEP_SECONDS * (attempt + 1))


def parse_retry_after(value: str | None, *, now: datetime | None = None) -> float | None:
    """Return the wait in seconds requested by a ``Retry-After`` header value.

    Accepts a non-negative integer number of seconds or an HTTP date.  Dates
    in the past yield ``0.0``.  Absent or unparseable values yield ``None``.
    """
    if value is None:
        return None
    raw = value.strip()
    if not raw:
        return None
    if raw.isascii() and raw.isdigit():
        return float(int(raw))

    try:
        retry_at = parsedate_to_datetime(raw)
    except (TypeError, ValueError, IndexError):
        return None
    if retry_at is None:
        return None
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=UTC)
    current = now or _utcnow()
    return max(0.0, (retry_at - current).total_seconds())


def _raise_if_aborted(abort: asyncio.Event | None) -> None:
    if abort is not None and abort.is_set():
        raise FetchCancelledError("Calendar fetch was cancelled")


class CalendarClient:
    """Fetches the calendar list and per-year events for a bearer token.

    ``http_client`` may be injected (tests pass an ``httpx.AsyncClient`` over
    ``httpx.MockTransport``); otherwise one is created and owned here and
    released by :meth:`aclose`.
    """

    def __init__(
        self,
        config: CalendarConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config or CalendarConfig()
        self._owns_http_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(
            timeout=self._config.timeout_seconds
        )

    async def __aenter__(self) -> CalendarClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http_client.aclose()

    async def fetch_calendar_list(
        self,
        access_token: str,
        *,
        abort: asyncio.Event | None = None,
    ) -> list[CalendarListEntry]:
        """Return every calendar on the user's calendar list, across all pages."""
        params: dict[str, Any] = {
            "fields": CALENDAR_LIST_FIELDS,
            "maxResults": self._config.page_size,
        }
        return await self._collect(
            f"{self._config.api_base_url}/users/me/calendarList",
            params,
            access_token,
            parse=CalendarListEntry,
            kind="calendar_list",
            abort=abort,
        )

    async def fetch_events_for_year(
        self,
        access_token: str,
        year: int,
        *,
        calendar_id: str = DEFAULT_CALENDAR_ID,
        timezone: str | None = None,
        abort: asyncio.Event | None = None,
    ) -> list[Event]:
        """Return all events of *calendar_id* that overlap calendar year *year*.

        Recurring events are expanded into single instances, ordered by start
        time within each page.
        """
        if not 1 <= year <= 9998:
            raise ValueError(f"year must be between 1 and 9998, got {year}")

        normalized_calendar_id = quote(calendar_id, safe="")
        params: dict[str, Any] = {
            "timeMin": f"{year:04d}-01-01T00:00:00Z",
            "timeMax": f"{year + 1:04d}-01-01T00:00:00Z",
            "maxResults": self._config.page_size,
            "singleEvents": "true",
            "orderBy": "startTime",
            "timeZone": timezone or self._config.timezone or DEFAULT_TIMEZONE,
            "fields": EVENT_FIELDS,
        }
        return await self._collect(
            f"{self._config.api_base_url}/calendars/{normalized_calendar_id}/events",
            params,
            access_token,
            parse=Event,
            kind="events",
            abort=abort,
        )

    async def _collect(
        self,
        url: str,
        base_params: dict[str, Any],
        access_token: str,
        *,
        parse: type[_ModelT],
        kind: str,
        abort: asyncio.Event | None,
    ) -> list[_ModelT]:
        results: list[_ModelT] = []
        for page_index, items in await self._paginate(url, base_params, access_token, kind, abort):
            for item in items:
                parsed = _parse_item(parse, item)
                if parsed is None:
                    logger.warning("Skipping malformed %s item on page %d", kind, page_index)
                    continue
                results.append(parsed)
        logger.debug("Fetched %d %s item(s)", len(results), kind)
        return results

    async def _paginate(
        self,
        url: str,
        base_params: dict[str, Any],
        access_token: str,
        kind: str,
        abort: asyncio.Event | None,
    ) -> list[tuple[int, list[Any]]]:
        pages: list[tuple[int, list[Any]]] = []
        page_token: str | None = None
        page_index = 0

        while True:
            _raise_if_aborted(abort)
            params = dict(base_params)
            if page_token:
                params["pageToken"] = page_token

            with calendar_span("page", endpoint=kind, page=page_index):
                response = await self._get_with_retry(url, params, access_token, abort)
                payload = _decode_payload(response, kind)

            items = payload.get("items")
            pages.append((page_index, items if isinstance(items, list) else []))

            next_token = payload.get("nextPageToken")
            if not isinstance(next_token, str) or not next_token:
                break
            page_token = next_token
            page_index += 1

        return pages

    async def _get_with_retry(
        self,
        url: str,
        params: dict[str, Any],
        access_token: str,
        abort: asyncio.Event | None,
    ) -> httpx.Response:
        headers = {"Authorization": f"Bearer {access_token}"}
        max_retries = self._config.max_retries
        retry = 0

        while True:
            response = await self._http_client.get(url, params=params, headers=headers)

            if response.is_success:
                return response

            if response.status_code == 401:
                logger.info("Calendar API rejected the access token")
                raise CalendarUnauthorizedError()

            if response.status_code != RATE_LIMIT_STATUS_CODE:
                raise CalendarRequestError(response.status_code)

            if retry >= max_retries:
                logger.warning(
                    "Calendar API still rate-limited after %d retries; giving up",
                    max_retries,
                    extra={"kind": ErrorKind.RATE_LIMITED.value},
                )
                raise CalendarRequestError(response.status_code)

            requested = parse_retry_after(
                response.headers.get("Retry-After"), now=_utcnow()
            )
            delay = backoff_delay_seconds(retry) if requested is None else requested
            delay = min(delay, self._config.max_retry_wait_seconds)
            logger.warning(
                "Calendar API rate-limited (status=%d), retrying in %.1fs (attempt %d/%d)",
                response.status_code,
                delay,
                retry + 1,
                max_retries,
                extra={"kind": ErrorKind.RATE_LIMITED.value},
            )

            _raise_if_aborted(abort)
            if delay > 0:
                await asyncio.sleep(delay)
            _raise_if_aborted(abort)
            retry += 1


def _decode_payload(response: httpx.Response, kind: str) -> dict[str, Any]:
    try:
        payload = response.json()
    except ValueError as exc:
        raise CalendarResponseError(
            f"Calendar API returned invalid JSON for a {kind} page"
        ) from exc
    if not isinstance(payload, dict):
        raise CalendarResponseError(f"Calendar API returned an unexpected {kind} payload shape")
    return payload


def _parse_item(model: type[_ModelT], item: Any) -> _ModelT | None:
    if not isinstance(item, dict):
        return None
    try:
        return model.model_validate(item)
    except ValidationError:
        return None
