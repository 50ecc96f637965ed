"""OpenTelemetry span helpers for calendar fetches.

Yearbird only depends on the OTel API.  When the embedding application
installs a TracerProvider the spans are exported; otherwise the API's no-op
tracer makes every call here free.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

_TRACER_NAME = "yearbird"


def get_tracer(name: str = _TRACER_NAME) -> trace.Tracer:
    """Get a tracer from the current provider."""
    return trace.get_tracer(name)


@contextmanager
def calendar_span(name: str, **attributes: str | int) -> Iterator[trace.Span]:
    """Run a block inside a ``yearbird.calendar.<name>`` span.

    Exceptions are recorded on the span and the status set to ERROR before
    the exception is re-raised.
    """
    tracer = get_tracer()
    with tracer.start_as_current_span(
        f"yearbird.calendar.{name}", record_exception=False, set_status_on_exception=False
    ) as span:
        for key, value in attributes.items():
            span.set_attribute(f"calendar.{key}", value)
        try:
            yield span
        except BaseException as exc:
            span.record_exception(exc)
            span.set_status(Status(StatusCode.ERROR, str(exc)))
            raise
