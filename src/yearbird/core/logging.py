"""Structured logging for Yearbird.

Every module logs through plain ``logging.getLogger(__name__)``; the root
handlers render those records with structlog's ProcessorFormatter.

Two output formats:
- ``text``: coloured console lines for interactive CLI use (default)
- ``json``: one JSON object per line

The active command name and OTel trace context are injected automatically via
processors that read from a ContextVar and the current OTel span.  Bearer
tokens are scrubbed from every record before it reaches a handler.
"""

from __future__ import annotations

import logging
import re
import sys
from contextvars import ContextVar
from pathlib import Path

import structlog
from opentelemetry import trace

_command_context: ContextVar[str | None] = ContextVar("yearbird_command", default=None)


def set_command_context(name: str) -> None:
    """Record the CLI command being run; attached to later records."""
    _command_context.set(name)


def get_command_context() -> str | None:
    """Return the recorded command name, or ``None`` outside a command."""
    return _command_context.get()


def add_command_context(
    logger: logging.Logger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: dict,
) -> dict:
    """Add the current command name as ``command``."""
    event_dict["command"] = _command_context.get()
    return event_dict


def add_otel_context(
    logger: logging.Logger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: dict,
) -> dict:
    """Attach hex ``trace_id``/``span_id`` of the active span, zeroed when none."""
    ctx = trace.get_current_span().get_span_context()
    if ctx.is_valid:
        event_dict["trace_id"] = format(ctx.trace_id, "032x")
        event_dict["span_id"] = format(ctx.span_id, "016x")
    else:
        event_dict["trace_id"] = "0" * 32
        event_dict["span_id"] = "0" * 16
    return event_dict


_REDACTION_PATTERNS = (
    re.compile(r"(Bearer\s+)[\w.~+/=-]+", re.IGNORECASE),
    re.compile(r"((?:access_token|refresh_token)=)[^&\s]+", re.IGNORECASE),
)


class CredentialRedactionFilter(logging.Filter):
    """Scrub OAuth access tokens from log messages.

    The record message is rendered once, redacted, and its args cleared so
    the formatter cannot re-interpolate the original values.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = message
        for pattern in _REDACTION_PATTERNS:
            redacted = pattern.sub(r"\1[REDACTED]", redacted)
        if redacted != message:
            record.msg = redacted
            record.args = ()
        return True


# Per-request chatter from the HTTP stack stays at WARNING.
_NOISE_LOGGERS = ("httpx", "httpcore")


def _build_processors(time_fmt: str) -> list[structlog.types.Processor]:
    """Shared pre-chain for stdlib records, stamped with *time_fmt*."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt=time_fmt),
        add_command_context,
        add_otel_context,
        structlog.stdlib.ExtraAdder(),
    ]


def _make_file_handler(path: Path, processors: list) -> logging.FileHandler:
    """JSON-lines handler appending to *path*, accepting every level."""
    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.JSONRenderer(),
        ],
        foreign_pre_chain=processors,
    )
    handler = logging.FileHandler(path)
    handler.setFormatter(formatter)
    handler.setLevel(logging.DEBUG)
    return handler


def configure_logging(
    level: str = "INFO",
    fmt: str = "text",
    log_file: Path | str | None = None,
    command: str | None = None,
) -> None:
    """Install Yearbird's root handlers, replacing any previous setup.

    Parameters
    ----------
    level:
        Name of the root level, case-insensitive; unknown names fall back to INFO.
    fmt:
        ``"json"`` renders console lines as JSON; anything else is coloured text.
    log_file:
        Optional path of a JSON-lines log file.  Parent directories are
        created as needed.  The file is always JSON regardless of *fmt*.
    command:
        Command name stored in the ContextVar and attached to every record.
    """
    if command:
        set_command_context(command)

    if fmt == "json":
        console_processors = _build_processors(time_fmt="iso")
        renderer = structlog.processors.JSONRenderer()
    else:
        # wall-clock seconds only
        console_processors = _build_processors(time_fmt="%H:%M:%S")
        renderer = structlog.dev.ConsoleRenderer()

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=console_processors,
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)

    root = logging.getLogger()
    # idempotent: one console handler and one redaction filter
    root.handlers.clear()
    root.filters = [f for f in root.filters if not isinstance(f, CredentialRedactionFilter)]
    root.addFilter(CredentialRedactionFilter())
    console_handler.addFilter(CredentialRedactionFilter())
    root.addHandler(console_handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name in _NOISE_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if log_file is not None:
        log_path = Path(log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = _make_file_handler(log_path, _build_processors(time_fmt="iso"))
        file_handler.addFilter(CredentialRedactionFilter())
        root.addHandler(file_handler)

    # structlog.get_logger() callers share the same chain
    structlog.configure(
        processors=[
            *console_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
