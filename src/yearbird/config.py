"""Yearbird configuration loading and validation.

Reads yearbird.toml, resolves ``${VAR}`` references, parses all sections,
and returns a validated YearbirdConfig dataclass.  Every field has a
default, so running without a config file is supported.
"""

from __future__ import annotations

import os
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

CONFIG_FILENAME = "yearbird.toml"
DEFAULT_STORAGE_DIR = "~/.yearbird"
DEFAULT_CALENDAR_API_BASE_URL = "https://www.googleapis.com/calendar/v3"

# Google caps maxResults at 2500 for events.list.
_MAX_PAGE_SIZE = 2500

# Pattern matching ${VAR_NAME}; supports alphanumeric + underscore variable names.
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")
_VALID_LOG_FORMATS = ("text", "json")


class ConfigError(Exception):
    """Raised when yearbird configuration is malformed or invalid."""


@dataclass
class LoggingConfig:
    """Logging configuration from [yearbird.logging] section."""

    level: str = "INFO"
    format: str = "text"  # "text" or "json"
    log_file: str | None = None


@dataclass
class CalendarConfig:
    """Calendar API client configuration from [yearbird.calendar] section.

    ``max_retries`` bounds how many times a rate-limited (429) response is
    re-requested before the status is surfaced.  ``max_retry_wait_seconds``
    caps any single wait, including waits requested by a ``Retry-After``
    header.
    """

    api_base_url: str = DEFAULT_CALENDAR_API_BASE_URL
    max_retries: int = 3
    max_retry_wait_seconds: float = 60.0
    page_size: int = 250
    timezone: str | None = None
    timeout_seconds: float = 30.0


@dataclass
class SyncConfig:
    """Cloud sync configuration from [yearbird.sync] section."""

    debounce_seconds: float = 2.0


@dataclass
class YearbirdConfig:
    """Parsed and validated yearbird configuration."""

    storage_dir: str = DEFAULT_STORAGE_DIR
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    calendar: CalendarConfig = field(default_factory=CalendarConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)

    @property
    def storage_path(self) -> Path:
        return Path(self.storage_dir).expanduser()


def resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ``${VAR_NAME}`` references in config values.

    Walks dicts, lists, and strings.  Non-string leaf values (int, bool,
    float) are returned unchanged.

    Raises
    ------
    ConfigError
        If a referenced environment variable is not set.
    """
    if isinstance(value, dict):
        return {k: resolve_env_vars(v) for k, v in value.items()}

    if isinstance(value, list):
        return [resolve_env_vars(item) for item in value]

    if isinstance(value, str):
        return _resolve_string(value)

    return value


def _resolve_string(s: str) -> str:
    """Replace all ``${VAR_NAME}`` occurrences in *s* with env var values.

    Collects all missing variable names and reports them in a single error.
    """
    missing: list[str] = []

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)
        if env_value is None:
            missing.append(var_name)
            return match.group(0)
        return env_value

    result = _ENV_VAR_PATTERN.sub(_replace, s)

    if missing:
        vars_str = ", ".join(missing)
        raise ConfigError(
            f"Unresolved environment variable(s) in config value: {vars_str} (original: {s!r})"
        )

    return result


def _section(parent: dict, name: str, path: str) -> dict:
    section = parent.get(name, {})
    if not isinstance(section, dict):
        raise ConfigError(f"{path} must be a TOML table")
    return section


def _number(section: dict, key: str, default: float, path: str) -> float:
    raw = section.get(key, default)
    if isinstance(raw, bool) or not isinstance(raw, int | float):
        raise ConfigError(f"{path}.{key} must be a number, got {raw!r}")
    return float(raw)


def _integer(section: dict, key: str, default: int, path: str) -> int:
    raw = section.get(key, default)
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise ConfigError(f"{path}.{key} must be an integer, got {raw!r}")
    return raw


def _parse_logging(yearbird_section: dict) -> LoggingConfig:
    """Parse the optional [yearbird.logging] sub-section."""
    section = _section(yearbird_section, "logging", "yearbird.logging")
    level = str(section.get("level", "INFO")).strip().upper()
    if not level:
        raise ConfigError("yearbird.logging.level must be a non-empty string")

    fmt = str(section.get("format", "text")).strip().lower()
    if fmt not in _VALID_LOG_FORMATS:
        raise ConfigError(
            f"Invalid yearbird.logging.format: {fmt!r}. "
            f"Must be one of: {', '.join(_VALID_LOG_FORMATS)}"
        )

    log_file = section.get("log_file")
    if log_file is not None and (not isinstance(log_file, str) or not log_file.strip()):
        raise ConfigError("yearbird.logging.log_file must be a non-empty string when set")

    return LoggingConfig(level=level, format=fmt, log_file=log_file)


def _parse_calendar(yearbird_section: dict) -> CalendarConfig:
    """Parse the optional [yearbird.calendar] sub-section."""
    path = "yearbird.calendar"
    section = _section(yearbird_section, "calendar", path)

    api_base_url = str(section.get("api_base_url", DEFAULT_CALENDAR_API_BASE_URL)).strip()
    if not api_base_url.startswith(("http://", "https://")):
        raise ConfigError(f"{path}.api_base_url must be an http(s) URL, got {api_base_url!r}")

    max_retries = _integer(section, "max_retries", 3, path)
    if max_retries < 0:
        raise ConfigError(f"{path}.max_retries must be >= 0, got {max_retries}")

    max_retry_wait = _number(section, "max_retry_wait_seconds", 60.0, path)
    if max_retry_wait <= 0:
        raise ConfigError(f"{path}.max_retry_wait_seconds must be > 0, got {max_retry_wait}")

    page_size = _integer(section, "page_size", 250, path)
    if not 1 <= page_size <= _MAX_PAGE_SIZE:
        raise ConfigError(f"{path}.page_size must be between 1 and {_MAX_PAGE_SIZE}")

    timeout = _number(section, "timeout_seconds", 30.0, path)
    if timeout <= 0:
        raise ConfigError(f"{path}.timeout_seconds must be > 0, got {timeout}")

    timezone = section.get("timezone")
    if timezone is not None:
        if not isinstance(timezone, str) or not timezone.strip():
            raise ConfigError(f"{path}.timezone must be a non-empty string when set")
        timezone = timezone.strip()
        try:
            ZoneInfo(timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ConfigError(
                f"{path}.timezone is not a valid IANA timezone: {timezone!r}"
            ) from exc

    return CalendarConfig(
        api_base_url=api_base_url.rstrip("/"),
        max_retries=max_retries,
        max_retry_wait_seconds=max_retry_wait,
        page_size=page_size,
        timezone=timezone,
        timeout_seconds=timeout,
    )


def _parse_sync(yearbird_section: dict) -> SyncConfig:
    """Parse the optional [yearbird.sync] sub-section."""
    section = _section(yearbird_section, "sync", "yearbird.sync")
    debounce = _number(section, "debounce_seconds", 2.0, "yearbird.sync")
    if debounce < 0:
        raise ConfigError(f"yearbird.sync.debounce_seconds must be >= 0, got {debounce}")
    return SyncConfig(debounce_seconds=debounce)


def parse_config(data: dict[str, Any]) -> YearbirdConfig:
    """Validate an already-decoded TOML document."""
    data = resolve_env_vars(data)

    yearbird_section = _section(data, "yearbird", "yearbird")

    storage_dir = yearbird_section.get("storage_dir", DEFAULT_STORAGE_DIR)
    if not isinstance(storage_dir, str) or not storage_dir.strip():
        raise ConfigError("yearbird.storage_dir must be a non-empty string")

    return YearbirdConfig(
        storage_dir=storage_dir.strip(),
        logging=_parse_logging(yearbird_section),
        calendar=_parse_calendar(yearbird_section),
        sync=_parse_sync(yearbird_section),
    )


def load_config(config_path: Path | None = None) -> YearbirdConfig:
    """Load and validate a yearbird.toml.

    Parameters
    ----------
    config_path:
        Either the TOML file itself or a directory containing
        ``yearbird.toml``.  ``None`` returns the defaults.

    Raises
    ------
    ConfigError
        If the file is missing, contains invalid TOML, or holds invalid values.
    """
    if config_path is None:
        return YearbirdConfig()

    toml_path = Path(config_path)
    if toml_path.is_dir():
        toml_path = toml_path / CONFIG_FILENAME

    if not toml_path.exists():
        raise ConfigError(f"Config file not found: {toml_path}")

    try:
        data = tomllib.loads(toml_path.read_bytes().decode())
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {toml_path}: {exc}") from exc

    return parse_config(data)
