"""Schema versions of the stored custom-category payload.

Version history:

- ``0``: a bare JSON array of category objects (no envelope).
- ``1``: ``{"version": 1, "categories": [...]}``.

:func:`migrate` is pure: it takes the decoded JSON value and returns the
payload in the current schema, applying each upgrade step in order.  The
store decides whether to write the result back.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

LEGACY_VERSION = 0
CURRENT_VERSION = 1


class PayloadFormatError(ValueError):
    """Raised when a decoded payload matches no known schema version."""


@dataclass(frozen=True)
class StoredCategoriesPayload:
    """The persisted envelope.  ``categories`` holds raw, unsanitized entries."""

    version: int = CURRENT_VERSION
    categories: list[Any] = field(default_factory=list)

    def to_json_obj(self) -> dict[str, Any]:
        return {"version": self.version, "categories": list(self.categories)}


def detect_version(raw: Any) -> int:
    """Return the schema version tag of a decoded payload.

    Raises
    ------
    PayloadFormatError
        If *raw* is neither a bare array nor a versioned envelope.
    """
    if isinstance(raw, list):
        return LEGACY_VERSION
    if not isinstance(raw, dict):
        raise PayloadFormatError(f"Unexpected payload type: {type(raw).__name__}")
    if not isinstance(raw.get("categories"), list):
        raise PayloadFormatError("Payload is missing a categories array")
    version = raw.get("version")
    if isinstance(version, bool) or not isinstance(version, int) or version < 1:
        raise PayloadFormatError(f"Invalid payload version: {version!r}")
    return version


def _upgrade_v0(raw: Any) -> dict[str, Any]:
    return {"version": 1, "categories": list(raw)}


# Maps a version to the step that upgrades it to version + 1.
_UPGRADES: dict[int, Callable[[Any], Any]] = {
    LEGACY_VERSION: _upgrade_v0,
}


def migrate(raw: Any) -> StoredCategoriesPayload:
    """Upgrade a decoded payload to :data:`CURRENT_VERSION`.

    Payloads written by a newer release (version above current) are read
    as-is; their envelope is assumed backward compatible.

    Raises
    ------
    PayloadFormatError
        If *raw* does not match any known schema.
    """
    version = detect_version(raw)
    value = raw
    while version < CURRENT_VERSION:
        value = _UPGRADES[version](value)
        version = detect_version(value)
    return StoredCategoriesPayload(version=version, categories=list(value["categories"]))
