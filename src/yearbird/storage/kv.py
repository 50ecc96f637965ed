"""Key-value storage abstraction for locally persisted preferences.

Values are raw strings, mirroring browser local storage: callers own the
encoding, so a corrupt value is representable and can be self-healed by
the caller.  Start with a local filesystem backend; the in-memory backend
backs tests and throwaway runs.
"""

from __future__ import annotations

import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

# Characters allowed verbatim in a key's filename; everything else is escaped.
_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class KeyValueStore(Protocol):
    """Protocol for key-value storage backends."""

    def get(self, key: str) -> str | None:
        """Return the stored value for *key*, or ``None`` when absent."""
        ...

    def set(self, key: str, value: str) -> None:
        """Store *value* under *key*, replacing any previous value."""
        ...

    def remove(self, key: str) -> None:
        """Delete *key*.  Removing an absent key is a no-op."""
        ...


class MemoryKeyValueStore:
    """Dict-backed store.  Nothing survives the process."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._values: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def remove(self, key: str) -> None:
        self._values.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._values)


class LocalFileKeyValueStore:
    """Filesystem-backed store: one UTF-8 file per key under *base_dir*.

    Keys such as ``yearbird:categories`` are escaped into safe filenames
    (``yearbird%3Acategories.json``).  Writes go through a temp file and
    ``os.replace`` so a crash never leaves a half-written value behind.

    Write and delete failures are logged and swallowed: local persistence is
    best-effort and must never fail the operation that triggered it.

    Args:
        base_dir: Root directory for stored values
    """

    def __init__(self, base_dir: Path | str) -> None:
        self.base_dir = Path(base_dir).expanduser().resolve()

    def _key_to_path(self, key: str) -> Path:
        if not key:
            raise ValueError("Storage key must be a non-empty string")
        safe_name = _UNSAFE_KEY_CHARS.sub(lambda m: f"%{ord(m.group(0)):02X}", key)
        return self.base_dir / f"{safe_name}.json"

    def get(self, key: str) -> str | None:
        path = self._key_to_path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError):
            logger.warning("Failed to read stored value for key %r", key, exc_info=True)
            return None

    def set(self, key: str, value: str) -> None:
        path = self._key_to_path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp-", suffix=".json")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(value)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError:
            logger.warning("Failed to persist value for key %r", key, exc_info=True)

    def remove(self, key: str) -> None:
        path = self._key_to_path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError:
            logger.warning("Failed to remove stored value for key %r", key, exc_info=True)
