"""Debounced, fire-and-forget cloud sync of the category set.

``SyncScheduler.schedule`` is handed to :class:`CategoryRegistry` as its sync
trigger.  It returns immediately; the actual sync runs on the event loop
after ``debounce_seconds`` of quiet, so a burst of edits produces a single
upload of the latest snapshot.  Sync failures are logged and counted, never
raised to whoever made the edit.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Sequence

from yearbird.categories.models import Category
from yearbird.config import SyncConfig

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 2.0
# Re-check interval while a previous sync is still running.
BUSY_RECHECK_SECONDS = 0.1

SyncFunction = Callable[[list[Category]], Awaitable[None] | None]


class SyncScheduler:
    """Coalesces sync requests and runs at most one sync at a time."""

    def __init__(
        self,
        sync_fn: SyncFunction,
        *,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
    ) -> None:
        if debounce_seconds < 0:
            raise ValueError("debounce_seconds must be >= 0")
        self._sync_fn = sync_fn
        self._debounce_seconds = debounce_seconds
        self._pending: list[Category] | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._task: asyncio.Task[None] | None = None
        self.completed = 0
        self.failures = 0

    @classmethod
    def from_config(cls, sync_fn: SyncFunction, config: SyncConfig) -> SyncScheduler:
        """Build a scheduler using the [yearbird.sync] settings."""
        return cls(sync_fn, debounce_seconds=config.debounce_seconds)

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    def schedule(self, categories: Sequence[Category]) -> None:
        """Record *categories* as the latest snapshot and (re)arm the debounce timer.

        Without a running event loop the snapshot waits for :meth:`flush`.
        """
        self._pending = list(categories)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; sync deferred until flush()")
            return
        if self._timer is not None:
            self._timer.cancel()
        self._timer = loop.call_later(self._debounce_seconds, self._start)

    __call__ = schedule

    def _start(self) -> None:
        self._timer = None
        if self._pending is None:
            return
        loop = asyncio.get_running_loop()
        if self._task is not None and not self._task.done():
            # One sync at a time.
            delay = max(self._debounce_seconds, BUSY_RECHECK_SECONDS)
            self._timer = loop.call_later(delay, self._start)
            return
        snapshot, self._pending = self._pending, None
        self._task = loop.create_task(self._run(snapshot))

    async def _run(self, snapshot: list[Category]) -> None:
        try:
            result = self._sync_fn(snapshot)
            if inspect.isawaitable(result):
                await result
        except Exception:
            self.failures += 1
            logger.exception("Cloud sync of %d categories failed", len(snapshot))
            return
        self.completed += 1
        logger.debug("Cloud sync of %d categories completed", len(snapshot))

    async def flush(self) -> None:
        """Run any pending sync now and wait for in-flight work to finish."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._task is not None and not self._task.done():
            await self._task
        if self._pending is not None:
            snapshot, self._pending = self._pending, None
            await self._run(snapshot)

    def close(self) -> None:
        """Drop any pending sync without running it."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._pending = None
