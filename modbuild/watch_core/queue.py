"""Rebuild coordinator used by the dev watcher.

Watch events land on one asyncio queue. A single coordinating task drains
it and fans out rebuild tasks: distinct paths run concurrently (bounded by a
semaphore), while a path that is already rebuilding is gated. Events for a
gated path are coalesced, the latest one wins, and a fresh rebuild follows
the in-flight one.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable, Dict, Optional, Set

from .config import LOGGER, max_concurrency as default_max_concurrency


class EventKind(str, Enum):
    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"


@dataclass(frozen=True)
class WatchEvent:
    path: Path
    kind: EventKind
    is_directory: bool = False


class RebuildCoordinator:
    """Consumes WatchEvents and serializes rebuilds per path."""

    def __init__(
        self,
        process_cb: Callable[[WatchEvent], Awaitable[None]],
        max_concurrency: Optional[int] = None,
    ):
        self._process_cb = process_cb
        self._queue: "asyncio.Queue[Optional[WatchEvent]]" = asyncio.Queue()
        limit = default_max_concurrency() if max_concurrency is None else max_concurrency
        self._semaphore = asyncio.Semaphore(max(1, limit))
        self._in_flight: Set[Path] = set()
        self._pending: Dict[Path, WatchEvent] = {}
        self._tasks: Set[asyncio.Task] = set()

    @property
    def in_flight(self) -> Set[Path]:
        return set(self._in_flight)

    def submit(self, event: WatchEvent) -> None:
        self._queue.put_nowait(event)

    def stop(self) -> None:
        self._queue.put_nowait(None)

    async def run(self) -> None:
        """Dispatch events until stop() is called."""
        while True:
            event = await self._queue.get()
            if event is None:
                break
            self._dispatch(event)
        # no mid-rebuild cancellation: let in-flight work finish
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _dispatch(self, event: WatchEvent) -> None:
        key = event.path
        if key in self._in_flight:
            self._pending[key] = event
            LOGGER.debug("Coalesced %s event for %s", event.kind.value, key)
            return
        self._in_flight.add(key)
        task = asyncio.create_task(self._run_path(event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_path(self, event: WatchEvent) -> None:
        key = event.path
        current: Optional[WatchEvent] = event
        try:
            while current is not None:
                async with self._semaphore:
                    try:
                        await self._process_cb(current)
                    except Exception as exc:
                        LOGGER.error(
                            "Rebuild failed for %s: %s", current.path, exc,
                            exc_info=True,
                        )
                current = self._pending.pop(key, None)
        finally:
            self._in_flight.discard(key)

    async def wait_idle(self) -> None:
        """Wait until the queue is drained and no rebuild is running."""
        while not self._queue.empty() or self._tasks:
            if self._tasks:
                await asyncio.gather(*list(self._tasks), return_exceptions=True)
            else:
                await asyncio.sleep(0)


__all__ = ["EventKind", "WatchEvent", "RebuildCoordinator"]
