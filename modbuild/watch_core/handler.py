"""Watchdog event handler responsible for enqueueing source changes."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional

from watchdog.events import FileSystemEventHandler

from modbuild.build.config import ProjectLayout

from .config import IGNORED_DIR_NAMES, LOGGER
from .queue import EventKind, WatchEvent


class SourceEventHandler(FileSystemEventHandler):
    """Translates watchdog callbacks into WatchEvents.

    Callbacks arrive on the observer thread; `emit` must be thread-safe
    (the dev watcher passes a `loop.call_soon_threadsafe` wrapper).
    """

    def __init__(self, layout: ProjectLayout, emit: Callable[[WatchEvent], None]):
        super().__init__()
        self.layout = layout
        self.emit = emit
        self._src = layout.src_dir.resolve()
        self._out = layout.out_dir.resolve()

    def _accept(self, src_path: str) -> Optional[Path]:
        try:
            p = Path(src_path).resolve()
        except (OSError, RuntimeError):
            return None
        try:
            rel = p.relative_to(self._src)
        except ValueError:
            return None
        if p == self._out or self._out in p.parents:
            return None
        for part in rel.parts:
            if part.startswith(".") or part in IGNORED_DIR_NAMES:
                return None
        return p

    def _enqueue(self, src_path: str, kind: EventKind, is_directory: bool = False) -> None:
        p = self._accept(src_path)
        if p is None:
            return
        LOGGER.debug("[%s] %s", kind.value, p)
        self.emit(WatchEvent(path=p, kind=kind, is_directory=is_directory))

    def on_created(self, event):
        if not event.is_directory:
            self._enqueue(event.src_path, EventKind.ADDED)

    def on_modified(self, event):
        if not event.is_directory:
            self._enqueue(event.src_path, EventKind.MODIFIED)

    def on_deleted(self, event):
        self._enqueue(event.src_path, EventKind.REMOVED, is_directory=event.is_directory)

    def on_moved(self, event):
        self._enqueue(event.src_path, EventKind.REMOVED, is_directory=event.is_directory)
        if not event.is_directory:
            self._enqueue(event.dest_path, EventKind.ADDED)


__all__ = ["SourceEventHandler"]
