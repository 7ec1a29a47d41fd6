"""Observer construction for the dev watcher."""

from __future__ import annotations

from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver
from watchdog.observers.polling import PollingObserver

from .config import LOGGER


def create_observer(use_polling: bool, *, poll_interval: float = 1.0) -> BaseObserver:
    """Native observer by default; polling for network and container mounts."""
    if use_polling:
        LOGGER.info("Using polling observer (interval %.1fs)", poll_interval)
        return PollingObserver(timeout=poll_interval)
    return Observer()


__all__ = ["create_observer"]
