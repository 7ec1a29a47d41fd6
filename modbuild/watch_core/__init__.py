"""Core building blocks for the dev watcher.

Modules:
    config: shared configuration constants and logger
    queue: WatchEvent model and per-path rebuild coordinator
    handler: watchdog event handler logic
    processor: event to rebuild/removal mapping
    utils: observer creation and env helpers
"""

from . import config, queue, handler, processor, utils

__all__ = [
    "config",
    "queue",
    "handler",
    "processor",
    "utils",
]
