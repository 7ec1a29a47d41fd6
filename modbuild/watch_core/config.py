"""Shared configuration and logging helpers for the dev watcher."""

from __future__ import annotations

import os

from modbuild.logger import get_logger, safe_int


LOGGER = get_logger("modbuild.watch")


def max_concurrency() -> int:
    """Upper bound on rebuilds of distinct paths running at once."""
    return max(1, safe_int(os.environ.get("WATCH_MAX_CONCURRENCY"), 4, logger=LOGGER, context="WATCH_MAX_CONCURRENCY"))


# Directory names never forwarded to the rebuild queue
IGNORED_DIR_NAMES = frozenset({"node_modules", "__pycache__"})
