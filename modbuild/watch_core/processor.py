"""Map watch events to incremental rebuild or removal actions."""

from __future__ import annotations

import asyncio
from typing import Optional

from modbuild.build.classify import Dialect, classify_path, destination_for
from modbuild.build.config import ProjectLayout
from modbuild.build.engine import TransformEngine
from modbuild.build.output import invalidate, remove_output_tree
from modbuild.build.pipeline import build
from modbuild.build.request import BuildRequest
from modbuild.logger import ModbuildError

from .config import LOGGER
from .queue import EventKind, WatchEvent


async def remove_destination(event: WatchEvent, layout: ProjectLayout) -> bool:
    """Delete the output counterpart of a removed source, bypassing the orchestrator."""
    if event.is_directory:
        removed = await asyncio.to_thread(remove_output_tree, event.path, layout)
    elif classify_path(event.path) is Dialect.DECLARATION:
        return False
    else:
        removed = await asyncio.to_thread(invalidate, destination_for(event.path, layout))
    if removed:
        LOGGER.info("[deleted] %s", destination_for(event.path, layout))
    return removed


async def process_event(
    event: WatchEvent,
    request: BuildRequest,
    layout: ProjectLayout,
    engine: Optional[TransformEngine] = None,
) -> None:
    if event.kind is EventKind.REMOVED:
        await remove_destination(event, layout)
        return

    path = event.path
    if not path.is_file():
        # removed again before the rebuild started
        return
    if classify_path(path) is Dialect.DECLARATION:
        return

    LOGGER.info("[%s] rebuilding %s", event.kind.value, path)
    try:
        await build(request.for_path(path), engine=engine, layout=layout)
    except ModbuildError as exc:
        LOGGER.error("[rebuild_error] %s: %s", path, exc)


__all__ = ["process_event", "remove_destination"]
