"""Development watch loop: full build on start, incremental rebuilds after."""
from __future__ import annotations

import asyncio
from typing import Optional

from modbuild.build.config import ProjectLayout
from modbuild.build.engine import TransformEngine
from modbuild.build.pipeline import build
from modbuild.build.progress import BuildReport
from modbuild.build.request import BuildRequest
from modbuild.logger import ConfigurationError, ModbuildError, env_flag
from modbuild.watch_core.config import LOGGER
from modbuild.watch_core.handler import SourceEventHandler
from modbuild.watch_core.processor import process_event
from modbuild.watch_core.queue import RebuildCoordinator, WatchEvent
from modbuild.watch_core.utils import create_observer


class DevWatcher:
    def __init__(
        self,
        layout: Optional[ProjectLayout] = None,
        request: Optional[BuildRequest] = None,
        engine: Optional[TransformEngine] = None,
        *,
        use_polling: Optional[bool] = None,
        max_concurrency: Optional[int] = None,
    ):
        self.layout = layout or ProjectLayout.from_root()
        self.request = (request or BuildRequest.create(dev=True)).normalized()
        self.engine = engine
        self.use_polling = (
            env_flag("WATCH_USE_POLLING") if use_polling is None else use_polling
        )
        self.coordinator = RebuildCoordinator(self.handle, max_concurrency=max_concurrency)

    async def initial_build(self) -> BuildReport:
        """Full build under the full-clear policy."""
        return await build(self.request, engine=self.engine, layout=self.layout)

    async def handle(self, event: WatchEvent) -> None:
        await process_event(event, self.request, self.layout, self.engine)

    async def run(self, stop: Optional[asyncio.Event] = None) -> None:
        """Build once, then rebuild on change until `stop` is set or the loop shuts down."""
        if not self.layout.src_dir.is_dir():
            raise ConfigurationError(f"Source directory {self.layout.src_dir} does not exist")

        try:
            await self.initial_build()
        except ModbuildError as exc:
            # Keep watching so that fixing the source recovers.
            LOGGER.error("Initial build failed: %s", exc)

        loop = asyncio.get_running_loop()
        handler = SourceEventHandler(
            self.layout,
            lambda ev: loop.call_soon_threadsafe(self.coordinator.submit, ev),
        )
        obs = create_observer(self.use_polling)
        obs.schedule(handler, str(self.layout.src_dir), recursive=True)
        obs.start()
        LOGGER.info("Watching %s for changes", self.layout.src_dir)

        coordinator_task = asyncio.create_task(self.coordinator.run())
        try:
            if stop is None:
                await coordinator_task
            else:
                await stop.wait()
                self.coordinator.stop()
                await coordinator_task
        finally:
            obs.stop()
            obs.join()
            LOGGER.info("Stopped watching %s", self.layout.src_dir)


__all__ = ["DevWatcher"]
