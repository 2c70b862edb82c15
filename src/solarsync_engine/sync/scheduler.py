"""In-process timer that fires scheduled syncs on wall-clock minute boundaries."""

import asyncio
import logging
from datetime import datetime, timezone

from solarsync_engine.common.config import SolarSyncSettings
from solarsync_engine.common.models import utcnow
from solarsync_engine.sync.orchestrator import SyncOrchestrator
from solarsync_engine.sync.schemas import SyncSummary

logger = logging.getLogger(__name__)


def next_tick_at(now: datetime, tick_seconds: int) -> datetime:
    """The tick boundary strictly after ``now``."""
    boundary = (int(now.timestamp()) // tick_seconds + 1) * tick_seconds
    return datetime.fromtimestamp(boundary, tz=timezone.utc)


class Scheduler:
    """Drives ``SyncOrchestrator.run_scheduled`` once per tick.

    Each tick runs as its own task so a slow sync never delays the next tick.
    """

    def __init__(self, orchestrator: SyncOrchestrator, settings: SolarSyncSettings):
        self.orchestrator = orchestrator
        self.settings = settings
        self._loop_task: asyncio.Task | None = None
        self._runs: set[asyncio.Task] = set()
        self._last_target: datetime | None = None

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    def start(self) -> None:
        if self.running:
            return
        self._loop_task = asyncio.get_running_loop().create_task(self._run_forever())
        logger.info(
            "Scheduler started: tick every %ss, window %s-%s %s",
            self.settings.scheduler_tick_seconds,
            self.settings.sync_window_start,
            self.settings.sync_window_end,
            self.settings.sync_timezone,
        )

    async def stop(self) -> None:
        if self._loop_task is not None:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
            self._loop_task = None
        if self._runs:
            await asyncio.gather(*self._runs, return_exceptions=True)
        logger.info("Scheduler stopped")

    def _next_target(self, now: datetime) -> datetime:
        """Next boundary to fire; an early wake-up never repeats the last one."""
        after = max(now, self._last_target) if self._last_target else now
        self._last_target = next_tick_at(after, self.settings.scheduler_tick_seconds)
        return self._last_target

    async def _run_forever(self) -> None:
        while True:
            now = utcnow()
            target = self._next_target(now)
            await asyncio.sleep(max((target - now).total_seconds(), 0))
            # Judge the tick by the boundary it was scheduled for, not the wake-up time
            run = asyncio.get_running_loop().create_task(self.tick(target))
            self._runs.add(run)
            run.add_done_callback(self._runs.discard)

    async def tick(self, now: datetime | None = None) -> SyncSummary | None:
        now = now or utcnow()
        try:
            summary = await self.orchestrator.run_scheduled(now)
        except Exception:
            logger.exception("Scheduled sync tick at %s failed", now.isoformat())
            return None
        if summary.skipped_reason:
            logger.debug("Scheduled tick skipped: %s", summary.skipped_reason)
        return summary
