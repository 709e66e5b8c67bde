"""Keep-alive scheduler — periodic rounds and stats reports on asyncio.

Three independent triggers run once the scheduler starts:

- a cron-style trigger on every N-th wall-clock minute (``*/5 * * * *``),
- a fixed-interval trigger (4 min 50 s by default),
- a stats trigger that emits a snapshot every 30 minutes.

The two round triggers are deliberately uncoordinated: each tick spawns its
own round task, so rounds may overlap and both count towards the stats.
Pass ``allow_overlap=False`` to skip a tick while another round is running.

Lifecycle:
    scheduler = KeepAliveScheduler(context, coordinator, ...)
    await scheduler.run()          # until request_stop() or a fault
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from ..events import EventKind
from .context import MonitorContext
from .coordinator import RoundCoordinator
from .stats import StatsSnapshot

logger = logging.getLogger(__name__)


class SchedulerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class SchedulerFault(Exception):
    """Raised from run() when a trigger hit an unexpected error."""


def next_cron_fire(now: datetime, step_minutes: int) -> datetime:
    """Next minute boundary (second 0) where minute % step == 0, strictly after now."""
    base = now.replace(second=0, microsecond=0)
    minute = (base.minute // step_minutes + 1) * step_minutes
    if minute >= 60:
        return base.replace(minute=0) + timedelta(hours=1)
    return base.replace(minute=minute)


class KeepAliveScheduler:
    """Drives rounds and stats reports until told to stop."""

    def __init__(
        self,
        context: MonitorContext,
        coordinator: RoundCoordinator,
        *,
        interval_seconds: float = 290.0,
        cron_step_minutes: int = 5,
        stats_interval_seconds: float = 30 * 60.0,
        allow_overlap: bool = True,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.context = context
        self.coordinator = coordinator
        self.interval_seconds = interval_seconds
        self.cron_step_minutes = cron_step_minutes
        self.stats_interval_seconds = stats_interval_seconds
        self.allow_overlap = allow_overlap
        self._clock = clock
        self.state = SchedulerState.IDLE
        self._triggers: list[asyncio.Task[None]] = []
        self._rounds: set[asyncio.Task[None]] = set()
        self._active_rounds = 0
        self._stop_requested = asyncio.Event()
        self._fault: BaseException | None = None

    @property
    def active_rounds(self) -> int:
        return self._active_rounds

    # -- lifecycle -------------------------------------------------------------

    async def start(self) -> None:
        """Fire one round right away and register the three triggers."""
        if self.state != SchedulerState.IDLE:
            return
        self.state = SchedulerState.RUNNING

        self.trigger_round("startup")
        self._triggers = [
            asyncio.create_task(self._supervise(self._cron_loop), name="keepalive-cron"),
            asyncio.create_task(self._supervise(self._interval_loop), name="keepalive-interval"),
            asyncio.create_task(self._supervise(self._stats_loop), name="keepalive-stats"),
        ]
        logger.info(
            "Scheduler started: %d targets, cron */%d min, interval %.0fs, stats every %.0fs",
            len(self.context.registry), self.cron_step_minutes,
            self.interval_seconds, self.stats_interval_seconds,
        )

    def request_stop(self) -> None:
        """Cancellation token; safe to call from a signal handler."""
        self._stop_requested.set()

    async def stop(self) -> StatsSnapshot | None:
        """Cancel the triggers and flush a final stats snapshot.

        Rounds already in flight are left to finish on their own.
        """
        if self.state == SchedulerState.STOPPED:
            return None
        self.state = SchedulerState.STOPPED
        self._stop_requested.set()

        for task in self._triggers:
            task.cancel()
        if self._triggers:
            await asyncio.gather(*self._triggers, return_exceptions=True)
        self._triggers.clear()

        snapshot = self.report_stats(final=True)
        logger.info("Scheduler stopped (%d rounds still in flight)", self._active_rounds)
        return snapshot

    async def run(self) -> StatsSnapshot | None:
        """start(), wait for a stop request, stop(). Raises SchedulerFault on a fault."""
        await self.start()
        await self._stop_requested.wait()
        snapshot = await self.stop()
        if self._fault is not None:
            raise SchedulerFault(f"Scheduler fault: {self._fault!r}") from self._fault
        return snapshot

    # -- triggers ---------------------------------------------------------------

    def trigger_round(self, source: str) -> asyncio.Task[None] | None:
        """Spawn a round without waiting for it."""
        if not self.allow_overlap and self._active_rounds:
            logger.info("Skipping %s round: another round is in progress", source)
            self.context.emit(EventKind.ROUND_SKIPPED, {"source": source})
            return None
        self._active_rounds += 1
        task = asyncio.create_task(self._dispatch_round(source), name=f"keepalive-round-{source}")
        self._rounds.add(task)
        task.add_done_callback(self._round_done)
        return task

    def _round_done(self, task: asyncio.Task[None]) -> None:
        self._rounds.discard(task)
        self._active_rounds -= 1

    def report_stats(self, final: bool = False) -> StatsSnapshot:
        snapshot = self.context.stats.snapshot()
        self.context.emit(EventKind.STATS_SNAPSHOT, {**snapshot.to_dict(), "final": final})
        return snapshot

    async def _dispatch_round(self, source: str) -> None:
        try:
            await self.coordinator.run_round()
        except Exception as e:
            logger.exception("Round failed (%s trigger)", source)
            self._fail(e)

    async def _supervise(self, loop_fn: Callable[[], Coroutine[Any, Any, None]]) -> None:
        try:
            await loop_fn()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("Trigger loop crashed")
            self._fail(e)

    def _fail(self, exc: BaseException) -> None:
        if self._fault is None:
            self._fault = exc
        self.request_stop()

    async def _cron_loop(self) -> None:
        last_fired: datetime | None = None
        while True:
            now = self._clock()
            # Waking a hair early must not fire the same boundary twice.
            base = max(now, last_fired) if last_fired else now
            target = next_cron_fire(base, self.cron_step_minutes)
            await asyncio.sleep(max((target - now).total_seconds(), 0))
            last_fired = target
            self.trigger_round("cron")

    async def _interval_loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            self.trigger_round("interval")

    async def _stats_loop(self) -> None:
        while True:
            await asyncio.sleep(self.stats_interval_seconds)
            self.report_stats()
