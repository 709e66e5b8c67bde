"""Round coordinator — one sequential pass over every registered target."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from ..events import EventKind
from ..probes.engine import ProbeExecutor, ProbeOutcome
from .context import MonitorContext

if TYPE_CHECKING:
    from ..notifications import NotificationManager

logger = logging.getLogger(__name__)


class RoundCoordinator:
    """Probes the registry's current URLs in order, with a pause between each.

    The URL list is snapshotted when the round starts, so targets appended by
    a fallback during this round are first probed by the next one. Only the
    primary outcome of each probe is counted.
    """

    def __init__(
        self,
        context: MonitorContext,
        executor: ProbeExecutor,
        inter_probe_delay: float = 1.0,
        notifier: NotificationManager | None = None,
    ) -> None:
        self.context = context
        self.executor = executor
        self.inter_probe_delay = inter_probe_delay
        self.notifier = notifier

    async def run_round(self) -> list[ProbeOutcome]:
        urls = self.context.registry.snapshot()
        stats = self.context.stats
        self.context.emit(EventKind.ROUND_START, {"urls": list(urls)})

        outcomes: list[ProbeOutcome] = []
        for i, url in enumerate(urls):
            if i:
                await asyncio.sleep(self.inter_probe_delay)
            stats.record_attempt()
            report = await self.executor.probe(url)
            if report.outcome.ok:
                stats.record_success()
            else:
                stats.record_failure()
            outcomes.append(report.outcome)

        stats.mark_checked(datetime.now(timezone.utc))
        snapshot = stats.snapshot()
        self.context.emit(EventKind.ROUND_SUMMARY, {
            "successful_requests": snapshot.successful_requests,
            "total_requests": snapshot.total_requests,
            "probed": len(outcomes),
            "round_successes": sum(1 for o in outcomes if o.ok),
        })
        logger.debug(
            "Round done: %d/%d ok (cumulative %d/%d)",
            sum(1 for o in outcomes if o.ok), len(outcomes),
            snapshot.successful_requests, snapshot.total_requests,
        )

        if self.notifier:
            level = await self.notifier.evaluate(snapshot)
            if level is not None:
                self.context.emit(EventKind.ALERT, {
                    "level": level.value,
                    "success_rate": snapshot.success_rate,
                    "consecutive_failures": snapshot.consecutive_failures,
                })
        return outcomes
