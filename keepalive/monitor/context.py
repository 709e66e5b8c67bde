"""Shared state handed to the scheduler and the round coordinator."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..events import Event, EventKind, EventSink, safe_emit
from .registry import TargetRegistry
from .stats import StatsAggregator


@dataclass
class MonitorContext:
    """Process-lifetime state: the targets, the counters, and the event sink."""

    registry: TargetRegistry
    stats: StatsAggregator = field(default_factory=StatsAggregator)
    on_event: EventSink | None = None

    def emit(self, kind: EventKind, data: dict[str, Any] | None = None) -> None:
        safe_emit(self.on_event, Event(kind, data or {}))
