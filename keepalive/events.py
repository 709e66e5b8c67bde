"""Structured events emitted by the probing core.

The core never prints. Every observable step (round start, probe outcome,
fallback, stats snapshot ...) is an Event handed to a sink callable; the
console reporter and the logging sink are two such sinks.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    ROUND_START = "round_start"
    PROBE_RESULT = "probe_result"
    HEALTH_CHECK = "health_check"
    FALLBACK_ATTEMPT = "fallback_attempt"
    FALLBACK = "fallback"
    TARGET_ADDED = "target_added"
    ROUND_SUMMARY = "round_summary"
    ROUND_SKIPPED = "round_skipped"
    STATS_SNAPSHOT = "stats_snapshot"
    ALERT = "alert"


@dataclass
class Event:
    """A single structured event."""

    kind: EventKind
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: str = ""

    def __post_init__(self) -> None:
        if not self.timestamp:
            self.timestamp = datetime.now(timezone.utc).isoformat()


EventSink = Callable[[Event], Any]


_LEVELS = {
    EventKind.PROBE_RESULT: logging.INFO,
    EventKind.HEALTH_CHECK: logging.DEBUG,
    EventKind.ROUND_SKIPPED: logging.WARNING,
    EventKind.ALERT: logging.WARNING,
}


def log_event(event: Event) -> None:
    """Default sink — write the event through stdlib logging."""
    level = _LEVELS.get(event.kind, logging.INFO)
    if event.kind == EventKind.PROBE_RESULT and not event.data.get("ok", False):
        level = logging.WARNING
    logger.log(level, "%s %s", event.kind.value, event.data)


def safe_emit(sink: EventSink | None, event: Event) -> None:
    """Deliver an event; a failing sink must never break a round."""
    if sink is None:
        return
    try:
        sink(event)
    except Exception:
        logger.exception("Event sink error (%s)", event.kind.value)
