"""In-memory request statistics for the life of the process."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any


@dataclass(frozen=True)
class StatsSnapshot:
    """Point-in-time read of the cumulative counters."""

    total_requests: int
    successful_requests: int
    failed_requests: int
    last_check: datetime | None
    consecutive_failures: int = 0
    started_at: datetime | None = None
    uptime_seconds: float = 0.0

    @property
    def success_rate(self) -> float:
        if self.total_requests == 0:
            return 0
        return round(self.successful_requests / self.total_requests * 100, 2)

    def uptime_text(self) -> str:
        hours = int(self.uptime_seconds // 3600)
        minutes = int((self.uptime_seconds % 3600) // 60)
        return f"{hours}h {minutes}m"

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_requests": self.total_requests,
            "successful_requests": self.successful_requests,
            "failed_requests": self.failed_requests,
            "success_rate": self.success_rate,
            "consecutive_failures": self.consecutive_failures,
            "last_check": self.last_check.isoformat() if self.last_check else None,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "uptime_seconds": round(self.uptime_seconds, 1),
            "uptime": self.uptime_text(),
        }


class StatsAggregator:
    """Thread-safe counters: attempts, successes, failures, last check.

    Counts only ever increase. Every update and every snapshot takes the
    same lock, so overlapping rounds cannot lose an increment and a report
    never sees a half-applied update.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._total = 0
        self._successful = 0
        self._failed = 0
        self._consecutive_failures = 0
        self._last_check: datetime | None = None
        self._started_at = datetime.now(timezone.utc)
        self._started_mono = time.monotonic()

    def record_attempt(self) -> None:
        with self._lock:
            self._total += 1

    def record_success(self) -> None:
        with self._lock:
            self._successful += 1
            self._consecutive_failures = 0

    def record_failure(self) -> None:
        with self._lock:
            self._failed += 1
            self._consecutive_failures += 1

    def mark_checked(self, timestamp: datetime | None = None) -> None:
        with self._lock:
            self._last_check = timestamp or datetime.now(timezone.utc)

    def snapshot(self) -> StatsSnapshot:
        with self._lock:
            return StatsSnapshot(
                total_requests=self._total,
                successful_requests=self._successful,
                failed_requests=self._failed,
                last_check=self._last_check,
                consecutive_failures=self._consecutive_failures,
                started_at=self._started_at,
                uptime_seconds=time.monotonic() - self._started_mono,
            )

    @property
    def success_rate(self) -> float:
        return self.snapshot().success_rate
