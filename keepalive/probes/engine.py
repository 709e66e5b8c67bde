"""Probe engine — one HTTP GET per target with outcome classification.

A probe never raises. Every failure mode becomes a ProbeOutcome value:
success, connection refused, timeout, HTTP error status, or anything else.
On a failed primary attempt the engine retries once over the other scheme
(https <-> http) and, when that works, appends the alternate URL to the
target registry. Successful probes of the monitored app additionally hit
its fics API as a diagnostic sub-check whose failures are swallowed.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

import httpx

from ..events import Event, EventKind, EventSink, safe_emit

if TYPE_CHECKING:
    from ..config import Settings
    from ..monitor.registry import TargetRegistry

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "FanFik-Keep-Alive/1.0"
DEFAULT_ACCEPT = "application/json, text/html"


# ── Models ───────────────────────────────────────────────────────────────────


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    CONNECTION_REFUSED = "connection_refused"
    TIMEOUT = "timeout"
    HTTP_ERROR = "http_error"
    OTHER_ERROR = "other_error"


@dataclass(frozen=True)
class ProbeOutcome:
    """Classified result of a single GET attempt."""

    url: str
    kind: OutcomeKind
    status_code: int | None = None
    status_text: str = ""
    message: str = ""
    latency_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.kind == OutcomeKind.SUCCESS

    def describe(self) -> str:
        if self.kind in (OutcomeKind.SUCCESS, OutcomeKind.HTTP_ERROR):
            return f"{self.status_code} - {self.status_text}"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "ok": self.ok,
            "kind": self.kind.value,
            "status_code": self.status_code,
            "status_text": self.status_text,
            "message": self.message,
            "latency_ms": self.latency_ms,
        }


@dataclass(frozen=True)
class HealthCheckResult:
    """Outcome of the fics API sub-check. Diagnostic only, never counted."""

    url: str
    items: int | None = None
    error: str | None = None


@dataclass(frozen=True)
class ProbeReport:
    """Everything one probe produced.

    Only ``outcome`` (the primary attempt) feeds the stats; ``health`` and
    ``fallback`` are carried for diagnostics and discarded by the round.
    """

    outcome: ProbeOutcome
    health: HealthCheckResult | None = None
    fallback: ProbeOutcome | None = None
    discovered: str | None = None


# ── Helpers ──────────────────────────────────────────────────────────────────


def swap_scheme(url: str) -> str | None:
    """https://x -> http://x and back. None for any other scheme."""
    if url.startswith("https://"):
        return "http://" + url[len("https://"):]
    if url.startswith("http://"):
        return "https://" + url[len("http://"):]
    return None


def is_monitored_app(url: str, marker: str) -> bool:
    """True when the URL host contains the application marker."""
    if not marker:
        return False
    host = urlparse(url).hostname or ""
    return marker.lower() in host.lower()


def _is_refused(exc: BaseException) -> bool:
    current: BaseException | None = exc
    visited: set[int] = set()
    while current is not None and id(current) not in visited:
        if isinstance(current, ConnectionRefusedError):
            return True
        visited.add(id(current))
        current = current.__cause__ or current.__context__
    return "refused" in str(exc).lower()


# ── Executor ─────────────────────────────────────────────────────────────────


class ProbeExecutor:
    """Issues probes against target URLs and classifies the results."""

    def __init__(
        self,
        registry: TargetRegistry,
        *,
        timeout_ms: int = 30_000,
        fallback_timeout_ms: int = 15_000,
        health_check_timeout_ms: int = 15_000,
        user_agent: str = DEFAULT_USER_AGENT,
        app_marker: str = "fanfik",
        health_check_path: str = "/api/fics",
        check_health: bool = True,
        on_event: EventSink | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.registry = registry
        self.timeout_ms = timeout_ms
        self.fallback_timeout_ms = fallback_timeout_ms
        self.health_check_timeout_ms = health_check_timeout_ms
        self.user_agent = user_agent
        self.app_marker = app_marker
        self.health_check_path = health_check_path
        self.check_health_enabled = check_health
        self.on_event = on_event
        self._transport = transport

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        registry: TargetRegistry,
        on_event: EventSink | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> ProbeExecutor:
        return cls(
            registry,
            timeout_ms=settings.request_timeout_ms,
            fallback_timeout_ms=settings.fallback_timeout_ms,
            health_check_timeout_ms=settings.health_check_timeout_ms,
            user_agent=settings.user_agent,
            app_marker=settings.app_marker,
            health_check_path=settings.health_check_path,
            check_health=settings.check_fics_api,
            on_event=on_event,
            transport=transport,
        )

    @property
    def _headers(self) -> dict[str, str]:
        return {"User-Agent": self.user_agent, "Accept": DEFAULT_ACCEPT}

    def _client(self, timeout_ms: int) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=timeout_ms / 1000,
            follow_redirects=True,
            transport=self._transport,
        )

    async def probe(self, url: str) -> ProbeReport:
        """Primary attempt, then either the health sub-check or the fallback."""
        outcome = await self.fetch(url, self.timeout_ms)
        safe_emit(self.on_event, Event(EventKind.PROBE_RESULT, outcome.to_dict()))

        if outcome.ok:
            health = None
            if self.check_health_enabled and is_monitored_app(url, self.app_marker):
                health = await self.check_health(url)
            return ProbeReport(outcome=outcome, health=health)

        fallback, discovered = await self.try_fallback(url)
        return ProbeReport(outcome=outcome, fallback=fallback, discovered=discovered)

    async def fetch(self, url: str, timeout_ms: int) -> ProbeOutcome:
        """Single GET, classified. Never raises."""
        t0 = time.perf_counter()
        try:
            async with self._client(timeout_ms) as client:
                resp = await client.get(url, headers=self._headers)
            latency = round((time.perf_counter() - t0) * 1000, 1)

            if 200 <= resp.status_code < 400:
                kind = OutcomeKind.SUCCESS
            else:
                kind = OutcomeKind.HTTP_ERROR
            return ProbeOutcome(
                url=url, kind=kind, status_code=resp.status_code,
                status_text=resp.reason_phrase, latency_ms=latency,
            )
        except httpx.TimeoutException:
            return ProbeOutcome(
                url=url, kind=OutcomeKind.TIMEOUT,
                message=f"Timed out ({timeout_ms // 1000}s)", latency_ms=float(timeout_ms),
            )
        except httpx.ConnectError as e:
            latency = round((time.perf_counter() - t0) * 1000, 1)
            if _is_refused(e):
                return ProbeOutcome(
                    url=url, kind=OutcomeKind.CONNECTION_REFUSED,
                    message="Connection refused", latency_ms=latency,
                )
            return ProbeOutcome(
                url=url, kind=OutcomeKind.OTHER_ERROR,
                message=f"Connection error: {e}", latency_ms=latency,
            )
        except Exception as e:
            latency = round((time.perf_counter() - t0) * 1000, 1)
            return ProbeOutcome(
                url=url, kind=OutcomeKind.OTHER_ERROR,
                message=f"{type(e).__name__}: {e}", latency_ms=latency,
            )

    async def check_health(self, base_url: str) -> HealthCheckResult:
        """GET <base>/api/fics and count the items. Failures are swallowed."""
        health_url = f"{base_url.rstrip('/')}{self.health_check_path}"
        try:
            async with self._client(self.health_check_timeout_ms) as client:
                resp = await client.get(health_url)
            resp.raise_for_status()
            body = resp.json()
            items = len(body) if isinstance(body, list) else None
            result = HealthCheckResult(url=health_url, items=items)
        except Exception as e:
            logger.debug("Health sub-check failed for %s: %s", health_url, e)
            result = HealthCheckResult(url=health_url, error=f"{type(e).__name__}: {e}")

        safe_emit(self.on_event, Event(EventKind.HEALTH_CHECK, {
            "url": result.url, "items": result.items, "error": result.error,
        }))
        return result

    async def try_fallback(self, url: str) -> tuple[ProbeOutcome | None, str | None]:
        """Retry once over the other scheme; register the alternate if it works."""
        alt_url = swap_scheme(url)
        if alt_url is None:
            return None, None

        safe_emit(self.on_event, Event(EventKind.FALLBACK_ATTEMPT, {
            "original_url": url, "url": alt_url,
        }))
        outcome = await self.fetch(alt_url, self.fallback_timeout_ms)
        safe_emit(self.on_event, Event(EventKind.FALLBACK, {
            "original_url": url, **outcome.to_dict(),
        }))
        if not outcome.ok:
            return outcome, None

        if self.registry.append(alt_url):
            safe_emit(self.on_event, Event(EventKind.TARGET_ADDED, {"url": alt_url}))
            return outcome, alt_url
        return outcome, None
