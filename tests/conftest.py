"""Shared test fixtures."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx
import pytest

from keepalive.events import Event, EventKind
from keepalive.monitor import MonitorContext, RoundCoordinator, StatsAggregator, TargetRegistry
from keepalive.probes import ProbeExecutor


def _key(url: str | httpx.URL) -> tuple[str, str, str]:
    u = httpx.URL(url) if isinstance(url, str) else url
    return (u.scheme, u.host, u.path or "/")


@dataclass
class Route:
    status: int = 200
    json: Any = None
    error: str | None = None  # refused | timeout | dns | boom


class FakeHTTP:
    """Routes requests by scheme/host/path; unknown URLs get connection refused."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str, str], Route] = {}
        self.requests: list[httpx.Request] = []

    def add(self, url: str, status: int = 200, json: Any = None, error: str | None = None) -> None:
        self.routes[_key(url)] = Route(status=status, json=json, error=error)

    def count(self, url: str) -> int:
        return sum(1 for r in self.requests if _key(r.url) == _key(url))

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(_key(request.url), Route(error="refused"))
        if route.error == "refused":
            raise httpx.ConnectError("[Errno 111] Connection refused", request=request)
        if route.error == "timeout":
            raise httpx.ReadTimeout("timed out", request=request)
        if route.error == "dns":
            raise httpx.ConnectError("[Errno -2] Name or service not known", request=request)
        if route.error == "boom":
            raise ValueError("unexpected body")
        if route.json is not None:
            return httpx.Response(route.status, json=route.json)
        return httpx.Response(route.status, text="<html></html>")

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


class EventRecorder:
    """Event sink that keeps everything it receives."""

    def __init__(self) -> None:
        self.events: list[Event] = []

    def __call__(self, event: Event) -> None:
        self.events.append(event)

    def of(self, kind: EventKind) -> list[Event]:
        return [e for e in self.events if e.kind == kind]


@pytest.fixture
def fake_http() -> FakeHTTP:
    return FakeHTTP()


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture
def make_coordinator(fake_http: FakeHTTP, recorder: EventRecorder):
    """Factory: coordinator over the given URLs, fake HTTP, no inter-probe delay."""

    def _make(urls: list[str], **executor_kwargs: Any) -> RoundCoordinator:
        context = MonitorContext(
            registry=TargetRegistry(urls), stats=StatsAggregator(), on_event=recorder,
        )
        executor = ProbeExecutor(
            context.registry, on_event=recorder, transport=fake_http.transport,
            **executor_kwargs,
        )
        return RoundCoordinator(context, executor, inter_probe_delay=0)

    return _make
