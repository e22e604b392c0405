"""
Test helpers for the NSE proxy tests.

This module provides:
- Simulated time (clock + recorded sleeps)
- A scriptable mock NSE upstream built on httpx.MockTransport
- Canned response handlers
- A stand-in session for fetcher tests
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List
from urllib.parse import parse_qs, urlparse

import httpx

from nse_proxy.errors import SessionAcquisitionError


# =============================================================================
# Simulated Time
# =============================================================================

class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """
    Awaitable sleep that records each delay and advances the fake clock.

    Still yields to the event loop once, so concurrent callers interleave
    at every backoff or pacing pause as they would with a real sleep.
    """

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        self.clock.advance(seconds)
        await asyncio.sleep(0)

    @property
    def total(self) -> float:
        return sum(self.delays)


# =============================================================================
# Mock Upstream
# =============================================================================

Handler = Callable[[httpx.Request], httpx.Response]


class MockUpstream:
    """
    Routes requests by path to handlers and keeps a log of every request.

    Handlers may be a single callable or a list consumed one per request
    (the last one repeats). Every request yields to the event loop before it
    is answered, so overlapping callers really are in flight together.
    """

    def __init__(self) -> None:
        self.routes: Dict[str, Any] = {}
        self.requests: List[httpx.Request] = []

    def on(self, path: str, *handlers: Handler) -> "MockUpstream":
        self.routes[path] = list(handlers)
        return self

    def calls(self, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        await asyncio.sleep(0)
        handlers = self.routes.get(request.url.path)
        if not handlers:
            return httpx.Response(404, json={"error": "not found"})
        handler = handlers.pop(0) if len(handlers) > 1 else handlers[0]
        return handler(request)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self), max_redirects=5)


def respond_json(body: Any, status: int = 200, cookies: List[str] | None = None) -> Handler:
    headers = [("set-cookie", c) for c in cookies or []]
    return lambda request: httpx.Response(status, json=body, headers=headers)


def respond_status(status: int) -> Handler:
    return lambda request: httpx.Response(status, text="Service Unavailable")


def raise_connect_error(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("connection refused", request=request)


def index_name(request: httpx.Request) -> str:
    return parse_qs(urlparse(str(request.url)).query).get("index", [""])[0]


def add_handshake(upstream: MockUpstream) -> MockUpstream:
    """Landing page and status endpoint that each set one cookie."""
    upstream.on("/", respond_json({}, cookies=["nsit=abc; Path=/; HttpOnly"]))
    upstream.on("/api/marketStatus", respond_json({"marketState": []}, cookies=["nseappid=xyz; Path=/"]))
    return upstream


# =============================================================================
# Session Stand-in
# =============================================================================

class StubSession:
    """Stands in for SessionManager in fetcher tests; counts refreshes."""

    def __init__(self, fail_refresh: bool = False) -> None:
        self.fail_refresh = fail_refresh
        self.acquire_calls = 0
        self.refresh_calls = 0
        self.cookie = "nsit=abc"

    async def acquire_headers(self, force_refresh: bool = False) -> Dict[str, str]:
        self.acquire_calls += 1
        return {"User-Agent": "test", "Cookie": self.cookie}

    async def refresh(self) -> Dict[str, str]:
        self.refresh_calls += 1
        if self.fail_refresh:
            raise SessionAcquisitionError(3, RuntimeError("handshake down"))
        self.cookie = f"nsit=refreshed{self.refresh_calls}"
        return await self.acquire_headers()
