"""
Upstream session (cookie) lifecycle.

The provider only serves its JSON API to clients that first behave like a
browser: load the landing page, pause, then hit a lightweight API endpoint
with a ``Referer``. The cookies set along the way form the session token that
every later API call must carry.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable

import httpx

from ..config import SessionConfig, UpstreamConfig
from ..errors import SessionAcquisitionError, UpstreamError
from .retry import RETRYABLE_ERRORS, RetryPolicy, SleepFn, exponential_backoff, retry_async

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionState:
    """The current cookie string and when it was obtained."""

    cookie: str | None = None
    acquired_at: float = 0.0

    def is_fresh(self, now: float, ttl_seconds: float) -> bool:
        return bool(self.cookie) and now - self.acquired_at < ttl_seconds


def create_http_client(upstream: UpstreamConfig) -> httpx.AsyncClient:
    """Build the shared async client used for every upstream call."""
    return httpx.AsyncClient(
        headers=upstream.headers,
        timeout=httpx.Timeout(upstream.timeout_ms / 1000.0),
        max_redirects=upstream.max_redirects,
        verify=upstream.verify_tls,
    )


def cookie_pairs(response: httpx.Response) -> list[str]:
    """``name=value`` pairs from every Set-Cookie header of a response and its redirects."""
    pairs: list[str] = []
    for hop in [*response.history, response]:
        for raw in hop.headers.get_list("set-cookie"):
            pair = raw.split(";", 1)[0].strip()
            if pair:
                pairs.append(pair)
    return pairs


class SessionManager:
    """
    Acquires and refreshes the upstream session cookie.

    Holds one ``SessionState`` and the header set derived from it. Headers are
    served from memory while the cookie is younger than ``config.ttl_ms``;
    otherwise a fresh handshake runs, retried with exponential backoff.

    When ``single_flight`` is on, concurrent refreshes share one handshake.

    Example:
        >>> manager = SessionManager(client)
        >>> headers = await manager.acquire_headers()
        >>> headers["Cookie"]
        'nsit=...; nseappid=...'
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        upstream: UpstreamConfig | None = None,
        config: SessionConfig | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: SleepFn = asyncio.sleep,
        single_flight: bool = True,
    ) -> None:
        self.upstream = upstream or UpstreamConfig()
        self.config = config or SessionConfig()
        self.state = SessionState()
        self.headers: dict[str, str] = dict(self.upstream.headers)
        self.refresh_count = 0

        self._client = client
        self._clock = clock
        self._sleep = sleep
        self._single_flight = single_flight
        self._pending: asyncio.Future[str] | None = None
        self._policy = RetryPolicy(
            max_attempts=self.config.attempts,
            backoff=exponential_backoff(self.config.backoff.base_ms, self.config.backoff.cap_ms),
            retry_on=RETRYABLE_ERRORS,
        )

    @property
    def ttl_seconds(self) -> float:
        return self.config.ttl_ms / 1000.0

    def is_fresh(self, now: float | None = None) -> bool:
        """Whether the current cookie can still be used."""
        now = self._clock() if now is None else now
        return self.state.is_fresh(now, self.ttl_seconds)

    def invalidate(self) -> None:
        """Forget the current cookie so the next request performs a handshake."""
        self.state = SessionState()
        self.headers.pop("Cookie", None)

    async def acquire_headers(self, force_refresh: bool = False) -> dict[str, str]:
        """
        Return a header set carrying a valid session cookie.

        Args:
            force_refresh: Run the handshake even if the current cookie is fresh.

        Raises:
            SessionAcquisitionError: If no cookie could be obtained.
        """
        if not force_refresh and self.is_fresh():
            return dict(self.headers)

        await self._refresh_once()
        return dict(self.headers)

    async def refresh(self) -> dict[str, str]:
        """Force a new handshake and return the resulting headers."""
        return await self.acquire_headers(force_refresh=True)

    async def _refresh_once(self) -> str:
        if not self._single_flight:
            return await self._acquire()

        if self._pending is None:
            self._pending = asyncio.ensure_future(self._acquire())
            self._pending.add_done_callback(self._clear_pending)
        else:
            logger.debug("Joining in-flight session refresh")
        return await asyncio.shield(self._pending)

    def _clear_pending(self, task: asyncio.Future[str]) -> None:
        if self._pending is task:
            self._pending = None

    async def _acquire(self) -> str:
        self.refresh_count += 1
        try:
            cookie = await retry_async(
                self._handshake,
                self._policy,
                sleep=self._sleep,
                label="Cookie fetch",
            )
        except RETRYABLE_ERRORS as e:
            logger.error("All cookie fetch attempts failed")
            raise SessionAcquisitionError(self.config.attempts, e) from e

        self.state = SessionState(cookie=cookie, acquired_at=self._clock())
        self.headers["Cookie"] = cookie
        logger.info("New cookies fetched successfully")
        return cookie

    async def _handshake(self, attempt: int) -> str:
        """Landing page, pause, status endpoint; returns the joined cookie string."""
        logger.info(f"Fetching new cookies... Attempt {attempt + 1}/{self.config.attempts}")

        landing = await self._client.get(
            self.upstream.landing_url,
            headers=self.upstream.headers,
            follow_redirects=True,
        )
        if not 200 <= landing.status_code < 400:
            raise UpstreamError(
                f"Landing page returned HTTP {landing.status_code}",
                url=self.upstream.landing_url,
                status_code=landing.status_code,
            )
        pairs = cookie_pairs(landing)

        await self._sleep(self.config.pacing_ms / 1000.0)

        status_headers = {**self.upstream.headers, "Referer": self.upstream.referer}
        if pairs:
            status_headers["Cookie"] = "; ".join(pairs)
        status = await self._client.get(self.upstream.status_url, headers=status_headers)
        status.raise_for_status()
        pairs.extend(cookie_pairs(status))

        if not pairs:
            raise UpstreamError("Handshake responses carried no session cookie", url=self.upstream.status_url)
        return "; ".join(pairs)


__all__ = ["SessionState", "SessionManager", "create_http_client", "cookie_pairs"]
