"""
Resilient NSE Fetcher Module

Fetches JSON resources from the NSE API through a short-lived response cache
and a cookie session that is repaired between retries. Stale session cookies
are the most common reason the provider rejects a request, so every retry
loop here doubles as a session-repair loop.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable

import httpx

from ..config import FetchConfig, ProxyConfig, UpstreamConfig
from ..errors import FetchExhaustedError, NSEProxyError, SessionAcquisitionError, UpstreamError
from .cache import CacheStore
from .result import FetchResult
from .retry import (
    RETRYABLE_ERRORS,
    RetryPolicy,
    SleepFn,
    exponential_backoff,
    linear_backoff,
    retry_async,
)
from .session import SessionManager, create_http_client

logger = logging.getLogger(__name__)

# A failed handshake inside an attempt counts as a failed attempt.
FETCH_RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (*RETRYABLE_ERRORS, SessionAcquisitionError)


class ResilientFetcher:
    """
    Cached and uncached fetch policies over one upstream session.

    Provides:
    - ``cached_fetch``: cache lookup, then exponential-backoff retries; fills the cache
    - ``uncached_fetch``: linear-backoff retries for per-symbol resources
    - ``fetch``: either of the above, folded into a ``FetchResult``

    With ``config.single_flight`` on, concurrent ``cached_fetch`` calls for a
    key that missed the cache share one upstream attempt sequence.

    Example:
        >>> fetcher = ResilientFetcher.from_config(ProxyConfig())
        >>> data = await fetcher.cached_fetch(url, "nifty50")
    """

    def __init__(
        self,
        session: SessionManager,
        cache: CacheStore,
        client: httpx.AsyncClient,
        config: FetchConfig | None = None,
        upstream: UpstreamConfig | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        """
        Initialize the fetcher.

        Args:
            session: Source of cookie-carrying headers.
            cache: Store for last-good payloads of cached resources.
            client: Async HTTP client used for API calls.
            config: Retry configuration. Defaults to 3 attempts, 1s base, 10s cap.
            upstream: Provider location, used for the ``Referer`` header.
            clock: Monotonic time source in seconds.
            sleep: Awaitable sleep, injectable for simulated time.
        """
        self.session = session
        self.cache = cache
        self.config = config or FetchConfig()
        self.upstream = upstream or UpstreamConfig()
        self.request_count = 0

        self._client = client
        self._clock = clock
        self._sleep = sleep
        self._inflight: dict[str, asyncio.Future[Any]] = {}

    @classmethod
    def from_config(
        cls,
        config: ProxyConfig,
        client: httpx.AsyncClient | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: SleepFn = asyncio.sleep,
    ) -> "ResilientFetcher":
        """Wire a client, session manager and cache from one configuration."""
        client = client or create_http_client(config.upstream)
        session = SessionManager(
            client,
            config.upstream,
            config.session,
            clock=clock,
            sleep=sleep,
            single_flight=config.fetch.single_flight,
        )
        cache = CacheStore(ttl_seconds=config.cache.ttl_ms / 1000.0, clock=clock)
        return cls(session, cache, client, config.fetch, config.upstream, clock=clock, sleep=sleep)

    async def aclose(self) -> None:
        await self._client.aclose()

    @property
    def inflight_keys(self) -> list[str]:
        return list(self._inflight)

    async def cached_fetch(self, url: str, cache_key: str, max_retries: int | None = None) -> Any:
        """
        Return the payload for ``cache_key``, from cache when fresh.

        Args:
            url: Absolute upstream URL.
            cache_key: Logical resource name the payload is cached under.
            max_retries: Total attempts. Defaults to ``config.max_retries``.
                A caller that joins an in-flight fetch for the same key gets
                that fetch's outcome; its own ``max_retries`` is not used.

        Raises:
            FetchExhaustedError: If every attempt failed. The cache is left untouched.
            ValueError: If ``max_retries`` is less than 1.
        """
        max_retries = self._attempts(max_retries)

        entry = self.cache.get(cache_key, self._clock())
        if entry is not None:
            logger.info(f"Using cached data for {cache_key}")
            return entry.value

        if not self.config.single_flight:
            return await self._fetch_and_store(url, cache_key, max_retries)

        task = self._inflight.get(cache_key)
        if task is None:
            task = asyncio.ensure_future(self._fetch_and_store(url, cache_key, max_retries))
            self._inflight[cache_key] = task
            task.add_done_callback(lambda done, key=cache_key: self._forget_inflight(key, done))
        else:
            logger.debug(f"Joining in-flight request for {cache_key}")
        return await asyncio.shield(task)

    def _forget_inflight(self, key: str, task: asyncio.Future[Any]) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]

    async def _fetch_and_store(self, url: str, cache_key: str, max_retries: int) -> Any:
        backoff = self.config.backoff
        policy = RetryPolicy(
            max_attempts=max_retries,
            backoff=exponential_backoff(backoff.base_ms, backoff.cap_ms),
            retry_on=FETCH_RETRYABLE_ERRORS,
        )

        async def attempt(n: int) -> Any:
            logger.info(f"Fetching data for {cache_key}, attempt {n + 1}/{max_retries}")
            headers = await self.session.acquire_headers()
            data = await self._get_json(url, {**headers, "Referer": self.upstream.referer})
            self.cache.put(cache_key, data, self._clock())
            logger.info(f"Data fetched successfully for {cache_key}")
            return data

        try:
            return await retry_async(
                attempt,
                policy,
                on_retry=self._repair_session,
                sleep=self._sleep,
                label=f"Request for {cache_key}",
            )
        except FETCH_RETRYABLE_ERRORS as e:
            raise FetchExhaustedError(cache_key, max_retries, e) from e

    async def uncached_fetch(self, url: str, max_retries: int | None = None) -> Any:
        """
        Fetch ``url`` without consulting the cache, with linear backoff.

        Raises:
            The last underlying error once every attempt failed.
            ValueError: If ``max_retries`` is less than 1.
        """
        max_retries = self._attempts(max_retries)
        policy = RetryPolicy(
            max_attempts=max_retries,
            backoff=linear_backoff(self.config.backoff.base_ms),
            retry_on=FETCH_RETRYABLE_ERRORS,
        )

        async def attempt(n: int) -> Any:
            headers = await self.session.acquire_headers()
            return await self._get_json(url, headers)

        return await retry_async(
            attempt,
            policy,
            on_retry=self._repair_session,
            sleep=self._sleep,
            label=f"Request for {url}",
        )

    async def fetch(
        self,
        url: str,
        cache_key: str | None = None,
        max_retries: int | None = None,
    ) -> FetchResult:
        """
        Fetch through the cached policy when ``cache_key`` is given, else uncached.

        Never raises proxy or transport errors; they come back as
        ``FetchResult.failure`` with the cause logged.
        """
        try:
            if cache_key is not None:
                data = await self.cached_fetch(url, cache_key, max_retries)
            else:
                data = await self.uncached_fetch(url, max_retries)
        except (NSEProxyError, httpx.HTTPError) as e:
            logger.error(f"Fetch failed for {cache_key or url}: {e}")
            return FetchResult.failure(e)
        return FetchResult.ok(data)

    def _attempts(self, max_retries: int | None) -> int:
        if max_retries is None:
            return self.config.max_retries
        if max_retries < 1:
            raise ValueError(f"max_retries must be at least 1, got {max_retries}")
        return max_retries

    async def _repair_session(self, attempt: int, error: BaseException) -> None:
        """Best-effort session refresh between attempts."""
        try:
            await self.session.refresh()
        except SessionAcquisitionError as e:
            logger.error(f"Failed to refresh cookies: {e}")

    async def _get_json(self, url: str, headers: dict[str, str]) -> Any:
        """One upstream GET; anything but a non-empty JSON body is an error."""
        self.request_count += 1
        response = await self._client.get(url, headers=headers)
        response.raise_for_status()

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamError(
                "Response body is not JSON", url=url, status_code=response.status_code
            ) from e

        if not data:
            raise UpstreamError("Empty response body", url=url, status_code=response.status_code)
        return data


__all__ = ["ResilientFetcher", "FETCH_RETRYABLE_ERRORS"]
