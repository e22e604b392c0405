"""
Retry policies.

The retry loop is kept apart from the transport: callers hand in an
``operation(attempt)`` coroutine, a policy describing how many attempts to make
and how long to wait between them, and an optional recovery hook that runs
after each backoff sleep and before the next attempt.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, TypeVar

import httpx

from ..errors import UpstreamError

logger = logging.getLogger(__name__)

T = TypeVar("T")

BackoffFn = Callable[[int], float]
RecoveryHook = Callable[[int, BaseException], Awaitable[None]]
SleepFn = Callable[[float], Awaitable[None]]

RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (httpx.HTTPError, UpstreamError)


def exponential_backoff(base_ms: int = 1000, cap_ms: int = 10_000) -> BackoffFn:
    """Delay in seconds of ``min(base * 2**attempt, cap)``."""

    def delay(attempt: int) -> float:
        return min(base_ms * (2 ** attempt), cap_ms) / 1000.0

    return delay


def linear_backoff(base_ms: int = 1000) -> BackoffFn:
    """Delay in seconds of ``base * (attempt + 1)``."""

    def delay(attempt: int) -> float:
        return base_ms * (attempt + 1) / 1000.0

    return delay


@dataclass
class RetryPolicy:
    """How often to try and how long to wait in between."""

    max_attempts: int = 3
    backoff: BackoffFn = field(default_factory=exponential_backoff)
    retry_on: tuple[type[BaseException], ...] = RETRYABLE_ERRORS

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the failed ``attempt`` (0-based)."""
        return self.backoff(attempt)


async def retry_async(
    operation: Callable[[int], Awaitable[T]],
    policy: RetryPolicy,
    *,
    on_retry: RecoveryHook | None = None,
    sleep: SleepFn = asyncio.sleep,
    label: str = "operation",
) -> T:
    """
    Run ``operation`` until it succeeds or the policy runs out of attempts.

    Args:
        operation: Coroutine function receiving the 0-based attempt number.
        policy: Attempt count, backoff formula and retryable exception types.
        on_retry: Awaited after the backoff sleep, before the next attempt.
        sleep: Awaitable sleep, injectable for simulated time.
        label: Name used in log messages.

    Returns:
        Whatever ``operation`` returns on its first successful attempt.

    Raises:
        The last retryable error once every attempt failed, or any
        non-retryable error immediately.
    """
    for attempt in range(policy.max_attempts):
        try:
            return await operation(attempt)
        except policy.retry_on as e:
            logger.warning(
                f"{label} failed (attempt {attempt + 1}/{policy.max_attempts}): {e}"
            )
            if attempt == policy.max_attempts - 1:
                logger.error(f"{label}: all {policy.max_attempts} attempts failed")
                raise

            delay = policy.delay_for(attempt)
            logger.info(f"{label}: waiting {delay * 1000:.0f}ms before retry")
            await sleep(delay)

            if on_retry is not None:
                await on_retry(attempt, e)

    # max_attempts >= 1, so the loop either returned or raised
    raise AssertionError("unreachable")


__all__ = [
    "BackoffFn",
    "RETRYABLE_ERRORS",
    "RetryPolicy",
    "exponential_backoff",
    "linear_backoff",
    "retry_async",
]
