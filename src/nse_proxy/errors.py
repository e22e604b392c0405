"""
Exception hierarchy for the NSE proxy.

Transport-level failures surface as ``httpx.HTTPError`` subclasses; everything
the proxy itself decides is a failure derives from ``NSEProxyError``.
"""

from __future__ import annotations


class NSEProxyError(Exception):
    """Base class for all proxy errors."""


class UpstreamError(NSEProxyError):
    """The upstream answered, but not with something usable."""

    def __init__(self, message: str, url: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class SessionAcquisitionError(NSEProxyError):
    """The cookie handshake failed on every attempt."""

    def __init__(self, attempts: int, last_error: BaseException | None) -> None:
        super().__init__(
            f"Could not acquire an upstream session after {attempts} attempts: {last_error}"
        )
        self.attempts = attempts
        self.last_error = last_error


class FetchExhaustedError(NSEProxyError):
    """Every retry of a cached fetch failed."""

    def __init__(self, cache_key: str, attempts: int, last_error: BaseException | None) -> None:
        super().__init__(
            f"Failed to fetch data for {cache_key} after {attempts} retries: {last_error}"
        )
        self.cache_key = cache_key
        self.attempts = attempts
        self.last_error = last_error


class MalformedResponseError(NSEProxyError):
    """An upstream payload is missing the fields a transform expects."""


__all__ = [
    "NSEProxyError",
    "UpstreamError",
    "SessionAcquisitionError",
    "FetchExhaustedError",
    "MalformedResponseError",
]
