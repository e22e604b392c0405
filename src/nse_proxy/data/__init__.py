"""Resilient fetching: response cache, upstream session and retry policies."""

from .cache import CacheEntry, CacheStore
from .fetcher import ResilientFetcher
from .result import FetchResult, ResultStatus
from .retry import RetryPolicy, exponential_backoff, linear_backoff, retry_async
from .session import SessionManager, SessionState, create_http_client

__all__ = [
    "CacheEntry",
    "CacheStore",
    "ResilientFetcher",
    "FetchResult",
    "ResultStatus",
    "RetryPolicy",
    "exponential_backoff",
    "linear_backoff",
    "retry_async",
    "SessionManager",
    "SessionState",
    "create_http_client",
]
