"""
NSE Market-Data Proxy

A resilient proxy in front of the NSE India market-data API with:
- Cookie session handshake and automatic session repair
- Short-TTL response caching with single-flight request coalescing
- Retry with exponential or linear backoff
- JSON shape transforms for index, quote and historical resources
- FastAPI boundary with an origin allow-list
"""

__version__ = "1.0.0"

from .config import ProxyConfig
from .errors import (
    FetchExhaustedError,
    MalformedResponseError,
    NSEProxyError,
    SessionAcquisitionError,
    UpstreamError,
)
from .data import (
    CacheEntry,
    CacheStore,
    FetchResult,
    ResilientFetcher,
    ResultStatus,
    RetryPolicy,
    SessionManager,
    SessionState,
)
from .market import MarketStatus, market_status
from .api import MarketDataService, create_app

__all__ = [
    "__version__",
    # Config
    "ProxyConfig",
    # Errors
    "NSEProxyError",
    "UpstreamError",
    "SessionAcquisitionError",
    "FetchExhaustedError",
    "MalformedResponseError",
    # Core
    "CacheEntry",
    "CacheStore",
    "SessionManager",
    "SessionState",
    "RetryPolicy",
    "ResilientFetcher",
    "FetchResult",
    "ResultStatus",
    # Market
    "MarketStatus",
    "market_status",
    # HTTP
    "MarketDataService",
    "create_app",
]
