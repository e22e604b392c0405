"""
HTTP boundary for the NSE proxy.

Read-only JSON resources. Each route obtains a ``FetchResult`` from the
``MarketDataService`` and hands it to ``respond``, the one place where results
are mapped to HTTP status codes and bodies.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import ProxyConfig
from ..data.fetcher import ResilientFetcher
from ..data.result import FetchResult, ResultStatus
from .resources import MarketDataService

logger = logging.getLogger(__name__)

_NO_DEFAULT: Any = object()


def respond(result: FetchResult, error_message: str, default: Any = _NO_DEFAULT) -> JSONResponse:
    """
    Map a fetch result to an HTTP response.

    - ok: 200 with the payload
    - empty: 200 with the empty payload
    - error: 200 with ``default`` when the route has one, else 500 with ``error_message``
    """
    if result.status == ResultStatus.OK:
        return JSONResponse(result.data)

    if result.status == ResultStatus.EMPTY:
        logger.info(f"Empty result: {result.reason}")
        return JSONResponse(result.data if result.data is not None else [])

    logger.error(f"{error_message}: {result.reason}")
    if default is not _NO_DEFAULT:
        return JSONResponse(default)
    return JSONResponse({"error": error_message}, status_code=500)


def create_app(
    config: ProxyConfig | None = None,
    fetcher: ResilientFetcher | None = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config: Proxy configuration. Defaults to ``ProxyConfig.from_env()``.
        fetcher: Pre-built fetcher (tests inject one wired to a mock transport).
    """
    config = config or ProxyConfig.from_env()
    fetcher = fetcher or ResilientFetcher.from_config(config)
    service = MarketDataService(fetcher, config.upstream)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(f"NSE proxy starting ({config.environment.value})")
        logger.info(f"Allowed origins: {config.server.allowed_origins}")
        yield
        await fetcher.aclose()
        logger.info("NSE proxy stopped")

    app = FastAPI(
        title="NSE Proxy",
        description="Cached, session-aware proxy for NSE India market data",
        version=__version__,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=config.server.cors_max_age,
    )

    app.state.config = config
    app.state.fetcher = fetcher
    app.state.service = service

    @app.get("/")
    async def root() -> dict[str, str]:
        return {"message": "Hello from the NSE proxy"}

    @app.get("/health")
    async def health(request: Request) -> dict[str, Any]:
        f: ResilientFetcher = request.app.state.fetcher
        return {
            "status": "ok",
            "session": {"fresh": f.session.is_fresh(), "refreshes": f.session.refresh_count},
            "cache": {"keys": f.cache.keys()},
            "inflight": f.inflight_keys,
            "upstreamRequests": f.request_count,
        }

    @app.get("/api/nifty50")
    async def nifty50() -> JSONResponse:
        return respond(await service.nifty50(), "Failed to fetch data from NSE")

    @app.get("/api/nifty")
    async def nifty() -> JSONResponse:
        return respond(await service.broad_market(), "Failed to fetch NIFTY 500 data", default=[])

    @app.get("/api/banknifty")
    async def banknifty() -> JSONResponse:
        return respond(await service.bank_nifty(), "Failed to fetch BANK NIFTY data", default=[])

    @app.get("/api/banknifty-stocks")
    async def banknifty_stocks() -> JSONResponse:
        return respond(await service.bank_nifty_stocks(), "Failed to fetch Bank Nifty stocks")

    @app.get("/api/stock/{symbol}")
    async def stock(symbol: str) -> JSONResponse:
        return respond(await service.stock_details(symbol), "Failed to fetch stock details")

    @app.get("/api/historical/{symbol}")
    async def historical(symbol: str) -> JSONResponse:
        return respond(await service.historical(symbol), "Failed to fetch historical data from NSE")

    @app.get("/api/indices")
    async def indices() -> JSONResponse:
        return respond(await service.indices(), "Failed to fetch data from NSE")

    return app


__all__ = ["create_app", "respond"]
