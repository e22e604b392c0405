"""
Downstream resources and the upstream calls behind them.

Every method returns a ``FetchResult``; deciding what a failure looks like to
an HTTP client (or on a terminal) is left to the caller.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from urllib.parse import quote

from ..config import UpstreamConfig
from ..data.fetcher import ResilientFetcher
from ..data.result import FetchResult
from ..market.status import market_status
from . import transforms

logger = logging.getLogger(__name__)

NIFTY_50 = "NIFTY 50"
NIFTY_500 = "NIFTY 500"
NIFTY_BANK = "NIFTY BANK"

# cache key -> index name
INDEX_CACHE_KEYS = {
    "nifty50": NIFTY_50,
    "nifty": NIFTY_500,
    "bankNifty": NIFTY_BANK,
}


def index_url(upstream: UpstreamConfig, index_name: str) -> str:
    return upstream.url(f"/api/equity-stockIndices?index={quote(index_name, safe='')}")


def quote_url(upstream: UpstreamConfig, symbol: str, section: str | None = None) -> str:
    url = upstream.url(f"/api/quote-equity?symbol={quote(symbol, safe='')}")
    if section:
        url += f"&section={quote(section, safe='')}"
    return url


def historical_url(upstream: UpstreamConfig, symbol: str) -> str:
    return upstream.url(f"/api/historical/cm/equity?symbol={quote(symbol, safe='')}")


class MarketDataService:
    """Named market-data resources on top of a ``ResilientFetcher``."""

    def __init__(self, fetcher: ResilientFetcher, upstream: UpstreamConfig | None = None) -> None:
        self.fetcher = fetcher
        self.upstream = upstream or fetcher.upstream

    async def _index(self, cache_key: str) -> FetchResult:
        url = index_url(self.upstream, INDEX_CACHE_KEYS[cache_key])
        return await self.fetcher.fetch(url, cache_key=cache_key)

    async def nifty50(self) -> FetchResult:
        """Raw NIFTY 50 payload."""
        return await self._index("nifty50")

    async def broad_market(self) -> FetchResult:
        """NIFTY 500 constituents."""
        result = await self._index("nifty")
        return result.map(transforms.process_stock_data).or_empty("no constituents in payload")

    async def bank_nifty(self) -> FetchResult:
        """NIFTY BANK constituents, full rows."""
        result = await self._index("bankNifty")
        return result.map(transforms.process_stock_data).or_empty("no constituents in payload")

    async def bank_nifty_stocks(self) -> FetchResult:
        """NIFTY BANK constituents with short field names."""
        result = await self._index("bankNifty")
        return result.map(
            lambda payload: transforms.simplify_sector_stocks(payload, NIFTY_BANK)
        ).or_empty("no constituents in payload")

    async def stock_details(self, symbol: str) -> FetchResult:
        """Quote plus trade info for one symbol."""
        quote_result = await self.fetcher.fetch(quote_url(self.upstream, symbol))
        if not quote_result.is_ok:
            return quote_result

        trade_result = await self.fetcher.fetch(quote_url(self.upstream, symbol, section="trade_info"))
        if not trade_result.is_ok:
            return trade_result

        return FetchResult.ok(transforms.combine_quote(quote_result.data, trade_result.data))

    async def historical(self, symbol: str) -> FetchResult:
        """OHLC candles for one symbol."""
        result = await self.fetcher.fetch(historical_url(self.upstream, symbol))
        return result.map(transforms.historical_ohlc).or_empty(f"no history for {symbol}")

    async def indices(self, now: datetime | None = None) -> FetchResult:
        """
        NIFTY 50 and NIFTY BANK snapshots annotated with the market status.

        An index that cannot be fetched is replaced by a zeroed snapshot, so
        this result is always ``ok``.
        """
        status = market_status(now)
        nifty50, bank_nifty = await asyncio.gather(self._index("nifty50"), self._index("bankNifty"))

        for name, result in ((NIFTY_50, nifty50), (NIFTY_BANK, bank_nifty)):
            if not result.is_ok:
                logger.error(f"{name} fetch error: {result.reason}")

        return FetchResult.ok({
            "marketStatus": status.to_dict(),
            "nifty50": transforms.index_snapshot(nifty50.unwrap_or(None), NIFTY_50, now),
            "bankNifty": transforms.index_snapshot(bank_nifty.unwrap_or(None), NIFTY_BANK, now),
        })


__all__ = [
    "INDEX_CACHE_KEYS",
    "MarketDataService",
    "historical_url",
    "index_url",
    "quote_url",
]
