"""
Shape transforms from NSE payloads to the proxy's downstream JSON.

Upstream payloads are not trusted to be complete: every transform degrades
missing fields to defaults (zero for numbers, empty strings and lists, the
current India time for timestamps) instead of raising.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List

import pandas as pd

from ..errors import MalformedResponseError
from ..market.status import format_ist_timestamp

logger = logging.getLogger(__name__)

STOCK_NUMERIC_FIELDS = (
    "lastPrice",
    "change",
    "pChange",
    "open",
    "dayHigh",
    "dayLow",
    "previousClose",
    "totalTradedVolume",
    "totalTradedValue",
    "yearHigh",
    "yearLow",
    "perChange365d",
    "perChange30d",
)

INDEX_NUMERIC_FIELDS = (
    "lastPrice",
    "change",
    "pChange",
    "open",
    "dayHigh",
    "dayLow",
    "previousClose",
    "yearHigh",
    "yearLow",
    "totalTradedVolume",
    "totalTradedValue",
)

# output column -> NSE historical field
OHLC_FIELDS = {
    "open": "CH_OPENING_PRICE",
    "high": "CH_TRADE_HIGH_PRICE",
    "low": "CH_TRADE_LOW_PRICE",
    "close": "CH_CLOSING_PRICE",
}
HISTORICAL_DATE_FIELD = "CH_TIMESTAMP"


def extract_records(payload: Any) -> List[Dict[str, Any]]:
    """
    Return the ``data`` rows of an NSE payload.

    Raises:
        MalformedResponseError: If the payload has no ``data`` list.
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("data"), list):
        raise MalformedResponseError("payload has no 'data' list")
    return [row for row in payload["data"] if isinstance(row, dict)]


def records_or_empty(payload: Any, context: str) -> List[Dict[str, Any]]:
    """``extract_records`` that logs and returns ``[]`` for malformed payloads."""
    try:
        return extract_records(payload)
    except MalformedResponseError as e:
        logger.warning(f"{context}: {e}, using empty list")
        return []


def process_stock_data(payload: Any, now: datetime | None = None) -> List[Dict[str, Any]]:
    """Map index constituents to the proxy's stock rows."""
    timestamp = format_ist_timestamp(now)
    stocks = []
    for stock in records_or_empty(payload, "stock data"):
        row: Dict[str, Any] = {
            "symbol": stock.get("symbol") or "",
            "identifier": stock.get("identifier") or "",
        }
        for name in STOCK_NUMERIC_FIELDS:
            row[name] = stock.get(name) or 0
        row["lastUpdateTime"] = stock.get("lastUpdateTime") or timestamp
        stocks.append(row)
    return stocks


def simplify_sector_stocks(payload: Any, index_name: str) -> List[Dict[str, Any]]:
    """Sector-index constituents with short field names."""
    return [
        {
            "symbol": stock.get("symbol") or "",
            "open": stock.get("open") or 0,
            "high": stock.get("dayHigh") or 0,
            "low": stock.get("dayLow") or 0,
            "preClose": stock.get("previousClose") or 0,
            "lastPrice": stock.get("lastPrice") or 0,
            "change": stock.get("change") or 0,
            "pChange": stock.get("pChange") or 0,
            "volume": stock.get("totalTradedVolume") or 0,
            "indices": [index_name],
        }
        for stock in records_or_empty(payload, f"{index_name} stocks")
    ]


def default_index_snapshot(symbol: str, now: datetime | None = None) -> Dict[str, Any]:
    """Zero-valued snapshot used when an index could not be fetched."""
    snapshot: Dict[str, Any] = {"symbol": symbol}
    snapshot.update({name: 0 for name in INDEX_NUMERIC_FIELDS})
    snapshot["lastUpdateTime"] = format_ist_timestamp(now)
    return snapshot


def index_snapshot(payload: Any, symbol: str, now: datetime | None = None) -> Dict[str, Any]:
    """
    First row of an index payload (the index itself), or a zeroed snapshot.

    Only the literal first row counts: a null or empty first row means the
    index row is missing, and the next row would be a constituent stock.
    """
    data = payload.get("data") if isinstance(payload, dict) else None
    first = data[0] if isinstance(data, list) and data else None
    if isinstance(first, dict) and first:
        return first
    if payload is not None:
        logger.warning(f"{symbol}: payload has no index row, using zeroed snapshot")
    return default_index_snapshot(symbol, now)


def combine_quote(quote: Any, trade_info: Any) -> Dict[str, Any]:
    """Quote payload with the trade-info payload nested under ``tradeInfo``."""
    combined = dict(quote) if isinstance(quote, dict) else {}
    combined["tradeInfo"] = trade_info if trade_info is not None else {}
    return combined


def historical_ohlc(payload: Any) -> List[Dict[str, Any]]:
    """
    Map NSE historical rows to ``date/open/high/low/close`` candles.

    Prices that are missing or unparsable become 0.0.
    """
    rows = records_or_empty(payload, "historical data")
    if not rows:
        return []

    df = pd.DataFrame.from_records(rows)
    candles = pd.DataFrame(index=df.index)

    if HISTORICAL_DATE_FIELD in df.columns:
        candles["date"] = df[HISTORICAL_DATE_FIELD].fillna("").astype(str)
    else:
        candles["date"] = ""

    for column, source in OHLC_FIELDS.items():
        if source in df.columns:
            values = pd.to_numeric(df[source], errors="coerce")
        else:
            values = pd.Series(float("nan"), index=df.index)
        candles[column] = values.fillna(0.0).astype(float)

    missing = [source for source in OHLC_FIELDS.values() if source not in df.columns]
    if missing:
        logger.warning(f"Historical payload missing fields {missing}, defaulted to 0.0")

    return candles.to_dict(orient="records")


__all__ = [
    "extract_records",
    "records_or_empty",
    "process_stock_data",
    "simplify_sector_stocks",
    "default_index_snapshot",
    "index_snapshot",
    "combine_quote",
    "historical_ohlc",
]
