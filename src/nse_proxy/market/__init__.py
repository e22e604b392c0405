"""Market calendar helpers."""

from .status import IST, MarketStatus, format_ist_timestamp, market_status

__all__ = ["IST", "MarketStatus", "format_ist_timestamp", "market_status"]
