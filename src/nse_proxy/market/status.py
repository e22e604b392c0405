"""
NSE trading-session calendar.

A pure function of the current time: no holidays, no I/O.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, time
from zoneinfo import ZoneInfo

IST = ZoneInfo("Asia/Kolkata")

PRE_OPEN = time(9, 0)
MARKET_OPEN = time(9, 15)
MARKET_CLOSE = time(15, 30)
POST_CLOSE = time(16, 0)


@dataclass(frozen=True)
class MarketStatus:
    """Session label plus a human-readable message."""

    status: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


def to_ist(now: datetime | None = None) -> datetime:
    """Convert ``now`` to India time. Naive datetimes are taken as already in IST."""
    if now is None:
        return datetime.now(IST)
    if now.tzinfo is None:
        return now.replace(tzinfo=IST)
    return now.astimezone(IST)


def market_status(now: datetime | None = None) -> MarketStatus:
    """
    Classify ``now`` into the NSE trading session it falls in.

    Weekdays: [09:00, 09:15) pre-market, [09:15, 15:30) open,
    [15:30, 16:00) post-market, anything else closed. Weekends are closed.

    Args:
        now: Instant to classify. Defaults to the current time.

    Returns:
        MarketStatus with one of ``pre-market``, ``open``, ``post-market``, ``closed``.
    """
    local = to_ist(now)

    if local.weekday() >= 5:
        return MarketStatus("closed", "Weekend - Market Closed")

    clock = local.time().replace(second=0, microsecond=0)
    if PRE_OPEN <= clock < MARKET_OPEN:
        return MarketStatus("pre-market", "Pre-market Session")
    if MARKET_OPEN <= clock < MARKET_CLOSE:
        return MarketStatus("open", "Market Open")
    if MARKET_CLOSE <= clock < POST_CLOSE:
        return MarketStatus("post-market", "Post-market Session")
    return MarketStatus("closed", "Market Closed")


def format_ist_timestamp(now: datetime | None = None) -> str:
    """Render a time the way the provider's clients expect, e.g. ``10/18/2026, 3:04:05 PM``."""
    local = to_ist(now)
    hour = local.hour % 12 or 12
    meridiem = "AM" if local.hour < 12 else "PM"
    return f"{local.month}/{local.day}/{local.year}, {hour}:{local.minute:02d}:{local.second:02d} {meridiem}"


__all__ = ["IST", "MarketStatus", "market_status", "format_ist_timestamp", "to_ist"]
