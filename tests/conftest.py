"""
Pytest configuration and fixtures for the NSE proxy tests.

This module provides reusable fixtures for:
- Simulated time (clock + recorded sleeps)
- A scriptable mock NSE upstream
- Sample NSE payloads
- Pre-wired fetchers and session managers

The helper classes behind these fixtures live in ``tests/helpers.py``.
"""

from __future__ import annotations

from typing import Any, Dict

import pytest

from nse_proxy.config import FetchConfig, SessionConfig, UpstreamConfig
from nse_proxy.data.cache import CacheStore
from nse_proxy.data.fetcher import ResilientFetcher
from nse_proxy.data.session import SessionManager
from tests.helpers import FakeClock, MockUpstream, RecordingSleep, StubSession


# =============================================================================
# Simulated Time
# =============================================================================

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep(clock: FakeClock) -> RecordingSleep:
    return RecordingSleep(clock)


# =============================================================================
# Mock Upstream
# =============================================================================

@pytest.fixture
def upstream() -> MockUpstream:
    return MockUpstream()


# =============================================================================
# Sample Payloads
# =============================================================================

@pytest.fixture
def nifty50_payload() -> Dict[str, Any]:
    return {
        "name": "NIFTY 50",
        "data": [
            {
                "symbol": "NIFTY 50",
                "lastPrice": 22100.5,
                "change": 120.25,
                "pChange": 0.55,
                "open": 21990.0,
                "dayHigh": 22150.0,
                "dayLow": 21950.0,
                "previousClose": 21980.25,
                "yearHigh": 22500.0,
                "yearLow": 18000.0,
                "totalTradedVolume": 250000000,
                "totalTradedValue": 1.5e11,
                "lastUpdateTime": "18-Oct-2026 15:30:00",
            },
            {
                "symbol": "RELIANCE",
                "identifier": "RELIANCEEQN",
                "lastPrice": 2900.0,
                "change": 10.0,
                "pChange": 0.35,
                "open": 2890.0,
                "dayHigh": 2910.0,
                "dayLow": 2880.0,
                "previousClose": 2890.0,
                "totalTradedVolume": 5000000,
            },
        ],
    }


@pytest.fixture
def bank_nifty_payload() -> Dict[str, Any]:
    return {
        "name": "NIFTY BANK",
        "data": [
            {"symbol": "NIFTY BANK", "lastPrice": 48000.0, "change": -50.0},
            {
                "symbol": "HDFCBANK",
                "open": 1500.0,
                "dayHigh": 1520.0,
                "dayLow": 1490.0,
                "previousClose": 1495.0,
                "lastPrice": 1510.0,
                "change": 15.0,
                "pChange": 1.0,
                "totalTradedVolume": 1200000,
            },
        ],
    }


@pytest.fixture
def historical_payload() -> Dict[str, Any]:
    return {
        "data": [
            {
                "CH_TIMESTAMP": "2026-10-15",
                "CH_OPENING_PRICE": 1500,
                "CH_TRADE_HIGH_PRICE": "1525.5",
                "CH_TRADE_LOW_PRICE": 1490.25,
                "CH_CLOSING_PRICE": 1510,
            },
            {
                "CH_TIMESTAMP": "2026-10-16",
                "CH_OPENING_PRICE": 1510,
                "CH_TRADE_HIGH_PRICE": 1530,
                "CH_TRADE_LOW_PRICE": "n/a",
                "CH_CLOSING_PRICE": 1528,
            },
        ]
    }


# =============================================================================
# Wired Components
# =============================================================================

@pytest.fixture
def make_fetcher(upstream: MockUpstream, clock: FakeClock, sleep: RecordingSleep):
    """Factory for a fetcher over the mock upstream with a stub session."""

    def factory(session: Any = None, **fetch_options: Any) -> ResilientFetcher:
        return ResilientFetcher(
            session=session or StubSession(),
            cache=CacheStore(ttl_seconds=5.0, clock=clock),
            client=upstream.client(),
            config=FetchConfig(**fetch_options),
            upstream=UpstreamConfig(),
            clock=clock,
            sleep=sleep,
        )

    return factory


@pytest.fixture
def session_manager(upstream: MockUpstream, clock: FakeClock, sleep: RecordingSleep) -> SessionManager:
    return SessionManager(
        upstream.client(),
        UpstreamConfig(),
        SessionConfig(),
        clock=clock,
        sleep=sleep,
    )
