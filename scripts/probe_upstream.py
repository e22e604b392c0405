#!/usr/bin/env python3
"""
NSE Upstream Probe Script

Runs the cookie handshake against the live provider, fetches the NIFTY 50
index twice to show the cache at work, and reports timings.

Usage:
    python scripts/probe_upstream.py [--config config/default.yaml]

Output:
    - Handshake duration and cookie names
    - Upstream vs cached fetch timings
    - Current market status
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time
from pathlib import Path

# Add src/ to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "src"))

from nse_proxy.api.resources import INDEX_CACHE_KEYS, index_url
from nse_proxy.config import ProxyConfig
from nse_proxy.data.fetcher import ResilientFetcher
from nse_proxy.errors import NSEProxyError
from nse_proxy.market.status import market_status

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)


async def probe(config: ProxyConfig) -> int:
    fetcher = ResilientFetcher.from_config(config)
    try:
        print("-" * 70)
        print("STEP 1: Session handshake")
        print("-" * 70)

        started = time.perf_counter()
        try:
            headers = await fetcher.session.acquire_headers()
        except NSEProxyError as e:
            logger.error(f"Handshake failed: {e}")
            return 1
        names = [pair.split("=", 1)[0] for pair in headers.get("Cookie", "").split("; ") if pair]
        print(f"  Took {time.perf_counter() - started:.2f}s, cookies: {', '.join(names)}")

        print()
        print("-" * 70)
        print("STEP 2: NIFTY 50, upstream then cache")
        print("-" * 70)

        url = index_url(config.upstream, INDEX_CACHE_KEYS["nifty50"])
        for label in ("upstream", "cached"):
            started = time.perf_counter()
            result = await fetcher.fetch(url, cache_key="nifty50")
            elapsed = (time.perf_counter() - started) * 1000
            if not result.is_ok:
                logger.error(f"Fetch failed: {result.reason}")
                return 1
            rows = len(result.data.get("data", [])) if isinstance(result.data, dict) else 0
            print(f"  {label:<9} {elapsed:8.1f}ms  {rows} rows")

        print(f"\n  Upstream requests made: {fetcher.request_count}")
    finally:
        await fetcher.aclose()

    status = market_status()
    print()
    print(f"Market status: {status.status} ({status.message})")
    return 0


def main() -> int:
    """
    Main entry point for the probe script.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--config", default=None, help="YAML configuration file")
    args = parser.parse_args()

    print("=" * 70)
    print("NSE UPSTREAM PROBE")
    print("=" * 70)

    config = ProxyConfig.from_env(path=args.config)
    print(f"Upstream: {config.upstream.base_url}")
    print()

    return asyncio.run(probe(config))


if __name__ == "__main__":
    sys.exit(main())
