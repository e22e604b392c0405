#!/usr/bin/env python3
"""
NSE Proxy Command Line Interface

Provides:
- Running the HTTP proxy server
- One-off resource fetches through the resilient fetcher
- The current NSE market status

Usage:
    nse-proxy serve --port 5000
    nse-proxy fetch indices
    nse-proxy fetch historical --symbol INFY --output json
    nse-proxy market-status
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Any

import click
import uvicorn

from . import __version__
from .config import LoggingConfig, ProxyConfig
from .data.fetcher import ResilientFetcher
from .data.result import FetchResult, ResultStatus
from .api.app import create_app
from .api.resources import MarketDataService
from .market.status import market_status

# resource name -> (needs symbol, service method)
RESOURCES = {
    "nifty50": (False, "nifty50"),
    "nifty": (False, "broad_market"),
    "banknifty": (False, "bank_nifty"),
    "banknifty-stocks": (False, "bank_nifty_stocks"),
    "indices": (False, "indices"),
    "stock": (True, "stock_details"),
    "historical": (True, "historical"),
}


def configure_logging(config: LoggingConfig, verbose: bool = False) -> None:
    """Configure root logging once for the process."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, config.level),
        format=config.format,
        datefmt="%Y-%m-%d %H:%M:%S",
    )


async def fetch_resource(config: ProxyConfig, resource: str, symbol: str | None = None) -> FetchResult:
    """Fetch one named resource with a short-lived fetcher."""
    needs_symbol, method_name = RESOURCES[resource]
    fetcher = ResilientFetcher.from_config(config)
    service = MarketDataService(fetcher, config.upstream)
    try:
        method = getattr(service, method_name)
        return await (method(symbol) if needs_symbol else method())
    finally:
        await fetcher.aclose()


def _echo_payload(payload: Any, output: str) -> None:
    if output == "json":
        click.echo(json.dumps(payload, indent=2, default=str))
        return

    rows = payload if isinstance(payload, list) else None
    if rows is None and isinstance(payload, dict) and isinstance(payload.get("data"), list):
        rows = payload["data"]

    if rows is None:
        for key, value in (payload or {}).items():
            click.echo(f"{key:<20} {value}")
        return

    click.echo(f"Rows: {len(rows)}")
    for row in rows:
        if isinstance(row, dict):
            click.echo("  " + "  ".join(f"{k}={v}" for k, v in list(row.items())[:6]))


@click.group()
@click.version_option(version=__version__, prog_name="nse-proxy")
@click.option(
    "--config", "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="YAML configuration file (default: $NSE_PROXY_CONFIG or built-in defaults)",
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Enable debug logging",
)
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """
    NSE Proxy CLI

    A caching, session-aware proxy for NSE India market data.

    \b
    Examples:
        # Run the proxy on the configured port
        nse-proxy serve

        # Fetch index snapshots once
        nse-proxy fetch indices

        # Historical candles for one symbol as JSON
        nse-proxy fetch historical --symbol INFY --output json
    """
    ctx.ensure_object(dict)
    config = ProxyConfig.from_env(path=config_path)
    configure_logging(config.logging, verbose)
    ctx.obj["config"] = config


@cli.command()
@click.option("--host", default=None, help="Bind address (default: from config)")
@click.option("--port", "-p", type=int, default=None, help="Port (default: $PORT or 5000)")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None) -> None:
    """
    Run the HTTP proxy server.

    \b
    Examples:
        nse-proxy serve
        nse-proxy serve --host 127.0.0.1 --port 8080
    """
    config: ProxyConfig = ctx.obj["config"]
    host = host or config.server.host
    port = port or config.server.port

    click.echo(f"Server is running on port {port}")
    click.echo(f"Environment: {config.environment.value}")
    click.echo(f"Allowed Origins: {', '.join(config.server.allowed_origins)}")

    uvicorn.run(create_app(config), host=host, port=port, log_config=None)


@cli.command()
@click.argument("resource", type=click.Choice(sorted(RESOURCES), case_sensitive=False))
@click.option("--symbol", "-s", default=None, help="Stock symbol (for stock and historical)")
@click.option(
    "--output", "-o",
    type=click.Choice(["text", "json"], case_sensitive=False),
    default="text",
    help="Output format",
    show_default=True,
)
@click.pass_context
def fetch(ctx: click.Context, resource: str, symbol: str | None, output: str) -> None:
    """
    Fetch one resource through the resilient fetcher and print it.

    \b
    Examples:
        nse-proxy fetch nifty50 --output json
        nse-proxy fetch stock --symbol RELIANCE
    """
    config: ProxyConfig = ctx.obj["config"]
    resource = resource.lower()

    if RESOURCES[resource][0] and not symbol:
        click.secho(f"Error: '{resource}' requires --symbol.", fg="red")
        sys.exit(1)

    result = asyncio.run(fetch_resource(config, resource, symbol.upper() if symbol else None))

    if result.status == ResultStatus.ERROR:
        click.secho(f"Error fetching {resource}: {result.reason}", fg="red")
        sys.exit(1)
    if result.status == ResultStatus.EMPTY:
        click.secho(f"No data: {result.reason}", fg="yellow")

    _echo_payload(result.data, output)


@cli.command("market-status")
@click.option(
    "--output", "-o",
    type=click.Choice(["text", "json"], case_sensitive=False),
    default="text",
    help="Output format",
    show_default=True,
)
def market_status_command(output: str) -> None:
    """Print the current NSE session (pre-market, open, post-market, closed)."""
    status = market_status()
    if output == "json":
        click.echo(json.dumps(status.to_dict(), indent=2))
    else:
        click.echo(f"{status.status}: {status.message}")


def main() -> None:
    """Main entry point for the CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
