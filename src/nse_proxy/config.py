"""
Configuration schema for the NSE market-data proxy.

This module defines the configuration hierarchy using Pydantic for
validation. Configuration can be loaded from YAML files with ${VAR}
environment substitution, and the handful of deployment knobs (port,
cookie lifetime, environment profile) can be overridden from the process
environment or a ``.env`` file.

Example:
    config = ProxyConfig.from_yaml("config/default.yaml")
    print(config.session.ttl_ms)
"""

from __future__ import annotations

import os
import re
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Union

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator


class Environment(str, Enum):
    """Deployment profile."""
    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TEST = "test"


DEFAULT_BROWSER_HEADERS: Dict[str, str] = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,image/apng,*/*;q=0.8",
    "Accept-Encoding": "gzip, deflate",
    "Accept-Language": "en-US,en;q=0.9",
    "Connection": "keep-alive",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
    "sec-ch-ua": '"Not_A Brand";v="8", "Chromium";v="120", "Google Chrome";v="120"',
    "sec-ch-ua-mobile": "?0",
    "sec-ch-ua-platform": '"Windows"',
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Sec-Fetch-User": "?1",
    "Upgrade-Insecure-Requests": "1",
}


def _positive_int(raw: Optional[str]) -> Optional[int]:
    """Leading integer of ``raw`` (``"60000ms"`` -> 60000), or None if absent or not positive."""
    match = re.match(r"\s*(\d+)", raw or "")
    if match is None:
        return None
    value = int(match.group(1))
    return value if value > 0 else None


# ---------------------------------------------------------------------------
# Upstream Configuration
# ---------------------------------------------------------------------------

class UpstreamConfig(BaseModel):
    """Where the provider lives and how to look like a browser to it."""
    base_url: str = "https://www.nseindia.com"
    landing_path: str = "/"
    status_path: str = "/api/marketStatus"
    headers: Dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_BROWSER_HEADERS))
    timeout_ms: int = Field(default=30_000, ge=1)
    max_redirects: int = Field(default=5, ge=0)
    verify_tls: bool = True

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def landing_url(self) -> str:
        return f"{self.base_url}{self.landing_path}"

    @property
    def status_url(self) -> str:
        return f"{self.base_url}{self.status_path}"

    @property
    def referer(self) -> str:
        return f"{self.base_url}/"

    def url(self, path: str) -> str:
        """Absolute URL for an API path such as ``/api/quote-equity``."""
        return f"{self.base_url}{path}"


# ---------------------------------------------------------------------------
# Core Configuration
# ---------------------------------------------------------------------------

class BackoffConfig(BaseModel):
    """Delay between attempts: min(base * 2**attempt, cap) or base * (attempt + 1)."""
    base_ms: int = Field(default=1000, ge=0)
    cap_ms: int = Field(default=10_000, ge=0)


class SessionConfig(BaseModel):
    """Session cookie handshake configuration."""
    ttl_ms: int = Field(default=300_000, ge=0, description="Cookie lifetime before a new handshake")
    attempts: int = Field(default=3, ge=1)
    pacing_ms: int = Field(default=1000, ge=0, description="Pause between landing and status requests")
    backoff: BackoffConfig = Field(default_factory=BackoffConfig)


class CacheConfig(BaseModel):
    """In-memory response cache configuration."""
    ttl_ms: int = Field(default=5000, ge=0)


class FetchConfig(BaseModel):
    """Retry behaviour of the resilient fetcher."""
    max_retries: int = Field(default=3, ge=1)
    backoff: BackoffConfig = Field(default_factory=BackoffConfig)
    single_flight: bool = Field(
        default=True,
        description="Share one in-flight upstream call between concurrent callers of a key",
    )


# ---------------------------------------------------------------------------
# Server and Logging Configuration
# ---------------------------------------------------------------------------

class ServerConfig(BaseModel):
    """HTTP server configuration."""
    host: str = "0.0.0.0"
    port: int = Field(default=5000, ge=1, le=65535)
    allowed_origins: List[str] = Field(
        default_factory=lambda: [
            "http://localhost:3000",
            "https://stock-data-eight.vercel.app",
        ]
    )
    cors_max_age: int = Field(default=86400, ge=0)


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = Field(default="INFO")
    format: str = Field(default="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    @field_validator("level")
    @classmethod
    def normalize_level(cls, value: str) -> str:
        value = value.upper()
        if value not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return value


# ---------------------------------------------------------------------------
# Main Configuration
# ---------------------------------------------------------------------------

class ProxyConfig(BaseModel):
    """
    Root configuration for the proxy.

    Example:
        config = ProxyConfig.from_env()
    """

    environment: Environment = Environment.DEVELOPMENT
    upstream: UpstreamConfig = Field(default_factory=UpstreamConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    fetch: FetchConfig = Field(default_factory=FetchConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_yaml(cls, path: Union[str, Path], env_override: bool = True) -> "ProxyConfig":
        """
        Load configuration from a YAML file.

        Environment variables are substituted using ${VAR_NAME} syntax in the YAML file.

        Args:
            path: Path to the YAML configuration file
            env_override: Whether to substitute environment variables

        Returns:
            Validated ProxyConfig instance

        Raises:
            FileNotFoundError: If the configuration file doesn't exist
            ValidationError: If the configuration is invalid
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(path) as f:
            content = f.read()

        if env_override:
            content = cls._substitute_env_vars(content)

        data = yaml.safe_load(content) or {}
        return cls.model_validate(data)

    @classmethod
    def from_env(
        cls,
        path: Optional[Union[str, Path]] = None,
        env: Optional[Dict[str, str]] = None,
        dotenv: bool = True,
    ) -> "ProxyConfig":
        """
        Build configuration from an optional YAML file plus environment overrides.

        Recognised variables: ``NSE_PROXY_CONFIG`` (YAML path), ``PORT``,
        ``COOKIE_EXPIRY`` (milliseconds), ``NSE_PROXY_ENV`` / ``NODE_ENV``.

        Args:
            path: YAML file to start from. Falls back to ``NSE_PROXY_CONFIG``.
            env: Mapping to read instead of ``os.environ``.
            dotenv: Load a ``.env`` file into the process environment first.
        """
        if dotenv and env is None:
            load_dotenv()
        env = dict(os.environ) if env is None else env

        path = path or env.get("NSE_PROXY_CONFIG")
        config = cls.from_yaml(path) if path else cls()
        return config.with_env_overrides(env)

    def with_env_overrides(self, env: Dict[str, str]) -> "ProxyConfig":
        """Return a copy with the deployment knobs taken from ``env``."""
        data = self.model_dump()

        if env.get("PORT"):
            data["server"]["port"] = int(env["PORT"])
        # non-numeric or zero keeps the configured lifetime
        cookie_expiry = _positive_int(env.get("COOKIE_EXPIRY"))
        if cookie_expiry is not None:
            data["session"]["ttl_ms"] = cookie_expiry
        profile = env.get("NSE_PROXY_ENV") or env.get("NODE_ENV")
        if profile:
            data["environment"] = profile.lower()

        return type(self).model_validate(data)

    @staticmethod
    def _substitute_env_vars(content: str) -> str:
        """Substitute ${VAR_NAME} patterns with environment variable values."""
        pattern = r'\$\{(\w+)\}'

        def replace(match: re.Match) -> str:
            var_name = match.group(1)
            return os.environ.get(var_name, match.group(0))

        return re.sub(pattern, replace, content)

    def to_yaml(self, path: Union[str, Path]) -> None:
        """
        Save configuration to a YAML file.

        Args:
            path: Destination path for the YAML file
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, 'w') as f:
            yaml.dump(self.model_dump(mode="json"), f, default_flow_style=False, sort_keys=False)

    def is_production(self) -> bool:
        """Check if running with the production profile."""
        return self.environment == Environment.PRODUCTION

    @model_validator(mode="after")
    def validate_backoff_caps(self) -> "ProxyConfig":
        """A cap below the base delay would make every delay the cap."""
        for name, backoff in (("session", self.session.backoff), ("fetch", self.fetch.backoff)):
            if backoff.cap_ms < backoff.base_ms:
                raise ValueError(f"{name}.backoff.cap_ms must be >= base_ms")
        return self


__all__ = [
    "Environment",
    "DEFAULT_BROWSER_HEADERS",
    "UpstreamConfig",
    "BackoffConfig",
    "SessionConfig",
    "CacheConfig",
    "FetchConfig",
    "ServerConfig",
    "LoggingConfig",
    "ProxyConfig",
]
