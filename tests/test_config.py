"""
Tests for configuration loading.
"""

import pytest
from pydantic import ValidationError

from nse_proxy.config import Environment, ProxyConfig, UpstreamConfig


class TestDefaults:
    """Built-in defaults."""

    def test_defaults(self):
        config = ProxyConfig()

        assert config.environment == Environment.DEVELOPMENT
        assert config.server.port == 5000
        assert config.session.ttl_ms == 300_000
        assert config.cache.ttl_ms == 5000
        assert config.fetch.max_retries == 3
        assert config.fetch.single_flight is True
        assert config.server.allowed_origins == [
            "http://localhost:3000",
            "https://stock-data-eight.vercel.app",
        ]

    def test_upstream_urls(self):
        upstream = UpstreamConfig(base_url="https://example.test/")

        assert upstream.landing_url == "https://example.test/"
        assert upstream.status_url == "https://example.test/api/marketStatus"
        assert upstream.referer == "https://example.test/"
        assert upstream.url("/api/quote-equity") == "https://example.test/api/quote-equity"

    def test_backoff_cap_below_base_is_rejected(self):
        with pytest.raises(ValidationError):
            ProxyConfig.model_validate({"fetch": {"backoff": {"base_ms": 2000, "cap_ms": 1000}}})

    def test_unknown_log_level_is_rejected(self):
        with pytest.raises(ValidationError):
            ProxyConfig.model_validate({"logging": {"level": "chatty"}})


class TestYaml:
    """YAML loading and saving."""

    def test_from_yaml_with_env_substitution(self, tmp_path, monkeypatch):
        monkeypatch.setenv("NSE_TEST_TTL", "2500")
        path = tmp_path / "proxy.yaml"
        path.write_text("cache:\n  ttl_ms: ${NSE_TEST_TTL}\nlogging:\n  level: debug\n")

        config = ProxyConfig.from_yaml(path)

        assert config.cache.ttl_ms == 2500
        assert config.logging.level == "DEBUG"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ProxyConfig.from_yaml(tmp_path / "absent.yaml")

    def test_to_yaml_round_trip(self, tmp_path):
        config = ProxyConfig.model_validate({"server": {"port": 8080}, "environment": "production"})
        path = tmp_path / "out" / "proxy.yaml"

        config.to_yaml(path)

        assert ProxyConfig.from_yaml(path) == config

    def test_shipped_default_yaml_matches_defaults(self):
        from pathlib import Path

        path = Path(__file__).resolve().parents[1] / "config" / "default.yaml"
        config = ProxyConfig.from_yaml(path)

        assert config.model_dump() == ProxyConfig().model_dump()


class TestEnvironmentOverrides:
    """PORT, COOKIE_EXPIRY and the profile variables."""

    def test_overrides(self):
        config = ProxyConfig.from_env(env={"PORT": "8080", "COOKIE_EXPIRY": "60000", "NODE_ENV": "production"})

        assert config.server.port == 8080
        assert config.session.ttl_ms == 60000
        assert config.is_production()

    @pytest.mark.parametrize("raw", ["0", "abc", "", "  ", "-5000"])
    def test_unusable_cookie_expiry_keeps_default(self, raw):
        config = ProxyConfig.from_env(env={"COOKIE_EXPIRY": raw})
        assert config.session.ttl_ms == 300_000

    def test_unusable_cookie_expiry_keeps_yaml_value(self, tmp_path):
        path = tmp_path / "proxy.yaml"
        path.write_text("session:\n  ttl_ms: 120000\n")

        config = ProxyConfig.from_env(env={"NSE_PROXY_CONFIG": str(path), "COOKIE_EXPIRY": "0"})

        assert config.session.ttl_ms == 120_000

    @pytest.mark.parametrize("raw, expected", [("60000", 60000), (" 60000 ", 60000), ("90000ms", 90000)])
    def test_cookie_expiry_uses_leading_integer(self, raw, expected):
        assert ProxyConfig.from_env(env={"COOKIE_EXPIRY": raw}).session.ttl_ms == expected

    def test_proxy_env_wins_over_node_env(self):
        config = ProxyConfig.from_env(env={"NSE_PROXY_ENV": "test", "NODE_ENV": "production"})
        assert config.environment == Environment.TEST

    def test_empty_env_keeps_defaults(self):
        assert ProxyConfig.from_env(env={}) == ProxyConfig()

    def test_config_path_from_env(self, tmp_path):
        path = tmp_path / "proxy.yaml"
        path.write_text("server:\n  port: 7000\n")

        config = ProxyConfig.from_env(env={"NSE_PROXY_CONFIG": str(path), "PORT": "7100"})

        assert config.server.port == 7100

    def test_invalid_port_is_rejected(self):
        with pytest.raises(ValidationError):
            ProxyConfig.from_env(env={"PORT": "70000"})
