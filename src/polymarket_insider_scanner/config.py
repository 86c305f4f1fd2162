"""Configuration management service with Pydantic Settings.

This module provides centralized configuration management for the
Polymarket Insider Scanner, loading and validating environment variables
at startup.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from polymarket_insider_scanner.profiler.models import KNOWN_INSIDER_ADDRESS


class ScannerSettings(BaseSettings):
    """Scan loop and detection settings."""

    model_config = SettingsConfigDict(env_prefix="SCANNER_")

    mode: Literal["live", "simulation"] = Field(
        default="live",
        alias="SCANNER_MODE",
        description="Use the live Polymarket APIs or the simulated feed",
    )
    poll_interval_seconds: float = Field(
        default=6.0,
        alias="SCANNER_POLL_INTERVAL_SECONDS",
        description="Wait between the end of one scan cycle and the next",
        gt=0,
    )
    concurrency: int = Field(
        default=3,
        alias="SCANNER_CONCURRENCY",
        description="Maximum candidate evaluations in flight",
        ge=1,
        le=64,
    )
    min_trade_size: float = Field(
        default=200.0,
        alias="SCANNER_MIN_TRADE_SIZE",
        description="Trades at or below this USD size are never evaluated",
        ge=0,
    )
    recency_window_seconds: int = Field(
        default=1800,
        alias="SCANNER_RECENCY_WINDOW_SECONDS",
        description="Only trades newer than this are evaluated",
        gt=0,
    )
    alert_capacity: int = Field(
        default=50,
        alias="SCANNER_ALERT_CAPACITY",
        description="Maximum retained alerts",
        ge=1,
    )
    qualification_threshold: int = Field(
        default=20,
        alias="SCANNER_QUALIFICATION_THRESHOLD",
        description="Heuristic score required before calling the oracle and analyzer",
        ge=0,
    )
    market_refresh_seconds: int = Field(
        default=300,
        alias="SCANNER_MARKET_REFRESH_SECONDS",
        description="Maximum age of the tracked market list",
        gt=0,
    )
    known_insider_addresses: str = Field(
        default=KNOWN_INSIDER_ADDRESS,
        alias="SCANNER_KNOWN_INSIDER_ADDRESSES",
        description="Comma-separated wallet addresses on the insider denylist",
    )

    @property
    def insider_addresses(self) -> frozenset[str]:
        """Lowercased insider denylist."""
        return frozenset(
            a.strip().lower() for a in self.known_insider_addresses.split(",") if a.strip()
        )

    @property
    def simulation(self) -> bool:
        """Check if the simulated feed is selected."""
        return self.mode == "simulation"


class PolymarketSettings(BaseSettings):
    """Polymarket API settings."""

    model_config = SettingsConfigDict(env_prefix="POLYMARKET_")

    gamma_url: str = Field(
        default="https://gamma-api.polymarket.com",
        alias="POLYMARKET_GAMMA_URL",
        description="Gamma API base URL (market discovery)",
    )
    data_url: str = Field(
        default="https://data-api.polymarket.com",
        alias="POLYMARKET_DATA_URL",
        description="Data API base URL (trades, holders, wallet activity)",
    )
    market_limit: int = Field(
        default=20,
        alias="POLYMARKET_MARKET_LIMIT",
        description="Events fetched when refreshing tracked markets",
        ge=1,
    )
    markets_per_tick: int = Field(
        default=5,
        alias="POLYMARKET_MARKETS_PER_TICK",
        description="Top markets polled for trades each cycle",
        ge=1,
    )
    trades_per_market: int = Field(
        default=20,
        alias="POLYMARKET_TRADES_PER_MARKET",
        description="Recent trades requested per market",
        ge=1,
    )
    freshness_window_seconds: int = Field(
        default=3600,
        alias="POLYMARKET_FRESHNESS_WINDOW_SECONDS",
        description="Trades older than this are dropped by the feed",
        gt=0,
    )
    timeout_seconds: float = Field(
        default=10.0,
        alias="POLYMARKET_TIMEOUT_SECONDS",
        description="HTTP timeout for Polymarket requests",
        gt=0,
    )

    @field_validator("gamma_url", "data_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate API URL format."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("API URL must be an HTTP(S) endpoint")
        return v


class AnalyzerSettings(BaseSettings):
    """Suspicion analyzer (Gemini) settings."""

    model_config = SettingsConfigDict(env_prefix="ANALYZER_")

    api_key: SecretStr | None = Field(
        default=None,
        alias="ANALYZER_API_KEY",
        description="Gemini API key; the heuristic fallback is used when unset",
    )
    model: str = Field(
        default="gemini-3-flash-preview",
        alias="ANALYZER_MODEL",
        description="Gemini model name",
    )
    base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        alias="ANALYZER_BASE_URL",
        description="Gemini REST API base URL",
    )
    timeout_seconds: float = Field(
        default=15.0,
        alias="ANALYZER_TIMEOUT_SECONDS",
        description="HTTP timeout for analyzer requests",
        gt=0,
    )

    @property
    def enabled(self) -> bool:
        """Check if the remote analyzer is configured."""
        return self.api_key is not None and bool(self.api_key.get_secret_value())


class RedisSettings(BaseSettings):
    """Redis connection settings."""

    model_config = SettingsConfigDict(env_prefix="")

    url: str | None = Field(
        default=None,
        alias="REDIS_URL",
        description="Redis connection string for the shared dedup ledger",
    )
    dedup_ttl_seconds: int | None = Field(
        default=None,
        alias="REDIS_DEDUP_TTL_SECONDS",
        description="Expiry of dedup marks; unset keeps them forever",
        gt=0,
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        """Validate Redis URL format."""
        if v is None:
            return v
        if not v.startswith("redis://"):
            raise ValueError("REDIS_URL must start with redis://")
        return v

    @property
    def enabled(self) -> bool:
        """Check if a Redis-backed dedup ledger is configured."""
        return self.url is not None


class Settings(BaseSettings):
    """Main application settings.

    Loads configuration from environment variables with support for
    .env files via python-dotenv.

    Example:
        ```python
        from polymarket_insider_scanner.config import get_settings

        settings = get_settings()
        print(settings.scanner.poll_interval_seconds)
        print(settings.log_level)
        ```
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Nested configuration groups
    scanner: ScannerSettings = Field(default_factory=ScannerSettings)
    polymarket: PolymarketSettings = Field(default_factory=PolymarketSettings)
    analyzer: AnalyzerSettings = Field(default_factory=AnalyzerSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)

    # Application settings
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )
    health_port: int = Field(
        default=8080,
        alias="HEALTH_PORT",
        description="HTTP port for health check endpoints",
        ge=1,
        le=65535,
    )

    def get_logging_level(self) -> int:
        """Get the numeric logging level."""
        level: int = getattr(logging, self.log_level)
        return level

    def redacted_summary(self) -> dict[str, str | dict[str, str]]:
        """Get a summary of settings with secrets redacted.

        Returns:
            Dictionary of settings with sensitive values masked.
        """
        return {
            "mode": self.scanner.mode,
            "scanner": {
                "poll_interval_seconds": str(self.scanner.poll_interval_seconds),
                "concurrency": str(self.scanner.concurrency),
                "min_trade_size": str(self.scanner.min_trade_size),
                "alert_capacity": str(self.scanner.alert_capacity),
                "insider_addresses": str(len(self.scanner.insider_addresses)),
            },
            "polymarket": {
                "gamma_url": self.polymarket.gamma_url,
                "data_url": self.polymarket.data_url,
            },
            "analyzer": {
                "model": self.analyzer.model,
                "api_key": "(set)" if self.analyzer.enabled else "(not set)",
            },
            "redis_url": self._redact_url(self.redis.url) if self.redis.url else "(not set)",
            "log_level": self.log_level,
            "health_port": str(self.health_port),
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact password from URL if present."""
        if "@" in url and "://" in url:
            protocol_end = url.index("://") + 3
            at_pos = url.index("@")
            creds_part = url[protocol_end:at_pos]
            if ":" in creds_part:
                username = creds_part.split(":")[0]
                return f"{url[:protocol_end]}{username}:***@{url[at_pos + 1 :]}"
        return url


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Returns:
        The Settings instance.

    Raises:
        ValidationError: If environment variables have invalid values.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing when you need to reload settings with
    different environment variables.
    """
    get_settings.cache_clear()
