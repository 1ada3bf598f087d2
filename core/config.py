"""
Centralized configuration for the Invoice Swift analytics backend.

This module provides a single source of truth for all configuration values.
Configuration is loaded from environment variables with sensible defaults.

Usage:
    from core.config import config

    db_path = config.database.path
    policy = config.analytics.read_policy
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

DATA_DIR = Path(__file__).parent.parent / "data"


class ReadPolicy(str, Enum):
    """How get_analytics() treats the stored snapshot."""

    ALWAYS_RECOMPUTE = "always"  # Every read recomputes (default)
    TTL = "ttl"                  # Serve stored snapshot while younger than ttl_seconds


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name, "")
    return int(value) if value.strip().isdigit() else default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except ValueError:
        return default


@dataclass(frozen=True)
class DatabaseConfig:
    """DuckDB store configuration."""

    path: str = field(
        default_factory=lambda: os.getenv("DUCKDB_PATH", str(DATA_DIR / "invoice_swift.duckdb"))
    )
    query_timeout: float = field(default_factory=lambda: _env_float("QUERY_TIMEOUT", 30.0))


@dataclass(frozen=True)
class AnalyticsConfig:
    """Analytics recompute and read-path configuration."""

    # Periods recomputed by trigger_update() after every source-data write
    tracked_periods: List[str] = field(default_factory=lambda: ["7days", "30days", "90days"])
    default_period: str = "30days"
    top_n: int = 10
    read_policy: ReadPolicy = field(
        default_factory=lambda: ReadPolicy(os.getenv("ANALYTICS_READ_POLICY", "always").lower())
    )
    ttl_seconds: int = field(default_factory=lambda: _env_int("ANALYTICS_TTL_SECONDS", 300))


@dataclass(frozen=True)
class StreamConfig:
    """Server-sent event stream configuration."""

    keepalive_seconds: float = field(default_factory=lambda: _env_float("STREAM_KEEPALIVE_SECONDS", 15.0))


@dataclass(frozen=True)
class BrokerConfig:
    """
    Optional Redis pub/sub relay for multi-instance event delivery.

    DuckDB allows a single read-write process per database file, and a relayed
    event makes each worker re-read its own store. Only useful when workers
    read the same snapshots (one writer plus read-only replicas).
    """

    url: Optional[str] = field(default_factory=lambda: os.getenv("EVENT_BROKER_URL") or None)
    channel: str = field(default_factory=lambda: os.getenv("EVENT_BROKER_CHANNEL", "invoice-swift:analytics"))

    @property
    def enabled(self) -> bool:
        return bool(self.url)


@dataclass(frozen=True)
class LoggingConfig:
    """Log output configuration."""

    level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())
    json_format: bool = field(default_factory=lambda: os.getenv("LOG_FORMAT", "text").lower() == "json")


@dataclass(frozen=True)
class WebConfig:
    """Web API configuration."""

    host: str = field(default_factory=lambda: os.getenv("HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: _env_int("PORT", 5000))

    # Request deadlines (seconds); recompute endpoints rebuild every tracked period
    request_timeout: float = field(default_factory=lambda: _env_float("REQUEST_TIMEOUT", 30.0))
    recompute_timeout: float = field(default_factory=lambda: _env_float("RECOMPUTE_TIMEOUT", 120.0))

    # Rate limiting
    read_rate_limit: str = "60/minute"
    write_rate_limit: str = "30/minute"
    admin_rate_limit: str = "10/minute"


@dataclass(frozen=True)
class AppConfig:
    """Main application configuration."""

    version: str = "1.0.0"
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    analytics: AnalyticsConfig = field(default_factory=AnalyticsConfig)
    stream: StreamConfig = field(default_factory=StreamConfig)
    broker: BrokerConfig = field(default_factory=BrokerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    web: WebConfig = field(default_factory=WebConfig)


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def load_config() -> AppConfig:
    """Build configuration from the current environment."""
    try:
        return AppConfig()
    except ValueError as e:
        raise ConfigurationError(f"Invalid configuration value: {e}") from e


# Global config instance
config = load_config()

VERSION = config.version


def validate_config(cfg: AppConfig = None) -> None:
    """
    Validate configuration on startup.

    Raises:
        ConfigurationError: If configuration is inconsistent
    """
    cfg = cfg or config
    errors = []

    if cfg.analytics.top_n <= 0:
        errors.append("analytics.top_n must be positive")

    if cfg.analytics.read_policy == ReadPolicy.TTL and cfg.analytics.ttl_seconds <= 0:
        errors.append("ANALYTICS_TTL_SECONDS must be positive when ANALYTICS_READ_POLICY=ttl")

    if cfg.database.query_timeout <= 0:
        errors.append("QUERY_TIMEOUT must be positive")

    if cfg.web.request_timeout <= 0 or cfg.web.recompute_timeout < cfg.web.request_timeout:
        errors.append("REQUEST_TIMEOUT must be positive and not exceed RECOMPUTE_TIMEOUT")

    if cfg.logging.level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        errors.append(f"LOG_LEVEL {cfg.logging.level!r} is not a logging level")

    if cfg.broker.url and not cfg.broker.url.startswith(("redis://", "rediss://", "unix://")):
        errors.append("EVENT_BROKER_URL must be a redis:// URL")

    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        raise ConfigurationError(error_msg)
