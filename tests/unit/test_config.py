"""
Tests for core.config module.
"""
import pytest

from core.config import (
    AnalyticsConfig,
    AppConfig,
    BrokerConfig,
    ConfigurationError,
    DatabaseConfig,
    LoggingConfig,
    ReadPolicy,
    WebConfig,
    validate_config,
)


class TestAnalyticsConfig:
    """Tests for analytics settings loaded from the environment."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("ANALYTICS_READ_POLICY", raising=False)
        monkeypatch.delenv("ANALYTICS_TTL_SECONDS", raising=False)
        cfg = AnalyticsConfig()
        assert cfg.tracked_periods == ["7days", "30days", "90days"]
        assert cfg.default_period == "30days"
        assert cfg.top_n == 10
        assert cfg.read_policy == ReadPolicy.ALWAYS_RECOMPUTE
        assert cfg.ttl_seconds == 300

    def test_ttl_policy_from_env(self, monkeypatch):
        monkeypatch.setenv("ANALYTICS_READ_POLICY", "TTL")
        monkeypatch.setenv("ANALYTICS_TTL_SECONDS", "60")
        cfg = AnalyticsConfig()
        assert cfg.read_policy == ReadPolicy.TTL
        assert cfg.ttl_seconds == 60

    def test_bad_ttl_falls_back(self, monkeypatch):
        monkeypatch.setenv("ANALYTICS_TTL_SECONDS", "soon")
        assert AnalyticsConfig().ttl_seconds == 300

    def test_unknown_policy_rejected(self, monkeypatch):
        monkeypatch.setenv("ANALYTICS_READ_POLICY", "sometimes")
        with pytest.raises(ValueError):
            AnalyticsConfig()


class TestBrokerConfig:
    """Tests for the optional event broker settings."""

    def test_disabled_without_url(self, monkeypatch):
        monkeypatch.delenv("EVENT_BROKER_URL", raising=False)
        assert not BrokerConfig().enabled

    def test_enabled_with_url(self, monkeypatch):
        monkeypatch.setenv("EVENT_BROKER_URL", "redis://localhost:6379/0")
        assert BrokerConfig().enabled


class TestLoggingConfig:
    """Tests for log output settings."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        monkeypatch.delenv("LOG_FORMAT", raising=False)
        cfg = LoggingConfig()
        assert cfg.level == "INFO"
        assert not cfg.json_format

    def test_json_from_env(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("LOG_FORMAT", "JSON")
        cfg = LoggingConfig()
        assert cfg.level == "DEBUG"
        assert cfg.json_format


class TestValidateConfig:
    """Tests for startup validation."""

    def test_valid(self):
        validate_config(AppConfig(
            analytics=AnalyticsConfig(read_policy=ReadPolicy.ALWAYS_RECOMPUTE),
            broker=BrokerConfig(url=None),
            logging=LoggingConfig(level="INFO"),
            web=WebConfig(request_timeout=30, recompute_timeout=120),
        ))

    def test_ttl_requires_positive_seconds(self):
        cfg = AppConfig(analytics=AnalyticsConfig(read_policy=ReadPolicy.TTL, ttl_seconds=0))
        with pytest.raises(ConfigurationError) as exc_info:
            validate_config(cfg)
        assert "ANALYTICS_TTL_SECONDS" in str(exc_info.value)

    def test_rejects_non_redis_broker(self):
        cfg = AppConfig(
            analytics=AnalyticsConfig(read_policy=ReadPolicy.ALWAYS_RECOMPUTE),
            broker=BrokerConfig(url="http://localhost"),
        )
        with pytest.raises(ConfigurationError):
            validate_config(cfg)

    def test_collects_every_error(self):
        cfg = AppConfig(
            database=DatabaseConfig(path=":memory:", query_timeout=0),
            analytics=AnalyticsConfig(read_policy=ReadPolicy.ALWAYS_RECOMPUTE, top_n=0),
            broker=BrokerConfig(url=None),
        )
        with pytest.raises(ConfigurationError) as exc_info:
            validate_config(cfg)
        message = str(exc_info.value)
        assert "top_n" in message
        assert "QUERY_TIMEOUT" in message

    def test_rejects_unknown_log_level(self):
        cfg = AppConfig(
            analytics=AnalyticsConfig(read_policy=ReadPolicy.ALWAYS_RECOMPUTE),
            broker=BrokerConfig(url=None),
            logging=LoggingConfig(level="LOUD"),
        )
        with pytest.raises(ConfigurationError) as exc_info:
            validate_config(cfg)
        assert "LOG_LEVEL" in str(exc_info.value)

    def test_recompute_deadline_not_shorter_than_request(self):
        cfg = AppConfig(
            analytics=AnalyticsConfig(read_policy=ReadPolicy.ALWAYS_RECOMPUTE),
            broker=BrokerConfig(url=None),
            web=WebConfig(request_timeout=30, recompute_timeout=10),
        )
        with pytest.raises(ConfigurationError) as exc_info:
            validate_config(cfg)
        assert "RECOMPUTE_TIMEOUT" in str(exc_info.value)
