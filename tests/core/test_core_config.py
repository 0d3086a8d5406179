"""
Tests for configuration loading, the clock and error classification.
"""

from datetime import datetime, timedelta, timezone

import pytest

from core.clock import MockClock
from core.config import IngestionConfig
from core.constants import DEFAULT_PROXY_CHAIN
from core.exceptions import (
    Aborted,
    AllStrategiesExhausted,
    ConfigurationError,
    CORSError,
    ErrorClassification,
    FailureKind,
    HTTPStatusError,
    NetworkError,
    ParseError,
)


ENV_KEYS = [
    "INGEST_ALLOWED_HOSTS",
    "INGEST_ARTICLE_HOSTS",
    "INGEST_MAX_CONTENT_LENGTH",
    "INGEST_BLOCK_PRIVATE_NETWORKS",
    "INGEST_REFRESH_INTERVALS",
    "INGEST_MAX_CONCURRENT_REQUESTS",
    "INGEST_PROXY_CHAIN",
    "INGEST_CORS_STRATEGY",
    "INGEST_CACHE_DATABASE_URL",
    "INGEST_RETRY_ATTEMPTS",
    "LOG_LEVEL",
]


@pytest.fixture
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


# ============================================================
# CONFIGURATION
# ============================================================

class TestIngestionConfig:
    """Tests for IngestionConfig."""

    def test_defaults(self, clean_env):
        config = IngestionConfig.from_env(dotenv=False)

        assert config.allowed_hosts == ()
        assert config.block_private_networks is True
        assert config.proxy_chain == DEFAULT_PROXY_CHAIN
        assert config.refresh_intervals["critical"] == 300
        assert config.cache_database_url is None
        assert config.validate() == []

    def test_values_from_env(self, clean_env):
        clean_env.setenv("INGEST_ALLOWED_HOSTS", "api.weather.gov, earthquake.usgs.gov")
        clean_env.setenv("INGEST_BLOCK_PRIVATE_NETWORKS", "false")
        clean_env.setenv("INGEST_REFRESH_INTERVALS", "critical=60,low=7200")
        clean_env.setenv("INGEST_PROXY_CHAIN", "direct,https://proxy.example.org/?u={url}")
        clean_env.setenv("INGEST_MAX_CONCURRENT_REQUESTS", "2")

        config = IngestionConfig.from_env(dotenv=False)

        assert config.allowed_hosts == ("api.weather.gov", "earthquake.usgs.gov")
        assert config.block_private_networks is False
        assert config.refresh_intervals["critical"] == 60
        assert config.refresh_intervals["low"] == 7200
        assert config.refresh_intervals["high"] == 600
        assert config.proxy_chain == ("direct", "https://proxy.example.org/?u={url}")
        assert config.max_concurrent_requests == 2

    def test_malformed_refresh_interval(self, clean_env):
        clean_env.setenv("INGEST_REFRESH_INTERVALS", "critical:60")
        with pytest.raises(ConfigurationError) as exc_info:
            IngestionConfig.from_env(dotenv=False)
        assert exc_info.value.context["config_key"] == "INGEST_REFRESH_INTERVALS"

    def test_non_numeric_setting(self, clean_env):
        clean_env.setenv("INGEST_RETRY_ATTEMPTS", "three")
        with pytest.raises(ConfigurationError):
            IngestionConfig.from_env(dotenv=False)

    def test_validate_reports_every_problem(self):
        config = IngestionConfig(
            max_concurrent_requests=0,
            retry_attempts=0,
            proxy_chain=("direct", "ftp://proxy"),
            log_format="xml",
        )

        errors = config.validate()

        assert len(errors) == 4
        assert any("ftp://proxy" in e for e in errors)


# ============================================================
# CLOCK
# ============================================================

class TestMockClock:
    """Tests for MockClock."""

    def test_naive_time_becomes_utc(self):
        clock = MockClock(datetime(2025, 1, 1))
        assert clock.now().tzinfo == timezone.utc

    def test_advance_and_freeze(self):
        start = datetime(2025, 1, 1, tzinfo=timezone.utc)
        clock = MockClock(start)
        clock.advance(minutes=5)
        assert clock.now() == start + timedelta(minutes=5)

        with clock.freeze(start):
            assert clock.now() == start
        assert clock.now() == start + timedelta(minutes=5)
        assert clock.seconds_since(start) == 300


# ============================================================
# ERROR CLASSIFICATION
# ============================================================

class TestErrorClassification:
    """Tests for retry/fallback classification of errors."""

    def test_transient_errors_retry(self):
        assert NetworkError("reset").is_retryable
        assert HTTPStatusError("HTTP 503", status_code=503).is_retryable

    def test_strategy_errors_skip(self):
        for error in (CORSError("opaque"), Aborted("timeout")):
            assert not error.is_retryable
            assert not error.is_terminal
            assert error.classification == ErrorClassification.SKIP_STRATEGY

    def test_parse_error_is_terminal(self):
        error = ParseError("bad", format="json", reason="invalid json")
        assert error.is_terminal
        assert error.to_dict()["context"]["reason"] == "invalid json"

    def test_exhaustion_lists_attempts(self):
        error = AllStrategiesExhausted(
            "all failed",
            failures=[NetworkError("a"), CORSError("b")],
            source_name="src",
        )
        assert error.kind == FailureKind.ALL_STRATEGIES_EXHAUSTED
        assert [a["kind"] for a in error.context["attempts"]] == ["NetworkError", "CORSError"]
        assert "[source=src]" in str(error)

    def test_status_helpers(self):
        assert HTTPStatusError("x", status_code=502).is_server_error()
        assert HTTPStatusError("x", status_code=404).is_client_error()
