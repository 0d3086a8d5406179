"""
Tests for endpoint health tracking and local rate limiting.

============================================================
PURPOSE
============================================================
TEST PRINCIPLES:
- success_rate is an EWMA that stays within [0, 100]
- A permitted check consumes a slot
- Windows reset lazily, strictly after reset_at

============================================================
"""

from datetime import timedelta

import pytest

from data_source_health import HealthState, HealthTracker, RateLimiter
from data_sources import EndpointDescriptor, RateLimitQuota, RatePeriod

from conftest import FIXED_NOW


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def tracker(clock):
    return HealthTracker(clock)


@pytest.fixture
def limited_endpoint():
    return EndpointDescriptor(
        id="limited",
        name="Limited",
        base_url="https://api.example.com",
        paths={"default": "/data"},
        rate_limit=RateLimitQuota(5, RatePeriod.MINUTE),
    )


@pytest.fixture
def open_endpoint():
    return EndpointDescriptor(
        id="open",
        name="Open",
        base_url="https://api.example.com",
        paths={"default": "/data"},
    )


# ============================================================
# HEALTH TRACKER
# ============================================================

class TestHealthTracker:
    """Tests for HealthTracker."""

    def test_first_success_keeps_full_rate(self, tracker):
        record = tracker.record_outcome("src", success=True, response_time_ms=120.0)

        assert record.success_rate == pytest.approx(100.0)
        assert record.average_response_time_ms == 120.0
        assert record.last_success_at == FIXED_NOW
        assert record.state == HealthState.HEALTHY

    def test_failures_strictly_decrease_rate(self, tracker):
        previous = 100.0
        for _ in range(30):
            record = tracker.record_outcome("src", success=False, response_time_ms=50.0, error="boom")
            assert record.success_rate < previous
            assert record.success_rate >= 0.0
            previous = record.success_rate

        assert record.consecutive_failures == 30
        assert record.total_failures == 30
        assert record.state == HealthState.UNAVAILABLE

    def test_ewma_with_default_alpha(self, tracker):
        tracker.record_outcome("src", success=False, response_time_ms=0)
        record = tracker.record_outcome("src", success=False, response_time_ms=0)
        assert record.success_rate == pytest.approx(81.0)

    def test_latency_average_after_first_sample(self, tracker):
        tracker.record_outcome("src", success=True, response_time_ms=100.0)
        record = tracker.record_outcome("src", success=True, response_time_ms=200.0)
        assert record.average_response_time_ms == pytest.approx(110.0)

    def test_success_resets_consecutive_failures(self, tracker, clock):
        tracker.record_outcome("src", success=False, response_time_ms=10, error="timeout")
        clock.advance(seconds=5)
        record = tracker.record_outcome("src", success=True, response_time_ms=10)

        assert record.consecutive_failures == 0
        assert record.last_failure.message == "timeout"
        assert record.last_failure.timestamp == FIXED_NOW
        assert record.last_success_at == FIXED_NOW + timedelta(seconds=5)

    def test_degraded_state_between_thresholds(self, tracker):
        for _ in range(3):
            record = tracker.record_outcome("src", success=False, response_time_ms=10)
        # 100 * 0.9^3 = 72.9
        assert record.state == HealthState.DEGRADED

    def test_unknown_before_any_request(self, tracker):
        assert tracker.get("never") is None

    def test_reset_forgets_record(self, tracker):
        tracker.record_outcome("src", success=True, response_time_ms=10)
        tracker.reset("src")
        assert tracker.get("src") is None

    def test_status_snapshot(self, tracker):
        tracker.record_outcome("a", success=True, response_time_ms=10)
        tracker.record_outcome("b", success=False, response_time_ms=10, error="x")

        status = tracker.get_health_status()

        assert set(status) == {"a", "b"}
        assert status["b"]["last_failure"]["message"] == "x"
        assert status["a"]["state"] == "healthy"

    def test_invalid_alpha(self):
        with pytest.raises(ValueError):
            HealthTracker(alpha=0)


# ============================================================
# RATE LIMITER
# ============================================================

class TestRateLimiter:
    """Tests for RateLimiter."""

    def test_sixth_request_denied_until_reset(self, clock, limited_endpoint):
        limiter = RateLimiter(clock)

        results = [limiter.check_rate_limit(limited_endpoint) for _ in range(6)]

        assert results == [True] * 5 + [False]
        assert limiter.reset_at("limited") == FIXED_NOW + timedelta(minutes=1)

    def test_window_resets_strictly_after_reset_at(self, clock, limited_endpoint):
        limiter = RateLimiter(clock)
        for _ in range(5):
            limiter.check_rate_limit(limited_endpoint)

        clock.advance(seconds=60)
        assert limiter.check_rate_limit(limited_endpoint) is False

        clock.advance(seconds=1)
        assert limiter.check_rate_limit(limited_endpoint) is True
        assert limiter.get_tracker("limited").count == 1

    def test_denied_check_consumes_nothing(self, clock, limited_endpoint):
        limiter = RateLimiter(clock)
        for _ in range(8):
            limiter.check_rate_limit(limited_endpoint)
        assert limiter.get_tracker("limited").count == 5
        assert limiter.remaining(limited_endpoint) == 0

    def test_endpoint_without_quota_is_unlimited(self, clock, open_endpoint):
        limiter = RateLimiter(clock)
        assert all(limiter.check_rate_limit(open_endpoint) for _ in range(100))
        assert limiter.remaining(open_endpoint) is None
        assert limiter.reset_at("open") is None

    def test_reset_clears_window(self, clock, limited_endpoint):
        limiter = RateLimiter(clock)
        for _ in range(5):
            limiter.check_rate_limit(limited_endpoint)

        limiter.reset("limited")

        assert limiter.check_rate_limit(limited_endpoint) is True

    def test_quota_rejects_zero_count(self):
        with pytest.raises(ValueError):
            RateLimitQuota(0)
