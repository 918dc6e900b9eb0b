"""
Unit Tests for the Fixed-Window Rate Limiter

Tests budget boundaries, window rollover, key layout and fail-open
behaviour against the in-memory store and a controllable clock.
"""

import asyncio
from unittest.mock import patch

import pytest

from dermi_cache.rate_limiting.rate_limiter import (
    RateLimiter,
    RateLimitPreset,
    RateLimitPresets,
    RateLimitResult,
    get_preset,
)

HOUR = 3600
# FakeClock starts at 1_700_000_000, inside window 472222 of the hourly grid
WINDOW_INDEX = 472222
WINDOW_END = 1_700_002_800


@pytest.mark.unit
class TestCheckRateLimit:
    """Test suite for counting and decisions."""

    async def test_ai_analysis_scenario(self, rate_limiter):
        """Ten analyses per hour: remaining counts down, the eleventh is rejected."""
        remaining = []
        for _ in range(10):
            result = await rate_limiter.check_rate_limit("user1", "ai-final-evaluation", 10, HOUR)
            assert result.success is True
            remaining.append(result.remaining)

        assert remaining == [9, 8, 7, 6, 5, 4, 3, 2, 1, 0]

        rejected = await rate_limiter.check_rate_limit("user1", "ai-final-evaluation", 10, HOUR)

        assert rejected == RateLimitResult(
            success=False, limit=10, remaining=0, reset=WINDOW_END, retry_after=2800
        )

    async def test_counter_key_layout_and_expiry(self, rate_limiter, in_memory_store, clock):
        await rate_limiter.check_rate_limit("user1", "ai-final-evaluation", 10, HOUR)

        key = f"ratelimit:ai-final-evaluation:user1:{WINDOW_INDEX}"
        assert in_memory_store.data[key] == "1"
        assert in_memory_store.expires_at[key] == clock() + HOUR

    async def test_expiry_set_only_on_first_increment(self, rate_limiter, in_memory_store, clock):
        key = f"ratelimit:ep:u:{WINDOW_INDEX}"

        await rate_limiter.check_rate_limit("u", "ep", 5, HOUR)
        first_deadline = in_memory_store.expires_at[key]
        clock.advance(100)
        await rate_limiter.check_rate_limit("u", "ep", 5, HOUR)

        assert in_memory_store.expires_at[key] == first_deadline

    async def test_next_window_is_allowed_again(self, rate_limiter, clock):
        for _ in range(3):
            await rate_limiter.check_rate_limit("u", "ep", 2, HOUR)

        clock.now = WINDOW_END
        result = await rate_limiter.check_rate_limit("u", "ep", 2, HOUR)

        assert result.success is True
        assert result.remaining == 1
        assert result.reset == WINDOW_END + HOUR

    async def test_retry_after_rounds_up(self, rate_limiter, clock):
        clock.now = WINDOW_END - 0.5

        result = await rate_limiter.check_rate_limit("u", "ep", 1, HOUR)

        assert result.retry_after == 1

    async def test_identifiers_and_endpoints_are_isolated(self, rate_limiter):
        await rate_limiter.check_rate_limit("alice", "upload", 1, HOUR)

        bob = await rate_limiter.check_rate_limit("bob", "upload", 1, HOUR)
        alice_elsewhere = await rate_limiter.check_rate_limit("alice", "analysis", 1, HOUR)

        assert bob.success is True
        assert alice_elsewhere.success is True

    async def test_concurrent_requests_never_exceed_limit(self, rate_limiter):
        results = await asyncio.gather(
            *(rate_limiter.check_rate_limit("u", "ep", 10, HOUR) for _ in range(25))
        )

        assert sum(r.success for r in results) == 10

    async def test_decisions_are_recorded(self, rate_limiter, mock_metrics_collector):
        await rate_limiter.check_rate_limit("u", "ep", 1, HOUR)
        await rate_limiter.check_rate_limit("u", "ep", 1, HOUR)

        decisions = [
            c.args for c in mock_metrics_collector.record_rate_limit_decision.call_args_list
        ]
        assert decisions == [("ep", "allowed"), ("ep", "rejected")]

    def test_headers(self):
        result = RateLimitResult(success=True, limit=10, remaining=4, reset=100, retry_after=5)

        assert result.headers() == {
            "X-RateLimit-Limit": "10",
            "X-RateLimit-Remaining": "4",
            "X-RateLimit-Reset": "100",
        }


@pytest.mark.unit
class TestFailOpen:
    """Store trouble allows requests, visibly."""

    @pytest.fixture
    def outage_limiter(self, failing_store, clock, mock_settings, mock_metrics_collector):
        return RateLimiter(
            store=failing_store,
            clock=clock,
            settings=mock_settings,
            collector=mock_metrics_collector,
        )

    async def test_store_outage_allows_with_full_budget(self, outage_limiter):
        for _ in range(20):
            result = await outage_limiter.check_rate_limit("u", "ep", 10, HOUR)
            assert result.success is True
            assert result.remaining == 10

    async def test_fail_open_is_counted_and_logged(self, outage_limiter, mock_metrics_collector):
        with patch("dermi_cache.rate_limiting.rate_limiter.log_stage") as mock_log:
            await outage_limiter.check_rate_limit("u", "ep", 10, HOUR)

        mock_metrics_collector.record_rate_limit_decision.assert_called_once_with("ep", "fail_open")
        mock_metrics_collector.record_store_error.assert_called_once_with("rate_limit")
        assert mock_log.call_args.args[2] == "rate_limit_fail_open"
        assert mock_log.call_args.kwargs["level"] == "warning"

    async def test_disabled_limiter_skips_store(
        self, in_memory_store, clock, mock_settings, mock_metrics_collector
    ):
        mock_settings.rate_limit.RATE_LIMIT_ENABLED = False
        limiter = RateLimiter(
            store=in_memory_store,
            clock=clock,
            settings=mock_settings,
            collector=mock_metrics_collector,
        )

        result = await limiter.check_rate_limit("u", "ep", 1, HOUR)

        assert result.success is True
        assert in_memory_store.calls == {}

    async def test_unconfigured_store_fails_open(
        self, clock, mock_settings, mock_metrics_collector
    ):
        from tests.test_fixtures import StoreTestFactory

        limiter = RateLimiter(
            store=StoreTestFactory.unconfigured_store(),
            clock=clock,
            settings=mock_settings,
            collector=mock_metrics_collector,
        )

        with patch("dermi_cache.rate_limiting.rate_limiter.log_stage") as mock_log:
            result = await limiter.check_rate_limit("u", "ep", 3, HOUR)

        assert result.success is True
        assert result.remaining == 3
        assert mock_log.call_args.kwargs["reason"] == "not_configured"


@pytest.mark.unit
class TestStatusAndReset:
    """Test read-only status and admin reset."""

    async def test_status_does_not_count(self, rate_limiter, in_memory_store):
        for _ in range(3):
            await rate_limiter.check_rate_limit("u", "ep", 10, HOUR)

        status = await rate_limiter.get_rate_limit_status("u", "ep", 10, HOUR)

        assert status.remaining == 7
        assert status.success is True
        assert in_memory_store.data[f"ratelimit:ep:u:{WINDOW_INDEX}"] == "3"

    async def test_status_when_exhausted(self, rate_limiter):
        for _ in range(2):
            await rate_limiter.check_rate_limit("u", "ep", 2, HOUR)

        status = await rate_limiter.get_rate_limit_status("u", "ep", 2, HOUR)

        assert status.success is False
        assert status.remaining == 0

    async def test_status_on_outage_reports_full_budget(
        self, failing_store, clock, mock_settings, mock_metrics_collector
    ):
        limiter = RateLimiter(
            store=failing_store,
            clock=clock,
            settings=mock_settings,
            collector=mock_metrics_collector,
        )

        status = await limiter.get_rate_limit_status("u", "ep", 5, HOUR)

        assert status.remaining == 5

    async def test_reset_restores_budget(self, rate_limiter):
        for _ in range(2):
            await rate_limiter.check_rate_limit("u", "ep", 2, HOUR)

        assert await rate_limiter.reset_rate_limit("u", "ep", HOUR) is True
        result = await rate_limiter.check_rate_limit("u", "ep", 2, HOUR)

        assert result.success is True
        assert result.remaining == 1


@pytest.mark.unit
class TestPresets:
    """Test preset catalogue."""

    def test_preset_values(self):
        assert RateLimitPresets.AI_ANALYSIS == RateLimitPreset(limit=10, window=3600)
        assert RateLimitPresets.FILE_UPLOAD == RateLimitPreset(limit=20, window=3600)
        assert RateLimitPresets.API_DEFAULT == RateLimitPreset(limit=100, window=60)
        assert RateLimitPresets.STRICT == RateLimitPreset(limit=5, window=60)
        assert RateLimitPresets.GENEROUS == RateLimitPreset(limit=1000, window=3600)

    def test_get_preset_is_case_insensitive(self):
        assert get_preset("ai_analysis") is RateLimitPresets.AI_ANALYSIS
        assert get_preset("Strict") is RateLimitPresets.STRICT

    def test_unknown_preset(self):
        with pytest.raises(KeyError):
            get_preset("unlimited")
