"""
Pytest Configuration and Shared Test Fixtures

This module provides pytest configuration and reusable fixtures for all tests.
All fixtures defined here are automatically available to all test files.
"""

import os
import sys
from unittest.mock import MagicMock

import pytest

# Add project root to sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from tests.test_fixtures import FakeClock, InMemoryCacheStore, StoreTestFactory  # noqa: E402


# ============================================================================
# Mock Configuration Fixtures
# ============================================================================


@pytest.fixture
def mock_settings():
    """
    Mock application settings for testing.

    Returns a MagicMock with the attributes the cache and limiter read.
    """
    from dermi_cache.core.config.settings import Settings

    settings = MagicMock(spec=Settings)

    # Cache settings
    settings.cache.ENABLE_CACHING = True
    settings.cache.CACHE_DEFAULT_TTL = 3600
    settings.cache.CACHE_AI_ANALYSIS_TTL = 2592000
    settings.cache.CACHE_USER_PROFILE_TTL = 3600
    settings.cache.CACHE_DOCTOR_LIST_TTL = 300
    settings.cache.CACHE_TEST_TTL = 10

    # Rate limit settings
    settings.rate_limit.RATE_LIMIT_ENABLED = True
    settings.rate_limit.RATE_LIMIT_KEY_PREFIX = "ratelimit"
    settings.rate_limit.RATE_LIMIT_TRUST_FORWARDED_FOR = True

    # Redis settings
    settings.redis.REDIS_OPERATION_TIMEOUT = 0.5

    # App settings
    settings.app.ENVIRONMENT = "test"
    settings.app.APP_VERSION = "1.0.0-test"
    settings.app.APP_NAME = "DermiAssist Test"
    settings.app.API_BASE_PATH = "/api/v1"

    return settings


# ============================================================================
# Store Fixtures
# ============================================================================


@pytest.fixture
def clock():
    """Controllable epoch clock."""
    return FakeClock()


@pytest.fixture
def in_memory_store(clock):
    """In-memory CacheStore sharing the test clock."""
    return InMemoryCacheStore(clock)


@pytest.fixture
def failing_store():
    """CacheStore simulating a Redis outage."""
    return StoreTestFactory.failing_store()


# ============================================================================
# Metrics Fixtures
# ============================================================================


@pytest.fixture
def cache_metrics():
    """Fresh process-local hit/miss counters."""
    from dermi_cache.infrastructure.monitoring.metrics_collector import CacheMetrics

    return CacheMetrics()


@pytest.fixture
def mock_metrics_collector():
    """Prometheus collector double; assert on its record_* calls."""
    from dermi_cache.infrastructure.monitoring.metrics_collector import MetricsCollector

    return MagicMock(spec=MetricsCollector)


# ============================================================================
# Component Fixtures
# ============================================================================


@pytest.fixture
def cache_manager(in_memory_store, cache_metrics, mock_metrics_collector, mock_settings):
    """CacheManager over the in-memory store."""
    from dermi_cache.infrastructure.cache.cache_manager import CacheManager

    return CacheManager(
        store=in_memory_store,
        metrics=cache_metrics,
        collector=mock_metrics_collector,
        settings=mock_settings,
    )


@pytest.fixture
def rate_limiter(in_memory_store, clock, mock_metrics_collector, mock_settings):
    """RateLimiter over the in-memory store and test clock."""
    from dermi_cache.rate_limiting.rate_limiter import RateLimiter

    return RateLimiter(
        store=in_memory_store,
        clock=clock,
        settings=mock_settings,
        collector=mock_metrics_collector,
    )
