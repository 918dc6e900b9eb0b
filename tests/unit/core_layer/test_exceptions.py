"""
Unit Tests for Core Exceptions

Tests the exception hierarchy and its serialization helpers.
"""

import pytest

from dermi_cache.core.exceptions import (
    CacheError,
    CacheUnavailableError,
    ConfigurationError,
    DermiCacheError,
    MalformedCacheEntryError,
    RateLimitError,
    RateLimitExceededError,
)


@pytest.mark.unit
class TestDermiCacheError:
    """Test the base exception class."""

    def test_base_error_creation(self):
        error = DermiCacheError("Test message")
        assert str(error) == "Test message"

    def test_base_error_default_values(self):
        error = DermiCacheError("Test")
        assert error.details == {}
        assert error.request_id is None

    def test_details_are_copied(self):
        """External mutation of the details dict does not leak in."""
        details = {"key": "value"}
        error = DermiCacheError("Test", details=details)
        details["key"] = "changed"

        assert error.details == {"key": "value"}

    def test_to_dict(self):
        error = DermiCacheError("Boom", request_id="req-1", details={"a": 1})

        assert error.to_dict() == {
            "error_type": "DermiCacheError",
            "message": "Boom",
            "request_id": "req-1",
            "details": {"a": 1},
        }

    def test_with_context_is_chainable(self):
        error = DermiCacheError("Boom").with_context(key="detect-disease:ab")

        assert error.details["key"] == "detect-disease:ab"

    def test_from_exception_keeps_original(self):
        original = TimeoutError("timed out")
        error = CacheUnavailableError.from_exception(original, "Redis GET failed", operation="GET")

        assert isinstance(error, CacheUnavailableError)
        assert error.message == "Redis GET failed"
        assert error.details["original_error"] == "TimeoutError"
        assert error.details["original_message"] == "timed out"
        assert error.details["operation"] == "GET"

    def test_repr_includes_details(self):
        error = DermiCacheError("Boom", request_id="r", details={"a": 1})

        assert "request_id='r'" in repr(error)
        assert "details=" in repr(error)


@pytest.mark.unit
class TestHierarchy:
    """Test inheritance relationships."""

    def test_cache_errors(self):
        assert issubclass(CacheUnavailableError, CacheError)
        assert issubclass(MalformedCacheEntryError, CacheError)
        assert issubclass(CacheError, DermiCacheError)

    def test_rate_limit_errors(self):
        assert issubclass(RateLimitExceededError, RateLimitError)
        assert issubclass(RateLimitError, DermiCacheError)

    def test_configuration_error(self):
        assert issubclass(ConfigurationError, DermiCacheError)


@pytest.mark.unit
class TestRateLimitExceededError:
    """Test RateLimitExceededError payload."""

    def test_carries_limit_fields(self):
        error = RateLimitExceededError("Slow down", limit=10, reset=1700002800, retry_after=1200)

        assert error.limit == 10
        assert error.reset == 1700002800
        assert error.retry_after == 1200
        assert error.details == {"limit": 10, "reset": 1700002800, "retry_after": 1200}
