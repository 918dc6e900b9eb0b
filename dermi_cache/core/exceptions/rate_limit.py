"""
Rate Limiting Exceptions
"""

from typing import Any

from dermi_cache.core.exceptions.base import DermiCacheError


class RateLimitError(DermiCacheError):
    """Base exception for rate limiting errors."""
    pass


class RateLimitExceededError(RateLimitError):
    """
    Raised by service-level wrappers when a caller exhausted its budget.

    The HTTP adapter does not raise this; it answers 429 directly. Service
    functions called outside a request handler (AI flows) raise it so the
    caller can surface the wait time.

    Attributes:
        limit: Maximum requests allowed in the window
        reset: Epoch seconds at which the window rolls over
        retry_after: Seconds until a retry can succeed
    """

    def __init__(
        self,
        message: str,
        limit: int,
        reset: int,
        retry_after: int,
        request_id: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, request_id=request_id, details=details)
        self.limit = limit
        self.reset = reset
        self.retry_after = retry_after
        self.details.update({"limit": limit, "reset": reset, "retry_after": retry_after})
