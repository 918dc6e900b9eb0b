"""
API Middleware

- error_handler: catch-all 500 formatting for unhandled exceptions
- rate_limit: per-handler rate limit decorator and preset shortcuts
"""

from .error_handler import ErrorHandlingMiddleware
from .rate_limit import (
    RateLimitMiddleware,
    get_client_identifier,
    rate_limit_exceeded_response,
    with_rate_limit,
)

__all__ = [
    "ErrorHandlingMiddleware",
    "RateLimitMiddleware",
    "get_client_identifier",
    "rate_limit_exceeded_response",
    "with_rate_limit",
]
