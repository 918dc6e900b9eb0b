"""
Rate Limiting Module

Provides distributed fixed-window rate limiting with Redis backend.
"""

from .rate_limiter import (
    RateLimiter,
    RateLimitPreset,
    RateLimitPresets,
    RateLimitResult,
    check_rate_limit,
    get_preset,
    get_rate_limit_status,
    close_rate_limiter,
    get_rate_limiter,
    reset_rate_limit,
)

__all__ = [
    "RateLimiter",
    "RateLimitPreset",
    "RateLimitPresets",
    "RateLimitResult",
    "check_rate_limit",
    "close_rate_limiter",
    "get_preset",
    "get_rate_limit_status",
    "get_rate_limiter",
    "reset_rate_limit",
]
