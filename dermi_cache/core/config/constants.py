"""
System Constants and Enumerations

Stage identifiers, TTL presets, key namespaces and HTTP header names shared
across the caching and rate-limiting layer.

Architectural Decision: Centralized constants for maintainability
- Single source of truth for magic numbers
- Type-safe enums for stage tracking
"""

from enum import Enum

# ============================================================================
# Stage Identifiers (for structured logging)
# ============================================================================


class Stage(str, Enum):
    """
    Processing stages used as the ``stage`` field of log events.

    Format: {SEQUENCE}_{DESCRIPTIVE_NAME}
    """

    INITIALIZATION = "0.0_INITIALIZATION"
    KEY_DERIVATION = "1.0_KEY_DERIVATION"
    CACHE_LOOKUP = "2.0_CACHE_LOOKUP"
    CACHE_PRODUCE = "2.1_CACHE_PRODUCE"
    CACHE_POPULATE = "2.2_CACHE_POPULATE"
    RATE_LIMITING = "3.0_RATE_LIMITING"
    CLEANUP = "6.0_CLEANUP"

    STORE = "S_STORE_OPERATION"


# ============================================================================
# Rate Limit Decisions
# ============================================================================


class RateLimitDecision(str, Enum):
    """
    Outcome of a rate limit check.

    FAIL_OPEN is an allow caused by an unavailable store, kept distinct from
    a genuine ALLOWED for logging and metrics.
    """

    ALLOWED = "allowed"
    REJECTED = "rejected"
    FAIL_OPEN = "fail_open"


# ============================================================================
# TTL Presets (seconds)
# ============================================================================


class CacheTTL:
    """Cache TTL defaults in seconds (overridable through CacheSettings)."""

    SHORT = 300  # 5 minutes
    HOUR = 3600
    MONTH = 2592000  # 30 days

    USER_PROFILE = HOUR
    DOCTOR_LIST = SHORT
    AI_ANALYSIS = MONTH


# ============================================================================
# Key Namespaces
# ============================================================================

KEY_SEPARATOR = ":"

NAMESPACE_DETECT_DISEASE = "detect-disease"
NAMESPACE_FINAL_EVALUATION = "final-eval"
NAMESPACE_ANALYSIS = "analysis"
NAMESPACE_USER = "user"
NAMESPACE_DOCTOR = "doctor"
NAMESPACE_DOCTORS = "doctors"
NAMESPACE_TEST = "test"

# Rate limit endpoint used outside HTTP routes
ENDPOINT_AI_FINAL_EVALUATION = "ai-final-evaluation"

# Length of the truncated free-text digest in composite keys
ANSWERS_DIGEST_LENGTH = 16

# ============================================================================
# HTTP Headers
# ============================================================================

HEADER_REQUEST_ID = "X-Request-ID"
HEADER_USER_ID = "X-User-ID"
HEADER_FORWARDED_FOR = "X-Forwarded-For"
HEADER_REAL_IP = "X-Real-IP"
HEADER_RATE_LIMIT = "X-RateLimit-Limit"
HEADER_RATE_REMAINING = "X-RateLimit-Remaining"
HEADER_RATE_RESET = "X-RateLimit-Reset"
HEADER_RETRY_AFTER = "Retry-After"
