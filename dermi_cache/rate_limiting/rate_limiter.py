"""
Rate Limiter

Distributed fixed-window rate limiting on the shared Redis store.

Algorithm:
1. window_index = floor(now / window)
2. key = ratelimit:<endpoint>:<identifier>:<window_index>
3. count = INCR key, with EXPIRE window set atomically on the first hit
4. allowed while count <= limit

Every process shares the counters, so the budget holds across replicas.
Counters expire with their window; no cleanup job is needed.

Fail-open:
    If the store is unreachable, not configured, or rate limiting is
    disabled, the request is allowed with remaining == limit. This is
    logged as ``rate_limit_fail_open`` and counted under the ``fail_open``
    decision, so it never looks like a genuine allow.

Known trade-off: fixed windows admit up to 2 x limit requests around a
window boundary.
"""

import math
import time
from collections.abc import Callable
from dataclasses import dataclass

from dermi_cache.core.config.constants import (
    HEADER_RATE_LIMIT,
    HEADER_RATE_REMAINING,
    HEADER_RATE_RESET,
    RateLimitDecision,
    Stage,
)
from dermi_cache.core.config.settings import get_settings
from dermi_cache.core.exceptions import CacheUnavailableError
from dermi_cache.core.interfaces.cache import CacheStore
from dermi_cache.core.keys import CacheKeys
from dermi_cache.core.logging.logger import get_logger, log_stage
from dermi_cache.infrastructure.cache.redis_client import get_redis_client
from dermi_cache.infrastructure.monitoring.metrics_collector import (
    MetricsCollector,
    get_metrics_collector,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class RateLimitResult:
    """
    Outcome of one rate limit check.

    Attributes:
        success: Whether the request may proceed
        limit: Maximum requests per window
        remaining: Requests left in the current window (never negative)
        reset: Epoch seconds at which the current window ends
        retry_after: Whole seconds until the window ends
    """

    success: bool
    limit: int
    remaining: int
    reset: int
    retry_after: int

    def headers(self) -> dict[str, str]:
        return {
            HEADER_RATE_LIMIT: str(self.limit),
            HEADER_RATE_REMAINING: str(self.remaining),
            HEADER_RATE_RESET: str(self.reset),
        }


@dataclass(frozen=True)
class RateLimitPreset:
    """A named (limit, window) pair."""

    limit: int
    window: int


class RateLimitPresets:
    """Standard budgets used across the platform."""

    # Expensive model calls
    AI_ANALYSIS = RateLimitPreset(limit=10, window=3600)
    FILE_UPLOAD = RateLimitPreset(limit=20, window=3600)
    API_DEFAULT = RateLimitPreset(limit=100, window=60)
    # Sensitive operations (auth, password resets)
    STRICT = RateLimitPreset(limit=5, window=60)
    GENEROUS = RateLimitPreset(limit=1000, window=3600)


def get_preset(name: str) -> RateLimitPreset:
    """
    Look up a preset by name, case-insensitively ("ai_analysis", "STRICT").

    Raises:
        KeyError: If no such preset exists
    """
    preset = getattr(RateLimitPresets, name.upper(), None)
    if not isinstance(preset, RateLimitPreset):
        raise KeyError(f"Unknown rate limit preset: {name}")
    return preset


class RateLimiter:
    """
    Fixed-window rate limiter over a ``CacheStore``.

    Usage:
        limiter = RateLimiter()
        result = await limiter.check_rate_limit("user1", "ai-final-evaluation", 10, 3600)
        if not result.success:
            ...  # reject, retry after result.retry_after seconds
    """

    def __init__(
        self,
        store: CacheStore | None = None,
        clock: Callable[[], float] = time.time,
        settings=None,
        collector: MetricsCollector | None = None,
    ):
        settings = settings or get_settings()

        self._store = store or get_redis_client()
        self._clock = clock
        self._collector = collector
        self._enabled = settings.rate_limit.RATE_LIMIT_ENABLED
        self._prefix = settings.rate_limit.RATE_LIMIT_KEY_PREFIX

    def _metrics(self) -> MetricsCollector:
        if self._collector is None:
            self._collector = get_metrics_collector()
        return self._collector

    def _window(self, window: int) -> tuple[float, int, int]:
        """Return (now, window_index, reset) for the current instant."""
        now = self._clock()
        window_index = math.floor(now / window)
        return now, window_index, (window_index + 1) * window

    def _key(self, endpoint: str, identifier: str, window_index: int) -> str:
        return CacheKeys.rate_limit(self._prefix, endpoint, identifier, window_index)

    def _fail_open(
        self, endpoint: str, identifier: str, limit: int, window: int, reason: str
    ) -> RateLimitResult:
        now, _, reset = self._window(window)
        self._metrics().record_rate_limit_decision(endpoint, RateLimitDecision.FAIL_OPEN.value)
        log_stage(
            logger,
            Stage.RATE_LIMITING,
            "rate_limit_fail_open",
            level="warning",
            endpoint=endpoint,
            identifier=identifier,
            reason=reason,
        )
        return RateLimitResult(
            success=True,
            limit=limit,
            remaining=limit,
            reset=reset,
            retry_after=max(0, math.ceil(reset - now)),
        )

    def _unavailable_reason(self) -> str | None:
        if not self._enabled:
            return "disabled"
        if not self._store.is_configured():
            return "not_configured"
        return None

    async def check_rate_limit(
        self, identifier: str, endpoint: str, limit: int, window: int
    ) -> RateLimitResult:
        """
        Count one request and decide whether it is allowed.

        STAGE-RL.1: Rate limit check

        Args:
            identifier: Who is calling (user id, IP address)
            endpoint: Logical operation being limited
            limit: Maximum requests per window
            window: Window length in seconds

        Returns:
            RateLimitResult. Never raises for store failures.
        """
        reason = self._unavailable_reason()
        if reason:
            return self._fail_open(endpoint, identifier, limit, window, reason)

        now, window_index, reset = self._window(window)
        key = self._key(endpoint, identifier, window_index)

        try:
            count = await self._store.incr_with_ttl(key, window)
        except CacheUnavailableError as e:
            self._metrics().record_store_error("rate_limit")
            return self._fail_open(endpoint, identifier, limit, window, e.message)

        success = count <= limit
        result = RateLimitResult(
            success=success,
            limit=limit,
            remaining=max(0, limit - count),
            reset=reset,
            retry_after=max(0, math.ceil(reset - now)),
        )

        decision = RateLimitDecision.ALLOWED if success else RateLimitDecision.REJECTED
        self._metrics().record_rate_limit_decision(endpoint, decision.value)

        if not success:
            log_stage(
                logger,
                Stage.RATE_LIMITING,
                "Rate limit exceeded",
                level="warning",
                endpoint=endpoint,
                identifier=identifier,
                count=count,
                limit=limit,
                retry_after=result.retry_after,
            )

        return result

    async def get_rate_limit_status(
        self, identifier: str, endpoint: str, limit: int, window: int
    ) -> RateLimitResult:
        """
        Report the current window's usage without counting a request.

        Falls back to a full budget when the counter cannot be read.
        """
        now, window_index, reset = self._window(window)
        count = 0

        if self._unavailable_reason() is None:
            try:
                raw = await self._store.get(self._key(endpoint, identifier, window_index))
                count = int(raw) if raw else 0
            except CacheUnavailableError as e:
                log_stage(
                    logger,
                    Stage.RATE_LIMITING,
                    "Rate limit status unavailable",
                    level="warning",
                    endpoint=endpoint,
                    error=e.message,
                )
            except ValueError:
                log_stage(
                    logger,
                    Stage.RATE_LIMITING,
                    "Rate limit counter is not an integer",
                    level="warning",
                    endpoint=endpoint,
                )

        return RateLimitResult(
            success=count < limit,
            limit=limit,
            remaining=max(0, limit - count),
            reset=reset,
            retry_after=max(0, math.ceil(reset - now)),
        )

    async def reset_rate_limit(self, identifier: str, endpoint: str, window: int) -> bool:
        """
        Delete the current window's counter (admin/testing).

        Returns:
            True if the delete reached the store
        """
        if self._unavailable_reason() is not None:
            return False

        _, window_index, _ = self._window(window)
        try:
            await self._store.delete(self._key(endpoint, identifier, window_index))
        except CacheUnavailableError as e:
            log_stage(
                logger,
                Stage.RATE_LIMITING,
                "Rate limit reset failed",
                level="warning",
                endpoint=endpoint,
                error=e.message,
            )
            return False

        log_stage(logger, Stage.RATE_LIMITING, "Rate limit reset", endpoint=endpoint, identifier=identifier)
        return True


# Global rate limiter
_rate_limiter: RateLimiter | None = None


def get_rate_limiter() -> RateLimiter:
    """Get global rate limiter instance."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = RateLimiter()
    return _rate_limiter


async def check_rate_limit(
    identifier: str, endpoint: str, limit: int, window: int
) -> RateLimitResult:
    return await get_rate_limiter().check_rate_limit(identifier, endpoint, limit, window)


async def get_rate_limit_status(
    identifier: str, endpoint: str, limit: int, window: int
) -> RateLimitResult:
    return await get_rate_limiter().get_rate_limit_status(identifier, endpoint, limit, window)


async def reset_rate_limit(identifier: str, endpoint: str, window: int) -> bool:
    return await get_rate_limiter().reset_rate_limit(identifier, endpoint, window)


def close_rate_limiter() -> None:
    """Drop the global rate limiter (store lifecycle is owned by redis_client)."""
    global _rate_limiter
    _rate_limiter = None
