"""
Cached AI Analysis Flows

Wraps the model calls of the skin-analysis pipeline with cache-aside
lookups, and the final evaluation with the per-user AI budget.

- Condition detection is keyed by the image alone.
- Final evaluation is keyed by the image plus a digest of the
  questionnaire answers, so changed answers always reach the model.

Both results are kept for CACHE_AI_ANALYSIS_TTL (30 days by default). Model
failures propagate to the caller and are never cached.
"""

import math
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import BaseModel

from dermi_cache.core.config.constants import ENDPOINT_AI_FINAL_EVALUATION, Stage
from dermi_cache.core.config.settings import get_settings
from dermi_cache.core.exceptions import RateLimitExceededError
from dermi_cache.core.keys import (
    detect_disease_cache_key,
    final_evaluation_cache_key,
    truncate_for_log,
)
from dermi_cache.core.logging.logger import get_logger, log_stage
from dermi_cache.infrastructure.cache.cache_manager import CacheManager, get_cache_manager
from dermi_cache.rate_limiting.rate_limiter import (
    RateLimiter,
    RateLimitPresets,
    RateLimitResult,
    get_rate_limiter,
)

logger = get_logger(__name__)


def _limit_message(result: RateLimitResult) -> str:
    minutes = max(1, math.ceil(result.retry_after / 60))
    return (
        f"Rate limit exceeded. You can make {result.limit} AI analyses per hour. "
        f"Please try again in {minutes} minutes."
    )


class AIAnalysisCache:
    """
    Cached entry points for the AI flows.

    Usage:
        ai_cache = AIAnalysisCache()
        result = await ai_cache.final_evaluation(
            photo_data_uri, user_answers, evaluate, user_id="user1"
        )
    """

    def __init__(
        self,
        cache: CacheManager | None = None,
        limiter: RateLimiter | None = None,
        settings=None,
    ):
        settings = settings or get_settings()
        self._cache = cache
        self._limiter = limiter
        self._ttl = settings.cache.CACHE_AI_ANALYSIS_TTL

    @property
    def cache(self) -> CacheManager:
        return self._cache or get_cache_manager()

    @property
    def limiter(self) -> RateLimiter:
        return self._limiter or get_rate_limiter()

    async def _enforce_ai_budget(self, user_id: str) -> None:
        preset = RateLimitPresets.AI_ANALYSIS
        result = await self.limiter.check_rate_limit(
            user_id, ENDPOINT_AI_FINAL_EVALUATION, preset.limit, preset.window
        )
        if not result.success:
            raise RateLimitExceededError(
                _limit_message(result),
                limit=result.limit,
                reset=result.reset,
                retry_after=result.retry_after,
                details={"endpoint": ENDPOINT_AI_FINAL_EVALUATION},
            )

    async def detect_disease_name(
        self,
        photo_data_uri: str,
        producer: Callable[[str], Awaitable[Any]],
        user_id: str | None = None,
        model: type[BaseModel] | None = None,
    ) -> Any:
        """
        Condition name for an image, from cache or the model.

        Args:
            photo_data_uri: Image as a data URI
            producer: Model call, invoked with the data URI on a miss
            user_id: Caller, for log correlation
            model: Optional pydantic model to validate cached hits into
        """
        key = detect_disease_cache_key(photo_data_uri)
        log_stage(
            logger,
            Stage.KEY_DERIVATION,
            "Detect disease lookup",
            cache_key=truncate_for_log(key, 40),
            user_id=user_id,
        )

        async def call_model():
            log_stage(
                logger,
                Stage.CACHE_PRODUCE,
                "Calling model for disease detection",
                image=truncate_for_log(photo_data_uri),
            )
            return await producer(photo_data_uri)

        return await self.cache.get_cache_or_set(key, call_model, ttl=self._ttl, model=model)

    async def final_evaluation(
        self,
        photo_data_uri: str,
        user_answers: str,
        producer: Callable[[str, str], Awaitable[Any]],
        user_id: str | None = None,
        model: type[BaseModel] | None = None,
    ) -> Any:
        """
        Final evaluation for an image and questionnaire answers.

        When ``user_id`` is given, the call counts against the AI analysis
        budget first, even if the answer is cached.

        Raises:
            RateLimitExceededError: If the user exhausted the AI budget
        """
        if user_id:
            await self._enforce_ai_budget(user_id)

        key = final_evaluation_cache_key(photo_data_uri, user_answers)
        log_stage(
            logger,
            Stage.KEY_DERIVATION,
            "Final evaluation lookup",
            cache_key=truncate_for_log(key, 40),
            user_id=user_id,
        )

        async def call_model():
            log_stage(
                logger,
                Stage.CACHE_PRODUCE,
                "Calling model for final evaluation",
                answers_length=len(user_answers),
            )
            return await producer(photo_data_uri, user_answers)

        return await self.cache.get_cache_or_set(key, call_model, ttl=self._ttl, model=model)


_ai_cache: AIAnalysisCache | None = None


def get_ai_analysis_cache() -> AIAnalysisCache:
    global _ai_cache
    if _ai_cache is None:
        _ai_cache = AIAnalysisCache()
    return _ai_cache


async def detect_disease_name_cached(
    photo_data_uri: str,
    producer: Callable[[str], Awaitable[Any]],
    user_id: str | None = None,
    model: type[BaseModel] | None = None,
) -> Any:
    return await get_ai_analysis_cache().detect_disease_name(
        photo_data_uri, producer, user_id=user_id, model=model
    )


async def final_evaluation_cached(
    photo_data_uri: str,
    user_answers: str,
    producer: Callable[[str, str], Awaitable[Any]],
    user_id: str | None = None,
    model: type[BaseModel] | None = None,
) -> Any:
    return await get_ai_analysis_cache().final_evaluation(
        photo_data_uri, user_answers, producer, user_id=user_id, model=model
    )
