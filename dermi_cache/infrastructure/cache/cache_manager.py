#!/usr/bin/env python3
"""
Cache-Aside Manager

Architecture:
    CacheManager (Public API)
        ├── CacheSerializer (orjson encode / decode, optional pydantic model)
        ├── CacheObserver (hit/miss metrics, Prometheus mirror, logging)
        └── CacheStore (RedisClient in production)

Policy:
    - Read failures (store down, timeout, corrupt entry) are a miss.
    - Write failures are logged and dropped; the computed value is returned.
    - Producer exceptions propagate unchanged and nothing is cached.
    - Concurrent misses on the same key each call the producer. Producers
      must therefore be safe to run more than once for the same input.
"""

import inspect
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any, TypeVar

import orjson
from pydantic import BaseModel, ValidationError

from dermi_cache.core.config.constants import KEY_SEPARATOR, Stage
from dermi_cache.core.config.settings import get_settings
from dermi_cache.core.exceptions import CacheUnavailableError, MalformedCacheEntryError
from dermi_cache.core.interfaces.cache import CacheStore
from dermi_cache.core.keys import truncate_for_log
from dermi_cache.core.logging.logger import get_logger, log_stage
from dermi_cache.infrastructure.cache.redis_client import get_redis_client
from dermi_cache.infrastructure.monitoring.metrics_collector import (
    CacheMetrics,
    MetricsCollector,
    get_cache_metrics,
    get_metrics_collector,
)

logger = get_logger(__name__)

T = TypeVar("T")

Producer = Callable[[], Awaitable[T] | T]


# =============================================================================
# LAYER 1: SERIALIZATION
# =============================================================================


def _encode_default(obj: Any) -> Any:
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json")
    raise TypeError(f"Type is not JSON serializable: {type(obj).__name__}")


class CacheSerializer:
    """
    JSON codec for cached values.

    Producers return JSON-serializable values (dicts, lists, scalars,
    dataclasses) or pydantic models. When a model class is given on read,
    the cached JSON is validated back into that model.
    """

    @staticmethod
    def dumps(value: Any) -> str:
        """
        Raises:
            TypeError: If the value cannot be encoded
        """
        try:
            return orjson.dumps(value, default=_encode_default).decode("utf-8")
        except orjson.JSONEncodeError as e:
            raise TypeError(str(e)) from e

    @staticmethod
    def loads(raw: str | bytes, model: type[BaseModel] | None = None) -> Any:
        """
        Raises:
            MalformedCacheEntryError: If the value is not valid JSON or does
                not validate against ``model``
        """
        try:
            value = orjson.loads(raw)
            if model is not None:
                return model.model_validate(value)
            return value
        except (orjson.JSONDecodeError, ValidationError, TypeError) as e:
            raise MalformedCacheEntryError.from_exception(
                e, "Cached value could not be deserialized"
            ) from e


# =============================================================================
# LAYER 2: OBSERVABILITY
# =============================================================================


def _namespace_of(key: str) -> str:
    return key.split(KEY_SEPARATOR, 1)[0]


class CacheObserver:
    """
    Records every lookup outcome and absorbed failure.

    All side effects (counters, Prometheus, logs) live here so the
    orchestration logic stays readable and testable.
    """

    def __init__(
        self,
        metrics: CacheMetrics | None = None,
        collector: MetricsCollector | None = None,
    ):
        self._metrics = metrics or get_cache_metrics()
        self._collector = collector

    @property
    def metrics(self) -> CacheMetrics:
        return self._metrics

    def _prometheus(self) -> MetricsCollector:
        if self._collector is None:
            self._collector = get_metrics_collector()
        return self._collector

    def hit(self, key: str) -> None:
        self._metrics.record_hit()
        self._prometheus().record_cache_lookup(_namespace_of(key), hit=True)
        log_stage(logger, Stage.CACHE_LOOKUP, "Cache hit", cache_key=truncate_for_log(key, 40))

    def miss(self, key: str) -> None:
        self._metrics.record_miss()
        self._prometheus().record_cache_lookup(_namespace_of(key), hit=False)
        log_stage(logger, Stage.CACHE_LOOKUP, "Cache miss", cache_key=truncate_for_log(key, 40))

    def read_failed(self, key: str, error: CacheUnavailableError) -> None:
        self._prometheus().record_store_error("read")
        log_stage(
            logger,
            Stage.CACHE_LOOKUP,
            "Cache read failed, treating as miss",
            level="warning",
            cache_key=truncate_for_log(key, 40),
            error=error.message,
        )

    def malformed(self, key: str, error: MalformedCacheEntryError) -> None:
        self._prometheus().record_malformed_entry(_namespace_of(key))
        log_stage(
            logger,
            Stage.CACHE_LOOKUP,
            "Malformed cache entry, treating as miss",
            level="warning",
            cache_key=truncate_for_log(key, 40),
            error=error.details.get("original_message", error.message),
        )

    def write_failed(self, key: str, reason: str) -> None:
        self._prometheus().record_store_error("write")
        log_stage(
            logger,
            Stage.CACHE_POPULATE,
            "Cache write failed, result returned uncached",
            level="warning",
            cache_key=truncate_for_log(key, 40),
            error=reason,
        )

    def stored(self, key: str, ttl: int) -> None:
        log_stage(
            logger, Stage.CACHE_POPULATE, "Cache set", cache_key=truncate_for_log(key, 40), ttl=ttl
        )


# =============================================================================
# LAYER 3: PUBLIC API
# =============================================================================


class CacheManager:
    """
    Cache-aside orchestrator over a shared ``CacheStore``.

    Usage:
        cache = CacheManager()

        result = await cache.get_cache_or_set(
            detect_disease_cache_key(photo_data_uri),
            lambda: detect_disease_name(photo_data_uri),
            ttl=CacheTTL.AI_ANALYSIS,
        )

        stats = cache.stats()
    """

    def __init__(
        self,
        store: CacheStore | None = None,
        metrics: CacheMetrics | None = None,
        collector: MetricsCollector | None = None,
        settings=None,
    ):
        """
        Initialize cache manager.

        STAGE-2.0: Cache manager initialization
        """
        settings = settings or get_settings()

        self._store = store or get_redis_client()
        self._serializer = CacheSerializer()
        self._observer = CacheObserver(metrics, collector)

        self._enabled = settings.cache.ENABLE_CACHING
        self._default_ttl = settings.cache.CACHE_DEFAULT_TTL

    def _store_usable(self) -> bool:
        return self._enabled and self._store.is_configured()

    # -------------------------------------------------------------------------
    # Internal steps (each returns a plain result, never raises store errors)
    # -------------------------------------------------------------------------

    async def _lookup(self, key: str, model: type[BaseModel] | None) -> tuple[bool, Any]:
        if not self._store_usable():
            return False, None

        try:
            raw = await self._store.get(key)
        except CacheUnavailableError as e:
            self._observer.read_failed(key, e)
            return False, None

        if raw is None:
            return False, None

        try:
            return True, self._serializer.loads(raw, model)
        except MalformedCacheEntryError as e:
            self._observer.malformed(key, e)
            return False, None

    def _ttl_or_default(self, ttl: int | None) -> int:
        # 0 is an explicit "no expiry"
        return self._default_ttl if ttl is None else ttl

    async def _store_value(self, key: str, value: Any, ttl: int) -> bool:
        if not self._store_usable():
            return False

        try:
            serialized = self._serializer.dumps(value)
        except TypeError as e:
            self._observer.write_failed(key, f"not serializable: {e}")
            return False

        try:
            await self._store.set(key, serialized, ttl)
        except CacheUnavailableError as e:
            self._observer.write_failed(key, e.message)
            return False

        self._observer.stored(key, ttl)
        return True

    @staticmethod
    async def _produce(producer: Producer) -> Any:
        result = producer()
        if inspect.isawaitable(result):
            result = await result
        return result

    # -------------------------------------------------------------------------
    # Cache-aside
    # -------------------------------------------------------------------------

    async def get_cache_or_set(
        self,
        key: str,
        producer: Producer,
        ttl: int | None = None,
        model: type[BaseModel] | None = None,
    ) -> Any:
        """
        Return the cached value for ``key`` or compute, store and return it.

        STAGE-2.0 → 2.1 → 2.2: lookup, produce on miss, populate

        Args:
            key: Cache key (see ``dermi_cache.core.keys``)
            producer: Zero-argument callable, sync or async, doing the
                expensive work. Called at most once per invocation.
            ttl: Entry lifetime in seconds (default: CACHE_DEFAULT_TTL;
                0 stores the entry without expiry)
            model: Optional pydantic model to validate cached hits into

        Returns:
            Cached or freshly produced value

        Raises:
            Whatever ``producer`` raises, unchanged. Nothing is cached then.
        """
        found, value = await self._lookup(key, model)
        if found:
            self._observer.hit(key)
            return value

        self._observer.miss(key)
        value = await self._produce(producer)

        await self._store_value(key, value, self._ttl_or_default(ttl))
        return value

    # -------------------------------------------------------------------------
    # Best-effort helpers
    # -------------------------------------------------------------------------

    async def get(self, key: str, model: type[BaseModel] | None = None) -> Any | None:
        """Cached value or None (absent, unreadable or store down)."""
        _, value = await self._lookup(key, model)
        return value

    async def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """Store a value; False when the write was dropped."""
        return await self._store_value(key, value, self._ttl_or_default(ttl))

    async def delete(self, key: str) -> bool:
        """Delete an entry; False when the store could not be reached."""
        if not self._store_usable():
            return False
        try:
            await self._store.delete(key)
        except CacheUnavailableError as e:
            self._observer.write_failed(key, e.message)
            return False
        return True

    async def exists(self, key: str) -> bool:
        if not self._store_usable():
            return False
        try:
            return await self._store.exists(key) == 1
        except CacheUnavailableError as e:
            self._observer.read_failed(key, e)
            return False

    async def ttl(self, key: str) -> int:
        """Remaining TTL in seconds; -1 without expiry, -2 absent or unreadable."""
        if not self._store_usable():
            return -2
        try:
            return await self._store.ttl(key)
        except CacheUnavailableError as e:
            self._observer.read_failed(key, e)
            return -2

    # -------------------------------------------------------------------------
    # Monitoring
    # -------------------------------------------------------------------------

    def stats(self) -> dict[str, Any]:
        """Hit/miss counters plus configuration flags."""
        return {
            **self._observer.metrics.snapshot().to_dict(),
            "caching_enabled": self._enabled,
            "store_configured": self._store.is_configured(),
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        }

    async def health_check(self) -> dict[str, Any]:
        """Cache status including the store connectivity check."""
        health: dict[str, Any] = {"status": "healthy", "caching_enabled": self._enabled}

        if not self._store.is_configured():
            health["status"] = "degraded"
            health["store"] = {"status": "not_configured"}
        elif await self._store.is_available():
            health["store"] = {"status": "healthy"}
        else:
            health["status"] = "degraded"
            health["store"] = {"status": "unavailable"}

        return health


# =============================================================================
# GLOBAL INSTANCE (SINGLETON PATTERN)
# =============================================================================

_cache_manager: CacheManager | None = None


def get_cache_manager() -> CacheManager:
    """
    Get the global cache manager instance (singleton).

    Returns:
        CacheManager: Global cache manager instance
    """
    global _cache_manager

    if _cache_manager is None:
        _cache_manager = CacheManager()

    return _cache_manager


def close_cache() -> None:
    """Drop the global cache manager (store lifecycle is owned by redis_client)."""
    global _cache_manager
    _cache_manager = None


async def get_cache_or_set(
    key: str,
    producer: Producer,
    *,
    ttl: int | None = None,
    model: type[BaseModel] | None = None,
) -> Any:
    """Module-level shortcut for ``get_cache_manager().get_cache_or_set``."""
    return await get_cache_manager().get_cache_or_set(key, producer, ttl=ttl, model=model)
