"""
FastAPI Dependencies

Reusable providers for the process-wide singletons. Route handlers declare
them with the ``*Dep`` aliases; tests swap them through
``app.dependency_overrides``.

Example:
    @router.get("/cache/stats")
    async def cache_stats(cache: CacheManagerDep):
        return cache.stats()
"""

from typing import Annotated

from fastapi import Depends

from dermi_cache.core.config.settings import Settings, get_settings
from dermi_cache.infrastructure.cache.cache_manager import CacheManager, get_cache_manager
from dermi_cache.infrastructure.cache.redis_client import RedisClient, get_redis_client
from dermi_cache.infrastructure.monitoring.metrics_collector import (
    CacheMetrics,
    MetricsCollector,
    get_cache_metrics,
    get_metrics_collector,
)

SettingsDep = Annotated[Settings, Depends(get_settings)]
CacheManagerDep = Annotated[CacheManager, Depends(get_cache_manager)]
RedisClientDep = Annotated[RedisClient, Depends(get_redis_client)]
CacheMetricsDep = Annotated[CacheMetrics, Depends(get_cache_metrics)]
MetricsCollectorDep = Annotated[MetricsCollector, Depends(get_metrics_collector)]

__all__ = [
    "SettingsDep",
    "CacheManagerDep",
    "RedisClientDep",
    "CacheMetricsDep",
    "MetricsCollectorDep",
]
