"""
Cache Module

Cache-aside orchestration over a shared Redis store.
"""

from .cache_manager import (
    CacheManager,
    CacheSerializer,
    close_cache,
    get_cache_manager,
    get_cache_or_set,
)
from .redis_client import (
    RedisClient,
    close_redis,
    get_redis_client,
    init_redis,
)

__all__ = [
    "CacheManager",
    "CacheSerializer",
    "close_cache",
    "get_cache_manager",
    "get_cache_or_set",
    "RedisClient",
    "close_redis",
    "get_redis_client",
    "init_redis",
]
