"""
Cache-Related Exceptions

Errors raised by the store adapter and the cache-aside orchestrator.
"""

from dermi_cache.core.exceptions.base import DermiCacheError


class CacheError(DermiCacheError):
    """Base exception for cache-related errors."""
    pass


class CacheUnavailableError(CacheError):
    """
    Raised when the backing store cannot serve an operation.

    Common causes:
    - Redis server is down or unreachable
    - Authentication failure
    - Operation exceeded the configured timeout
    - Store not configured (no URL / host)

    Callers in this package never let it reach feature code: reads degrade
    to a miss, writes are dropped, rate limit checks allow the request.
    """
    pass


class MalformedCacheEntryError(CacheError):
    """
    Raised when a cached value cannot be deserialized.

    Always absorbed by the orchestrator and treated as a miss.
    """
    pass
