"""
Cache Store Protocol

The minimal key/value interface the cache-aside orchestrator and the rate
limiter depend on. ``RedisClient`` is the production implementation; tests
inject in-memory or failing stores.

Architectural Decision: Protocol-based abstraction
- Dependency injection for testability
- Orchestrator and limiter never import redis directly
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class CacheStore(Protocol):
    """
    Interface for a remote key/value store with TTL and atomic counters.

    Every operation is a network round-trip. Implementations raise
    ``CacheUnavailableError`` for any transport, auth or timeout failure and
    never let raw client exceptions escape.
    """

    def is_configured(self) -> bool:
        """Whether a store endpoint is configured at all."""
        ...

    async def is_available(self) -> bool:
        """Connectivity check (PING). Never raises."""
        ...

    async def get(self, key: str) -> str | None:
        """
        Get a value.

        Returns:
            Stored value or None when absent or expired
        """
        ...

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        """Store a value, expiring after ``ttl`` seconds; None or 0 never expires."""
        ...

    async def delete(self, *keys: str) -> int:
        """Delete keys; returns the number removed."""
        ...

    async def exists(self, *keys: str) -> int:
        """Number of the given keys that exist."""
        ...

    async def ttl(self, key: str) -> int:
        """Remaining TTL in seconds; -1 without expiry, -2 when absent."""
        ...

    async def incr_with_ttl(self, key: str, ttl_if_new: int) -> int:
        """
        Atomically increment a counter in a single round-trip.

        The TTL is applied only when this increment created the key, which
        bounds a counter's lifetime to one window.

        Returns:
            Counter value after the increment
        """
        ...
