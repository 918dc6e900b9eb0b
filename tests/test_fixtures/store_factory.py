"""
Store Test Factory

In-memory stand-ins for the Redis store adapter, driven by a controllable
clock so TTL expiry and window rollover can be tested without sleeping.
"""

from unittest.mock import AsyncMock, MagicMock

from dermi_cache.core.exceptions import CacheUnavailableError


class FakeClock:
    """Callable clock returning epoch seconds; advance it by hand."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class InMemoryCacheStore:
    """
    Dict-backed ``CacheStore`` with TTLs evaluated against ``clock``.

    ``calls`` counts operations by name so tests can assert the store was
    (or was not) touched.
    """

    def __init__(self, clock: FakeClock | None = None, configured: bool = True):
        self.clock = clock or FakeClock()
        self.configured = configured
        self.data: dict[str, str] = {}
        self.expires_at: dict[str, float] = {}
        self.calls: dict[str, int] = {}

    def _count(self, operation: str) -> None:
        self.calls[operation] = self.calls.get(operation, 0) + 1

    def _purge(self, key: str) -> None:
        deadline = self.expires_at.get(key)
        if deadline is not None and self.clock() >= deadline:
            self.data.pop(key, None)
            self.expires_at.pop(key, None)

    def is_configured(self) -> bool:
        return self.configured

    async def is_available(self) -> bool:
        return self.configured

    async def get(self, key):
        self._count("get")
        self._purge(key)
        return self.data.get(key)

    async def set(self, key, value, ttl=None):
        self._count("set")
        self.data[key] = value
        if ttl:
            self.expires_at[key] = self.clock() + ttl
        else:
            self.expires_at.pop(key, None)
        return True

    async def delete(self, *keys):
        self._count("delete")
        removed = 0
        for key in keys:
            self._purge(key)
            if key in self.data:
                del self.data[key]
                self.expires_at.pop(key, None)
                removed += 1
        return removed

    async def exists(self, *keys):
        self._count("exists")
        for key in keys:
            self._purge(key)
        return sum(1 for key in keys if key in self.data)

    async def ttl(self, key):
        self._count("ttl")
        self._purge(key)
        if key not in self.data:
            return -2
        if key not in self.expires_at:
            return -1
        return int(self.expires_at[key] - self.clock())

    async def incr_with_ttl(self, key, ttl_if_new):
        self._count("incr_with_ttl")
        self._purge(key)
        count = int(self.data.get(key, 0)) + 1
        self.data[key] = str(count)
        if count == 1:
            self.expires_at[key] = self.clock() + ttl_if_new
        return count


class StoreTestFactory:
    """Factory for store doubles."""

    @staticmethod
    def failing_store(message: str = "Redis connection refused") -> MagicMock:
        """A configured store whose every operation raises CacheUnavailableError."""
        error = CacheUnavailableError(message)

        store = MagicMock()
        store.is_configured = MagicMock(return_value=True)
        store.is_available = AsyncMock(return_value=False)
        for operation in ("get", "set", "delete", "exists", "ttl", "incr_with_ttl"):
            setattr(store, operation, AsyncMock(side_effect=error))
        return store

    @staticmethod
    def unconfigured_store() -> InMemoryCacheStore:
        return InMemoryCacheStore(configured=False)
