"""
Redis Store Adapter with Connection Pooling

Architecture:
    RedisClient (Public API, implements CacheStore)
        ├── ConnectionManager (Connection lifecycle)
        ├── OperationExecutor (Command execution, timeouts, error mapping)
        └── HealthMonitor (Health checks and pool metrics)

Failure semantics:
    Every Redis error and every operation exceeding REDIS_OPERATION_TIMEOUT is
    logged and re-raised as CacheUnavailableError. The adapter takes no policy
    decision: the cache-aside orchestrator and the rate limiter decide to
    fail open.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import RedisError

from dermi_cache.core.config.constants import Stage
from dermi_cache.core.config.settings import get_settings
from dermi_cache.core.exceptions import CacheUnavailableError
from dermi_cache.core.logging.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

# Errors that mean "the store could not answer", as opposed to programming errors
STORE_ERRORS = (RedisError, OSError, asyncio.TimeoutError)

# INCR and EXPIRE-if-new in one server-side step. Splitting them across two
# calls would let concurrent processes undercount or leave immortal counters.
INCR_WITH_TTL_SCRIPT = """
local count = redis.call('INCR', KEYS[1])
if count == 1 then
    redis.call('EXPIRE', KEYS[1], ARGV[1])
end
return count
"""


# =============================================================================
# LAYER 1: CONNECTION MANAGEMENT
# =============================================================================


class ConnectionManager:
    """
    Manages Redis connection lifecycle and pooling.

    The pool is created lazily on first use. A failed ping at startup does
    not discard the client: redis-py reconnects on the next command, so the
    store recovers by itself once Redis is back.
    """

    def __init__(self, settings):
        self._settings = settings
        self._pool: ConnectionPool | None = None
        self._client: redis.Redis | None = None
        self._is_connected = False

    def is_configured(self) -> bool:
        """Whether Redis is enabled and has an endpoint."""
        cfg = self._settings.redis
        return bool(cfg.REDIS_ENABLED and (cfg.REDIS_URL or cfg.REDIS_HOST))

    def _build_pool(self) -> ConnectionPool:
        cfg = self._settings.redis
        options = {
            "max_connections": cfg.REDIS_MAX_CONNECTIONS,
            "socket_timeout": cfg.REDIS_SOCKET_TIMEOUT,
            "socket_connect_timeout": cfg.REDIS_SOCKET_CONNECT_TIMEOUT,
            "health_check_interval": cfg.REDIS_HEALTH_CHECK_INTERVAL,
            "retry_on_timeout": True,
            "decode_responses": True,  # Return strings instead of bytes
        }
        if cfg.REDIS_URL:
            return ConnectionPool.from_url(cfg.REDIS_URL, **options)
        return ConnectionPool(
            host=cfg.REDIS_HOST,
            port=cfg.REDIS_PORT,
            db=cfg.REDIS_DB,
            password=cfg.REDIS_PASSWORD,
            **options,
        )

    def get_or_create_client(self) -> redis.Redis:
        """
        Return the pooled client, creating it on first use.

        Raises:
            CacheUnavailableError: If Redis is not configured
        """
        if self._client is not None:
            return self._client

        if not self.is_configured():
            raise CacheUnavailableError(
                "Redis is not configured",
                details={"hint": "Set REDIS_URL or REDIS_HOST and REDIS_ENABLED=true"},
            )

        self._pool = self._build_pool()
        self._client = redis.Redis(connection_pool=self._pool)
        return self._client

    async def connect(self) -> redis.Redis:
        """
        Create the pool and verify connectivity with PING.

        STAGE-S.1: Connection establishment

        Raises:
            CacheUnavailableError: If Redis is not configured or unreachable
        """
        client = self.get_or_create_client()
        timeout = self._settings.redis.REDIS_OPERATION_TIMEOUT

        try:
            await asyncio.wait_for(client.ping(), timeout=timeout)
        except STORE_ERRORS as e:
            self._is_connected = False
            logger.warning("Redis ping failed during connect", stage=Stage.STORE.value, error=str(e))
            raise CacheUnavailableError.from_exception(e, "Failed to connect to Redis") from e

        self._is_connected = True
        logger.info("Redis connected successfully", stage=Stage.STORE.value)
        return client

    async def disconnect(self) -> None:
        """
        Close client and pool.

        STAGE-S.2: Connection cleanup
        """
        if self._client is not None:
            await self._client.aclose()
        if self._pool is not None:
            await self._pool.disconnect()

        self._client = None
        self._pool = None
        self._is_connected = False

        logger.info("Redis disconnected", stage=Stage.STORE.value)

    async def ping(self) -> bool:
        """Check connectivity. Never raises."""
        try:
            client = self.get_or_create_client()
            await asyncio.wait_for(
                client.ping(), timeout=self._settings.redis.REDIS_OPERATION_TIMEOUT
            )
        except (CacheUnavailableError, *STORE_ERRORS):
            self._is_connected = False
            return False
        self._is_connected = True
        return True

    def get_client(self) -> redis.Redis | None:
        return self._client

    def get_pool(self) -> ConnectionPool | None:
        return self._pool

    def is_connected(self) -> bool:
        return self._is_connected


# =============================================================================
# LAYER 2: OPERATION EXECUTOR
# =============================================================================


class OperationExecutor:
    """
    Executes Redis operations with a bounded timeout and consistent errors.

    Error Handling Strategy:
    - Catch RedisError, socket errors and timeouts
    - Log with operation name and key
    - Raise CacheUnavailableError with details
    """

    def __init__(self, redis_client: redis.Redis, timeout: float):
        self._redis = redis_client
        self._timeout = timeout
        self._incr_script = redis_client.register_script(INCR_WITH_TTL_SCRIPT)

    async def _run(self, operation: str, call: Callable[[], Awaitable[T]], **context) -> T:
        try:
            return await asyncio.wait_for(call(), timeout=self._timeout)
        except STORE_ERRORS as e:
            logger.error(
                f"Redis {operation} failed",
                stage=Stage.STORE.value,
                operation=operation,
                error_type=type(e).__name__,
                error=str(e),
                **context,
            )
            raise CacheUnavailableError.from_exception(
                e, f"Redis {operation} failed", operation=operation, **context
            ) from e

    async def get(self, key: str) -> str | None:
        return await self._run("GET", lambda: self._redis.get(key), key=key)

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        result = await self._run("SET", lambda: self._redis.set(key, value, ex=ttl or None), key=key)
        return bool(result)

    async def delete(self, *keys: str) -> int:
        return await self._run("DEL", lambda: self._redis.delete(*keys), keys=list(keys))

    async def exists(self, *keys: str) -> int:
        return await self._run("EXISTS", lambda: self._redis.exists(*keys), keys=list(keys))

    async def ttl(self, key: str) -> int:
        return await self._run("TTL", lambda: self._redis.ttl(key), key=key)

    async def incr_with_ttl(self, key: str, ttl_if_new: int) -> int:
        result = await self._run(
            "INCR",
            lambda: self._incr_script(keys=[key], args=[int(ttl_if_new)]),
            key=key,
        )
        return int(result)


# =============================================================================
# LAYER 3: HEALTH MONITORING
# =============================================================================


class HealthMonitor:
    """
    Reports store health and connection pool utilization.

    Pool utilization above 80% is flagged as a warning.
    """

    def __init__(self, connection_manager: ConnectionManager, settings):
        self._conn_mgr = connection_manager
        self._settings = settings

    async def health_check(self) -> dict[str, Any]:
        """
        Perform health check on the Redis connection.

        Returns:
            Dict with status, ping latency and pool metrics
        """
        health: dict[str, Any] = {
            "status": "healthy",
            "configured": self._conn_mgr.is_configured(),
            "connected": self._conn_mgr.is_connected(),
            "pool_size": 0,
            "pool_utilization_pct": 0.0,
            "pool_warning": False,
            "ping_latency_ms": None,
        }

        if not health["configured"]:
            health["status"] = "not_configured"
            return health

        start = time.perf_counter()
        if not await self._conn_mgr.ping():
            health["status"] = "unhealthy"
            health["connected"] = False
            return health

        health["connected"] = True
        health["ping_latency_ms"] = round((time.perf_counter() - start) * 1000, 2)

        pool = self._conn_mgr.get_pool()
        if pool is not None:
            health["pool_size"] = pool.max_connections
            in_use = len(getattr(pool, "_in_use_connections", ()))
            utilization = 100.0 * in_use / pool.max_connections if pool.max_connections else 0.0
            health["pool_utilization_pct"] = round(utilization, 1)
            if utilization > 80:
                health["pool_warning"] = True
                logger.warning(
                    "Redis pool utilization high",
                    pool_utilization=utilization,
                    max_connections=pool.max_connections,
                )

        return health


# =============================================================================
# LAYER 4: PUBLIC API
# =============================================================================


class RedisClient:
    """
    Async Redis store adapter implementing ``CacheStore``.

    Usage:
        client = RedisClient()
        await client.connect()          # optional; operations connect lazily

        await client.set("detect-disease:ab12", '{"conditionName": "eczema"}', ttl=60)
        value = await client.get("detect-disease:ab12")
        count = await client.incr_with_ttl("ratelimit:ai:user1:487", 3600)

        await client.disconnect()
    """

    def __init__(self, settings=None):
        """
        Initialize Redis client.

        STAGE-S.0: Client initialization
        """
        self._settings = settings or get_settings()
        self._conn_mgr = ConnectionManager(self._settings)
        self._executor: OperationExecutor | None = None
        self._health_monitor = HealthMonitor(self._conn_mgr, self._settings)

    def is_configured(self) -> bool:
        return self._conn_mgr.is_configured()

    async def connect(self) -> None:
        """
        Establish connection with PING.

        Raises:
            CacheUnavailableError: If Redis is not configured or unreachable
        """
        await self._conn_mgr.connect()
        self._get_executor()

    async def disconnect(self) -> None:
        await self._conn_mgr.disconnect()
        self._executor = None

    async def is_available(self) -> bool:
        """Connectivity check (PING). Never raises."""
        return await self._conn_mgr.ping()

    def _get_executor(self) -> OperationExecutor:
        if self._executor is None:
            client = self._conn_mgr.get_or_create_client()
            self._executor = OperationExecutor(
                client, timeout=self._settings.redis.REDIS_OPERATION_TIMEOUT
            )
        return self._executor

    # -------------------------------------------------------------------------
    # Delegate to OperationExecutor
    # -------------------------------------------------------------------------

    async def get(self, key: str) -> str | None:
        """Get value from Redis."""
        return await self._get_executor().get(key)

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        """Set value in Redis."""
        return await self._get_executor().set(key, value, ttl)

    async def delete(self, *keys: str) -> int:
        """Delete keys from Redis."""
        return await self._get_executor().delete(*keys)

    async def exists(self, *keys: str) -> int:
        """Check if keys exist in Redis."""
        return await self._get_executor().exists(*keys)

    async def ttl(self, key: str) -> int:
        """Get TTL of a key."""
        return await self._get_executor().ttl(key)

    async def incr_with_ttl(self, key: str, ttl_if_new: int) -> int:
        """Atomically increment a counter, setting its TTL when created."""
        return await self._get_executor().incr_with_ttl(key, ttl_if_new)

    async def health_check(self) -> dict[str, Any]:
        """Perform health check on Redis connection."""
        return await self._health_monitor.health_check()


# =============================================================================
# GLOBAL INSTANCE (SINGLETON PATTERN)
# =============================================================================

_redis_client: RedisClient | None = None


def get_redis_client() -> RedisClient:
    """
    Get the global Redis client instance (singleton).

    Returns:
        RedisClient: Global Redis client instance
    """
    global _redis_client

    if _redis_client is None:
        _redis_client = RedisClient()

    return _redis_client


async def init_redis() -> RedisClient:
    """
    Connect the global Redis client.

    An unreachable or unconfigured store is logged, not raised: the service
    starts in degraded mode and computes everything fresh.
    """
    client = get_redis_client()
    try:
        await client.connect()
    except CacheUnavailableError as e:
        logger.warning(
            "Redis unavailable at startup, running without cache",
            stage=Stage.INITIALIZATION.value,
            error=e.message,
        )
    return client


async def close_redis() -> None:
    """Close the global Redis client."""
    global _redis_client

    if _redis_client:
        await _redis_client.disconnect()
        _redis_client = None
