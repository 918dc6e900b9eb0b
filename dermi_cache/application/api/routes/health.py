"""
Health Check Routes

- ``GET /health``: liveness plus a store connectivity check. Always 200; a missing or
  unreachable Redis only degrades the service, since caching and rate
  limiting fail open.
- ``GET /health/ready``: 503 while a configured Redis does not answer, for
  load balancers that should prefer instances with a working cache.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from dermi_cache.application.api.dependencies import CacheManagerDep, RedisClientDep

router = APIRouter(prefix="/health", tags=["Health"])


class HealthResponse(BaseModel):
    """Standard health check response model."""

    status: str  # "healthy" or "degraded"
    timestamp: str  # ISO 8601
    components: dict | None = None


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@router.get("", response_model=HealthResponse)
async def health_check(redis_client: RedisClientDep, cache: CacheManagerDep):
    """Quick health check with Redis connectivity and cache counters."""
    redis_health = await redis_client.health_check()
    status = "healthy" if redis_health["status"] == "healthy" else "degraded"

    return HealthResponse(
        status=status,
        timestamp=_now(),
        components={
            "redis": redis_health,
            "cache": cache.stats(),
        },
    )


@router.get("/ready")
async def readiness_probe(redis_client: RedisClientDep):
    """
    Raises:
        HTTPException: 503 if a configured Redis is unreachable
    """
    redis_health = await redis_client.health_check()
    result = {"status": "ready", "timestamp": _now(), "redis": redis_health["status"]}

    if redis_health["status"] == "unhealthy":
        result["status"] = "not_ready"
        raise HTTPException(status_code=503, detail=result)

    return result
