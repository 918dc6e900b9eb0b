"""
Diagnostic Routes

Operational endpoints for checking the caching layer end to end.

- ``GET /cache/test``: write, read back and delete a short-lived entry
- ``GET|POST /rate-limit/test``: a handler behind the generous preset, for
  watching the ``X-RateLimit-*`` headers count down
- ``GET /metrics``: Prometheus scrape endpoint
"""

import time
from datetime import datetime, timezone

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse

from dermi_cache.application.api.dependencies import (
    CacheManagerDep,
    CacheMetricsDep,
    MetricsCollectorDep,
    SettingsDep,
)
from dermi_cache.application.api.middleware.rate_limit import RateLimitMiddleware
from dermi_cache.core.config.constants import NAMESPACE_TEST
from dermi_cache.core.keys import build_cache_key
from dermi_cache.core.logging.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["Diagnostics"])


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


# ============================================================================
# CACHE
# ============================================================================


@router.get("/cache/test")
async def cache_round_trip(
    cache: CacheManagerDep, cache_metrics: CacheMetricsDep, settings: SettingsDep
):
    """
    Round-trip a test entry through Redis.

    HTTP Status Codes:
        200: Entry written and read back
        500: Redis unavailable (write was dropped)
    """
    test_key = build_cache_key(NAMESPACE_TEST, int(time.time() * 1000))
    test_value = {"message": "Redis is working!", "timestamp": _now()}

    written = await cache.set(test_key, test_value, ttl=settings.cache.CACHE_TEST_TTL)
    if not written:
        logger.warning("Cache round-trip failed", cache_key=test_key)
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "message": "Redis test failed",
                "error": "Cache store is unavailable or not configured",
            },
        )

    read_back = await cache.get(test_key)
    await cache.delete(test_key)

    snapshot = cache_metrics.snapshot()
    return {
        "success": True,
        "message": "Redis connection successful",
        "test": {
            "written": test_value,
            "read": read_back,
            "match": read_back == test_value,
        },
        "metrics": {
            "hits": snapshot.hits,
            "misses": snapshot.misses,
            "total": snapshot.total,
            "hit_rate": f"{snapshot.hit_rate * 100:.2f}%",
        },
    }


# ============================================================================
# RATE LIMITING
# ============================================================================


@router.get("/rate-limit/test")
@RateLimitMiddleware.generous()
async def rate_limit_test(request: Request):
    """Rate limited GET; inspect the X-RateLimit-* response headers."""
    return {
        "success": True,
        "message": "Rate limit test successful",
        "timestamp": _now(),
    }


@router.post("/rate-limit/test")
@RateLimitMiddleware.generous()
async def rate_limit_test_post(request: Request):
    """Rate limited POST, echoing the JSON body when there is one."""
    try:
        body = await request.json()
    except ValueError:
        body = None

    return {
        "success": True,
        "message": "Rate limit test successful",
        "data": body,
        "timestamp": _now(),
    }


# ============================================================================
# METRICS
# ============================================================================


@router.get("/metrics")
async def prometheus_metrics(metrics_collector: MetricsCollectorDep):
    """Expose metrics in Prometheus text format for scraping."""
    return Response(
        content=metrics_collector.get_prometheus_metrics(),
        media_type=metrics_collector.get_content_type(),
    )
