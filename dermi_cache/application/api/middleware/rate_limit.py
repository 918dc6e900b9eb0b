"""
Rate Limit Decorator for FastAPI Handlers

Wraps a route handler so every call is counted against a preset budget
before the handler runs.

    @router.post("/analyze")
    @with_rate_limit(RateLimitPresets.AI_ANALYSIS)
    async def analyze(request: Request):
        ...

The handler must declare a ``Request`` parameter; FastAPI injects it and the
decorator reads identity headers from it. ``functools.wraps`` keeps the
handler's signature visible to FastAPI, so path/query/body parameters keep
working.

Behaviour:
- rejected: 429 JSON body with limit, remaining, reset and retry_after,
  plus ``Retry-After`` and ``X-RateLimit-*`` headers. The handler is not run.
- allowed: the handler runs; plain return values become a JSONResponse and
  the ``X-RateLimit-*`` headers are attached.
- store trouble: the limiter fails open, the handler runs.
- handler exceptions propagate unchanged.
"""

import functools
import inspect
import math
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from dermi_cache.core.config.constants import (
    HEADER_FORWARDED_FOR,
    HEADER_REAL_IP,
    HEADER_RETRY_AFTER,
    HEADER_USER_ID,
)
from dermi_cache.core.config.settings import get_settings
from dermi_cache.core.logging.logger import get_logger
from dermi_cache.rate_limiting.rate_limiter import (
    RateLimiter,
    RateLimitPreset,
    RateLimitPresets,
    RateLimitResult,
    get_preset,
    get_rate_limiter,
)

logger = get_logger(__name__)

IdentifierFunc = Callable[[Request], Awaitable[str] | str]
LimitExceededHandler = Callable[[Request, RateLimitResult], Awaitable[Response] | Response]

AI_ANALYSIS_LIMIT_MESSAGE = (
    "You have reached the maximum number of AI analyses per hour. Please try again later."
)
FILE_UPLOAD_LIMIT_MESSAGE = "You have uploaded too many files. Please try again later."


def get_client_identifier(request: Request) -> str:
    """
    Extract the caller identity used as the rate limit key.

    Priority: X-User-ID header > first X-Forwarded-For hop (when proxies are
    trusted) > X-Real-IP > socket peer address > "unknown"
    """
    user_id = request.headers.get(HEADER_USER_ID)
    if user_id:
        return f"user:{user_id.strip()}"

    if get_settings().rate_limit.RATE_LIMIT_TRUST_FORWARDED_FOR:
        forwarded_for = request.headers.get(HEADER_FORWARDED_FOR)
        if forwarded_for:
            first_hop = forwarded_for.split(",")[0].strip()
            if first_hop:
                return f"ip:{first_hop}"

    real_ip = request.headers.get(HEADER_REAL_IP)
    if real_ip:
        return f"ip:{real_ip.strip()}"

    if request.client and request.client.host:
        return f"ip:{request.client.host}"

    return "unknown"


def format_retry_message(retry_after: int) -> str:
    """Human-readable wait, rounded up to whole minutes."""
    minutes = max(1, math.ceil(retry_after / 60))
    unit = "minute" if minutes == 1 else "minutes"
    return f"Too many requests. Please try again in {minutes} {unit}."


def rate_limit_exceeded_response(result: RateLimitResult, message: str | None = None) -> JSONResponse:
    """Build the 429 response for a rejected request."""
    response = JSONResponse(
        status_code=429,
        content={
            "error": "rate_limit_exceeded",
            "message": message or format_retry_message(result.retry_after),
            "limit": result.limit,
            "remaining": 0,
            "reset": result.reset,
            "retry_after": result.retry_after,
        },
    )
    response.headers.update(result.headers())
    response.headers[HEADER_RETRY_AFTER] = str(result.retry_after)
    return response


def route_template(request: Request) -> str:
    """
    Path template of the matched route (``/items/{item_id}``), or the raw
    path when routing has not matched yet.

    Used as the default counter name so path parameters do not split one
    endpoint into many counters and metric series.
    """
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


def _find_request(args: tuple, kwargs: dict) -> Request | None:
    for value in (*args, *kwargs.values()):
        if isinstance(value, Request):
            return value
    return None


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def with_rate_limit(
    preset: RateLimitPreset | str,
    *,
    endpoint: str | None = None,
    identifier: IdentifierFunc | None = None,
    on_limit_exceeded: LimitExceededHandler | None = None,
    message: str | None = None,
    limiter: RateLimiter | None = None,
) -> Callable:
    """
    Create a rate limit decorator.

    Args:
        preset: RateLimitPreset or preset name ("ai_analysis")
        endpoint: Counter name (default: the matched route template)
        identifier: Caller identity extractor, sync or async
            (default: get_client_identifier)
        on_limit_exceeded: Custom response factory for rejected requests
        message: Custom 429 message (default: wait time in minutes)
        limiter: RateLimiter to use (default: the global one)
    """
    if isinstance(preset, str):
        preset = get_preset(preset)
    identify = identifier or get_client_identifier

    def decorator(handler: Callable) -> Callable:
        @functools.wraps(handler)
        async def wrapper(*args, **kwargs):
            request = _find_request(args, kwargs)
            if request is None:
                raise TypeError(
                    f"{handler.__name__} must accept a Request parameter to be rate limited"
                )

            caller = await _maybe_await(identify(request))
            result = await (limiter or get_rate_limiter()).check_rate_limit(
                caller,
                endpoint or route_template(request),
                preset.limit,
                preset.window,
            )

            if not result.success:
                if on_limit_exceeded is not None:
                    return await _maybe_await(on_limit_exceeded(request, result))
                return rate_limit_exceeded_response(result, message)

            response = await _maybe_await(handler(*args, **kwargs))
            if not isinstance(response, Response):
                response = JSONResponse(content=jsonable_encoder(response))

            response.headers.update(result.headers())
            return response

        return wrapper

    return decorator


class RateLimitMiddleware:
    """
    Preset shortcuts.

    Usage:
        @router.post("/upload")
        @RateLimitMiddleware.file_upload()
        async def upload(request: Request):
            ...
    """

    @staticmethod
    def ai_analysis(**kwargs) -> Callable:
        kwargs.setdefault("message", AI_ANALYSIS_LIMIT_MESSAGE)
        return with_rate_limit(RateLimitPresets.AI_ANALYSIS, **kwargs)

    @staticmethod
    def file_upload(**kwargs) -> Callable:
        kwargs.setdefault("message", FILE_UPLOAD_LIMIT_MESSAGE)
        return with_rate_limit(RateLimitPresets.FILE_UPLOAD, **kwargs)

    @staticmethod
    def api_default(**kwargs) -> Callable:
        return with_rate_limit(RateLimitPresets.API_DEFAULT, **kwargs)

    @staticmethod
    def strict(**kwargs) -> Callable:
        return with_rate_limit(RateLimitPresets.STRICT, **kwargs)

    @staticmethod
    def generous(**kwargs) -> Callable:
        return with_rate_limit(RateLimitPresets.GENEROUS, **kwargs)
