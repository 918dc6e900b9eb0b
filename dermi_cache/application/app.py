#!/usr/bin/env python3
"""
FastAPI Application Entry Point

Configures the caching and rate limiting service: lifespan (Redis connect
and disconnect), middleware, exception handlers and routes.
"""

import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from dermi_cache.application.api.middleware.error_handler import ErrorHandlingMiddleware
from dermi_cache.application.api.routes.diagnostics import router as diagnostics_router
from dermi_cache.application.api.routes.health import router as health_router
from dermi_cache.core.config.constants import (
    HEADER_RATE_LIMIT,
    HEADER_RATE_REMAINING,
    HEADER_RATE_RESET,
    HEADER_REQUEST_ID,
    HEADER_RETRY_AFTER,
    Stage,
)
from dermi_cache.core.config.settings import get_settings
from dermi_cache.core.exceptions import DermiCacheError, RateLimitExceededError
from dermi_cache.core.logging.logger import (
    clear_request_id,
    get_logger,
    log_stage,
    set_request_id,
    setup_logging,
)
from dermi_cache.infrastructure.cache.cache_manager import close_cache
from dermi_cache.infrastructure.cache.redis_client import close_redis, init_redis
from dermi_cache.rate_limiting.rate_limiter import close_rate_limiter

logger = get_logger(__name__)


# ============================================================================
# Application Lifespan
# ============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifecycle (startup and shutdown).

    A Redis outage at startup is not fatal: the store reconnects lazily and
    the cache and limiter fail open meanwhile.
    """
    settings = get_settings()

    setup_logging(log_level=settings.logging.LOG_LEVEL, log_format=settings.logging.LOG_FORMAT)

    logger.info(
        "Starting DermiAssist cache service",
        environment=settings.app.ENVIRONMENT,
        version=settings.app.APP_VERSION,
    )

    try:
        await init_redis()
        logger.info("Application startup complete")

        yield

    finally:
        log_stage(logger, Stage.CLEANUP, "Shutting down application")

        close_cache()
        close_rate_limiter()
        await close_redis()

        log_stage(logger, Stage.CLEANUP, "Application shutdown complete")


# ============================================================================
# Middleware
# ============================================================================


async def request_id_middleware(request: Request, call_next):
    """
    Inject a request ID into all requests for log correlation.
    """
    request_id = request.headers.get(HEADER_REQUEST_ID) or str(uuid.uuid4())
    set_request_id(request_id)

    try:
        response = await call_next(request)
        response.headers[HEADER_REQUEST_ID] = request_id
        return response

    finally:
        clear_request_id()


# ============================================================================
# Exception Handlers
# ============================================================================


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceededError):
    """Map a service-level rate limit rejection to 429."""
    logger.warning("Rate limit exceeded", path=request.url.path, retry_after=exc.retry_after)

    return JSONResponse(
        status_code=429,
        content={
            "error": "rate_limit_exceeded",
            "message": exc.message,
            "limit": exc.limit,
            "remaining": 0,
            "reset": exc.reset,
            "retry_after": exc.retry_after,
        },
        headers={
            HEADER_RATE_LIMIT: str(exc.limit),
            HEADER_RATE_REMAINING: "0",
            HEADER_RATE_RESET: str(exc.reset),
            HEADER_RETRY_AFTER: str(exc.retry_after),
        },
    )


async def dermi_cache_exception_handler(request: Request, exc: DermiCacheError):
    """Handle domain exceptions that escaped the fail-open layers."""
    logger.error(
        f"Service exception: {exc.message}",
        error_type=type(exc).__name__,
        request_id=exc.request_id,
    )

    return JSONResponse(
        status_code=500,
        content=exc.to_dict(),
        headers={HEADER_REQUEST_ID: exc.request_id or ""},
    )


# ============================================================================
# Application Factory
# ============================================================================


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured application instance
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.app.APP_NAME,
        version=settings.app.APP_VERSION,
        description="Shared caching and rate limiting for the DermiAssist platform",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Middleware runs in reverse order of registration: the error handler
    # added first ends up innermost around the routes, request IDs outermost.
    app.add_middleware(
        ErrorHandlingMiddleware,
        include_traceback=(settings.app.ENVIRONMENT == "development"),
    )
    app.middleware("http")(request_id_middleware)

    app.add_exception_handler(RateLimitExceededError, rate_limit_exceeded_handler)
    app.add_exception_handler(DermiCacheError, dermi_cache_exception_handler)

    base_path = settings.app.API_BASE_PATH
    app.include_router(health_router, prefix=base_path)
    app.include_router(diagnostics_router, prefix=base_path)

    @app.get("/", tags=["Root"])
    async def root():
        """Root endpoint with API information."""
        return {
            "name": settings.app.APP_NAME,
            "version": settings.app.APP_VERSION,
            "environment": settings.app.ENVIRONMENT,
            "docs": "/docs",
            "health": f"{base_path}/health",
        }

    return app


# Create application instance
app = create_app()


# ============================================================================
# Main Entry Point
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "dermi_cache.application.app:app",
        host=settings.app.API_HOST,
        port=settings.app.API_PORT,
        reload=settings.app.ENVIRONMENT == "development",
        log_level=settings.logging.LOG_LEVEL.lower(),
    )
