"""
Unit Tests for API Routes

Tests the FastAPI app with TestClient: health, diagnostics, metrics,
request IDs and exception handlers. Singletons are replaced through
dependency overrides; the lifespan (Redis connect) does not run.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from dermi_cache.application.app import create_app
from dermi_cache.core.exceptions import CacheError, RateLimitExceededError
from dermi_cache.infrastructure.cache.cache_manager import CacheManager, get_cache_manager
from dermi_cache.infrastructure.cache.redis_client import get_redis_client
from dermi_cache.infrastructure.monitoring.metrics_collector import get_cache_metrics
from dermi_cache.rate_limiting.rate_limiter import RateLimiter


def fake_redis_client(status: str = "healthy") -> MagicMock:
    client = MagicMock()
    client.health_check = AsyncMock(return_value={"status": status, "connected": status == "healthy"})
    return client


@pytest.fixture
def app(cache_manager, cache_metrics):
    app = create_app()
    app.dependency_overrides[get_cache_manager] = lambda: cache_manager
    app.dependency_overrides[get_cache_metrics] = lambda: cache_metrics
    app.dependency_overrides[get_redis_client] = lambda: fake_redis_client()
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.mark.unit
class TestHealthRoutes:
    """Test suite for health check routes."""

    def test_health_endpoint_returns_200(self, client):
        response = client.get("/api/v1/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "timestamp" in data
        assert data["components"]["redis"]["status"] == "healthy"
        assert "hit_rate" in data["components"]["cache"]

    def test_health_degraded_when_redis_down(self, app, client):
        app.dependency_overrides[get_redis_client] = lambda: fake_redis_client("unhealthy")

        response = client.get("/api/v1/health")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"

    def test_readiness_503_when_redis_down(self, app, client):
        app.dependency_overrides[get_redis_client] = lambda: fake_redis_client("unhealthy")

        response = client.get("/api/v1/health/ready")

        assert response.status_code == 503

    def test_readiness_ok_without_redis_configured(self, app, client):
        app.dependency_overrides[get_redis_client] = lambda: fake_redis_client("not_configured")

        response = client.get("/api/v1/health/ready")

        assert response.status_code == 200
        assert response.json()["status"] == "ready"


@pytest.mark.unit
class TestCacheDiagnostics:
    """Test the cache round-trip endpoint."""

    def test_round_trip_succeeds(self, client, in_memory_store):
        response = client.get("/api/v1/cache/test")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["test"]["match"] is True
        assert data["test"]["read"]["message"] == "Redis is working!"
        assert data["metrics"]["hit_rate"].endswith("%")
        # Test entry deleted afterwards
        assert not any(key.startswith("test:") for key in in_memory_store.data)

    def test_round_trip_fails_on_outage(
        self, app, client, failing_store, cache_metrics, mock_metrics_collector, mock_settings
    ):
        outage_cache = CacheManager(
            store=failing_store,
            metrics=cache_metrics,
            collector=mock_metrics_collector,
            settings=mock_settings,
        )
        app.dependency_overrides[get_cache_manager] = lambda: outage_cache

        response = client.get("/api/v1/cache/test")

        assert response.status_code == 500
        assert response.json()["success"] is False

    def test_hit_rate_formatted_as_percentage(self, client, cache_metrics):
        cache_metrics.record_hit()
        cache_metrics.record_miss()

        response = client.get("/api/v1/cache/test")

        assert response.json()["metrics"]["hit_rate"] == "50.00%"


@pytest.mark.unit
class TestRateLimitDiagnostics:
    """Test the rate-limited diagnostic endpoints."""

    @pytest.fixture
    def limiter(self, in_memory_store, clock, mock_settings, mock_metrics_collector):
        return RateLimiter(
            store=in_memory_store,
            clock=clock,
            settings=mock_settings,
            collector=mock_metrics_collector,
        )

    def test_get_has_generous_headers(self, client, limiter):
        with patch(
            "dermi_cache.application.api.middleware.rate_limit.get_rate_limiter",
            return_value=limiter,
        ):
            response = client.get("/api/v1/rate-limit/test", headers={"X-User-ID": "u1"})

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert response.headers["X-RateLimit-Limit"] == "1000"
        assert response.headers["X-RateLimit-Remaining"] == "999"

    def test_post_echoes_body(self, client, limiter):
        with patch(
            "dermi_cache.application.api.middleware.rate_limit.get_rate_limiter",
            return_value=limiter,
        ):
            response = client.post("/api/v1/rate-limit/test", json={"ping": 1})

        assert response.status_code == 200
        assert response.json()["data"] == {"ping": 1}


@pytest.mark.unit
class TestMetricsRoute:
    """Test the Prometheus endpoint."""

    def test_metrics_exposed(self, client):
        response = client.get("/api/v1/metrics")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert "dermi_cache_lookups_total" in response.text


@pytest.mark.unit
class TestAppWiring:
    """Test middleware and exception handlers."""

    def test_request_id_generated(self, client):
        response = client.get("/")

        assert response.headers["X-Request-ID"]

    def test_request_id_propagated(self, client):
        response = client.get("/", headers={"X-Request-ID": "req-42"})

        assert response.headers["X-Request-ID"] == "req-42"

    def test_root_lists_service_info(self, client):
        data = client.get("/").json()

        assert data["health"] == "/api/v1/health"
        assert "version" in data

    def test_rate_limit_exceeded_error_maps_to_429(self, app, client):
        @app.get("/raise-limit")
        async def raise_limit():
            raise RateLimitExceededError("Slow down", limit=10, reset=1700002800, retry_after=2800)

        response = client.get("/raise-limit")

        assert response.status_code == 429
        assert response.json()["message"] == "Slow down"
        assert response.headers["Retry-After"] == "2800"
        assert response.headers["X-RateLimit-Limit"] == "10"

    def test_domain_error_maps_to_500(self, app, client):
        @app.get("/raise-domain")
        async def raise_domain():
            raise CacheError("broken", details={"key": "k"})

        response = client.get("/raise-domain")

        assert response.status_code == 500
        assert response.json()["error_type"] == "CacheError"
        assert response.json()["details"] == {"key": "k"}

    def test_unhandled_error_is_formatted(self, app, client):
        @app.get("/raise-unexpected")
        async def raise_unexpected():
            raise ValueError("unexpected")

        response = client.get("/raise-unexpected")

        assert response.status_code == 500
        assert response.json()["error"] == "internal_server_error"
        assert response.json()["error_type"] == "ValueError"

    def test_lifespan_connects_and_closes_store(self, app):
        with patch("dermi_cache.application.app.init_redis", new=AsyncMock()) as init, patch(
            "dermi_cache.application.app.close_redis", new=AsyncMock()
        ) as close:
            with TestClient(app) as client:
                assert client.get("/").status_code == 200

            init.assert_awaited_once()
            close.assert_awaited_once()
