"""
Unit Tests for API Routes

Tests FastAPI routes with TestClient against a container built over the
in-memory Redis and durable store doubles.
"""

import pytest
from fastapi import Depends, Header, Request
from fastapi.testclient import TestClient

from src.core.config.constants import ResourceType
from src.core.exceptions import CacheError
from src.rate_limiting.middleware import RateLimit

API = "/api/v1"


@pytest.mark.unit
class TestHealthRoutes:
    """Test suite for health check routes."""

    def test_health_endpoint_returns_200(self, client, settings):
        response = client.get(f"{API}/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "alive"
        assert data["version"] == settings.APP_VERSION
        assert "timestamp" in data

    def test_liveness_ignores_redis_outage(self, client, fake_redis):
        fake_redis.fail()
        assert client.get(f"{API}/health").status_code == 200

    def test_ready(self, client):
        response = client.get(f"{API}/health/ready")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ready"
        assert set(data["components"]) == {"redis", "resources", "cache"}

    def test_not_ready_when_redis_down(self, client, fake_redis):
        fake_redis.fail()

        response = client.get(f"{API}/health/ready")

        assert response.status_code == 503
        assert response.json()["detail"]["status"] == "not_ready"
        assert response.json()["detail"]["reason"] == "Redis not available"

    def test_detailed(self, client):
        response = client.get(f"{API}/health/detailed")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert set(data["components"]) == {"redis", "cache", "durable_store", "resources"}

    def test_detailed_degraded_without_durable_store(self, client, durable_store):
        durable_store.available = False

        data = client.get(f"{API}/health/detailed").json()

        assert data["status"] == "degraded"
        assert data["degraded_components"] == ["durable_store"]


@pytest.mark.unit
class TestApplication:
    def test_root(self, client, settings):
        data = client.get("/").json()

        assert data["name"] == settings.APP_NAME
        assert data["health"] == f"{API}/health"

    def test_request_id_echoed(self, client):
        response = client.get(f"{API}/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"

    def test_request_id_generated(self, client):
        assert client.get(f"{API}/health").headers["X-Request-ID"]

    def test_lifespan_starts_and_stops_container(self, app, container, durable_store):
        with TestClient(app):
            assert container.started is True
            assert container.redis.is_connected

        assert container.started is False
        assert durable_store.closed is True

    def test_unhandled_errors_become_500(self, app):
        @app.get("/boom")
        async def boom():
            raise RuntimeError("kaboom")

        with TestClient(app) as client:
            response = client.get("/boom")

        assert response.status_code == 500
        data = response.json()
        assert data["error"] == "internal_server_error"
        assert data["error_type"] == "RuntimeError"
        # development settings expose the traceback
        assert "traceback" in data

    def test_service_errors_use_their_payload(self, app):
        @app.get("/cache-failure")
        async def cache_failure():
            raise CacheError("tier offline", details={"tier": "remote"})

        with TestClient(app) as client:
            response = client.get("/cache-failure")

        assert response.status_code == 500
        data = response.json()
        assert data["success"] is False
        assert data["error_type"] == "CacheError"
        assert data["details"] == {"tier": "remote"}


@pytest.mark.unit
class TestRateLimitedRoute:
    """A user-scoped route limited to 10 requests per minute."""

    @pytest.fixture
    def limited_client(self, app):
        async def current_user(request: Request, x_user_id: str = Header(...)):
            request.state.user = {"user_id": x_user_id}

        @app.get(
            "/search",
            dependencies=[Depends(current_user), Depends(RateLimit("search", max_requests=10))],
        )
        async def search():
            return {"results": []}

        with TestClient(app) as client:
            yield client

    def test_eleventh_request_gets_429(self, limited_client):
        headers = {"X-User-ID": "u1"}

        responses = [limited_client.get("/search", headers=headers) for _ in range(10)]
        rejected = limited_client.get("/search", headers=headers)

        assert [r.status_code for r in responses] == [200] * 10
        assert responses[0].headers["X-RateLimit-Remaining"] == "9"
        assert responses[-1].headers["X-RateLimit-Remaining"] == "0"

        assert rejected.status_code == 429
        assert rejected.json()["success"] is False
        assert rejected.headers["X-RateLimit-Limit"] == "10"
        assert rejected.headers["X-RateLimit-Remaining"] == "0"
        assert rejected.headers["X-RateLimit-Window"] == "60000"
        assert rejected.headers["Retry-After"] == "60"
        assert "X-RateLimit-Reset" in rejected.headers
        assert "X-Request-ID" in rejected.headers

    def test_window_slides_open_again(self, limited_client, clock):
        headers = {"X-User-ID": "u1"}
        for _ in range(11):
            limited_client.get("/search", headers=headers)

        clock.advance(60_001)

        assert limited_client.get("/search", headers=headers).status_code == 200


@pytest.mark.unit
class TestMonitoringRoutes:
    def test_general_limit_headers(self, client):
        response = client.get(f"{API}/monitoring/resources")
        assert response.headers["X-RateLimit-Limit"] == "100"

    def test_resource_stats(self, client, container):
        container.resources.register(ResourceType.TIMER, lambda: None)
        container.resources.register(ResourceType.LISTENER, lambda: None)

        data = client.get(f"{API}/monitoring/resources").json()

        assert data["total_resources"] == 2
        assert data["resources_by_type"] == {"timer": 1, "listener": 1}
        assert data["memory_usage"] == 256 + 128

    def test_resource_cleanup_by_type(self, client, container):
        released = []
        container.resources.register(ResourceType.TIMER, lambda: released.append("timer"))
        container.resources.register(ResourceType.LISTENER, lambda: released.append("listener"))

        response = client.post(f"{API}/monitoring/resources/cleanup", json={"type": "timer"})

        assert response.json() == {"success": True, "cleaned": 1}
        assert released == ["timer"]
        assert len(container.resources) == 1

    def test_resource_cleanup_accepts_naive_timestamp(self, client, container):
        released = []
        container.resources.register(ResourceType.TIMER, lambda: released.append("timer"))

        response = client.post(
            f"{API}/monitoring/resources/cleanup", json={"older_than": "2099-01-01T00:00:00"}
        )

        assert response.status_code == 200
        assert response.json() == {"success": True, "cleaned": 1}
        assert released == ["timer"]

    def test_resource_cleanup_rejects_unknown_type(self, client):
        response = client.post(f"{API}/monitoring/resources/cleanup", json={"type": "socket"})
        assert response.status_code == 422

    def test_cache_stats(self, client, settings):
        data = client.get(f"{API}/monitoring/cache").json()

        assert data["memory"]["max_entries"] == settings.CACHE_MEMORY_MAX_ENTRIES
        assert data["features"]["remote_caching_enabled"] is True
        assert data["performance"]["total_requests"] == 0

    def test_cache_delete(self, client, fake_redis):
        fake_redis.strings["cache:user:u9"] = '{"id":"u9"}'

        response = client.delete(f"{API}/monitoring/cache/user:u9")

        assert response.json() == {"success": True, "key": "user:u9"}
        assert "cache:user:u9" not in fake_redis.strings

    def test_rate_limit_status(self, client):
        response = client.get(f"{API}/monitoring/rate-limit/search", params={"endpoint": "/search"})

        assert response.status_code == 200
        data = response.json()
        assert data["key"] == "ratelimit:testclient:/search"
        assert data["limit"] == 20
        assert data["total_hits_in_window"] == 0
        assert data["remaining_points"] == 20

    def test_rate_limit_status_unknown_config(self, client):
        assert client.get(f"{API}/monitoring/rate-limit/nope").status_code == 404

    def test_rate_limit_status_store_down(self, client, fake_redis):
        fake_redis.fail()
        assert client.get(f"{API}/monitoring/rate-limit/search").status_code == 503

    def test_rate_limit_reset(self, client, fake_redis):
        fake_redis.zsets["ratelimit:u1:/search"] = {"1-a": 1.0}

        response = client.request(
            "DELETE", f"{API}/monitoring/rate-limit", json={"key": "ratelimit:u1:/search"}
        )

        assert response.json() == {"success": True, "key": "ratelimit:u1:/search"}
        assert "ratelimit:u1:/search" not in fake_redis.zsets

    def test_metrics_exposition(self, client):
        response = client.get(f"{API}/monitoring/metrics")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert "platform_rate_limit_decisions_total" in response.text

    def test_metrics_carry_rate_limit_headers(self, client):
        first = client.get(f"{API}/monitoring/metrics")
        second = client.get(f"{API}/monitoring/metrics")

        assert first.headers["X-RateLimit-Limit"] == "100"
        assert first.headers["X-RateLimit-Remaining"] == "99"
        assert second.headers["X-RateLimit-Remaining"] == "98"
        assert second.headers["content-type"].startswith("text/plain")
