"""Route tests for the health endpoints."""

from unittest.mock import AsyncMock, patch

from src.database.mongodb import MongoDB
from src.database.redis_client import RedisClient


def pings(mongo: bool, redis: bool):
    return (
        patch.object(MongoDB, "ping", AsyncMock(return_value=mongo)),
        patch.object(RedisClient, "ping", AsyncMock(return_value=redis)),
    )


class TestHealthRoutes:

    def test_basic_health_does_not_touch_backends(self, client):
        with patch.object(MongoDB, "ping", AsyncMock()) as mongo_ping:
            response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        mongo_ping.assert_not_awaited()

    def test_all_backends_up(self, client):
        mongo, redis = pings(True, True)
        with mongo, redis:
            response = client.get("/health/detailed")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["services"]["database"]["status"] == "healthy"
        assert "audit_hour_utc" in body["services"]["psychometrics"]

    def test_redis_down_is_degraded(self, client):
        mongo, redis = pings(True, False)
        with mongo, redis:
            response = client.get("/health/detailed")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"

    def test_mongo_down_is_unavailable(self, client):
        mongo, redis = pings(False, True)
        with mongo, redis:
            response = client.get("/health/detailed")

        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"

    def test_request_id_is_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-12345678"})

        assert response.headers["X-Request-ID"] == "req-12345678"
