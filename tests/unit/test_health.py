"""Unit tests for health endpoints."""

import pytest
from fastapi.testclient import TestClient

from marketplace_sync.api.v1 import health


def test_health_check(client: TestClient) -> None:
    """Test basic health check returns healthy status."""
    response = client.get("/api/v1/health")
    assert response.status_code == 200

    data = response.json()
    assert data["status"] == "healthy"
    assert "version" in data
    assert "environment" in data
    assert "timestamp" in data
    assert set(data["dependencies"]) == {"postgres", "redis"}


def test_liveness_check(client: TestClient) -> None:
    """Test liveness check returns alive status."""
    response = client.get("/api/v1/health/live")
    assert response.status_code == 200

    data = response.json()
    assert data["status"] == "alive"


@pytest.mark.parametrize(
    "postgres,redis,ready",
    [
        (True, True, True),
        (True, False, True),
        (False, True, False),
    ],
)
def test_readiness_follows_postgres(
    client: TestClient, monkeypatch: pytest.MonkeyPatch, postgres: bool, redis: bool, ready: bool
) -> None:
    """Readiness depends on Postgres; Redis is reported only."""

    async def check_postgres() -> bool:
        return postgres

    async def check_redis() -> bool:
        return redis

    monkeypatch.setattr(health, "check_postgres", check_postgres)
    monkeypatch.setattr(health, "check_redis", check_redis)

    response = client.get("/api/v1/health/ready")
    assert response.status_code == 200

    data = response.json()
    assert data["ready"] is ready
    assert data["checks"] == {"postgres": postgres, "redis": redis}
