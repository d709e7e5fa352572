"""Tests for liveness and readiness probes."""

import pytest
from fastapi.testclient import TestClient

pytestmark = pytest.mark.integration


def test_health_ok(api_client: TestClient):
    response = api_client.get("/api/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_health_503_while_draining(api_client: TestClient):
    api_client.app.state.shutting_down = True

    response = api_client.get("/api/health")

    assert response.status_code == 503
    assert response.json()["status"] == "shutting_down"


def test_ready_reports_degraded_without_redis(api_client: TestClient):
    # The test app never calls init_redis
    response = api_client.get("/api/ready")

    assert response.status_code == 503
    assert response.json()["checks"] == {"database": True, "redis": False}
