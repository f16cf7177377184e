"""Tests for the health endpoint."""
from fastapi.testclient import TestClient
from apps.api.main import app

client = TestClient(app)


def test_health_returns_200():
    response = client.get("/api/v1/health")
    assert response.status_code == 200


def test_health_reports_service_and_version():
    data = client.get("/api/v1/health").json()
    assert data["status"] == "healthy"
    assert data["service"] == "api"
    assert data["version"]
