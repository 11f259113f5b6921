"""Tests for the health endpoint."""

from __future__ import annotations

from fastapi.testclient import TestClient


def test_health_returns_ok(app):
    """GET /api/health should report OK with a timestamp."""
    client = TestClient(app)

    resp = client.get("/api/health")
    assert resp.status_code == 200

    data = resp.json()
    assert data["status"] == "OK"
    assert "timestamp" in data
    assert "version" in data
    assert data["connections"] == 0
    assert data["uptime_seconds"] >= 0


def test_health_counts_connections(app):
    with TestClient(app) as client:
        with client.websocket_connect("/ws"):
            assert client.get("/api/health").json()["connections"] == 1
