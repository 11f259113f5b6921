"""Tests for the /ws push channel."""

from __future__ import annotations

from datetime import datetime

from fastapi.testclient import TestClient

from tasktimeline.config.models import ServerConfig
from tasktimeline.config.settings import Settings
from tasktimeline.server.app import create_app

STANDUP = {"title": "Standup", "startTime": "2024-05-01T09:00:00", "duration": 30}


def _receive(ws, event_type: str) -> dict:
    """Next frame of ``event_type``, skipping time ticks."""
    while True:
        frame = ws.receive_json()
        if frame["type"] == event_type:
            return frame
        assert frame["type"] == "time:update", frame


def test_created_reaches_every_client(app):
    with TestClient(app) as client:
        with client.websocket_connect("/ws") as ws1, client.websocket_connect("/ws") as ws2:
            resp = client.post("/api/tasks", json={**STANDUP, "correlationToken": "temp-1"})
            task = resp.json()

            for ws in (ws1, ws2):
                frame = _receive(ws, "task:created")
                assert frame["data"]["id"] == task["id"]
                assert frame["data"]["title"] == "Standup"
                assert frame["data"]["correlationToken"] == "temp-1"
                assert frame["seq"] == 1


def test_mutations_arrive_in_commit_order(app):
    with TestClient(app) as client:
        with client.websocket_connect("/ws") as ws:
            task = client.post("/api/tasks", json=STANDUP).json()
            client.put(f"/api/tasks/{task['id']}", json={"duration": 45})
            client.delete(f"/api/tasks/{task['id']}")

            created = _receive(ws, "task:created")
            updated = _receive(ws, "task:updated")
            deleted = _receive(ws, "task:deleted")

            assert "correlationToken" not in created["data"]
            assert updated["data"]["duration"] == 45
            assert deleted["data"] == {"id": task["id"]}
            assert created["seq"] < updated["seq"] < deleted["seq"]


def test_failed_mutation_broadcasts_nothing(app):
    with TestClient(app) as client:
        with client.websocket_connect("/ws") as ws:
            assert client.post("/api/tasks", json={**STANDUP, "duration": 5}).status_code == 422
            assert client.delete("/api/tasks/missing").status_code == 404
            ws.send_json({"type": "ping"})
            assert _receive(ws, "pong")["type"] == "pong"


def test_sync_request_answered():
    settings = Settings(server=ServerConfig(tick_interval=3600))
    with TestClient(create_app(settings)) as client:
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"type": "timeline:sync"})
            frame = _receive(ws, "timeline:synced")
            server_time = datetime.fromisoformat(frame["data"]["serverTime"])
            assert abs((datetime.now() - server_time).total_seconds()) < 60


def test_time_ticks():
    settings = Settings(server=ServerConfig(tick_interval=0.05))
    with TestClient(create_app(settings)) as client:
        with client.websocket_connect("/ws") as ws:
            frame = ws.receive_json()
            assert frame["type"] == "time:update"
            datetime.fromisoformat(frame["data"]["currentTime"])


def test_invalid_json(app):
    with TestClient(app) as client:
        with client.websocket_connect("/ws") as ws:
            ws.send_text("{not json")
            frame = _receive(ws, "error")
            assert frame["data"]["error"] == "Invalid JSON"


def test_unknown_message_type(app):
    with TestClient(app) as client:
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"type": "timeline:destroy"})
            assert "timeline:destroy" in _receive(ws, "error")["data"]["error"]


def test_disconnect_deregisters(app):
    with TestClient(app) as client:
        with client.websocket_connect("/ws"):
            assert len(app.state.registry) == 1
        client.post("/api/tasks", json=STANDUP)
        assert client.get("/api/health").json()["connections"] == 0
