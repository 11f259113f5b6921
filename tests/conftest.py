"""Shared test fixtures."""

from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path
from unittest.mock import patch

import pytest

from tasktimeline.config.models import ServerConfig
from tasktimeline.config.settings import Settings
from tasktimeline.server.app import create_app
from tasktimeline.tasks.store import TaskStore

# Long enough that no time:update shows up unless a test asks for one.
QUIET_TICK = 3600.0

STANDUP_START = datetime(2024, 5, 1, 9, 0)


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch, tmp_path: Path):
    """Keep host environment and ~/.tasktimeline out of every test."""
    for key in ("HOST", "PORT", "CORS_ORIGIN", "STORAGE_URI"):
        monkeypatch.delenv(key, raising=False)
    for key in [k for k in os.environ if k.startswith("TIMELINE_")]:
        monkeypatch.delenv(key)
    monkeypatch.setitem(Settings.model_config, "env_file", (str(tmp_path / ".env"),))
    with (
        patch("tasktimeline.config.settings.CONFIG_FILE", tmp_path / "config.json"),
        patch("tasktimeline.config.env_utils.TIMELINE_HOME", tmp_path),
    ):
        yield


@pytest.fixture
def test_settings() -> Settings:
    """Settings for an in-memory server with ticks effectively off."""
    return Settings(
        server=ServerConfig(port=3999, tick_interval=QUIET_TICK),
        storage_uri="memory://",
    )


@pytest.fixture
def store() -> TaskStore:
    return TaskStore()


@pytest.fixture
def app(test_settings: Settings, store: TaskStore):
    return create_app(test_settings, store=store)


@pytest.fixture
def standup_fields() -> dict:
    return {"title": "Standup", "startTime": STANDUP_START.isoformat(), "duration": 30}
