"""Application lifespan management."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI

logger = logging.getLogger("tasktimeline.server")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown hooks for the timeline server."""
    settings = app.state.settings

    store = app.state.gateway.store
    logger.info(
        "Timeline server starting: host=%s, port=%d, storage=%s, tasks=%d",
        settings.server.host,
        settings.server.port,
        store.path or "memory",
        len(store.all()),
    )
    if "*" in settings.server.cors_origins:
        logger.warning("CORS allows any origin. Set CORS_ORIGIN to restrict it.")

    app.state.started_at = datetime.now(UTC)

    yield

    # --- Shutdown ---
    await app.state.registry.close_all()
    logger.info("Timeline server shutting down.")
