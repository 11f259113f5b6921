"""Health endpoint."""

from __future__ import annotations

from datetime import UTC, datetime

from fastapi import APIRouter, Request
from pydantic import BaseModel

from tasktimeline import __version__

health_router = APIRouter(tags=["Health"])


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    version: str
    connections: int
    uptime_seconds: float


@health_router.get("/api/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    started_at = getattr(request.app.state, "started_at", datetime.now(UTC))
    uptime = (datetime.now(UTC) - started_at).total_seconds()
    return HealthResponse(
        status="OK",
        timestamp=datetime.now(UTC).isoformat(),
        version=__version__,
        connections=len(request.app.state.registry),
        uptime_seconds=round(uptime, 1),
    )
