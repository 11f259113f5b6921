"""FastAPI application factory."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tasktimeline import __version__
from tasktimeline.errors import NotFound, TimelineError, ValidationError
from tasktimeline.server.broadcaster import ChangeBroadcaster
from tasktimeline.server.lifespan import lifespan
from tasktimeline.server.registry import ConnectionRegistry
from tasktimeline.server.routes.health import health_router
from tasktimeline.server.routes.tasks import tasks_router
from tasktimeline.server.routes.ws import ws_router
from tasktimeline.tasks.gateway import TaskGateway
from tasktimeline.tasks.store import TaskStore, open_store

if TYPE_CHECKING:
    from tasktimeline.config.settings import Settings

logger = logging.getLogger("tasktimeline.server")

_STATUS_CODES: dict[type[TimelineError], int] = {
    ValidationError: 422,
    NotFound: 404,
}


def create_app(settings: Settings, store: TaskStore | None = None) -> FastAPI:
    """Build the FastAPI application.

    1. Opens the storage collaborator named by ``settings.storage_uri``
       (unless a store is passed in)
    2. Wires registry → broadcaster → gateway and stores them on app.state
    3. Maps the error taxonomy onto structured JSON responses
    4. Registers the task, health, and WebSocket routes
    """
    app = FastAPI(
        title="tasktimeline",
        version=__version__,
        description="Real-time synchronized task timeline",
        lifespan=lifespan,
    )

    store = store if store is not None else open_store(settings.storage_uri)
    registry = ConnectionRegistry(tick_interval=settings.server.tick_interval)
    broadcaster = ChangeBroadcaster(registry)
    gateway = TaskGateway(store, broadcaster)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.server.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.registry = registry
    app.state.broadcaster = broadcaster
    app.state.gateway = gateway

    _register_error_handlers(app)

    app.include_router(health_router)
    app.include_router(tasks_router)
    app.include_router(ws_router)

    return app


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(TimelineError)
    async def timeline_error_handler(request: Request, exc: TimelineError) -> JSONResponse:
        status_code = _STATUS_CODES.get(type(exc), 500)
        if status_code == 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=status_code, content=exc.to_payload())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = exc.errors()
        loc = errors[0].get("loc", ()) if errors else ()
        field = str(loc[-1]) if loc else "body"
        msg = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
        return JSONResponse(status_code=422, content=ValidationError(field, msg).to_payload())
