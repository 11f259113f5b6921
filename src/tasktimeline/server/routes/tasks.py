"""Request/response channel: task CRUD over HTTP."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Body, Request
from fastapi.responses import JSONResponse

from tasktimeline.tasks.gateway import TaskGateway

tasks_router = APIRouter(prefix="/api/tasks", tags=["Tasks"])


def _gateway(request: Request) -> TaskGateway:
    return request.app.state.gateway


@tasks_router.get("")
async def list_tasks(
    request: Request,
    start: datetime | None = None,
    end: datetime | None = None,
    status: str | None = None,
) -> list[dict]:
    """All tasks, optionally filtered by start-time range and status."""
    tasks = _gateway(request).list({"start": start, "end": end, "status": status})
    return [task.to_wire() for task in tasks]


@tasks_router.get("/{task_id}")
async def get_task(request: Request, task_id: str) -> dict:
    return _gateway(request).read(task_id).to_wire()


@tasks_router.post("")
async def create_task(request: Request, payload: dict = Body(...)) -> JSONResponse:
    """Create a task. A ``correlationToken`` is echoed in the broadcast only."""
    task = _gateway(request).create(payload)
    return JSONResponse(status_code=201, content=task.to_wire())


@tasks_router.put("/{task_id}")
async def update_task(request: Request, task_id: str, payload: dict = Body(...)) -> dict:
    return _gateway(request).update(task_id, payload).to_wire()


@tasks_router.delete("/{task_id}")
async def delete_task(request: Request, task_id: str) -> dict:
    deleted = _gateway(request).delete(task_id)
    return {"message": "Task deleted successfully", "id": deleted}
