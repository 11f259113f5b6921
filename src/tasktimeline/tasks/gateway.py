"""Task Store Gateway: validated CRUD that broadcasts every committed change."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import ValidationError as PydanticValidationError

from tasktimeline.errors import NotFound, StorageError, ValidationError
from tasktimeline.tasks.models import (
    Task,
    TaskCreate,
    TaskFilter,
    TaskPatch,
    WireModel,
    now,
)
from tasktimeline.tasks.store import TaskStore

if TYPE_CHECKING:
    from tasktimeline.server.broadcaster import ChangeBroadcaster

logger = logging.getLogger("tasktimeline.tasks.gateway")


def _field_error(exc: PydanticValidationError, model: type[WireModel]) -> ValidationError:
    """Reduce a pydantic error to the first failing field."""
    err = exc.errors()[0]
    loc = str(err["loc"][0]) if err["loc"] else "__root__"
    return ValidationError(model.wire_name(loc), err["msg"])


def _parse(model: type[WireModel], data):
    if isinstance(data, model):
        return data
    if isinstance(data, WireModel):
        data = data.model_dump(exclude_unset=True)
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        raise _field_error(exc, model) from exc


class TaskGateway:
    """The single source of truth for tasks.

    Each operation is atomic from the caller's point of view. Every successful
    create/update/delete publishes exactly one broadcast; the commit and the
    publish happen without yielding to the event loop.
    """

    def __init__(self, store: TaskStore, broadcaster: ChangeBroadcaster | None = None) -> None:
        self._store = store
        self._broadcaster = broadcaster

    @property
    def store(self) -> TaskStore:
        return self._store

    def create(self, fields: TaskCreate | dict) -> Task:
        """Validate and insert a new task; the store assigns its id."""
        request = _parse(TaskCreate, fields)
        try:
            task = Task.model_validate(request.model_dump(exclude={"correlation_token"}))
        except PydanticValidationError as exc:
            raise _field_error(exc, Task) from exc

        task = self._write(self._store.insert, task)
        logger.info("Created task %s (%s)", task.id, task.title)
        if self._broadcaster is not None:
            self._broadcaster.created(task, request.correlation_token)
        return task

    def read(self, task_id: str) -> Task:
        task = self._store.get(task_id)
        if task is None:
            raise NotFound(task_id)
        return task

    def list(self, task_filter: TaskFilter | dict | None = None) -> list[Task]:
        """Tasks matching every supplied predicate, by ascending start time."""
        if task_filter is None:
            return self._store.query()
        return self._store.query(_parse(TaskFilter, task_filter))

    def update(self, task_id: str, fields: TaskPatch | dict) -> Task:
        """Apply only the supplied fields, then re-validate the whole record."""
        patch = _parse(TaskPatch, fields)
        existing = self.read(task_id)
        merged = {
            **existing.model_dump(),
            **patch.changes(),
            "id": existing.id,
            "created_at": existing.created_at,
            "updated_at": now(),
        }
        try:
            task = Task.model_validate(merged)
        except PydanticValidationError as exc:
            raise _field_error(exc, Task) from exc

        updated = self._write(self._store.replace, task)
        if updated is None:
            # Deleted between read and replace.
            raise NotFound(task_id)
        logger.info("Updated task %s: %s", task_id, ", ".join(patch.changes()) or "no fields")
        if self._broadcaster is not None:
            self._broadcaster.updated(updated)
        return updated

    def delete(self, task_id: str) -> str:
        """Remove a task. Returns the deleted id."""
        if not self._write(self._store.remove, task_id):
            raise NotFound(task_id)
        logger.info("Deleted task %s", task_id)
        if self._broadcaster is not None:
            self._broadcaster.deleted(task_id)
        return task_id

    @staticmethod
    def _write(op, arg):
        try:
            return op(arg)
        except OSError as exc:
            logger.error("Storage write failed: %s", exc)
            raise StorageError(f"Storage write failed: {exc}") from exc
