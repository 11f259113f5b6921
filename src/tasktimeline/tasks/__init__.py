"""Task records, storage, and the validated gateway in front of it."""

from tasktimeline.tasks.gateway import TaskGateway
from tasktimeline.tasks.models import Task, TaskCreate, TaskFilter, TaskPatch, TaskStatus
from tasktimeline.tasks.store import TaskStore, open_store

__all__ = [
    "Task",
    "TaskCreate",
    "TaskFilter",
    "TaskGateway",
    "TaskPatch",
    "TaskStatus",
    "TaskStore",
    "open_store",
]
