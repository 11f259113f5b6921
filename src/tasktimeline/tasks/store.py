"""Task persistence: in-memory or JSON document file."""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from urllib.parse import urlparse

from tasktimeline.tasks.models import Task, TaskFilter

logger = logging.getLogger("tasktimeline.tasks.store")


class TaskStore:
    """Keyed task documents with create/read/update/delete/query.

    With a ``path`` every mutation is written through to a JSON file using
    atomic writes (write to .tmp, then replace). Without one the store lives
    only in memory.
    """

    def __init__(self, path: Path | None = None) -> None:
        self._path = path
        self._tasks: dict[str, Task] = {}
        self._lock = threading.RLock()
        self.load()

    @property
    def path(self) -> Path | None:
        return self._path

    # -- Persistence -----------------------------------------------------------

    def load(self) -> None:
        """Load tasks from disk. Silently starts empty if file is missing."""
        with self._lock:
            self._tasks.clear()
            if self._path is None or not self._path.exists():
                return
            try:
                data = json.loads(self._path.read_text(encoding="utf-8"))
                for raw in data:
                    task = Task.model_validate(raw)
                    self._tasks[task.id] = task
                logger.debug("Loaded %d tasks from %s", len(self._tasks), self._path)
            except (json.JSONDecodeError, OSError) as exc:
                logger.warning("Failed to load tasks: %s", exc)

    def save(self) -> None:
        """Persist all tasks to disk atomically (no-op for memory stores)."""
        if self._path is None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(".tmp")
        data = [task.model_dump(mode="json", by_alias=True) for task in self._tasks.values()]
        tmp.write_text(json.dumps(data, indent=2), encoding="utf-8")
        tmp.replace(self._path)

    # -- CRUD ------------------------------------------------------------------

    def insert(self, task: Task) -> Task:
        """Add a task and persist."""
        with self._lock:
            self._tasks[task.id] = task
            self._commit()
            return task.model_copy()

    def get(self, task_id: str) -> Task | None:
        """Retrieve a copy of a task by ID."""
        with self._lock:
            task = self._tasks.get(task_id)
            return task.model_copy() if task is not None else None

    def replace(self, task: Task) -> Task | None:
        """Overwrite an existing task. Returns None if the ID is unknown."""
        with self._lock:
            if task.id not in self._tasks:
                return None
            self._tasks[task.id] = task
            self._commit()
            return task.model_copy()

    def remove(self, task_id: str) -> bool:
        """Remove a task by ID. Returns True if it existed."""
        with self._lock:
            if task_id not in self._tasks:
                return False
            del self._tasks[task_id]
            self._commit()
            return True

    def query(self, task_filter: TaskFilter | None = None) -> list[Task]:
        """Return matching tasks sorted by start time ascending."""
        task_filter = task_filter or TaskFilter()
        with self._lock:
            tasks = [t.model_copy() for t in self._tasks.values() if task_filter.matches(t)]
        tasks.sort(key=lambda t: t.start_time)
        return tasks

    def all(self) -> list[Task]:
        """Return all tasks."""
        return self.query()

    def _commit(self) -> None:
        try:
            self.save()
        except OSError:
            # Roll memory back to the last persisted snapshot.
            self.load()
            raise


def open_store(uri: str) -> TaskStore:
    """Build a store from a STORAGE_URI.

    ``memory://`` → in-process store; ``file:///abs/path.json`` or a bare
    filesystem path → JSON document file.
    """
    if uri in ("", "memory", "memory://"):
        return TaskStore()
    parsed = urlparse(uri)
    if parsed.scheme == "":
        return TaskStore(path=Path(uri).expanduser())
    if parsed.scheme in ("file", "json"):
        return TaskStore(path=Path(parsed.netloc + parsed.path).expanduser())
    raise ValueError(f"Unsupported STORAGE_URI scheme: {parsed.scheme!r}")
