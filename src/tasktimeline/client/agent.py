"""Client Sync Agent: local task cache kept consistent with the server.

Mutations go out over the request/response channel; broadcasts come in over
the push channel and are folded into the same cache. Only creation needs
echo suppression: it is the one mutation that both returns a direct response
and triggers a broadcast the originating client also receives. Updates and
deletes are applied locally from the response, and their echoes merge
idempotently by id.

Deleted ids are remembered as tombstones, so neither a late ``updated``
broadcast nor a slow mutation response can bring a deleted task back. A full
reload records the task broadcasts that arrive while the list request is in
flight and replays them onto the snapshot before swapping it in.
"""

from __future__ import annotations

import logging
import secrets
import time
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING

from pydantic import ValidationError as PydanticValidationError

from tasktimeline.errors import (
    ConcurrencyAnomaly,
    NotFound,
    TimelineError,
    TransportError,
)
from tasktimeline.protocol import Event, EventType
from tasktimeline.tasks.models import Task, TaskPatch, TaskStatus

if TYPE_CHECKING:
    from tasktimeline.client.api import TaskApiClient

logger = logging.getLogger("tasktimeline.client.agent")

Notifier = Callable[[str, str], None]
EventListener = Callable[[Event], None]

_TASK_EVENTS = frozenset({EventType.CREATED, EventType.UPDATED, EventType.DELETED})


def new_correlation_token() -> str:
    return f"temp-{int(time.time() * 1000)}-{secrets.token_hex(5)}"


def _log_notification(level: str, message: str) -> None:
    logger.log(logging.ERROR if level == "error" else logging.INFO, message)


class ClientSyncAgent:
    """Per-client task cache plus the mutation/broadcast reconciliation rules."""

    def __init__(
        self,
        api: TaskApiClient,
        *,
        notify: Notifier | None = None,
        on_transport_error: Callable[[TransportError], None] | None = None,
    ) -> None:
        self._api = api
        self._cache: dict[str, Task] = {}
        self._pending_tokens: set[str] = set()
        self._tombstones: set[str] = set()
        # One buffer per in-flight load_all.
        self._load_buffers: list[list[Event]] = []
        self._notify = notify or _log_notification
        self._on_transport_error = on_transport_error
        self._listeners: list[EventListener] = []
        self.selected_id: str | None = None
        self.server_time: datetime | None = None
        self.last_synced_at: datetime | None = None
        self.last_anomaly: ConcurrencyAnomaly | None = None
        self.anomalies = 0

    # -- Read side -------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, task_id: str) -> bool:
        return task_id in self._cache

    def get(self, task_id: str) -> Task | None:
        task = self._cache.get(task_id)
        return task.model_copy() if task is not None else None

    def tasks(self, status: TaskStatus | str | None = None, search: str | None = None) -> list[Task]:
        """Cached tasks by start time, optionally filtered like the sidebar list."""
        needle = (search or "").strip().lower()
        result = [
            t.model_copy()
            for t in self._cache.values()
            if (not status or status == "all" or t.status == status)
            and (not needle or needle in t.title.lower())
        ]
        result.sort(key=lambda t: t.start_time)
        return result

    @property
    def pending_tokens(self) -> frozenset[str]:
        return frozenset(self._pending_tokens)

    @property
    def selected(self) -> Task | None:
        return self.get(self.selected_id) if self.selected_id else None

    def select(self, task_id: str | None) -> None:
        self.selected_id = task_id if task_id in self._cache else None

    def add_listener(self, listener: EventListener) -> None:
        """Call ``listener`` after every broadcast has been applied."""
        self._listeners.append(listener)

    # -- Mutations -------------------------------------------------------------

    async def load_all(self) -> list[Task]:
        """Replace the cache with the server's full task list.

        Task broadcasts applied while the request is pending are replayed onto
        the snapshot, so a reload never undoes them.
        """
        arrived: list[Event] = []
        self._load_buffers.append(arrived)
        try:
            tasks = await self._call(self._api.list(), "load tasks")
        finally:
            self._load_buffers.remove(arrived)

        snapshot = {t.id: t for t in tasks if t.id not in self._tombstones}
        for event in arrived:
            self._replay(snapshot, event)
        if arrived:
            logger.debug("Replayed %d broadcasts onto the loaded snapshot", len(arrived))
        self._cache = snapshot
        if self.selected_id not in self._cache:
            self.selected_id = None
        logger.info("Loaded %d tasks", len(tasks))
        return tasks

    async def submit_create(self, fields: dict) -> Task:
        token = new_correlation_token()
        self._pending_tokens.add(token)
        try:
            task = await self._call(
                self._api.create(fields, correlation_token=token), "create task"
            )
        finally:
            self._pending_tokens.discard(token)

        if task.id in self._tombstones:
            self._anomaly(f"task {task.id} deleted before its create response; not inserting")
        elif task.id not in self._cache:
            self._cache[task.id] = task
        else:
            logger.debug("Task %s already cached, skipping local insert", task.id)
        return task

    async def submit_update(self, task_id: str, fields: dict) -> Task:
        """Apply ``fields`` optimistically, then reconcile with the server's record."""
        previous = self._cache.get(task_id)
        optimistic = self._preview(previous, fields)
        if optimistic is not None:
            self._cache[task_id] = optimistic

        try:
            task = await self._call(self._api.update(task_id, fields), "update task")
        except NotFound:
            self._drop(task_id)
            raise
        except TimelineError:
            # Roll back unless a broadcast replaced the entry meanwhile.
            if optimistic is not None and self._cache.get(task_id) is optimistic:
                self._cache[task_id] = previous
            raise

        if task_id in self._tombstones:
            self._anomaly(f"task {task_id} deleted while its update was in flight; not re-inserting")
        else:
            self._cache[task_id] = task
        return task

    async def submit_delete(self, task_id: str) -> None:
        previous = self._cache.pop(task_id, None)
        try:
            await self._call(self._api.delete(task_id), "delete task")
        except NotFound:
            self._drop(task_id)
            raise
        except TimelineError:
            restorable = task_id not in self._cache and task_id not in self._tombstones
            if previous is not None and restorable:
                self._cache[task_id] = previous
            raise
        self._drop(task_id)

    async def _call(self, coro, action: str):
        try:
            return await coro
        except TransportError as exc:
            self._notify("error", f"Could not {action}: server unreachable")
            if self._on_transport_error is not None:
                self._on_transport_error(exc)
            raise
        except TimelineError as exc:
            self._notify("error", f"Could not {action}: {exc}")
            raise

    @staticmethod
    def _preview(previous: Task | None, fields: dict) -> Task | None:
        if previous is None:
            return None
        try:
            changes = TaskPatch.model_validate(fields).changes()
            return Task.model_validate({**previous.model_dump(), **changes})
        except PydanticValidationError:
            return None

    def _drop(self, task_id: str) -> None:
        self._tombstones.add(task_id)
        self._cache.pop(task_id, None)
        if self.selected_id == task_id:
            self.selected_id = None

    # -- Broadcasts ------------------------------------------------------------

    def on_broadcast(self, event: Event | dict) -> None:
        """Fold one push-channel event into local state. Never raises."""
        try:
            if not isinstance(event, Event):
                event = Event.from_wire(event)
            handler = self._handlers.get(event.type)
            if handler is None:
                logger.debug("Ignoring %s event", event.type)
                return
            handler(self, event)
        except (PydanticValidationError, KeyError, ValueError) as exc:
            logger.warning("Dropping malformed event: %s", exc)
            return

        if event.type in _TASK_EVENTS:
            for arrived in self._load_buffers:
                arrived.append(event)

        for listener in self._listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Event listener failed")

    def _on_created(self, event: Event) -> None:
        token = event.correlation_token
        if token and token in self._pending_tokens:
            self._pending_tokens.discard(token)
            logger.debug("Ignoring echo of own creation %s", event.task_id)
            return
        task = event.task
        if task.id not in self._cache and task.id not in self._tombstones:
            self._cache[task.id] = task

    def _on_updated(self, event: Event) -> None:
        task = event.task
        if task.id in self._tombstones:
            self._anomaly(f"update for deleted task {task.id}; ignoring")
            return
        if task.id not in self._cache:
            self._anomaly(f"update for uncached task {task.id}; inserting")
        self._cache[task.id] = task

    def _on_deleted(self, event: Event) -> None:
        self._drop(event.task_id)

    def _on_time_update(self, event: Event) -> None:
        self.server_time = event.instant

    def _on_sync_ack(self, event: Event) -> None:
        self.server_time = event.instant
        self.last_synced_at = datetime.now()
        logger.debug("Timeline synced with server at %s", self.server_time)

    def _replay(self, snapshot: dict[str, Task], event: Event) -> None:
        if event.type == EventType.DELETED:
            snapshot.pop(event.task_id, None)
            return
        task = event.task
        if task.id in self._tombstones:
            return
        if event.type == EventType.UPDATED:
            snapshot[task.id] = task
        else:
            snapshot.setdefault(task.id, task)

    def _anomaly(self, message: str) -> None:
        self.anomalies += 1
        self.last_anomaly = ConcurrencyAnomaly(message)
        logger.warning("Concurrency anomaly: %s", self.last_anomaly)

    _handlers: dict[EventType, Callable[[ClientSyncAgent, Event], None]] = {
        EventType.CREATED: _on_created,
        EventType.UPDATED: _on_updated,
        EventType.DELETED: _on_deleted,
        EventType.TIME_UPDATE: _on_time_update,
        EventType.SYNC_ACK: _on_sync_ack,
    }
