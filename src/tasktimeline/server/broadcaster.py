"""Fan-out of committed task mutations to every live connection."""

from __future__ import annotations

import itertools
import logging

from tasktimeline.protocol import BROADCAST_TYPES, Event
from tasktimeline.server.registry import ConnectionRegistry
from tasktimeline.tasks.models import Task

logger = logging.getLogger("tasktimeline.server.broadcaster")


class ChangeBroadcaster:
    """Publishes task:created / task:updated / task:deleted events.

    :meth:`publish` never suspends: it stamps the event with the next
    sequence number and enqueues it on a snapshot of the registry. Callers
    commit and publish without awaiting in between, so each connection sees
    events in commit order. Delivery is best-effort; a client that is not
    connected misses the event and catches up by resynchronizing.
    """

    def __init__(self, registry: ConnectionRegistry) -> None:
        self._registry = registry
        self._seq = itertools.count(1)

    def publish(self, event: Event) -> int:
        """Deliver ``event`` to every registered connection once.

        Returns the number of connections it was queued for.
        """
        if event.type not in BROADCAST_TYPES:
            raise ValueError(f"Not a broadcast event: {event.type}")
        event.seq = next(self._seq)
        delivered = sum(1 for conn in self._registry.snapshot() if conn.enqueue(event))
        logger.debug("Published %s #%d to %d connections", event.type, event.seq, delivered)
        return delivered

    def created(self, task: Task, correlation_token: str | None = None) -> int:
        return self.publish(Event.created(task, correlation_token))

    def updated(self, task: Task) -> int:
        return self.publish(Event.updated(task))

    def deleted(self, task_id: str) -> int:
        return self.publish(Event.deleted(task_id))
