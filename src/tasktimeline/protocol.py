"""Push-channel wire protocol: typed events and their JSON envelopes.

Every frame is ``{"type": <event type>, "data": {...}}``; broadcast frames
also carry ``seq``, the broadcaster's publish sequence number.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

from tasktimeline.tasks.models import Task, wall_clock


class EventType(StrEnum):
    """Server → client events."""

    CREATED = "task:created"
    UPDATED = "task:updated"
    DELETED = "task:deleted"
    TIME_UPDATE = "time:update"
    SYNC_ACK = "timeline:synced"
    PONG = "pong"
    ERROR = "error"


class ClientAction(StrEnum):
    """Client → server messages."""

    SYNC_REQUEST = "timeline:sync"
    PING = "ping"


BROADCAST_TYPES = frozenset({EventType.CREATED, EventType.UPDATED, EventType.DELETED})


@dataclass
class Event:
    type: EventType
    data: dict = field(default_factory=dict)
    seq: int | None = None

    # -- Constructors ----------------------------------------------------------

    @classmethod
    def created(cls, task: Task, correlation_token: str | None = None) -> Event:
        data = task.to_wire()
        if correlation_token:
            data["correlationToken"] = correlation_token
        return cls(EventType.CREATED, data)

    @classmethod
    def updated(cls, task: Task) -> Event:
        return cls(EventType.UPDATED, task.to_wire())

    @classmethod
    def deleted(cls, task_id: str) -> Event:
        return cls(EventType.DELETED, {"id": task_id})

    @classmethod
    def time_update(cls, instant: datetime) -> Event:
        return cls(EventType.TIME_UPDATE, {"currentTime": instant.isoformat()})

    @classmethod
    def sync_ack(cls, instant: datetime) -> Event:
        return cls(EventType.SYNC_ACK, {"serverTime": instant.isoformat()})

    @classmethod
    def error(cls, message: str) -> Event:
        return cls(EventType.ERROR, {"error": message})

    # -- Wire ------------------------------------------------------------------

    def to_wire(self) -> dict:
        frame: dict = {"type": str(self.type), "data": self.data}
        if self.seq is not None:
            frame["seq"] = self.seq
        return frame

    @classmethod
    def from_wire(cls, frame: dict) -> Event:
        """Parse a frame. Raises ValueError for unknown or malformed frames."""
        if not isinstance(frame, dict):
            raise ValueError("Frame must be a JSON object")
        event_type = EventType(frame.get("type"))
        data = frame.get("data") or {}
        if not isinstance(data, dict):
            raise ValueError(f"Frame data must be an object, got {type(data).__name__}")
        return cls(event_type, data, frame.get("seq"))

    # -- Accessors -------------------------------------------------------------

    @property
    def task(self) -> Task:
        """The record carried by a created/updated event."""
        return Task.model_validate(self.data)

    @property
    def task_id(self) -> str:
        return str(self.data["id"])

    @property
    def correlation_token(self) -> str | None:
        return self.data.get("correlationToken")

    @property
    def instant(self) -> datetime:
        """The timestamp carried by time:update / timeline:synced."""
        raw = self.data.get("currentTime") or self.data.get("serverTime")
        if raw is None:
            raise ValueError(f"{self.type} event carries no timestamp")
        return wall_clock(datetime.fromisoformat(raw))
