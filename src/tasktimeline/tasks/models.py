"""Pydantic models for timeline tasks."""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from tasktimeline.config.constants import (
    DEFAULT_OWNER_TAG,
    DEFAULT_TASK_COLOR,
    MIN_DURATION_MINUTES,
)


class TaskStatus(StrEnum):
    """Lifecycle states for a timeline task."""

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


def _generate_id() -> str:
    return secrets.token_hex(12)


def wall_clock(value: datetime) -> datetime:
    """Return ``value`` as a timezone-naive local wall-clock instant."""
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


def now() -> datetime:
    return datetime.now()


class WireModel(BaseModel):
    """Base for models exchanged over HTTP/WebSocket (camelCase on the wire)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def wire_name(cls, field_name: str) -> str:
        """Map a python field name (or alias) to its wire name."""
        field = cls.model_fields.get(field_name)
        if field is not None and field.alias:
            return field.alias
        return field_name


class TaskFields(WireModel):
    """The user-editable part of a task."""

    title: str = Field(min_length=1)
    start_time: datetime
    duration: int = Field(ge=MIN_DURATION_MINUTES)  # minutes
    color: str = DEFAULT_TASK_COLOR
    status: TaskStatus = TaskStatus.PENDING
    owner_tag: str = DEFAULT_OWNER_TAG  # reserved for multi-user partitioning

    @field_validator("start_time")
    @classmethod
    def naive_start_time(cls, v: datetime) -> datetime:
        return wall_clock(v)


class TaskCreate(TaskFields):
    """Create request body; the correlation token is never persisted."""

    correlation_token: str | None = None


class TaskPatch(WireModel):
    """Partial update. Unset fields are left alone; ``id`` is never accepted."""

    title: str | None = None
    start_time: datetime | None = None
    duration: int | None = None
    color: str | None = None
    status: TaskStatus | None = None
    owner_tag: str | None = None

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class Task(TaskFields):
    """A canonical task record as committed by the store."""

    id: str = Field(default_factory=_generate_id)
    created_at: datetime = Field(default_factory=now)
    updated_at: datetime = Field(default_factory=now)

    @property
    def end_time(self) -> datetime:
        return self.start_time + timedelta(minutes=self.duration)


class TaskFilter(WireModel):
    """Conjunctive range/status filter for ``list`` queries."""

    start: datetime | None = None
    end: datetime | None = None
    status: TaskStatus | None = None

    @field_validator("status", mode="before")
    @classmethod
    def all_means_any(cls, v):
        if v in ("", "all"):
            return None
        return v

    @field_validator("start", "end")
    @classmethod
    def naive_bounds(cls, v: datetime | None) -> datetime | None:
        return wall_clock(v) if v is not None else None

    def matches(self, task: Task) -> bool:
        if self.start is not None and task.start_time < self.start:
            return False
        if self.end is not None and task.start_time > self.end:
            return False
        if self.status is not None and task.status != self.status:
            return False
        return True
