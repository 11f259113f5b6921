"""Error taxonomy shared by the server and the sync client."""

from __future__ import annotations


class TimelineError(Exception):
    """Base class for every error raised by tasktimeline."""

    code = "error"

    def to_payload(self) -> dict:
        return {"error": self.code, "message": str(self)}


class ValidationError(TimelineError):
    """Bad input shape or value. ``field`` names the offending field."""

    code = "validation_error"

    def __init__(self, field: str, message: str = "") -> None:
        self.field = field
        super().__init__(message or f"Invalid value for {field!r}")

    def to_payload(self) -> dict:
        return {**super().to_payload(), "field": self.field}


class NotFound(TimelineError):
    """The referenced task does not exist."""

    code = "not_found"

    def __init__(self, task_id: str) -> None:
        self.id = task_id
        super().__init__(f"Task not found: {task_id}")

    def to_payload(self) -> dict:
        return {**super().to_payload(), "id": self.id}


class StorageError(TimelineError):
    """The storage collaborator failed for a reason other than validation."""

    code = "storage_error"


class TransportError(TimelineError):
    """The request or push channel is unavailable."""

    code = "transport_error"


class ConcurrencyAnomaly(TimelineError):
    """A broadcast referenced a task in an unexpected prior state.

    Never raised across a public boundary; the sync agent logs it and
    overwrites its cache entry with the incoming record.
    """

    code = "concurrency_anomaly"


def error_from_payload(status_code: int, payload: dict) -> TimelineError:
    """Rebuild a typed error from a structured HTTP error body."""
    code = payload.get("error", "")
    message = payload.get("message", "")
    if code == ValidationError.code or status_code in (400, 422):
        return ValidationError(payload.get("field", ""), message)
    if code == NotFound.code or status_code == 404:
        return NotFound(payload.get("id", ""))
    return StorageError(message or f"HTTP {status_code}")
