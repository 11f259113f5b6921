"""Request/response channel: async HTTP client for the task API."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

import httpx

from tasktimeline.config.constants import DEFAULT_SERVER_URL
from tasktimeline.errors import TransportError, error_from_payload
from tasktimeline.tasks.models import Task, TaskStatus

logger = logging.getLogger("tasktimeline.client.api")

_DEFAULT_TIMEOUT = 10.0


class TaskApiClient:
    """Thin typed wrapper around ``/api/tasks``.

    Structured error bodies come back as :class:`ValidationError` /
    :class:`NotFound` / :class:`StorageError`; connection failures and
    timeouts as :class:`TransportError`.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_SERVER_URL,
        *,
        timeout: float = _DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> TaskApiClient:
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            resp = await self._client.request(method, path, **kwargs)
        except httpx.TransportError as exc:
            logger.debug("%s %s failed: %s", method, path, exc)
            raise TransportError(f"{method} {path}: {exc}") from exc

        if resp.is_error:
            try:
                payload = resp.json()
            except ValueError:
                payload = {}
            if not isinstance(payload, dict):
                payload = {}
            raise error_from_payload(resp.status_code, payload)
        return resp.json()

    # -- Task CRUD -------------------------------------------------------------

    async def list(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        status: TaskStatus | str | None = None,
    ) -> list[Task]:
        params: dict[str, str] = {}
        if start is not None:
            params["start"] = start.isoformat()
        if end is not None:
            params["end"] = end.isoformat()
        if status:
            params["status"] = str(status)
        data = await self._request("GET", "/api/tasks", params=params)
        return [Task.model_validate(raw) for raw in data]

    async def read(self, task_id: str) -> Task:
        return Task.model_validate(await self._request("GET", f"/api/tasks/{task_id}"))

    async def create(self, fields: dict, correlation_token: str | None = None) -> Task:
        body = _jsonable(fields)
        if correlation_token:
            body["correlationToken"] = correlation_token
        return Task.model_validate(await self._request("POST", "/api/tasks", json=body))

    async def update(self, task_id: str, fields: dict) -> Task:
        data = await self._request("PUT", f"/api/tasks/{task_id}", json=_jsonable(fields))
        return Task.model_validate(data)

    async def delete(self, task_id: str) -> str:
        data = await self._request("DELETE", f"/api/tasks/{task_id}")
        return data.get("id", task_id)

    async def health(self) -> dict:
        return await self._request("GET", "/api/health")


def _jsonable(fields: dict) -> dict:
    """Serialize datetimes/enums so httpx can encode the body."""
    out: dict = {}
    for key, value in fields.items():
        if isinstance(value, datetime):
            out[key] = value.isoformat()
        elif isinstance(value, TaskStatus):
            out[key] = value.value
        else:
            out[key] = value
    return out
