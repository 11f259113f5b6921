"""Wires the request channel, sync agent, push channel, and supervisor together."""

from __future__ import annotations

import logging

import httpx

from tasktimeline.client.agent import ClientSyncAgent, Notifier
from tasktimeline.client.api import TaskApiClient
from tasktimeline.client.channel import PushChannel
from tasktimeline.client.supervisor import ReconnectionSupervisor
from tasktimeline.config.models import ClientConfig

logger = logging.getLogger("tasktimeline.client")


class TimelineClient:
    """One client process: a cache that follows the server in real time.

    ``start()`` connects the push channel, loads every task, and sends a sync
    request; the same resynchronization runs after every reconnect.
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        notify: Notifier | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or ClientConfig()
        self.api = TaskApiClient(self.config.server_url, transport=transport)
        self.agent = ClientSyncAgent(
            self.api, notify=notify, on_transport_error=self._transport_failed
        )
        self.channel = PushChannel(
            self.config.ws_url, on_event=self.agent.on_broadcast, on_lost=self._transport_failed
        )
        self.supervisor = ReconnectionSupervisor(
            self.channel.open,
            self.resync,
            base_delay=self.config.reconnect_base_delay,
            max_attempts=self.config.reconnect_max_attempts,
        )

    async def __aenter__(self) -> TimelineClient:
        await self.start()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def start(self) -> bool:
        return await self.supervisor.start()

    async def resync(self) -> None:
        """Reload the full task list and ask for the server's time."""
        await self.agent.load_all()
        await self.channel.request_sync()

    async def close(self) -> None:
        await self.supervisor.stop()
        await self.channel.close()
        await self.api.aclose()

    def _transport_failed(self, exc: BaseException | None) -> None:
        self.supervisor.connection_lost(exc)
