"""Client end of the WebSocket push channel."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from collections.abc import Callable

import websockets

from tasktimeline.errors import TransportError
from tasktimeline.protocol import ClientAction, Event

logger = logging.getLogger("tasktimeline.client.channel")

_OPEN_TIMEOUT = 5.0


class PushChannel:
    """Owns at most one live socket to ``/ws``.

    Incoming frames are parsed into :class:`Event` and handed to ``on_event``.
    When the socket closes or errors without :meth:`close` being called,
    ``on_lost`` fires once.
    """

    def __init__(
        self,
        url: str,
        on_event: Callable[[Event], None],
        on_lost: Callable[[Exception | None], None] | None = None,
        open_timeout: float = _OPEN_TIMEOUT,
    ) -> None:
        self._url = url
        self._on_event = on_event
        self._on_lost = on_lost
        self._open_timeout = open_timeout
        self._ws = None
        self._reader: asyncio.Task | None = None

    @property
    def connected(self) -> bool:
        return self._ws is not None

    async def open(self) -> None:
        """Connect, replacing any previous socket. Raises on failure."""
        await self.close()
        try:
            ws = await websockets.connect(self._url, open_timeout=self._open_timeout)
        except (OSError, asyncio.TimeoutError, websockets.WebSocketException) as exc:
            raise TransportError(f"Cannot connect to {self._url}: {exc}") from exc
        self._ws = ws
        self._reader = asyncio.create_task(self._read_loop(ws), name="push-channel-reader")
        logger.info("Push channel connected: %s", self._url)

    async def close(self) -> None:
        """Close the socket without reporting it as lost."""
        ws, reader = self._ws, self._reader
        self._ws = None
        self._reader = None
        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reader
        if ws is not None:
            with contextlib.suppress(Exception):
                await ws.close()

    async def send(self, action: ClientAction, data: dict | None = None) -> None:
        if self._ws is None:
            raise TransportError("Push channel is not connected")
        frame: dict = {"type": str(action)}
        if data:
            frame["data"] = data
        try:
            await self._ws.send(json.dumps(frame))
        except websockets.WebSocketException as exc:
            raise TransportError(f"Send failed: {exc}") from exc

    async def request_sync(self) -> None:
        """Ask the server for its current time (answered by timeline:synced)."""
        await self.send(ClientAction.SYNC_REQUEST)

    async def _read_loop(self, ws) -> None:
        error: Exception | None = None
        try:
            async for raw in ws:
                try:
                    event = Event.from_wire(json.loads(raw))
                except ValueError as exc:
                    logger.debug("Ignoring unparseable frame: %s", exc)
                    continue
                self._on_event(event)
        except websockets.ConnectionClosed as exc:
            error = exc
        except Exception as exc:
            logger.error("Push channel error: %s", exc, exc_info=True)
            error = exc

        # Only report sockets we still own; close()/open() cancel their reader.
        if self._ws is ws:
            self._ws = None
            self._reader = None
            logger.warning("Push channel lost: %s", error or "closed by server")
            if self._on_lost is not None:
                self._on_lost(error)
