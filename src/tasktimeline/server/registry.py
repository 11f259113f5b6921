"""Live push-channel connections and their per-second time ticks."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import uuid
from collections.abc import Awaitable, Callable
from datetime import datetime

from tasktimeline.config.constants import TICK_INTERVAL_SECONDS
from tasktimeline.protocol import Event

logger = logging.getLogger("tasktimeline.server.registry")

SendFunc = Callable[[dict], Awaitable[None]]


class Connection:
    """One client's push channel.

    Outbound events go through a FIFO queue drained by a single writer task,
    so events reach the client in the order they were enqueued. A second task
    enqueues a ``time:update`` every ``tick_interval`` seconds.
    """

    def __init__(
        self,
        send: SendFunc,
        connection_id: str | None = None,
        tick_interval: float = TICK_INTERVAL_SECONDS,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.id = connection_id or f"conn-{uuid.uuid4().hex[:8]}"
        self._send = send
        self._tick_interval = tick_interval
        self._clock = clock
        self._queue: asyncio.Queue[Event] = asyncio.Queue()
        self._writer: asyncio.Task | None = None
        self._ticker: asyncio.Task | None = None
        self._on_close: Callable[[Connection], None] | None = None
        self.closed = False

    def __repr__(self) -> str:
        return f"Connection({self.id!r}, closed={self.closed})"

    # -- Lifecycle -------------------------------------------------------------

    def start(self, on_close: Callable[[Connection], None] | None = None) -> None:
        """Spawn the writer and tick tasks. Must run inside the event loop."""
        self._on_close = on_close
        self._writer = asyncio.create_task(self._write_loop(), name=f"{self.id}-writer")
        self._ticker = asyncio.create_task(self._tick_loop(), name=f"{self.id}-ticker")

    async def close(self) -> None:
        """Stop ticking and writing. Idempotent."""
        if self.closed:
            return
        self._mark_closed()
        current = asyncio.current_task()
        for task in (self._ticker, self._writer):
            if task is not None and task is not current and not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

    def _mark_closed(self) -> None:
        self.closed = True
        self._drain()
        if self._on_close is not None:
            self._on_close(self)

    # -- Outbound --------------------------------------------------------------

    def enqueue(self, event: Event) -> bool:
        """Queue an event for delivery. Returns False if the connection is closed."""
        if self.closed:
            return False
        self._queue.put_nowait(event)
        return True

    async def send_now(self, event: Event) -> None:
        """Queue an event and wait until it (and everything before it) is sent."""
        if self.enqueue(event):
            await self.flush()

    async def flush(self) -> None:
        """Wait until every queued event has been handed to the transport."""
        await self._queue.join()

    def _drain(self) -> None:
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()

    async def _write_loop(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self._send(event.to_wire())
            except asyncio.CancelledError:
                self._queue.task_done()
                raise
            except Exception as exc:
                logger.debug("Send failed on %s: %s", self.id, exc)
                self._queue.task_done()
                if self._ticker is not None:
                    self._ticker.cancel()
                self._mark_closed()
                return
            self._queue.task_done()

    async def _tick_loop(self) -> None:
        while not self.closed:
            await asyncio.sleep(self._tick_interval)
            self.enqueue(Event.time_update(self._clock()))


class ConnectionRegistry:
    """The set of live connections.

    Iteration goes through :meth:`snapshot`, a copy taken at call time, so a
    connection deregistering mid-broadcast never disturbs the loop.
    """

    def __init__(self, tick_interval: float = TICK_INTERVAL_SECONDS) -> None:
        self.tick_interval = tick_interval
        self._connections: dict[str, Connection] = {}

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, conn: Connection) -> bool:
        return conn.id in self._connections

    def open(self, send: SendFunc, connection_id: str | None = None) -> Connection:
        """Create, register, and start a connection around a send coroutine."""
        conn = Connection(send, connection_id=connection_id, tick_interval=self.tick_interval)
        return self.register(conn)

    def register(self, conn: Connection) -> Connection:
        self._connections[conn.id] = conn
        conn.start(on_close=self._discard)
        logger.info("Client connected: %s (%d live)", conn.id, len(self._connections))
        return conn

    async def deregister(self, conn: Connection) -> None:
        self._discard(conn)
        await conn.close()

    def _discard(self, conn: Connection) -> None:
        if self._connections.pop(conn.id, None) is not None:
            logger.info("Client disconnected: %s (%d live)", conn.id, len(self._connections))

    def snapshot(self) -> list[Connection]:
        return list(self._connections.values())

    async def close_all(self) -> None:
        conns = self.snapshot()
        if conns:
            logger.info("Closing %d connections...", len(conns))
        for conn in conns:
            await self.deregister(conn)
