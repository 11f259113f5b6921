"""Reconnection Supervisor: bounded, linearly increasing reconnect backoff."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import StrEnum

from tasktimeline.config.constants import (
    RECONNECT_BASE_DELAY_SECONDS,
    RECONNECT_MAX_ATTEMPTS,
)

logger = logging.getLogger("tasktimeline.client.supervisor")


class ConnectionState(StrEnum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    RECONNECTING = "reconnecting"


class ReconnectionSupervisor:
    """Re-establishes the push channel after it drops.

    Attempt *n* is scheduled ``base_delay * n`` seconds after the previous
    failure. After ``max_attempts`` failures the supervisor stays
    ``disconnected`` until :meth:`reset` is called. At most one timer and one
    attempt exist at any time.
    """

    def __init__(
        self,
        connect: Callable[[], Awaitable[None]],
        on_connected: Callable[[], Awaitable[None]] | None = None,
        *,
        base_delay: float = RECONNECT_BASE_DELAY_SECONDS,
        max_attempts: int = RECONNECT_MAX_ATTEMPTS,
    ) -> None:
        self._connect = connect
        self._on_connected = on_connected
        self.base_delay = base_delay
        self.max_attempts = max_attempts
        self.state = ConnectionState.DISCONNECTED
        self.attempt_count = 1
        self.gave_up = False
        self._timer: asyncio.TimerHandle | None = None
        self._attempt: asyncio.Task | None = None

    @property
    def next_delay(self) -> float:
        return self.base_delay * self.attempt_count

    @property
    def timer(self) -> asyncio.TimerHandle | None:
        """The pending reconnect timer, if one is scheduled."""
        return self._timer

    # -- Transitions -----------------------------------------------------------

    async def start(self) -> bool:
        """Make the initial connection; falls back to scheduled retries."""
        if self._busy():
            return False
        self.state = ConnectionState.RECONNECTING
        try:
            await self._connect()
        except Exception as exc:
            logger.warning("Initial connection failed: %s", exc)
            self.state = ConnectionState.DISCONNECTED
            self._schedule()
            return False
        await self._connected()
        return True

    def connection_lost(self, exc: BaseException | None = None) -> None:
        """connected → disconnected → reconnecting."""
        if self.state != ConnectionState.CONNECTED:
            return
        logger.info("Connection lost (%s); reconnecting", exc or "closed")
        self.state = ConnectionState.DISCONNECTED
        self._schedule()

    def reset(self) -> None:
        """External trigger (e.g. user action): retry from attempt 1."""
        self._cancel_timer()
        self.attempt_count = 1
        self.gave_up = False
        if self.state != ConnectionState.CONNECTED and self._attempt is None:
            self.state = ConnectionState.DISCONNECTED
            self._schedule()

    async def stop(self) -> None:
        self._cancel_timer()
        attempt, self._attempt = self._attempt, None
        if attempt is not None and attempt is not asyncio.current_task():
            attempt.cancel()
            try:
                await attempt
            except asyncio.CancelledError:
                pass
        self.state = ConnectionState.DISCONNECTED

    # -- Internals -------------------------------------------------------------

    def _busy(self) -> bool:
        return self._timer is not None or self._attempt is not None

    def _schedule(self) -> None:
        if self._busy():
            return
        if self.attempt_count > self.max_attempts:
            self.state = ConnectionState.DISCONNECTED
            self.gave_up = True
            logger.error("Max reconnection attempts reached (%d)", self.max_attempts)
            return
        delay = self.next_delay
        self.state = ConnectionState.RECONNECTING
        logger.info(
            "Attempting to reconnect in %.1fs (%d/%d)",
            delay,
            self.attempt_count,
            self.max_attempts,
        )
        self._timer = asyncio.get_running_loop().call_later(delay, self._fire)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self) -> None:
        self._timer = None
        self._attempt = asyncio.create_task(self._try_reconnect(), name="reconnect-attempt")

    async def _try_reconnect(self) -> None:
        try:
            await self._connect()
        except Exception as exc:
            logger.warning(
                "Reconnect attempt %d/%d failed: %s", self.attempt_count, self.max_attempts, exc
            )
            self._attempt = None
            self.attempt_count += 1
            self._schedule()
            return
        self._attempt = None
        await self._connected()

    async def _connected(self) -> None:
        self.state = ConnectionState.CONNECTED
        self.attempt_count = 1
        self.gave_up = False
        logger.info("Connected")
        if self._on_connected is None:
            return
        try:
            await self._on_connected()
        except Exception as exc:
            logger.error("Resynchronization after connect failed: %s", exc)
