"""Tests for the reconnection supervisor's backoff state machine."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from tasktimeline.client.supervisor import ConnectionState, ReconnectionSupervisor
from tasktimeline.errors import TransportError

BASE = 0.01


def _failing():
    return AsyncMock(side_effect=TransportError("refused"))


async def _settle(supervisor: ReconnectionSupervisor, timeout: float = 1.0) -> None:
    """Wait until no timer or attempt is pending."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while supervisor.timer is not None or supervisor._attempt is not None:
        assert loop.time() < deadline, "supervisor never settled"
        await asyncio.sleep(BASE / 2)


class TestStart:
    @pytest.mark.asyncio
    async def test_connects(self):
        connect, on_connected = AsyncMock(), AsyncMock()
        supervisor = ReconnectionSupervisor(connect, on_connected, base_delay=BASE)

        assert await supervisor.start() is True
        assert supervisor.state == ConnectionState.CONNECTED
        on_connected.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_initial_failure_schedules_retry(self):
        supervisor = ReconnectionSupervisor(_failing(), base_delay=10)

        assert await supervisor.start() is False
        assert supervisor.state == ConnectionState.RECONNECTING
        assert supervisor.attempt_count == 1
        loop = asyncio.get_running_loop()
        assert 9 < supervisor.timer.when() - loop.time() <= 10
        await supervisor.stop()
        assert supervisor.timer is None


class TestBackoff:
    @pytest.mark.asyncio
    async def test_linear_delays_then_give_up(self):
        connect = _failing()
        supervisor = ReconnectionSupervisor(connect, base_delay=BASE, max_attempts=5)
        loop = asyncio.get_running_loop()

        with patch.object(loop, "call_later", wraps=loop.call_later) as call_later:
            await supervisor.start()
            await _settle(supervisor)

        delays = [c.args[0] for c in call_later.call_args_list if c.args[1] == supervisor._fire]
        assert delays == pytest.approx([n * BASE for n in range(1, 6)])
        assert connect.await_count == 6
        assert supervisor.gave_up
        assert supervisor.state == ConnectionState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_fourth_attempt_waits_three_base_delays(self):
        loop = asyncio.get_running_loop()
        attempted_at: list[float] = []

        async def connect():
            attempted_at.append(loop.time())
            if len(attempted_at) <= 3:
                raise TransportError("refused")

        supervisor = ReconnectionSupervisor(
            AsyncMock(side_effect=connect), base_delay=BASE, max_attempts=5
        )
        with patch.object(loop, "call_later", wraps=loop.call_later) as call_later:
            await supervisor.start()
            await _settle(supervisor)

        delays = [c.args[0] for c in call_later.call_args_list if c.args[1] == supervisor._fire]
        assert len(attempted_at) == 4
        assert delays[2] == pytest.approx(3 * BASE)
        assert attempted_at[3] - attempted_at[2] >= 3 * BASE - 1e-3
        assert supervisor.state == ConnectionState.CONNECTED

    @pytest.mark.asyncio
    async def test_success_resets_attempts(self):
        connect = AsyncMock(side_effect=[TransportError("a"), TransportError("b"), None])
        on_connected = AsyncMock()
        supervisor = ReconnectionSupervisor(connect, on_connected, base_delay=BASE)

        await supervisor.start()
        await _settle(supervisor)

        assert supervisor.state == ConnectionState.CONNECTED
        assert supervisor.attempt_count == 1
        assert not supervisor.gave_up
        on_connected.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_resync_failure_keeps_connection(self):
        supervisor = ReconnectionSupervisor(
            AsyncMock(), AsyncMock(side_effect=TransportError("list failed")), base_delay=BASE
        )
        await supervisor.start()
        assert supervisor.state == ConnectionState.CONNECTED


class TestTransitions:
    @pytest.mark.asyncio
    async def test_connection_lost_reconnects(self):
        connect, on_connected = AsyncMock(), AsyncMock()
        supervisor = ReconnectionSupervisor(connect, on_connected, base_delay=BASE)
        await supervisor.start()

        supervisor.connection_lost(TransportError("socket closed"))
        assert supervisor.state == ConnectionState.RECONNECTING
        await _settle(supervisor)

        assert supervisor.state == ConnectionState.CONNECTED
        assert connect.await_count == 2
        assert on_connected.await_count == 2

    @pytest.mark.asyncio
    async def test_connection_lost_ignored_unless_connected(self):
        supervisor = ReconnectionSupervisor(_failing(), base_delay=10)
        await supervisor.start()
        timer = supervisor.timer

        supervisor.connection_lost()
        supervisor.connection_lost()

        assert supervisor.timer is timer
        await supervisor.stop()

    @pytest.mark.asyncio
    async def test_reset_after_give_up(self):
        connect = _failing()
        supervisor = ReconnectionSupervisor(connect, base_delay=BASE, max_attempts=1)
        await supervisor.start()
        await _settle(supervisor)
        assert supervisor.gave_up

        connect.side_effect = None
        supervisor.reset()
        assert not supervisor.gave_up
        assert supervisor.timer is not None
        await _settle(supervisor)
        assert supervisor.state == ConnectionState.CONNECTED

    @pytest.mark.asyncio
    async def test_single_timer(self):
        supervisor = ReconnectionSupervisor(_failing(), base_delay=10)
        await supervisor.start()
        first = supervisor.timer

        supervisor._schedule()
        assert supervisor.timer is first
        await supervisor.stop()
