"""End-to-end sync scenarios: real app, two sync agents, in-process transport."""

from __future__ import annotations

from datetime import datetime
from unittest.mock import AsyncMock

import httpx
import pytest

from tasktimeline.client.agent import ClientSyncAgent
from tasktimeline.client.api import TaskApiClient
from tasktimeline.client.session import TimelineClient
from tasktimeline.config.models import ClientConfig
from tasktimeline.errors import NotFound

STANDUP = {"title": "Standup", "startTime": datetime(2024, 5, 1, 9, 0), "duration": 30}


class Peer:
    """A sync agent wired to the app both ways: HTTP in, push frames out."""

    def __init__(self, app, name: str) -> None:
        self.api = TaskApiClient("http://timeline.test", transport=httpx.ASGITransport(app=app))
        self.agent = ClientSyncAgent(self.api)

        async def send(frame: dict) -> None:
            self.agent.on_broadcast(frame)

        self.conn = app.state.registry.open(send, connection_id=name)

    async def drain(self) -> None:
        await self.conn.flush()

    async def aclose(self) -> None:
        await self.api.aclose()


@pytest.fixture
async def peers(app):
    alice, bob = Peer(app, "alice"), Peer(app, "bob")
    yield alice, bob
    await app.state.registry.close_all()
    await alice.aclose()
    await bob.aclose()


async def _drain(*peers: Peer) -> None:
    for peer in peers:
        await peer.drain()


@pytest.mark.asyncio
async def test_standup_created_once_everywhere(peers):
    alice, bob = peers

    task = await alice.agent.submit_create(STANDUP)
    await _drain(alice, bob)

    assert [t.id for t in alice.agent.tasks()] == [task.id]
    assert [t.id for t in bob.agent.tasks()] == [task.id]
    assert bob.agent.get(task.id).title == "Standup"
    assert alice.agent.pending_tokens == frozenset()


@pytest.mark.asyncio
async def test_update_propagates(peers):
    alice, bob = peers
    task = await alice.agent.submit_create(STANDUP)
    await _drain(alice, bob)

    updated = await bob.agent.submit_update(task.id, {"duration": 45})
    await _drain(alice, bob)

    assert updated.duration == 45
    assert alice.agent.get(task.id).duration == 45
    assert alice.agent.anomalies == 0


@pytest.mark.asyncio
async def test_delete_clears_remote_selection(peers):
    alice, bob = peers
    task = await alice.agent.submit_create(STANDUP)
    await _drain(alice, bob)
    bob.agent.select(task.id)

    await alice.agent.submit_delete(task.id)
    await _drain(alice, bob)

    assert len(alice.agent) == 0
    assert len(bob.agent) == 0
    assert bob.agent.selected_id is None


@pytest.mark.asyncio
async def test_concurrent_creates_converge(peers):
    alice, bob = peers

    a = await alice.agent.submit_create(STANDUP)
    b = await bob.agent.submit_create({**STANDUP, "title": "Review"})
    await _drain(alice, bob)

    for peer in (alice, bob):
        assert sorted(t.id for t in peer.agent.tasks()) == sorted([a.id, b.id])


@pytest.mark.asyncio
async def test_update_after_remote_delete(peers):
    alice, bob = peers
    task = await alice.agent.submit_create(STANDUP)
    await _drain(alice, bob)

    await bob.agent.submit_delete(task.id)
    with pytest.raises(NotFound):
        await alice.agent.submit_update(task.id, {"duration": 45})
    await _drain(alice, bob)

    assert task.id not in alice.agent
    assert task.id not in bob.agent


@pytest.mark.asyncio
async def test_resync_loads_everything(app):
    seeded = app.state.gateway.create(
        {"title": "Standup", "startTime": "2024-05-01T09:00:00", "duration": 30}
    )
    client = TimelineClient(
        ClientConfig(server_url="http://timeline.test"),
        transport=httpx.ASGITransport(app=app),
    )
    client.channel.request_sync = AsyncMock()

    await client.resync()

    assert [t.id for t in client.agent.tasks()] == [seeded.id]
    client.channel.request_sync.assert_awaited_once()
    await client.close()
