"""Sync client: request channel, push channel, cache, and reconnection."""

from tasktimeline.client.agent import ClientSyncAgent
from tasktimeline.client.api import TaskApiClient
from tasktimeline.client.channel import PushChannel
from tasktimeline.client.session import TimelineClient
from tasktimeline.client.supervisor import ConnectionState, ReconnectionSupervisor

__all__ = [
    "ClientSyncAgent",
    "ConnectionState",
    "PushChannel",
    "ReconnectionSupervisor",
    "TaskApiClient",
    "TimelineClient",
]
