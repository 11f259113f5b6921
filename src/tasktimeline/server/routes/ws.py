"""WebSocket push channel: broadcasts, time ticks, and sync handshakes."""

from __future__ import annotations

import json
import logging
from datetime import datetime

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from tasktimeline.protocol import ClientAction, Event, EventType

logger = logging.getLogger("tasktimeline.server.ws")

ws_router = APIRouter()


@ws_router.websocket("/ws")
async def timeline_websocket(websocket: WebSocket) -> None:
    """Register the client, then answer its sync/ping messages until it leaves.

    Everything sent to the client goes through the connection's queue so
    broadcasts, ticks, and replies share one writer.
    """
    await websocket.accept()

    registry = websocket.app.state.registry
    conn = registry.open(websocket.send_json)

    try:
        while True:
            raw = await websocket.receive_text()

            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                conn.enqueue(Event.error("Invalid JSON"))
                continue

            action = msg.get("type", "") if isinstance(msg, dict) else ""

            if action == ClientAction.SYNC_REQUEST:
                conn.enqueue(Event.sync_ack(datetime.now()))
            elif action == ClientAction.PING:
                conn.enqueue(Event(EventType.PONG))
            else:
                conn.enqueue(Event.error(f"Unknown message type: {action}"))

    except WebSocketDisconnect:
        logger.debug("WebSocket disconnected: %s", conn.id)
    except Exception as e:
        logger.error("WebSocket error on %s: %s", conn.id, e, exc_info=True)
    finally:
        await registry.deregister(conn)
