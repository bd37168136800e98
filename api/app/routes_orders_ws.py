"""WebSocket streams of order status changes.

``/ws/orders/{order_id}`` follows a single order and ``/ws/orders`` every
order. Each socket holds its own Redis subscription and a bounded queue;
when a subscriber falls behind, its oldest pending messages are dropped
instead of stalling the publisher or other subscribers.
"""

from __future__ import annotations

import asyncio
import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from .middlewares import realtime_guard
from .routes_metrics import ws_clients
from .services.notifier import ORDERS_TOPIC, order_topic

router = APIRouter()

logger = logging.getLogger("notify")


async def _stream(websocket: WebSocket, channel: str) -> None:
    ip = websocket.client.host if websocket.client else "?"
    try:
        realtime_guard.register(ip)
    except realtime_guard.TooManyConnections:
        await websocket.close(code=status.WS_1013_TRY_AGAIN_LATER)
        return

    await websocket.accept()
    ws_clients.inc()
    pubsub = websocket.app.state.redis.pubsub()
    queue: asyncio.Queue[dict | None] = realtime_guard.queue()

    async def reader():
        try:
            async for message in pubsub.listen():
                if message["type"] != "message":
                    continue
                data = json.loads(message["data"])
                while not realtime_guard.offer(queue, data):
                    queue.get_nowait()
                    logger.warning("subscriber on %s lagging, dropped a message", channel)
        finally:
            while not realtime_guard.offer(queue, None):
                queue.get_nowait()

    reader_task = hb_task = None
    try:
        await pubsub.subscribe(channel)
        reader_task = asyncio.create_task(reader())
        hb_task = realtime_guard.heartbeat_task(websocket)
        while True:
            item = await queue.get()
            if item is None:
                break
            await websocket.send_json(item)
    except WebSocketDisconnect:  # pragma: no cover - network disconnect
        pass
    finally:
        for task in (reader_task, hb_task):
            if task is not None:
                task.cancel()
        await pubsub.aclose()
        ws_clients.dec()
        realtime_guard.unregister(ip)


@router.websocket("/ws/orders/{order_id}")
async def order_ws(websocket: WebSocket, order_id: int) -> None:
    """Stream status changes of ``order_id``."""
    await _stream(websocket, order_topic(order_id))


@router.websocket("/ws/orders")
async def orders_ws(websocket: WebSocket) -> None:
    """Stream status changes of every order."""
    await _stream(websocket, ORDERS_TOPIC)
