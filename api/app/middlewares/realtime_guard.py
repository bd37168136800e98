"""Per-IP limits and bounded queues for WebSocket subscribers.

Limits come from ``max_ws_conn_per_ip`` and ``ws_queue_max`` in
:mod:`config`. Each subscriber gets its own bounded queue so that a slow
client only ever drops its own messages.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import Any

from config import get_settings

HEARTBEAT_INTERVAL_SEC = 15

connections: dict[str, int] = defaultdict(int)


class TooManyConnections(Exception):
    """Raised when an IP already holds the maximum number of sockets."""


def register(ip: str) -> None:
    """Increment connection count for ``ip`` or raise ``TooManyConnections``."""
    if connections[ip] >= get_settings().max_ws_conn_per_ip:
        raise TooManyConnections(ip)
    connections[ip] += 1


def unregister(ip: str) -> None:
    """Decrement connection count for ``ip``."""
    if connections[ip] > 0:
        connections[ip] -= 1


def queue(maxsize: int | None = None) -> asyncio.Queue[Any]:
    """Return an ``asyncio.Queue`` bounded by ``ws_queue_max`` by default."""
    return asyncio.Queue(maxsize=maxsize or get_settings().ws_queue_max)


def offer(q: asyncio.Queue[Any], item: Any) -> bool:
    """Enqueue ``item`` without waiting; return ``False`` when ``q`` is full."""
    try:
        q.put_nowait(item)
    except asyncio.QueueFull:
        return False
    return True


def heartbeat_task(websocket) -> asyncio.Task:
    """Return a task sending ``{"type": "ping"}`` every heartbeat interval.

    The task stops silently when the connection drops; callers cancel it on
    cleanup.
    """

    async def _hb() -> None:  # pragma: no cover - network timing
        try:
            while True:
                await asyncio.sleep(HEARTBEAT_INTERVAL_SEC)
                await websocket.send_json({"type": "ping"})
        except Exception:
            pass

    return asyncio.create_task(_hb())
