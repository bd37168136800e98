"""Publish order status changes to Redis pub/sub topics.

Every change goes to the per-order topic ``rt:orders:{order_id}`` and to
the global ``rt:orders`` topic. Publishing is best effort: a failure or a
timeout is logged and counted but never undoes the committed change.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime
from typing import Any, Dict

from config import get_settings

from ..domain import OrderStatus
from ..routes_metrics import notification_publish_failures_total

logger = logging.getLogger("notify")

ORDERS_TOPIC = "rt:orders"


def order_topic(order_id: int) -> str:
    """Return the pub/sub channel carrying updates for ``order_id``."""

    return f"{ORDERS_TOPIC}:{order_id}"


def status_payload(order_id: int, status: OrderStatus, at: datetime) -> Dict[str, Any]:
    """Return the message broadcast for a status change."""

    return {
        "order_id": order_id,
        "status": OrderStatus(status).value,
        "timestamp": at.isoformat(),
    }


class OrderNotifier:
    """Fan order status changes out through a Redis client."""

    def __init__(self, redis, timeout: float | None = None) -> None:
        self._redis = redis
        self._timeout = (
            timeout if timeout is not None else get_settings().publish_timeout_secs
        )

    async def publish(self, topic: str, payload: Dict[str, Any]) -> bool:
        """Publish ``payload`` on ``topic``; return ``False`` if it failed."""

        try:
            await asyncio.wait_for(
                self._redis.publish(topic, json.dumps(payload)), self._timeout
            )
        except Exception:
            notification_publish_failures_total.inc()
            logger.warning(
                "publish to %s failed",
                topic,
                exc_info=True,
                extra={"order_id": payload.get("order_id")},
            )
            return False
        return True

    async def order_status(
        self, order_id: int, status: OrderStatus, at: datetime
    ) -> None:
        """Broadcast a status change on the order and global topics."""

        payload = status_payload(order_id, status, at)
        for topic in (order_topic(order_id), ORDERS_TOPIC):
            await self.publish(topic, payload)


__all__ = ["ORDERS_TOPIC", "OrderNotifier", "order_topic", "status_payload"]
