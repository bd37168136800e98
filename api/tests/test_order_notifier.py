import asyncio
import json
import logging
import pathlib
import sys
from datetime import datetime, timezone

import pytest

sys.path.append(str(pathlib.Path(__file__).resolve().parents[2]))

from api.app.domain import OrderStatus  # noqa: E402
from api.app.services.notifier import (  # noqa: E402
    ORDERS_TOPIC,
    OrderNotifier,
    order_topic,
    status_payload,
)

AT = datetime(2026, 10, 19, 18, 30, tzinfo=timezone.utc)


class BrokenRedis:
    async def publish(self, channel, message):
        raise ConnectionError("redis down")


class SlowRedis:
    async def publish(self, channel, message):
        await asyncio.sleep(1)


def test_topics_and_payload():
    assert order_topic(42) == "rt:orders:42"
    assert ORDERS_TOPIC == "rt:orders"
    assert status_payload(42, OrderStatus.READY, AT) == {
        "order_id": 42,
        "status": "READY",
        "timestamp": "2026-10-19T18:30:00+00:00",
    }


@pytest.mark.anyio
async def test_order_status_reaches_both_topics(redis):
    notifier = OrderNotifier(redis, timeout=1.0)
    pubsub = redis.pubsub()
    await pubsub.subscribe(order_topic(7), ORDERS_TOPIC)

    await notifier.order_status(7, OrderStatus.ON_THE_WAY, AT)

    received = {}
    for _ in range(20):
        msg = await pubsub.get_message(ignore_subscribe_messages=True, timeout=0.1)
        if msg is not None:
            received[msg["channel"]] = json.loads(msg["data"])
        if len(received) == 2:
            break
    assert set(received) == {"rt:orders:7", "rt:orders"}
    assert received["rt:orders:7"]["status"] == "ON_THE_WAY"
    await pubsub.aclose()


@pytest.mark.anyio
async def test_publish_failure_is_logged_not_raised(caplog):
    notifier = OrderNotifier(BrokenRedis(), timeout=1.0)
    with caplog.at_level(logging.WARNING, logger="notify"):
        assert await notifier.publish("rt:orders", {"order_id": 1}) is False
        await notifier.order_status(1, OrderStatus.ACCEPTED, AT)
    failures = [r for r in caplog.records if r.name == "notify"]
    assert len(failures) == 3
    assert failures[0].order_id == 1


@pytest.mark.anyio
async def test_publish_timeout_is_bounded():
    notifier = OrderNotifier(SlowRedis(), timeout=0.05)
    assert await notifier.publish("rt:orders", {"order_id": 1}) is False
