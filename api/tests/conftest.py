"""Shared fixtures for order service tests."""

import os
import pathlib
import sys
from decimal import Decimal

import fakeredis.aioredis
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

sys.path.append(str(pathlib.Path(__file__).resolve().parents[2]))

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")

from api.app import db as app_db  # noqa: E402
from api.app.domain import Role  # noqa: E402
from api.app.models import User  # noqa: E402
from api.app.schemas import OrderCreate, OrderItemIn, Principal  # noqa: E402
from api.app.services import order_intake  # noqa: E402
from api.app.services.notifier import OrderNotifier  # noqa: E402

USERS = {
    "admin": (1, "admin@example.com", Role.ADMIN),
    "kitchen": (2, "kitchen@example.com", Role.KITCHEN),
    "delivery": (3, "delivery@example.com", Role.DELIVERY),
    "waiter": (4, "waiter@example.com", Role.WAITER),
    "client": (5, "client@example.com", Role.CLIENT),
    "other": (6, "other@example.com", Role.CLIENT),
}


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
async def session_factory(anyio_backend):
    engine = app_db.create_test_engine()
    await app_db.create_all(engine)
    yield async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    await engine.dispose()


@pytest.fixture
async def principals(session_factory) -> dict:
    """Seed one user per role (plus a second client) and return their principals."""
    async with session_factory() as session:
        for name, (uid, email, role) in USERS.items():
            session.add(
                User(id=uid, name=name.title(), email=email, role=role, loyalty_points=0)
            )
        await session.commit()
    return {
        name: Principal(user_id=uid, email=email, role=role)
        for name, (uid, email, role) in USERS.items()
    }


@pytest.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture
def redis():
    return fakeredis.aioredis.FakeRedis(decode_responses=True)


@pytest.fixture
def notifier(redis) -> OrderNotifier:
    return OrderNotifier(redis, timeout=1.0)


@pytest.fixture
def place_order(session_factory, principals, notifier):
    """Return a coroutine function placing a simple order as ``actor``."""

    async def _place(actor="client", price="19.98", quantity=1, **fields):
        payload = OrderCreate(
            items=[OrderItemIn(product_id=1, quantity=quantity, price=Decimal(price))],
            **fields,
        )
        async with session_factory() as s:
            return await order_intake.create_order(
                s, payload, principals[actor], notifier
            )

    return _place
