"""Async database engine and session helpers.

The DSN comes from ``database_url`` in :mod:`config`, for example::

    postgresql+asyncpg://u:p@host:5432/orders

Routes obtain sessions through :func:`get_session`; tests build an isolated
in-memory engine with :func:`create_test_engine` and override the dependency.
"""

from __future__ import annotations

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from config import get_settings

from .models import Base
from .obs import add_query_logger


def get_engine(dsn: str | None = None) -> AsyncEngine:
    """Create an :class:`AsyncEngine` for ``dsn`` or the configured URL."""

    engine = create_async_engine(dsn or get_settings().database_url)
    add_query_logger(engine, "orders")
    return engine


engine = get_engine()
SessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an :class:`AsyncSession` for the duration of a request."""

    async with SessionLocal() as session:
        yield session


def create_test_engine() -> AsyncEngine:
    """Return an in-memory SQLite engine whose connections share one database."""

    test_engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    add_query_logger(test_engine, "test")
    return test_engine


async def create_all(target: AsyncEngine) -> None:
    """Create every table on ``target``; migrations own production schemas."""

    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


__all__ = [
    "SessionLocal",
    "create_all",
    "create_test_engine",
    "engine",
    "get_engine",
    "get_session",
]
