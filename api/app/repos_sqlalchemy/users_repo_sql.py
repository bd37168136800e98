"""User directory lookups and loyalty balance primitives.

Balance changes are single conditional ``UPDATE`` statements, so concurrent
awards and redemptions for the same user serialise in the database rather
than through a read-modify-write in Python.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import User


async def find_by_id(session: AsyncSession, user_id: int) -> User | None:
    """Return the user with ``user_id`` or ``None``."""

    result = await session.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def find_by_email(session: AsyncSession, email: str) -> User | None:
    """Return the user registered under ``email`` or ``None``."""

    result = await session.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def get_points(session: AsyncSession, user_id: int) -> int | None:
    """Return the stored loyalty balance, or ``None`` for unknown users."""

    return await session.scalar(
        select(User.loyalty_points).where(User.id == user_id)
    )


async def increment_points(
    session: AsyncSession, user_id: int, points: int, actor: str
) -> bool:
    """Add ``points`` to the balance; return ``False`` if the user is unknown."""

    result = await session.execute(
        update(User)
        .where(User.id == user_id)
        .values(
            loyalty_points=User.loyalty_points + points,
            modified_by=actor,
            modified_at=datetime.now(timezone.utc),
        )
    )
    return result.rowcount == 1


async def decrement_points_if_available(
    session: AsyncSession, user_id: int, points: int, actor: str
) -> bool:
    """Subtract ``points`` only when the balance covers them.

    Returns ``False`` when the user is unknown or the balance is too low; in
    both cases nothing is written.
    """

    result = await session.execute(
        update(User)
        .where(User.id == user_id, User.loyalty_points >= points)
        .values(
            loyalty_points=User.loyalty_points - points,
            modified_by=actor,
            modified_at=datetime.now(timezone.utc),
        )
    )
    return result.rowcount == 1
