"""SQLAlchemy-backed repository helpers for orders.

These helpers implement the order store without any side effects beyond
database mutations. They operate on ``AsyncSession`` instances and never
commit, so an order update and its history row share one transaction.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain import OrderStatus
from ..models import Order, OrderStatusHistory


async def get_order(
    session: AsyncSession, order_id: int, *, refresh: bool = False
) -> Order | None:
    """Return the order with ``order_id`` or ``None``.

    ``refresh`` reloads the row even if the order is already in the identity
    map, which a retry after a version conflict relies on.
    """

    stmt = select(Order).where(Order.id == order_id)
    if refresh:
        stmt = stmt.execution_options(populate_existing=True)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def save_order(session: AsyncSession, order: Order) -> Order:
    """Stage ``order`` and flush so that its id and version are assigned.

    A flush against a row whose version moved on raises
    :class:`sqlalchemy.orm.exc.StaleDataError`.
    """

    session.add(order)
    await session.flush()
    return order


async def append_history(
    session: AsyncSession,
    order_id: int,
    status: OrderStatus,
    updated_by: str,
    updated_at: datetime,
) -> OrderStatusHistory:
    """Append one immutable status-history row for ``order_id``."""

    entry = OrderStatusHistory(
        order_id=order_id,
        status=status,
        updated_by=updated_by,
        updated_at=updated_at,
    )
    session.add(entry)
    await session.flush()
    return entry


async def list_history(session: AsyncSession, order_id: int) -> List[OrderStatusHistory]:
    """Return the status history of ``order_id`` oldest first."""

    result = await session.execute(
        select(OrderStatusHistory)
        .where(OrderStatusHistory.order_id == order_id)
        .order_by(OrderStatusHistory.id)
    )
    return list(result.scalars())


async def list_by_user(session: AsyncSession, user_id: int) -> List[Order]:
    """Return every order owned by ``user_id``, newest first."""

    result = await session.execute(
        select(Order).where(Order.user_id == user_id).order_by(Order.id.desc())
    )
    return list(result.scalars())


async def list_all(session: AsyncSession) -> List[Order]:
    """Return all orders, newest first."""

    result = await session.execute(select(Order).order_by(Order.id.desc()))
    return list(result.scalars())


async def list_by_statuses(
    session: AsyncSession, statuses: Iterable[OrderStatus]
) -> List[Order]:
    """Return orders whose current status is one of ``statuses``, oldest first."""

    result = await session.execute(
        select(Order).where(Order.status.in_(list(statuses))).order_by(Order.id)
    )
    return list(result.scalars())


async def list_created_between(
    session: AsyncSession, start: datetime, end: datetime
) -> List[Order]:
    """Return orders created within ``start``..``end`` inclusive."""

    result = await session.execute(
        select(Order)
        .where(Order.created_at >= start, Order.created_at <= end)
        .order_by(Order.created_at)
    )
    return list(result.scalars())
