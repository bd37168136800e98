"""Order status state machine with role-gated transitions.

A transition request is validated against two constant tables: the legal
transitions of :mod:`..domain.order_status` and the states each role may act
on in :mod:`..domain.roles`. Admins bypass both but can never leave a
terminal state. Work on a single order is serialised by an in-process keyed
lock, and the ``version`` column catches writers in other processes; a stale
write is re-read, re-validated and retried a bounded number of times.

The order row and its history entry are committed together. Subscribers are
notified only after the commit succeeded.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import List, Tuple

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from config import Settings, get_settings

from ..domain import (
    ROLE_PERMISSIONS,
    OrderStatus,
    Role,
    can_act_on,
    can_target,
    can_transition,
    is_terminal,
)
from ..errors import (
    Conflict,
    Forbidden,
    IllegalTransition,
    InvalidState,
    NotFound,
    OrderError,
    Unavailable,
)
from ..models import Order, OrderStatusHistory
from ..repos_sqlalchemy import orders_repo_sql
from ..routes_metrics import order_transition_rejections_total, order_transitions_total
from ..schemas import Principal
from ..utils.locks import KeyedLock
from .notifier import OrderNotifier

logger = logging.getLogger("orders")

_order_locks = KeyedLock()


def _now() -> datetime:
    return datetime.now(timezone.utc)


def check_transition(order: Order, requested: OrderStatus, actor: Principal) -> None:
    """Raise the matching :class:`OrderError` if ``actor`` may not apply ``requested``."""

    current = OrderStatus(order.status)
    if is_terminal(current):
        raise InvalidState(f"Order {order.id} already finalized as {current.value}")

    if actor.role is Role.ADMIN:
        if requested == current:
            raise IllegalTransition(f"Order {order.id} is already {current.value}")
        return

    if not can_act_on(actor.role, current):
        raise Forbidden(
            f"Role {actor.role.value} cannot update order from status {current.value}"
        )
    if not can_target(actor.role, requested):
        raise Forbidden(
            f"Role {actor.role.value} cannot move an order to {requested.value}"
        )
    if actor.role is Role.CLIENT and order.user_id != actor.user_id:
        raise Forbidden("Clients may only change their own orders")
    if not can_transition(current, requested):
        raise IllegalTransition(
            f"Invalid status transition from {current.value} to {requested.value}"
        )


async def open_order(session: AsyncSession, order: Order, actor: Principal) -> datetime:
    """Stage ``order`` in ``PENDING`` with its first history entry.

    Nothing is committed; the caller finishes the unit of work and then
    announces the order with :meth:`OrderNotifier.order_status`.
    """

    at = _now()
    order.status = OrderStatus.PENDING
    order.created_by = order.modified_by = actor.email
    order.created_at = order.modified_at = at
    await orders_repo_sql.save_order(session, order)
    await orders_repo_sql.append_history(
        session, order.id, OrderStatus.PENDING, actor.email, at
    )
    return at


async def _apply_once(
    session: AsyncSession, order_id: int, requested: OrderStatus, actor: Principal
) -> Tuple[Order, datetime]:
    order = await orders_repo_sql.get_order(session, order_id, refresh=True)
    if order is None:
        raise NotFound(f"Order not found: {order_id}")
    try:
        check_transition(order, requested, actor)
    except OrderError as exc:
        order_transition_rejections_total.labels(code=exc.code).inc()
        raise

    at = _now()
    order.status = requested
    order.modified_by = actor.email
    order.modified_at = at
    await orders_repo_sql.save_order(session, order)
    await orders_repo_sql.append_history(session, order.id, requested, actor.email, at)
    await session.commit()
    return order, at


async def _apply_with_retry(
    session: AsyncSession,
    order_id: int,
    requested: OrderStatus,
    actor: Principal,
    settings: Settings,
) -> Tuple[Order, datetime]:
    for attempt in range(1, settings.transition_max_retries + 1):
        try:
            return await asyncio.wait_for(
                _apply_once(session, order_id, requested, actor),
                settings.store_timeout_secs,
            )
        except StaleDataError:
            await session.rollback()
            logger.warning(
                "version conflict on order %s (attempt %d)",
                order_id,
                attempt,
                extra={"order_id": order_id},
            )
        except asyncio.TimeoutError as exc:
            await session.rollback()
            raise Unavailable("Order store did not respond in time") from exc
        except Exception:
            await session.rollback()
            raise
    order_transition_rejections_total.labels(code=Conflict.code).inc()
    raise Conflict(f"Order {order_id} changed concurrently, try again")


async def request_transition(
    session: AsyncSession,
    order_id: int,
    requested: OrderStatus,
    actor: Principal,
    notifier: OrderNotifier,
) -> Order:
    """Move order ``order_id`` to ``requested`` on behalf of ``actor``.

    Raises :class:`NotFound`, :class:`InvalidState`, :class:`Forbidden`,
    :class:`IllegalTransition`, :class:`Conflict` or :class:`Unavailable`;
    on any of them the stored order and its history are unchanged.
    """

    settings = get_settings()
    requested = OrderStatus(requested)
    try:
        async with _order_locks.hold(order_id, settings.lock_timeout_secs):
            order, at = await _apply_with_retry(
                session, order_id, requested, actor, settings
            )
    except asyncio.TimeoutError as exc:
        raise Unavailable(f"Order {order_id} is busy, try again") from exc

    order_transitions_total.labels(status=requested.value).inc()
    logger.info(
        "order %s -> %s by %s",
        order_id,
        requested.value,
        actor.email,
        extra={"order_id": order_id, "user": actor.user_id},
    )
    await notifier.order_status(order.id, requested, at)
    return order


async def work_queue(session: AsyncSession, role: Role) -> List[Order]:
    """Return the orders ``role`` can currently act on."""

    return await orders_repo_sql.list_by_statuses(session, ROLE_PERMISSIONS[role])


async def order_details(
    session: AsyncSession, order_id: int, actor: Principal
) -> Tuple[Order, List[OrderStatusHistory]]:
    """Return an order with its history; clients only see their own orders."""

    order = await orders_repo_sql.get_order(session, order_id)
    if order is None:
        raise NotFound(f"Order not found: {order_id}")
    if actor.role is Role.CLIENT and order.user_id != actor.user_id:
        raise Forbidden("Clients may only view their own orders")
    history = await orders_repo_sql.list_history(session, order_id)
    return order, history


__all__ = [
    "check_transition",
    "open_order",
    "order_details",
    "request_transition",
    "work_queue",
]
