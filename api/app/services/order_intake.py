"""Price and persist new orders.

Line items are priced from the request, custom pizzas (items carrying an
ingredient list) lose their product reference and flag the order, and an
optional loyalty redemption is applied before the order row is written so
the stored total already reflects the discount. Redemption, the order, its
first history entry and the earned points commit together.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config import get_settings

from ..domain import OrderStatus, Role
from ..errors import Forbidden, InvalidArgument, NotFound, OrderError, Unavailable
from ..models import Order, OrderItem
from ..repos_sqlalchemy import users_repo_sql
from ..routes_metrics import orders_created_total
from ..schemas import OrderCreate, OrderItemIn, Principal
from . import loyalty, order_lifecycle
from .notifier import OrderNotifier

logger = logging.getLogger("orders")

CENT = Decimal("0.01")


def build_items(lines: Iterable[OrderItemIn]) -> Tuple[List[OrderItem], bool]:
    """Return ORM line items and whether any of them is a custom pizza."""

    items: List[OrderItem] = []
    custom = False
    for line in lines:
        if line.ingredients:
            custom = True
            items.append(
                OrderItem(
                    product_id=None,
                    ingredients=list(line.ingredients),
                    quantity=line.quantity,
                    price=line.price,
                )
            )
        elif line.product_id is not None:
            items.append(
                OrderItem(
                    product_id=line.product_id,
                    ingredients=None,
                    quantity=line.quantity,
                    price=line.price,
                )
            )
        else:
            raise InvalidArgument("Each item needs a product_id or ingredients")
    if not items:
        raise InvalidArgument("An order needs at least one item")
    return items, custom


def raw_total(items: Iterable[OrderItem]) -> Decimal:
    """Return the undiscounted sum of unit price times quantity."""

    total = sum((Decimal(i.price) * i.quantity for i in items), Decimal("0"))
    return total.quantize(CENT)


def check_schedule(
    scheduled_at: Optional[datetime], lead_minutes: int, now: Optional[datetime] = None
) -> Optional[datetime]:
    """Return ``scheduled_at`` as UTC, rejecting times inside the lead window."""

    if scheduled_at is None:
        return None
    if scheduled_at.tzinfo is None:
        scheduled_at = scheduled_at.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    if scheduled_at < now + timedelta(minutes=lead_minutes):
        raise InvalidArgument(
            f"Scheduled time must be at least {lead_minutes} minutes in the future"
        )
    return scheduled_at.astimezone(timezone.utc)


async def _persist(
    session: AsyncSession,
    owner_id: int,
    items: List[OrderItem],
    custom: bool,
    scheduled_at: Optional[datetime],
    redeem: int,
    actor: Principal,
) -> Tuple[Order, datetime]:
    if await users_repo_sql.find_by_id(session, owner_id) is None:
        raise NotFound(f"User not found: {owner_id}")

    total = raw_total(items)
    if redeem:
        discount = await loyalty.redeem_points(session, owner_id, redeem, actor.email)
        total = max(total - discount, Decimal("0")).quantize(CENT)

    order = Order(
        user_id=owner_id,
        items=items,
        total_price=total,
        scheduled_at=scheduled_at,
        custom_pizza=custom,
    )
    at = await order_lifecycle.open_order(session, order, actor)

    # a failed award rolls back to the savepoint, the order still commits
    try:
        async with session.begin_nested():
            await loyalty.award_points(session, owner_id, total, actor.email)
    except (OrderError, SQLAlchemyError):
        logger.warning(
            "could not award points for order %s",
            order.id,
            exc_info=True,
            extra={"order_id": order.id},
        )

    await session.commit()
    return order, at


async def create_order(
    session: AsyncSession,
    payload: OrderCreate,
    actor: Principal,
    notifier: OrderNotifier,
) -> Order:
    """Validate, price and persist ``payload`` as a new ``PENDING`` order.

    Clients may only order for themselves; staff may name another
    ``user_id``. Everything is validated before the first write.
    """

    settings = get_settings()
    owner_id = payload.user_id if payload.user_id is not None else actor.user_id
    if actor.role is Role.CLIENT and owner_id != actor.user_id:
        raise Forbidden("Clients may only place orders for themselves")
    scheduled_at = check_schedule(payload.scheduled_at, settings.schedule_lead_minutes)
    items, custom = build_items(payload.items)

    try:
        order, at = await asyncio.wait_for(
            _persist(
                session,
                owner_id,
                items,
                custom,
                scheduled_at,
                payload.loyalty_points,
                actor,
            ),
            settings.store_timeout_secs,
        )
    except asyncio.TimeoutError as exc:
        await session.rollback()
        raise Unavailable("Order store did not respond in time") from exc
    except Exception:
        await session.rollback()
        raise

    orders_created_total.inc()
    logger.info(
        "order %s created for user %s total %s",
        order.id,
        owner_id,
        order.total_price,
        extra={"order_id": order.id, "user": actor.user_id},
    )
    await notifier.order_status(order.id, OrderStatus.PENDING, at)
    return order


__all__ = ["build_items", "check_schedule", "create_order", "raw_total"]
