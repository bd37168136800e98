"""Loyalty ledger: award points on spend and redeem them for discounts.

One point is earned per full 10 currency units of an order total. Points
are redeemed in blocks of 10, each block worth a fixed 5.00 discount. The
helpers never commit; they join the caller's transaction so that a
redemption disappears together with an order that fails to persist.
"""

from __future__ import annotations

import logging
from decimal import ROUND_FLOOR, Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import InsufficientBalance, InvalidArgument, NotFound
from ..repos_sqlalchemy import users_repo_sql
from ..routes_metrics import loyalty_points_awarded_total, loyalty_points_redeemed_total

logger = logging.getLogger("loyalty")

SPEND_PER_POINT = Decimal("10")
POINTS_PER_DISCOUNT = 10
DISCOUNT_AMOUNT = Decimal("5.00")


def points_for(order_total: Decimal) -> int:
    """Return the points earned for ``order_total`` (floored, never negative)."""

    if order_total <= 0:
        return 0
    return int((Decimal(order_total) / SPEND_PER_POINT).to_integral_value(ROUND_FLOOR))


def discount_for(points: int) -> Decimal:
    """Return the discount bought by redeeming ``points``."""

    return (points // POINTS_PER_DISCOUNT) * DISCOUNT_AMOUNT


async def get_balance(session: AsyncSession, user_id: int) -> int:
    """Return the loyalty balance of ``user_id``."""

    balance = await users_repo_sql.get_points(session, user_id)
    if balance is None:
        raise NotFound(f"User not found: {user_id}")
    return balance


async def award_points(
    session: AsyncSession, user_id: int, order_total: Decimal, actor: str
) -> int:
    """Credit the points earned by ``order_total`` and return them."""

    points = points_for(order_total)
    if points == 0:
        return 0
    if not await users_repo_sql.increment_points(session, user_id, points, actor):
        raise NotFound(f"User not found: {user_id}")
    loyalty_points_awarded_total.inc(points)
    logger.info("awarded %d points to user %s", points, user_id)
    return points


async def redeem_points(
    session: AsyncSession, user_id: int, points: int, actor: str
) -> Decimal:
    """Debit ``points`` from ``user_id`` and return the resulting discount.

    Raises :class:`InvalidArgument` below the minimum block and
    :class:`InsufficientBalance` when the balance does not cover ``points``;
    the balance is untouched in both cases.
    """

    if points < POINTS_PER_DISCOUNT:
        raise InvalidArgument(
            f"Minimum {POINTS_PER_DISCOUNT} points required to redeem"
        )
    if not await users_repo_sql.decrement_points_if_available(
        session, user_id, points, actor
    ):
        balance = await get_balance(session, user_id)
        raise InsufficientBalance(f"Insufficient points: {balance} available")
    loyalty_points_redeemed_total.inc(points)
    discount = discount_for(points)
    logger.info(
        "redeemed %d points for user %s, discount %s", points, user_id, discount
    )
    return discount


__all__ = [
    "DISCOUNT_AMOUNT",
    "POINTS_PER_DISCOUNT",
    "SPEND_PER_POINT",
    "award_points",
    "discount_for",
    "get_balance",
    "points_for",
    "redeem_points",
]
