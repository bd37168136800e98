"""Order analytics for the admin dashboard."""

from __future__ import annotations

from collections import Counter
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import InvalidArgument
from ..models import Order
from ..repos_sqlalchemy import orders_repo_sql

DEFAULT_WINDOW_DAYS = 30


def resolve_window(
    start_date: Optional[date], end_date: Optional[date], today: Optional[date] = None
) -> Tuple[datetime, datetime]:
    """Return the UTC bounds covering ``start_date``..``end_date`` inclusive."""

    today = today or datetime.now(timezone.utc).date()
    end_date = end_date or today
    start_date = start_date or end_date - timedelta(days=DEFAULT_WINDOW_DAYS)
    if start_date > end_date:
        raise InvalidArgument("start_date must not be after end_date")
    start = datetime.combine(start_date, time.min, tzinfo=timezone.utc)
    end = datetime.combine(end_date, time.max, tzinfo=timezone.utc)
    return start, end


def _revenue(order: Order) -> Decimal:
    return sum((Decimal(i.price) * i.quantity for i in order.items), Decimal("0"))


def summarize(orders: Iterable[Order]) -> Dict[str, Any]:
    """Aggregate ``orders`` into totals, distributions and daily series.

    Revenue is the undiscounted value of the line items.
    """

    orders = list(orders)
    total_orders = len(orders)
    total_revenue = sum((_revenue(o) for o in orders), Decimal("0"))
    scheduled = [o for o in orders if o.scheduled_at is not None]
    custom = [o for o in orders if o.custom_pizza]

    status_counts = Counter(o.status.value for o in orders)
    daily_orders = Counter(o.created_at.date().isoformat() for o in orders)
    daily_scheduled = Counter(o.scheduled_at.date().isoformat() for o in scheduled)
    daily_custom = Counter(o.created_at.date().isoformat() for o in custom)

    average = total_revenue / total_orders if total_orders else Decimal("0")
    return {
        "total_orders": total_orders,
        "total_revenue": float(total_revenue),
        "average_order_value": round(float(average), 2),
        "scheduled_orders": len(scheduled),
        "custom_pizza_orders": len(custom),
        "status_counts": dict(status_counts),
        "daily_orders": dict(sorted(daily_orders.items())),
        "daily_scheduled_orders": dict(sorted(daily_scheduled.items())),
        "daily_custom_pizza_orders": dict(sorted(daily_custom.items())),
    }


async def order_analytics(
    session: AsyncSession, start_date: Optional[date], end_date: Optional[date]
) -> Dict[str, Any]:
    """Return :func:`summarize` over orders created in the requested window."""

    start, end = resolve_window(start_date, end_date)
    orders = await orders_repo_sql.list_created_between(session, start, end)
    data = summarize(orders)
    data["start_date"] = start.date().isoformat()
    data["end_date"] = end.date().isoformat()
    return data


__all__ = ["order_analytics", "resolve_window", "summarize"]
