"""Order status enumeration and allowed transitions."""

from __future__ import annotations

from enum import Enum


class OrderStatus(str, Enum):
    """Enumerate the lifecycle states for an order."""

    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    READY = "READY"
    ON_THE_WAY = "ON_THE_WAY"
    DELIVERED_UNPAID = "DELIVERED_UNPAID"
    DELIVERED_PAID = "DELIVERED_PAID"
    CANCELLED = "CANCELLED"


TRANSITIONS: dict[OrderStatus, list[OrderStatus]] = {
    OrderStatus.PENDING: [OrderStatus.ACCEPTED, OrderStatus.CANCELLED],
    OrderStatus.ACCEPTED: [OrderStatus.READY, OrderStatus.CANCELLED],
    OrderStatus.READY: [OrderStatus.ON_THE_WAY, OrderStatus.DELIVERED_UNPAID],
    OrderStatus.ON_THE_WAY: [OrderStatus.DELIVERED_PAID, OrderStatus.CANCELLED],
    OrderStatus.DELIVERED_UNPAID: [
        OrderStatus.DELIVERED_PAID,
        OrderStatus.CANCELLED,
    ],
    OrderStatus.DELIVERED_PAID: [],
    OrderStatus.CANCELLED: [],
}

TERMINAL_STATUSES = frozenset(s for s, nxt in TRANSITIONS.items() if not nxt)

ACTIVE_STATUSES = [s for s in OrderStatus if s not in TERMINAL_STATUSES]


def can_transition(src: OrderStatus, dst: OrderStatus) -> bool:
    """Return ``True`` if an order can move from ``src`` to ``dst``."""

    return dst in TRANSITIONS.get(src, [])


def is_terminal(status: OrderStatus) -> bool:
    """Return ``True`` when no transition may leave ``status``."""

    return status in TERMINAL_STATUSES
