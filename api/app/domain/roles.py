"""Staff roles and the order states each role may act on."""

from __future__ import annotations

from enum import Enum

from .order_status import ACTIVE_STATUSES, OrderStatus


class Role(str, Enum):
    """Roles attached to every authenticated principal."""

    ADMIN = "ADMIN"
    KITCHEN = "KITCHEN"
    DELIVERY = "DELIVERY"
    WAITER = "WAITER"
    CLIENT = "CLIENT"


# Current statuses a role may act on. Admin covers every non-terminal state.
ROLE_PERMISSIONS: dict[Role, list[OrderStatus]] = {
    Role.KITCHEN: [OrderStatus.PENDING, OrderStatus.ACCEPTED],
    Role.DELIVERY: [OrderStatus.READY, OrderStatus.ON_THE_WAY],
    Role.WAITER: [
        OrderStatus.PENDING,
        OrderStatus.READY,
        OrderStatus.DELIVERED_UNPAID,
    ],
    Role.ADMIN: list(ACTIVE_STATUSES),
    Role.CLIENT: [OrderStatus.PENDING],
}

# Roles restricted to a subset of target statuses; clients may only cancel.
ROLE_TARGETS: dict[Role, list[OrderStatus]] = {
    Role.CLIENT: [OrderStatus.CANCELLED],
}


def can_act_on(role: Role, current: OrderStatus) -> bool:
    """Return ``True`` if ``role`` may request a change from ``current``."""

    return current in ROLE_PERMISSIONS.get(role, [])


def can_target(role: Role, requested: OrderStatus) -> bool:
    """Return ``True`` unless ``role`` is limited to other target statuses."""

    allowed = ROLE_TARGETS.get(role)
    return allowed is None or requested in allowed
