"""Domain models and helpers."""

from .order_status import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    TRANSITIONS,
    OrderStatus,
    can_transition,
    is_terminal,
)
from .roles import ROLE_PERMISSIONS, ROLE_TARGETS, Role, can_act_on, can_target

__all__ = [
    "ACTIVE_STATUSES",
    "OrderStatus",
    "ROLE_PERMISSIONS",
    "ROLE_TARGETS",
    "Role",
    "TERMINAL_STATUSES",
    "TRANSITIONS",
    "can_act_on",
    "can_target",
    "can_transition",
    "is_terminal",
]
