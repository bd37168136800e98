"""Typed failures raised by the order services.

Each error carries a stable ``code`` used in the response envelope and the
HTTP ``status_code`` the API layer maps it to. Retryable errors add a
``hint`` to the envelope.
"""

from __future__ import annotations


class OrderError(Exception):
    """Base class for failures surfaced to API callers."""

    code = "ORDER_ERROR"
    status_code = 400
    hint: str | None = None

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if hint is not None:
            self.hint = hint


class NotFound(OrderError):
    """Raised when an order or user does not exist."""

    code = "NOT_FOUND"
    status_code = 404


class Forbidden(OrderError):
    """Raised when the actor's role lacks authority over the order."""

    code = "FORBIDDEN"
    status_code = 403


class IllegalTransition(OrderError):
    """Raised when the requested status is not reachable from the current one."""

    code = "ILLEGAL_TRANSITION"


class InvalidState(OrderError):
    """Raised when the order is already in a terminal status."""

    code = "INVALID_STATE"


class InvalidArgument(OrderError):
    """Raised for malformed input such as a too-early schedule."""

    code = "INVALID_ARGUMENT"


class InsufficientBalance(OrderError):
    """Raised when a loyalty redemption exceeds the available points."""

    code = "INSUFFICIENT_BALANCE"


class Conflict(OrderError):
    """Raised when concurrent updates exhaust the retry budget."""

    code = "CONFLICT"
    status_code = 409
    hint = "Retry shortly"


class Unavailable(OrderError):
    """Raised when persistence does not answer within its timeout."""

    code = "UNAVAILABLE"
    status_code = 503
    hint = "Retry shortly"


__all__ = [
    "Conflict",
    "Forbidden",
    "IllegalTransition",
    "InsufficientBalance",
    "InvalidArgument",
    "InvalidState",
    "NotFound",
    "OrderError",
    "Unavailable",
]
