"""Dependency helpers for order notifications."""

from fastapi import Request

from ..services.notifier import OrderNotifier


def get_notifier(request: Request) -> OrderNotifier:
    """Return an :class:`OrderNotifier` bound to the application's Redis client."""
    return OrderNotifier(request.app.state.redis)
