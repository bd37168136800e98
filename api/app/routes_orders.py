"""Order intake, status transitions and role work queues."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from .auth import get_current_principal, role_required
from .db import get_session
from .deps.notifier import get_notifier
from .domain import Role
from .repos_sqlalchemy import orders_repo_sql
from .schemas import OrderCreate, Principal, StatusHistoryOut, StatusUpdate, dump_order
from .services import order_intake, order_lifecycle
from .services.notifier import OrderNotifier
from .utils.responses import ok

router = APIRouter(prefix="/api/orders", tags=["Orders"])


@router.post("", status_code=status.HTTP_201_CREATED, summary="Place order")
async def create_order(
    payload: OrderCreate,
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_session),
    notifier: OrderNotifier = Depends(get_notifier),
) -> dict:
    """Create a ``PENDING`` order, applying any loyalty redemption."""
    order = await order_intake.create_order(session, payload, principal, notifier)
    return ok(dump_order(order))


@router.get("", summary="List all orders")
async def list_orders(
    _: Principal = Depends(role_required(Role.ADMIN)),
    session: AsyncSession = Depends(get_session),
) -> dict:
    orders = await orders_repo_sql.list_all(session)
    return ok([dump_order(o) for o in orders])


@router.get("/user", summary="List the caller's orders")
async def list_user_orders(
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_session),
) -> dict:
    orders = await orders_repo_sql.list_by_user(session, principal.user_id)
    return ok([dump_order(o) for o in orders])


async def _queue(session: AsyncSession, role: Role) -> dict:
    orders = await order_lifecycle.work_queue(session, role)
    return ok([dump_order(o) for o in orders])


@router.get("/kitchen", summary="Kitchen work queue")
async def kitchen_orders(
    _: Principal = Depends(role_required(Role.KITCHEN, Role.ADMIN)),
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Return ``PENDING`` and ``ACCEPTED`` orders, oldest first."""
    return await _queue(session, Role.KITCHEN)


@router.get("/delivery", summary="Delivery work queue")
async def delivery_orders(
    _: Principal = Depends(role_required(Role.DELIVERY, Role.ADMIN)),
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Return ``READY`` and ``ON_THE_WAY`` orders, oldest first."""
    return await _queue(session, Role.DELIVERY)


@router.get("/waiter", summary="Waiter work queue")
async def waiter_orders(
    _: Principal = Depends(role_required(Role.WAITER, Role.ADMIN)),
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Return ``PENDING``, ``READY`` and ``DELIVERED_UNPAID`` orders, oldest first."""
    return await _queue(session, Role.WAITER)


@router.put("/{order_id}", summary="Change order status")
async def update_status(
    order_id: int,
    payload: StatusUpdate,
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_session),
    notifier: OrderNotifier = Depends(get_notifier),
) -> dict:
    order = await order_lifecycle.request_transition(
        session, order_id, payload.status, principal, notifier
    )
    return ok(dump_order(order))


@router.get("/{order_id}/details", summary="Order with status history")
async def order_details(
    order_id: int,
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_session),
) -> dict:
    order, history = await order_lifecycle.order_details(session, order_id, principal)
    return ok(
        {
            "order": dump_order(order),
            "status_history": [
                StatusHistoryOut.model_validate(h).model_dump(mode="json")
                for h in history
            ],
        }
    )
