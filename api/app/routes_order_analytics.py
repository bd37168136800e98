"""Admin order analytics endpoint."""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from .auth import role_required
from .db import get_session
from .domain import Role
from .schemas import Principal
from .services.order_analytics import order_analytics
from .utils.responses import ok

router = APIRouter()


@router.get("/api/orders/analytics", tags=["Analytics"])
async def analytics(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    _: Principal = Depends(role_required(Role.ADMIN)),
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Return order totals and daily series; defaults to the last 30 days."""
    return ok(await order_analytics(session, start_date, end_date))
