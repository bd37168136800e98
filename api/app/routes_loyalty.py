"""Loyalty balance and standalone redemption endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from .auth import get_current_principal
from .db import get_session
from .schemas import Principal, RedeemRequest
from .services import loyalty
from .utils.responses import ok

router = APIRouter(prefix="/api/loyalty", tags=["Loyalty"])


@router.get("/points")
async def points(
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Return the caller's loyalty balance."""
    balance = await loyalty.get_balance(session, principal.user_id)
    return ok({"user_id": principal.user_id, "points": balance})


@router.post("/redeem")
async def redeem(
    payload: RedeemRequest,
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Spend ``points`` from the caller's balance and return the discount."""
    try:
        discount = await loyalty.redeem_points(
            session, principal.user_id, payload.points, principal.email
        )
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    balance = await loyalty.get_balance(session, principal.user_id)
    return ok(
        {
            "points_redeemed": payload.points,
            "discount": float(discount),
            "points": balance,
        }
    )
