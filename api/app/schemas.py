# schemas.py

"""Pydantic models for API payloads and responses."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .domain import OrderStatus, Role


class Principal(BaseModel):
    """Authenticated actor passed explicitly into every service call."""

    model_config = ConfigDict(frozen=True)

    user_id: int
    email: str
    role: Role


class OrderItemIn(BaseModel):
    """A catalog product or a custom pizza built from ingredient ids."""

    product_id: Optional[int] = Field(None, examples=[3])
    ingredients: Optional[List[int]] = Field(None, examples=[[1, 4, 7]])
    quantity: int = Field(..., gt=0, examples=[2])
    price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2, examples=["9.99"])


class OrderCreate(BaseModel):
    """Payload for placing an order.

    ``user_id`` defaults to the caller; ``loyalty_points`` greater than zero
    redeems that many points against the order total.
    """

    user_id: Optional[int] = None
    items: List[OrderItemIn] = Field(..., min_length=1)
    loyalty_points: int = Field(0, ge=0)
    scheduled_at: Optional[datetime] = None


class StatusUpdate(BaseModel):
    """Requested target status for an order."""

    status: OrderStatus


class RedeemRequest(BaseModel):
    """Standalone loyalty redemption."""

    points: int = Field(..., examples=[20])


class OrderItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: Optional[int] = None
    ingredients: Optional[List[int]] = None
    quantity: int
    price: float


class OrderOut(BaseModel):
    """Order representation returned from the API."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    items: List[OrderItemOut]
    total_price: float
    status: OrderStatus
    scheduled_at: Optional[datetime] = None
    custom_pizza: bool
    created_by: str
    created_at: datetime
    modified_by: str
    modified_at: datetime


class StatusHistoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    status: OrderStatus
    updated_by: str
    updated_at: datetime


def dump_order(order) -> dict:
    """Serialise an ORM order into JSON-ready data."""

    return OrderOut.model_validate(order).model_dump(mode="json")
