"""Database models for users, orders and their status history.

These models describe the schema consumed by the order services. They are
kept isolated from any application wiring so that they can be used in tests or
migrations independently."""

from __future__ import annotations

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    func,
)
from sqlalchemy.orm import declarative_base, relationship

from .domain import OrderStatus, Role

Base = declarative_base()

order_status_enum = Enum(OrderStatus, name="order_status")


class User(Base):
    """Directory entry for a customer or staff member.

    Credentials live with the authentication service; only identity, role
    and the loyalty balance are stored here.
    """

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("loyalty_points >= 0", name="ck_users_loyalty_points"),
    )

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, nullable=False, index=True)
    role = Column(Enum(Role, name="user_role"), nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    loyalty_points = Column(Integer, nullable=False, default=0, server_default="0")

    created_by = Column(String, nullable=False, default="system")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    modified_by = Column(String, nullable=False, default="system")
    modified_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class Order(Base):
    """Orders placed by a user; ``version`` guards concurrent updates."""

    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(order_status_enum, nullable=False, index=True)
    total_price = Column(Numeric(10, 2), nullable=False)
    scheduled_at = Column(DateTime(timezone=True), nullable=True)
    custom_pizza = Column(Boolean, nullable=False, default=False)

    created_by = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
    modified_by = Column(String, nullable=False)
    modified_at = Column(DateTime(timezone=True), nullable=False)
    version = Column(Integer, nullable=False)

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OrderItem.id",
    )

    __mapper_args__ = {"version_id_col": version}


class OrderItem(Base):
    """Line items belonging to an order.

    Catalog items carry ``product_id``; custom pizzas carry ``ingredients``
    and no product reference.
    """

    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(Integer, nullable=True)
    ingredients = Column(JSON, nullable=True)
    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)

    order = relationship("Order", back_populates="items")


class OrderStatusHistory(Base):
    """Append-only audit trail of status changes."""

    __tablename__ = "order_status_history"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    status = Column(order_status_enum, nullable=False)
    updated_by = Column(String, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)


__all__ = ["Base", "Order", "OrderItem", "OrderStatusHistory", "User"]
