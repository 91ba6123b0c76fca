"""
Customer, product catalogue, subscription lines and vacation windows.

Contract:
    A customer subscribes to products through ``SubscriptionLine`` rows
    (table ``customer_products``).  ``Vacation`` rows suppress deliveries
    for a closed date range; overlapping vacations are allowed and treated
    as a union.

Invariants enforced:
    - ``customer_products.quantity > 0`` (CHECK).
    - ``customer_vacations.start_date <= end_date`` (CHECK).
    - ``credit_balance`` / ``advance_balance`` are maintained outside this
      package (store trigger); nothing here writes them.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dairy_kernel.db.base import TrackedBase, UUIDString
from dairy_kernel.domain.enums import SubscriptionType


class Customer(TrackedBase):
    """A household or shop that receives scheduled deliveries."""

    __tablename__ = "customers"

    __table_args__ = (
        Index("ix_customers_is_active", "is_active"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    area: Mapped[str | None] = mapped_column(String(100), nullable=True)
    subscription_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=SubscriptionType.DAILY.value,
    )
    # {"delivery_days": {"monday": true, ...}, "auto_deliver": false}
    delivery_schedule: Mapped[dict[str, Any] | None] = mapped_column(
        JSON, nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    credit_balance: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0"),
    )
    advance_balance: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0"),
    )

    subscriptions: Mapped[list[SubscriptionLine]] = relationship(
        "SubscriptionLine", back_populates="customer",
    )
    vacations: Mapped[list[Vacation]] = relationship(
        "Vacation", back_populates="customer",
    )


class Product(TrackedBase):
    """A sellable product with a catalogue price."""

    __tablename__ = "products"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str | None] = mapped_column(String(50), nullable=True)
    base_price: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0"),
    )
    unit: Mapped[str] = mapped_column(String(20), nullable=False, default="liter")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class SubscriptionLine(TrackedBase):
    """One product a customer receives on every due day."""

    __tablename__ = "customer_products"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_customer_products_quantity_positive"),
        Index("ix_customer_products_customer_active", "customer_id", "is_active"),
    )

    customer_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("customers.id"), nullable=False,
    )
    product_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("products.id"), nullable=False,
    )
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)
    custom_price: Mapped[Decimal | None] = mapped_column(
        Numeric(14, 2), nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    customer: Mapped[Customer] = relationship("Customer", back_populates="subscriptions")
    product: Mapped[Product] = relationship("Product")


class Vacation(TrackedBase):
    """A closed date range during which the customer receives nothing."""

    __tablename__ = "customer_vacations"

    __table_args__ = (
        CheckConstraint("start_date <= end_date", name="ck_customer_vacations_range"),
        Index("ix_customer_vacations_customer", "customer_id", "is_active"),
    )

    customer_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("customers.id"), nullable=False,
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    customer: Mapped[Customer] = relationship("Customer", back_populates="vacations")
