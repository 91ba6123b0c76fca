"""
Delivery and delivery line items.

Invariants enforced:
    - At most one Delivery per (customer_id, delivery_date) (UNIQUE).  The
      scheduler's existence check is the fast path; the constraint is the
      backstop under concurrent runs.
    - ``DeliveryItem.total_amount = quantity * unit_price`` (computed by the
      scheduler when the row is written).
    - Deliveries and items are never deleted by the automation.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Date,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dairy_kernel.db.base import TrackedBase, UUIDString
from dairy_kernel.domain.enums import DeliveryStatus


class Delivery(TrackedBase):
    """One customer's drop on one calendar day."""

    __tablename__ = "deliveries"

    __table_args__ = (
        UniqueConstraint("customer_id", "delivery_date", name="uq_deliveries_customer_date"),
        Index("ix_deliveries_date_status", "delivery_date", "status"),
    )

    customer_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("customers.id"), nullable=False,
    )
    delivery_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=DeliveryStatus.PENDING.value,
    )
    delivery_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    items: Mapped[list[DeliveryItem]] = relationship(
        "DeliveryItem", back_populates="delivery", order_by="DeliveryItem.created_at",
    )


class DeliveryItem(TrackedBase):
    """A product line on a delivery, priced at the time it was scheduled."""

    __tablename__ = "delivery_items"

    __table_args__ = (
        Index("ix_delivery_items_delivery", "delivery_id"),
    )

    delivery_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("deliveries.id"), nullable=False,
    )
    product_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("products.id"), nullable=False,
    )
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    delivery: Mapped[Delivery] = relationship("Delivery", back_populates="items")
