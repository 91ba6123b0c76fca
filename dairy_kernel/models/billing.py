"""
Invoices, payments and dairy-wide settings.

Invariants enforced:
    - At most one Invoice per (customer_id, billing_period_start,
      billing_period_end) (UNIQUE).
    - ``invoice_number`` is UNIQUE.  Numbers are allocated from a locked
      counter row (services.sequence_service); the constraint is the
      backstop.
    - ``upi_handle`` is a snapshot of DairySettings at generation time, not
      a reference.
    - Invoices are created once per period.  Only payment recording mutates
      ``paid_amount``, ``payment_status`` and ``payment_date``.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Date,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from dairy_kernel.db.base import TrackedBase, UUIDString
from dairy_kernel.domain.enums import PaymentStatus


class Invoice(TrackedBase):
    """A customer's bill for one calendar month of delivered items."""

    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint(
            "customer_id",
            "billing_period_start",
            "billing_period_end",
            name="uq_invoices_customer_period",
        ),
        Index("ix_invoices_status_due", "payment_status", "due_date"),
    )

    invoice_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    customer_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("customers.id"), nullable=False,
    )
    billing_period_start: Mapped[date] = mapped_column(Date, nullable=False)
    billing_period_end: Mapped[date] = mapped_column(Date, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0"),
    )
    discount_amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0"),
    )
    final_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0"),
    )
    payment_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentStatus.PENDING.value,
    )
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    payment_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    upi_handle: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)


class Payment(TrackedBase):
    """A payment received against an invoice (or on account)."""

    __tablename__ = "payments"

    __table_args__ = (
        Index("ix_payments_customer", "customer_id"),
    )

    customer_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("customers.id"), nullable=False,
    )
    invoice_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("invoices.id"), nullable=True,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    payment_mode: Mapped[str] = mapped_column(String(30), nullable=False, default="cash")
    reference_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)


class DairySettings(TrackedBase):
    """Dairy-wide settings row.  The first row is the active one."""

    __tablename__ = "dairy_settings"

    dairy_name: Mapped[str] = mapped_column(String(200), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="INR")
    invoice_prefix: Mapped[str] = mapped_column(String(20), nullable=False, default="INV")
    upi_handle: Mapped[str | None] = mapped_column(String(100), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
