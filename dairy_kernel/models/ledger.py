"""
Customer ledger entries.

Contract:
    Append-only.  Each entry stores the customer's balance after it was
    applied (``running_balance``) so statements never need a full replay.

Invariants enforced:
    - Exactly one of ``debit_amount`` / ``credit_amount`` is non-NULL and
      positive (enforced by LedgerService before insert; CHECK as backstop).
    - ``running_balance = previous.running_balance + debit - credit``.
    - ``chain_position`` is UNIQUE per customer.  Writers claim
      ``head + 1``; a concurrent writer that read the same head fails on
      this constraint instead of forking the balance chain.
    - Entries are never updated or deleted; corrections are compensating
      entries.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from dairy_kernel.db.base import TrackedBase, UUIDString


class LedgerEntry(TrackedBase):
    """One debit or credit on a customer's account."""

    __tablename__ = "customer_ledger"

    __table_args__ = (
        UniqueConstraint("customer_id", "chain_position", name="uq_customer_ledger_chain"),
        CheckConstraint(
            "(debit_amount IS NULL) <> (credit_amount IS NULL)",
            name="ck_customer_ledger_one_side",
        ),
        Index("ix_customer_ledger_customer_date", "customer_id", "transaction_date"),
        Index("ix_customer_ledger_reference", "transaction_type", "reference_id"),
    )

    customer_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("customers.id"), nullable=False,
    )
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)
    transaction_type: Mapped[str] = mapped_column(String(30), nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    debit_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    credit_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    running_balance: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    reference_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    chain_position: Mapped[int] = mapped_column(Integer, nullable=False)
