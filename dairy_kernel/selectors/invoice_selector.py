"""Read-only queries over invoices and dairy settings."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from dairy_kernel.models.billing import DairySettings, Invoice
from dairy_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class InvoiceView:
    id: UUID
    invoice_number: str
    customer_id: UUID
    billing_period_start: date
    billing_period_end: date
    total_amount: Decimal
    final_amount: Decimal
    paid_amount: Decimal
    payment_status: str
    due_date: date
    payment_date: date | None
    upi_handle: str | None


@dataclass(frozen=True)
class SettingsView:
    dairy_name: str
    currency: str
    invoice_prefix: str
    upi_handle: str | None


def invoice_view(row: Invoice) -> InvoiceView:
    return InvoiceView(
        id=row.id,
        invoice_number=row.invoice_number,
        customer_id=row.customer_id,
        billing_period_start=row.billing_period_start,
        billing_period_end=row.billing_period_end,
        total_amount=row.total_amount,
        final_amount=row.final_amount,
        paid_amount=row.paid_amount,
        payment_status=row.payment_status,
        due_date=row.due_date,
        payment_date=row.payment_date,
        upi_handle=row.upi_handle,
    )


class InvoiceSelector(BaseSelector):

    def get(self, invoice_id: UUID) -> InvoiceView | None:
        row = self.session.get(Invoice, invoice_id)
        return invoice_view(row) if row is not None else None

    def exists_for_period(self, customer_id: UUID, start: date, end: date) -> bool:
        found = self.session.execute(
            select(Invoice.id).where(
                Invoice.customer_id == customer_id,
                Invoice.billing_period_start == start,
                Invoice.billing_period_end == end,
            )
        ).first()
        return found is not None

    def customers_invoiced_for_period(self, start: date, end: date) -> frozenset[UUID]:
        rows = self.session.execute(
            select(Invoice.customer_id).where(
                Invoice.billing_period_start == start,
                Invoice.billing_period_end == end,
            )
        ).scalars()
        return frozenset(rows)

    def for_customer(self, customer_id: UUID) -> tuple[InvoiceView, ...]:
        """Oldest first."""
        rows = self.session.execute(
            select(Invoice)
            .where(Invoice.customer_id == customer_id)
            .order_by(Invoice.billing_period_start, Invoice.created_at, Invoice.invoice_number)
        ).scalars()
        return tuple(invoice_view(r) for r in rows)

    def all_invoices(self) -> tuple[InvoiceView, ...]:
        rows = self.session.execute(
            select(Invoice).order_by(Invoice.billing_period_start, Invoice.invoice_number)
        ).scalars()
        return tuple(invoice_view(r) for r in rows)

    def customer_ids_with_invoices(self) -> tuple[UUID, ...]:
        rows = self.session.execute(select(Invoice.customer_id).distinct()).scalars()
        return tuple(sorted(rows, key=str))

    def count_with_number_prefix(self, prefix: str) -> int:
        """Invoices whose number starts with ``prefix-``."""
        return self.session.execute(
            select(func.count(Invoice.id)).where(Invoice.invoice_number.like(f"{prefix}-%"))
        ).scalar_one()

    def current_settings(self) -> SettingsView | None:
        row = self.session.execute(
            select(DairySettings).order_by(DairySettings.created_at).limit(1)
        ).scalar_one_or_none()
        if row is None:
            return None
        return SettingsView(
            dairy_name=row.dairy_name,
            currency=row.currency,
            invoice_prefix=row.invoice_prefix,
            upi_handle=row.upi_handle,
        )
