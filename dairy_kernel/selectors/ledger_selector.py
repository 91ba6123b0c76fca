"""Read-only queries over the customer ledger."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from dairy_kernel.domain.enums import LedgerTransactionType
from dairy_kernel.domain.ledger import ChainLink
from dairy_kernel.models.billing import Invoice
from dairy_kernel.models.ledger import LedgerEntry
from dairy_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class LedgerEntryView:
    id: UUID
    customer_id: UUID
    transaction_date: date
    transaction_type: str
    description: str
    debit_amount: Decimal | None
    credit_amount: Decimal | None
    running_balance: Decimal
    reference_id: UUID | None
    chain_position: int


def _entry_view(row: LedgerEntry) -> LedgerEntryView:
    return LedgerEntryView(
        id=row.id,
        customer_id=row.customer_id,
        transaction_date=row.transaction_date,
        transaction_type=row.transaction_type,
        description=row.description,
        debit_amount=row.debit_amount,
        credit_amount=row.credit_amount,
        running_balance=row.running_balance,
        reference_id=row.reference_id,
        chain_position=row.chain_position,
    )


class LedgerSelector(BaseSelector):

    def entries(self, customer_id: UUID) -> tuple[LedgerEntryView, ...]:
        """Customer statement in chain order."""
        rows = self.session.execute(
            select(LedgerEntry)
            .where(LedgerEntry.customer_id == customer_id)
            .order_by(LedgerEntry.chain_position)
        ).scalars()
        return tuple(_entry_view(r) for r in rows)

    def chain(self, customer_id: UUID) -> tuple[ChainLink, ...]:
        return tuple(
            ChainLink(e.chain_position, e.debit_amount, e.credit_amount, e.running_balance)
            for e in self.entries(customer_id)
        )

    def latest(self, customer_id: UUID) -> LedgerEntryView | None:
        row = self.session.execute(
            select(LedgerEntry)
            .where(LedgerEntry.customer_id == customer_id)
            .order_by(
                LedgerEntry.transaction_date.desc(),
                LedgerEntry.created_at.desc(),
                LedgerEntry.chain_position.desc(),
            )
            .limit(1)
        ).scalar_one_or_none()
        return _entry_view(row) if row is not None else None

    def customer_ids_with_entries(self) -> tuple[UUID, ...]:
        rows = self.session.execute(select(LedgerEntry.customer_id).distinct()).scalars()
        return tuple(sorted(rows, key=str))

    def invoice_reference_ids(self, customer_id: UUID | None = None) -> frozenset[UUID]:
        """Invoice ids that already have an ``invoice`` ledger entry."""
        stmt = select(LedgerEntry.reference_id).where(
            LedgerEntry.transaction_type == LedgerTransactionType.INVOICE.value,
            LedgerEntry.reference_id.is_not(None),
        )
        if customer_id is not None:
            stmt = stmt.where(LedgerEntry.customer_id == customer_id)
        return frozenset(self.session.execute(stmt).scalars())

    def orphaned_invoice_entries(self) -> tuple[LedgerEntryView, ...]:
        """``invoice`` entries whose reference is missing or names no invoice."""
        rows = self.session.execute(
            select(LedgerEntry)
            .outerjoin(Invoice, Invoice.id == LedgerEntry.reference_id)
            .where(
                LedgerEntry.transaction_type == LedgerTransactionType.INVOICE.value,
                Invoice.id.is_(None),
            )
            .order_by(LedgerEntry.customer_id, LedgerEntry.chain_position)
        ).scalars()
        return tuple(_entry_view(r) for r in rows)
