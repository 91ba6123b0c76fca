"""
LedgerService -- append-only customer ledger with a stored running balance.

Responsibility:
    Appends debit/credit entries to a customer's ledger, computing each
    entry's ``running_balance`` from the current head.  Provides the
    standard wrappers used by deliveries, invoices and payments, plus an
    independent recomputation of the balance.

Architecture position:
    Kernel > Services.  Flush-only: callers (invoice generator, payment
    service, ledger automation) own commit and rollback.

Invariants enforced:
    - Exactly one of debit/credit is positive (InvalidLedgerAmountError).
    - ``running_balance = head.running_balance + debit - credit``.
    - Compare-and-swap on the head: the new entry claims
      ``head.chain_position + 1`` under a UNIQUE(customer_id,
      chain_position) constraint, so two writers that read the same head
      cannot both append.  The loser gets LedgerConflictError.
    - Entries are never updated or deleted.

Failure modes:
    - InvalidLedgerAmountError before any write.
    - LedgerConflictError on flush when the head moved.  The session must
      then be rolled back by its owner.

Audit relevance:
    ``calculate_balance`` sums every entry independently of the stored
    running balances; the integrity checks compare the two.
"""

from datetime import date, tzinfo
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from dairy_kernel.domain.ledger import (
    BalanceSummary,
    next_running_balance,
    summarize_entries,
    validate_movement,
)
from dairy_kernel.db.types import ZERO, round_money, to_decimal
from dairy_kernel.domain.clock import Clock
from dairy_kernel.domain.enums import LedgerTransactionType
from dairy_kernel.exceptions import LedgerConflictError
from dairy_kernel.logging_config import get_logger
from dairy_kernel.models.ledger import LedgerEntry
from dairy_kernel.services.base import BaseService

logger = get_logger("services.ledger")


def delivery_charge_description(delivery_date: date) -> str:
    return f"Delivery charge for {delivery_date.strftime('%d %b %Y')}"


def payment_description(payment_mode: str) -> str:
    return f"Payment received ({payment_mode})"


def invoice_description(invoice_number: str) -> str:
    return f"Invoice {invoice_number} generated"


ADVANCE_DESCRIPTION = "Advance payment received"


class LedgerService(BaseService):
    """
    Append-only writer for ``customer_ledger``.

    Contract:
        ``create_entry`` validates, reads the head, and flushes one new
        entry dated the clock's today in ``tz`` (the dairy timezone, so an
        entry and the payment or invoice it records share a calendar day).

    Non-goals:
        - Does NOT update ``customers.advance_balance`` or
          ``credit_balance``; a store-side trigger owns those.
        - Does NOT retry on conflict.
    """

    def __init__(self, session: Session, clock: Clock | None = None, tz: tzinfo | None = None):
        super().__init__(session, clock)
        self._tz = tz

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def _head(self, customer_id: UUID) -> LedgerEntry | None:
        return self.session.execute(
            select(LedgerEntry)
            .where(LedgerEntry.customer_id == customer_id)
            .order_by(
                LedgerEntry.transaction_date.desc(),
                LedgerEntry.created_at.desc(),
                LedgerEntry.chain_position.desc(),
            )
            .limit(1)
        ).scalar_one_or_none()

    def get_running_balance(self, customer_id: UUID) -> Decimal:
        """Balance after the customer's most recent entry; 0 when none."""
        head = self._head(customer_id)
        if head is None:
            return round_money(ZERO)
        return round_money(to_decimal(head.running_balance))

    def calculate_balance(self, customer_id: UUID) -> BalanceSummary:
        """Sum every entry independently of the stored running balances."""
        rows = self.session.execute(
            select(LedgerEntry.debit_amount, LedgerEntry.credit_amount).where(
                LedgerEntry.customer_id == customer_id
            )
        ).all()
        return summarize_entries((row[0], row[1]) for row in rows)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def create_entry(
        self,
        customer_id: UUID,
        transaction_type: str,
        description: str,
        debit: Decimal | int | str = ZERO,
        credit: Decimal | int | str = ZERO,
        reference_id: UUID | None = None,
    ) -> LedgerEntry:
        """
        Append one entry.

        Raises:
            InvalidLedgerAmountError: not exactly one positive side.
            LedgerConflictError: another writer claimed the same position.
        """
        movement = validate_movement(debit, credit)

        head = self._head(customer_id)
        current = to_decimal(head.running_balance) if head is not None else ZERO
        position = (head.chain_position + 1) if head is not None else 1
        new_balance = next_running_balance(current, movement)

        if isinstance(transaction_type, LedgerTransactionType):
            transaction_type = transaction_type.value

        now = self.clock.now()
        entry = LedgerEntry(
            customer_id=customer_id,
            transaction_date=self.clock.today(self._tz),
            transaction_type=transaction_type,
            description=description,
            debit_amount=movement.stored_debit,
            credit_amount=movement.stored_credit,
            running_balance=new_balance,
            reference_id=reference_id,
            chain_position=position,
            created_at=now,
            updated_at=now,
        )
        self.session.add(entry)
        try:
            self.session.flush()
        except IntegrityError as exc:
            logger.warning(
                "ledger_head_conflict",
                extra={"customer_id": str(customer_id), "chain_position": position},
            )
            raise LedgerConflictError(str(customer_id), position) from exc

        logger.info(
            "ledger_entry_created",
            extra={
                "customer_id": str(customer_id),
                "transaction_type": transaction_type,
                "debit": movement.debit,
                "credit": movement.credit,
                "running_balance": new_balance,
                "chain_position": position,
            },
        )
        return entry

    def log_delivery_charge(
        self,
        customer_id: UUID,
        delivery_id: UUID,
        amount: Decimal,
        delivery_date: date,
    ) -> LedgerEntry:
        return self.create_entry(
            customer_id,
            LedgerTransactionType.DELIVERY.value,
            delivery_charge_description(delivery_date),
            debit=amount,
            reference_id=delivery_id,
        )

    def log_payment(
        self,
        customer_id: UUID,
        amount: Decimal,
        payment_mode: str = "cash",
        payment_id: UUID | None = None,
    ) -> LedgerEntry:
        return self.create_entry(
            customer_id,
            LedgerTransactionType.PAYMENT.value,
            payment_description(payment_mode),
            credit=amount,
            reference_id=payment_id,
        )

    def log_invoice(
        self,
        customer_id: UUID,
        invoice_id: UUID,
        invoice_number: str,
        amount: Decimal,
    ) -> LedgerEntry:
        return self.create_entry(
            customer_id,
            LedgerTransactionType.INVOICE.value,
            invoice_description(invoice_number),
            debit=amount,
            reference_id=invoice_id,
        )

    def log_advance_payment(
        self,
        customer_id: UUID,
        amount: Decimal,
        notes: str | None = None,
    ) -> LedgerEntry:
        return self.create_entry(
            customer_id,
            LedgerTransactionType.ADVANCE.value,
            notes or ADVANCE_DESCRIPTION,
            credit=amount,
        )
