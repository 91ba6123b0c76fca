"""
PaymentService -- records money received.

Responsibility:
    Applies a payment to an invoice (paid amount, status, payment date),
    records the Payment row and the ledger credit in one commit, then
    announces it.  Also records advance payments on account, and summarises
    what a customer still owes with overdue derived at read time.

Invariants enforced:
    - Amounts are validated before anything is written.
    - Fully covered invoices become ``paid`` with a payment date; anything
      less is ``partial``.
    - Notifications are sent after the commit and cannot fail the payment.

Failure modes:
    - InvalidAmountError: amount not positive (nothing written).
    - RecordNotFoundError: unknown invoice or customer.
    - SQLAlchemyError / LedgerConflictError: rolled back and re-raised.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from dairy_config import DairyConfig
from dairy_engines.invoicing import (
    effective_payment_status,
    is_overdue,
    outstanding_balance,
    overdue_balance,
    settle_payment,
)
from dairy_kernel.domain.clock import Clock, SystemClock
from dairy_kernel.domain.validation import validate_amount
from dairy_kernel.exceptions import RecordNotFoundError
from dairy_kernel.logging_config import get_logger
from dairy_kernel.models.billing import Invoice, Payment
from dairy_kernel.models.customer import Customer
from dairy_kernel.selectors.invoice_selector import InvoiceSelector
from dairy_kernel.services.ledger_service import LedgerService
from dairy_kernel.services.notifier import EventType, Notifier, emit_event

logger = get_logger("services.payments")


@dataclass(frozen=True)
class PaymentResult:
    payment_id: UUID | None
    ledger_entry_id: UUID
    customer_id: UUID
    amount: Decimal
    running_balance: Decimal
    invoice_id: UUID | None = None
    invoice_number: str | None = None
    paid_amount: Decimal | None = None
    remaining: Decimal | None = None
    payment_status: str | None = None
    payment_date: date | None = None


@dataclass(frozen=True)
class AccountSummary:
    """What a customer owes as of one day."""

    customer_id: UUID
    as_of: date
    outstanding: Decimal
    overdue: Decimal
    ledger_balance: Decimal
    invoice_statuses: dict[str, str]
    overdue_invoices: tuple[str, ...] = ()


class PaymentService:
    """
    Payment recording.  Owns its transaction boundary.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: DairyConfig | None = None,
        notifier: Notifier | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or DairyConfig()
        self._notifier = notifier
        self._ledger = LedgerService(session, self._clock, self._config.tzinfo)
        self._invoices = InvoiceSelector(session)

    def record_invoice_payment(
        self,
        invoice_id: UUID,
        amount: Decimal | int | str,
        payment_mode: str = "cash",
        reference_number: str | None = None,
    ) -> PaymentResult:
        value = validate_amount(amount)
        invoice = self._session.get(Invoice, invoice_id)
        if invoice is None:
            raise RecordNotFoundError("Invoice", str(invoice_id))

        today = self._clock.today(self._config.tzinfo)
        try:
            settlement = settle_payment(invoice.final_amount, invoice.paid_amount, value, today)
            invoice.paid_amount = settlement.paid_amount
            invoice.payment_status = settlement.payment_status.value
            if settlement.payment_date is not None:
                invoice.payment_date = settlement.payment_date

            payment = Payment(
                customer_id=invoice.customer_id,
                invoice_id=invoice.id,
                amount=value,
                payment_date=today,
                payment_mode=payment_mode,
                reference_number=reference_number,
            )
            self._session.add(payment)
            self._session.flush()
            entry = self._ledger.log_payment(invoice.customer_id, value, payment_mode, payment.id)
            self._session.commit()
        except Exception:
            self._session.rollback()
            logger.exception("invoice_payment_failed", extra={"invoice_id": str(invoice_id)})
            raise

        logger.info(
            "invoice_payment_recorded",
            extra={
                "invoice_number": invoice.invoice_number,
                "amount": value,
                "payment_status": settlement.payment_status.value,
                "remaining": settlement.remaining,
            },
        )
        self._announce(invoice.customer_id, value, payment_mode, invoice.invoice_number)

        return PaymentResult(
            payment_id=payment.id,
            ledger_entry_id=entry.id,
            customer_id=invoice.customer_id,
            amount=value,
            running_balance=entry.running_balance,
            invoice_id=invoice.id,
            invoice_number=invoice.invoice_number,
            paid_amount=settlement.paid_amount,
            remaining=settlement.remaining,
            payment_status=settlement.payment_status.value,
            payment_date=settlement.payment_date,
        )

    def record_advance_payment(
        self,
        customer_id: UUID,
        amount: Decimal | int | str,
        notes: str | None = None,
    ) -> PaymentResult:
        value = validate_amount(amount)
        if self._session.get(Customer, customer_id) is None:
            raise RecordNotFoundError("Customer", str(customer_id))

        try:
            entry = self._ledger.log_advance_payment(customer_id, value, notes)
            self._session.commit()
        except Exception:
            self._session.rollback()
            logger.exception("advance_payment_failed", extra={"customer_id": str(customer_id)})
            raise

        logger.info("advance_payment_recorded", extra={"customer_id": str(customer_id), "amount": value})
        self._announce(customer_id, value, "advance", None)
        return PaymentResult(
            payment_id=None,
            ledger_entry_id=entry.id,
            customer_id=customer_id,
            amount=value,
            running_balance=entry.running_balance,
        )

    def account_summary(self, customer_id: UUID, as_of: date | None = None) -> AccountSummary:
        """Outstanding and overdue totals over the customer's invoices.

        Overdue is never stored: an unpaid invoice past its due date on
        ``as_of`` (default: today in the dairy timezone) counts as overdue.

        Raises:
            RecordNotFoundError: unknown customer.
        """
        if self._session.get(Customer, customer_id) is None:
            raise RecordNotFoundError("Customer", str(customer_id))

        day = as_of or self._clock.today(self._config.tzinfo)
        invoices = self._invoices.for_customer(customer_id)
        return AccountSummary(
            customer_id=customer_id,
            as_of=day,
            outstanding=outstanding_balance(invoices),
            overdue=overdue_balance(invoices, day),
            ledger_balance=self._ledger.get_running_balance(customer_id),
            invoice_statuses={
                i.invoice_number: effective_payment_status(i.payment_status, i.due_date, day)
                for i in invoices
            },
            overdue_invoices=tuple(i.invoice_number for i in invoices if is_overdue(i, day)),
        )

    def _announce(
        self,
        customer_id: UUID,
        amount: Decimal,
        payment_mode: str,
        invoice_number: str | None,
    ) -> None:
        payload = {
            "customer_id": str(customer_id),
            "amount": str(amount),
            "payment_mode": payment_mode,
            "invoice_number": invoice_number,
        }
        emit_event(self._notifier, EventType.PAYMENT_RECEIVED, payload)
        if amount >= self._config.notifications.large_payment_threshold:
            emit_event(
                self._notifier,
                EventType.LARGE_TRANSACTION,
                {**payload, "threshold": str(self._config.notifications.large_payment_threshold)},
            )
