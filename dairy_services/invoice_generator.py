"""
InvoiceGenerator -- monthly invoices from delivered line items.

Responsibility:
    For a calendar month, bills every active customer once: aggregates the
    month's delivered line items per product, allocates an invoice number,
    writes the Invoice, and (by default) posts the matching ledger debit.

Architecture position:
    Services.  Amount arithmetic lives in ``dairy_engines.invoicing``;
    numbering in ``SequenceService``; the ledger debit in ``LedgerService``.

Invariants enforced:
    - At most one Invoice per (customer, period).  Customers already billed
      for the exact period are skipped; UNIQUE(customer_id, period) is the
      backstop, so re-running a month is idempotent.
    - Invoice numbers come from a locked counter per month prefix, seeded
      from the invoices already carrying that prefix.  Numbers are never
      derived from a count at write time.
    - ``total = final = aggregate``, ``tax = discount = paid = 0``,
      ``payment_status = pending``; ``upi_handle`` is snapshotted.
    - Invoice and ledger debit commit together, one customer at a time.

Failure modes:
    - Store or ledger errors for one customer roll back that customer,
      are logged, and are appended to ``errors``; the batch continues.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from dairy_config import DairyConfig
from dairy_engines.invoicing import (
    BillingPeriod,
    DeliveredLine,
    InvoiceAmounts,
    ProductLine,
    SubscriptionPrice,
    billing_period,
    compute_invoice_amounts,
    format_invoice_number,
    invoice_number_prefix,
    resolve_unit_price,
)
from dairy_kernel.db.types import ZERO, round_money
from dairy_kernel.domain.clock import Clock, SystemClock
from dairy_kernel.domain.enums import PaymentStatus
from dairy_kernel.exceptions import DairyKernelError, DuplicateInvoiceError
from dairy_kernel.logging_config import LogContext, get_logger
from dairy_kernel.models.billing import Invoice
from dairy_kernel.selectors.customer_selector import CustomerSelector
from dairy_kernel.selectors.delivery_selector import DeliverySelector
from dairy_kernel.selectors.invoice_selector import InvoiceSelector
from dairy_kernel.services.ledger_service import LedgerService
from dairy_kernel.services.sequence_service import SequenceService

logger = get_logger("services.invoice_generator")


# =============================================================================
# Result DTOs
# =============================================================================


@dataclass(frozen=True)
class CustomerInvoiceData:
    """What a customer would be billed for a period (nothing written)."""

    customer_id: UUID
    customer_name: str
    period_start: date
    period_end: date
    delivered_count: int
    lines: tuple[ProductLine, ...]
    total_amount: Decimal
    used_subscription_fallback: bool


@dataclass(frozen=True)
class GeneratedInvoice:
    invoice_id: UUID
    invoice_number: str
    customer_id: UUID
    customer_name: str
    amount: Decimal
    lines: tuple[ProductLine, ...]
    used_subscription_fallback: bool


@dataclass(frozen=True)
class InvoiceGenerationResult:
    period_start: date
    period_end: date
    generated: int = 0
    skipped: int = 0
    total_amount: Decimal = Decimal("0.00")
    errors: tuple[str, ...] = ()
    invoices: tuple[GeneratedInvoice, ...] = ()


# =============================================================================
# Service
# =============================================================================


class InvoiceGenerator:
    """
    Monthly invoice generation.

    Contract:
        - ``generate_monthly_invoices(year, month)`` bills the month.
        - ``calculate_customer_invoice()`` computes one customer's figures
          without writing.
        - ``next_invoice_number()`` allocates (and flushes) the next number
          for the current month.

    Non-goals:
        - Tax and discounts (always zero here).
        - Payment recording (see PaymentService).
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: DairyConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or DairyConfig()
        self._customers = CustomerSelector(session)
        self._deliveries = DeliverySelector(session)
        self._invoices = InvoiceSelector(session)
        self._sequence = SequenceService(session)
        self._ledger = LedgerService(session, self._clock, self._config.tzinfo)

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def generate_monthly_invoices(self, year: int, month: int) -> InvoiceGenerationResult:
        """Bill every active customer for ``year``-``month``.

        Raises:
            InvalidBillingPeriodError: ``month`` is not 1..12.
        """
        period = billing_period(year, month, self._config.billing.due_days)
        generated: list[GeneratedInvoice] = []
        skipped = 0
        errors: list[str] = []

        try:
            settings = self._invoices.current_settings()
            customers = self._customers.active_customers()
            already_billed = self._invoices.customers_invoiced_for_period(period.start, period.end)
        except SQLAlchemyError as exc:
            self._session.rollback()
            logger.exception("invoice_candidates_load_failed", extra={"year": year, "month": month})
            return InvoiceGenerationResult(
                period_start=period.start,
                period_end=period.end,
                errors=(f"Failed to load customers: {exc}",),
            )

        upi_handle = settings.upi_handle if settings else None
        prefix = (settings.invoice_prefix if settings and settings.invoice_prefix
                  else self._config.billing.invoice_prefix)

        logger.info(
            "invoice_generation_started",
            extra={
                "period_start": period.start,
                "period_end": period.end,
                "customer_count": len(customers),
                "already_billed": len(already_billed),
            },
        )

        for customer in customers:
            if customer.id in already_billed:
                skipped += 1
                continue
            with LogContext.bind(customer_id=str(customer.id)):
                try:
                    invoice = self._generate_for_customer(
                        customer.id, customer.name, period, prefix, upi_handle,
                    )
                except DuplicateInvoiceError:
                    self._session.rollback()
                    skipped += 1
                    continue
                except (SQLAlchemyError, DairyKernelError) as exc:
                    self._session.rollback()
                    logger.exception("invoice_generation_failed")
                    errors.append(f"Customer {customer.name}: {exc}")
                    continue
            if invoice is None:
                skipped += 1
            else:
                generated.append(invoice)

        total = round_money(sum((g.amount for g in generated), ZERO))
        logger.info(
            "invoice_generation_completed",
            extra={
                "period_start": period.start,
                "generated": len(generated),
                "skipped": skipped,
                "total_amount": total,
                "error_count": len(errors),
            },
        )
        return InvoiceGenerationResult(
            period_start=period.start,
            period_end=period.end,
            generated=len(generated),
            skipped=skipped,
            total_amount=total,
            errors=tuple(errors),
            invoices=tuple(generated),
        )

    def calculate_customer_invoice(
        self,
        customer_id: UUID,
        period_start: date,
        period_end: date,
    ) -> CustomerInvoiceData | None:
        """Figures for one customer, or None when the customer is unknown."""
        customer = self._customers.get(customer_id)
        if customer is None:
            return None
        delivered_count, amounts = self._amounts_for(customer_id, period_start, period_end)
        return CustomerInvoiceData(
            customer_id=customer_id,
            customer_name=customer.name,
            period_start=period_start,
            period_end=period_end,
            delivered_count=delivered_count,
            lines=amounts.lines,
            total_amount=amounts.total_amount,
            used_subscription_fallback=amounts.used_subscription_fallback,
        )

    def next_invoice_number(self, prefix: str | None = None) -> str:
        """Allocate the next ``PREFIX-YYYYMM-NNN`` for the current month.

        Flushes the counter increment; the caller commits.
        """
        month_prefix = invoice_number_prefix(
            prefix or self._config.billing.invoice_prefix,
            self._clock.today(self._config.tzinfo),
        )
        sequence = self._sequence.next_value(
            f"invoice:{month_prefix}",
            seed=lambda: self._invoices.count_with_number_prefix(month_prefix),
        )
        return format_invoice_number(month_prefix, sequence, self._config.billing.sequence_width)

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _amounts_for(
        self, customer_id: UUID, start: date, end: date,
    ) -> tuple[int, InvoiceAmounts]:
        delivery_ids = self._deliveries.delivered_ids_in_period(customer_id, start, end)
        items = self._deliveries.items_for_deliveries(delivery_ids)
        lines = [
            DeliveredLine(i.product_id, i.product_name, i.quantity, i.total_amount)
            for i in items
        ]
        subscriptions: list[SubscriptionPrice] = []
        if delivery_ids and not lines:
            subscriptions = [
                SubscriptionPrice(
                    product_id=s.product_id,
                    product_name=s.product_name,
                    quantity=s.quantity,
                    unit_price=resolve_unit_price(s.custom_price, s.base_price),
                )
                for s in self._customers.active_subscriptions(customer_id)
            ]
        return len(delivery_ids), compute_invoice_amounts(lines, len(delivery_ids), subscriptions)

    def _generate_for_customer(
        self,
        customer_id: UUID,
        customer_name: str,
        period: BillingPeriod,
        prefix: str,
        upi_handle: str | None,
    ) -> GeneratedInvoice | None:
        delivered_count, amounts = self._amounts_for(customer_id, period.start, period.end)
        if delivered_count == 0 or not amounts.is_billable:
            logger.debug(
                "invoice_skipped_nothing_to_bill",
                extra={"delivered_count": delivered_count},
            )
            return None

        invoice_number = self.next_invoice_number(prefix)
        invoice = Invoice(
            invoice_number=invoice_number,
            customer_id=customer_id,
            billing_period_start=period.start,
            billing_period_end=period.end,
            total_amount=amounts.total_amount,
            tax_amount=ZERO,
            discount_amount=ZERO,
            final_amount=amounts.total_amount,
            paid_amount=ZERO,
            payment_status=PaymentStatus.PENDING.value,
            due_date=period.due_date,
            upi_handle=upi_handle,
        )
        self._session.add(invoice)
        try:
            self._session.flush()
        except IntegrityError as exc:
            self._session.rollback()
            if self._invoices.exists_for_period(customer_id, period.start, period.end):
                raise DuplicateInvoiceError(str(customer_id), period.start, period.end) from exc
            raise

        if self._config.billing.post_invoices_to_ledger:
            self._ledger.log_invoice(customer_id, invoice.id, invoice_number, amounts.total_amount)

        self._session.commit()
        logger.info(
            "invoice_generated",
            extra={
                "invoice_id": str(invoice.id),
                "invoice_number": invoice_number,
                "amount": amounts.total_amount,
                "delivered_count": delivered_count,
                "used_subscription_fallback": amounts.used_subscription_fallback,
            },
        )
        return GeneratedInvoice(
            invoice_id=invoice.id,
            invoice_number=invoice_number,
            customer_id=customer_id,
            customer_name=customer_name,
            amount=amounts.total_amount,
            lines=amounts.lines,
            used_subscription_fallback=amounts.used_subscription_fallback,
        )
