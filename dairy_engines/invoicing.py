"""
Invoice arithmetic.

Pure functions with deterministic behavior. No I/O.

Covers:
    - Billing periods (calendar month, due date = period end + N days).
    - Unit-price resolution and per-product aggregation of delivered lines,
      including the subscription fallback for months whose deliveries were
      recorded without line items.
    - Invoice-number formatting (``INV-YYYYMM-NNN``).
    - Payment settlement and the "effective status" helpers used for
      dunning views (overdue is derived from the due date, not stored).

Usage:
    from dairy_engines.invoicing import billing_period, compute_invoice_amounts

    period = billing_period(2026, 1)
    amounts = compute_invoice_amounts(lines, delivered_count, subscriptions)
    number = format_invoice_number(invoice_number_prefix("INV", today), 7)
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Protocol, Sequence
from uuid import UUID

from dairy_kernel.db.types import ZERO, round_money, round_quantity, to_decimal
from dairy_kernel.domain.enums import PaymentStatus
from dairy_kernel.exceptions import InvalidBillingPeriodError
from dairy_kernel.logging_config import get_logger

logger = get_logger("engines.invoicing")

DEFAULT_DUE_DAYS = 15
DEFAULT_SEQUENCE_WIDTH = 3


# ============================================================================
# Billing period
# ============================================================================


@dataclass(frozen=True)
class BillingPeriod:
    """One calendar month and its payment due date."""

    year: int
    month: int
    start: date
    end: date
    due_date: date

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


def billing_period(year: int, month: int, due_days: int = DEFAULT_DUE_DAYS) -> BillingPeriod:
    """Build the billing period for a calendar month.

    Raises:
        InvalidBillingPeriodError: month outside 1..12 or year not positive.
    """
    if not 1 <= month <= 12 or year < 1:
        raise InvalidBillingPeriodError(year, month)
    last_day = calendar.monthrange(year, month)[1]
    start = date(year, month, 1)
    end = date(year, month, last_day)
    return BillingPeriod(
        year=year,
        month=month,
        start=start,
        end=end,
        due_date=end + timedelta(days=due_days),
    )


def previous_month(day: date) -> tuple[int, int]:
    """(year, month) of the calendar month before ``day``."""
    first = day.replace(day=1)
    prior = first - timedelta(days=1)
    return prior.year, prior.month


# ============================================================================
# Line pricing and aggregation
# ============================================================================


def resolve_unit_price(
    custom_price: Decimal | None,
    base_price: Decimal | None,
) -> Decimal:
    """A subscription's custom price wins over the catalogue price; else 0."""
    if custom_price is not None:
        return round_money(custom_price)
    if base_price is not None:
        return round_money(base_price)
    return round_money(ZERO)


def line_total(quantity: Decimal, unit_price: Decimal) -> Decimal:
    return round_money(to_decimal(quantity) * to_decimal(unit_price))


@dataclass(frozen=True)
class DeliveredLine:
    """A delivery line item as read from the store."""

    product_id: UUID
    product_name: str
    quantity: Decimal
    total_amount: Decimal


@dataclass(frozen=True)
class SubscriptionPrice:
    """An active subscription line with its resolved unit price."""

    product_id: UUID
    product_name: str
    quantity: Decimal
    unit_price: Decimal


@dataclass(frozen=True)
class ProductLine:
    """Per-product total on an invoice."""

    product_id: UUID
    product_name: str
    quantity: Decimal
    amount: Decimal


@dataclass(frozen=True)
class InvoiceAmounts:
    lines: tuple[ProductLine, ...]
    total_amount: Decimal
    used_subscription_fallback: bool = False

    @property
    def is_billable(self) -> bool:
        return self.total_amount > 0


def aggregate_delivered_lines(lines: Iterable[DeliveredLine]) -> tuple[ProductLine, ...]:
    """Sum quantity and amount per product, ordered by product name."""
    totals: dict[UUID, list] = {}
    for line in lines:
        entry = totals.setdefault(line.product_id, [line.product_name, ZERO, ZERO])
        entry[1] += to_decimal(line.quantity)
        entry[2] += to_decimal(line.total_amount)
    return tuple(
        ProductLine(
            product_id=product_id,
            product_name=name,
            quantity=round_quantity(quantity),
            amount=round_money(amount),
        )
        for product_id, (name, quantity, amount) in sorted(
            totals.items(), key=lambda item: (item[1][0], str(item[0]))
        )
    )


def subscription_fallback_lines(
    subscriptions: Sequence[SubscriptionPrice],
    delivered_count: int,
) -> tuple[ProductLine, ...]:
    """Estimate lines as active subscriptions times the delivered-day count."""
    count = Decimal(delivered_count)
    return tuple(
        ProductLine(
            product_id=sub.product_id,
            product_name=sub.product_name,
            quantity=round_quantity(to_decimal(sub.quantity) * count),
            amount=round_money(to_decimal(sub.unit_price) * to_decimal(sub.quantity) * count),
        )
        for sub in sorted(subscriptions, key=lambda s: (s.product_name, str(s.product_id)))
    )


def compute_invoice_amounts(
    delivered_lines: Sequence[DeliveredLine],
    delivered_count: int,
    subscriptions: Sequence[SubscriptionPrice] = (),
) -> InvoiceAmounts:
    """Invoice amounts for one customer and period.

    No delivered deliveries means nothing to bill.  Delivered deliveries
    with no line items at all fall back to the subscription estimate.
    """
    if delivered_count <= 0:
        return InvoiceAmounts(lines=(), total_amount=round_money(ZERO))

    used_fallback = not delivered_lines
    if used_fallback:
        lines = subscription_fallback_lines(subscriptions, delivered_count)
        logger.debug(
            "invoice_subscription_fallback",
            extra={"delivered_count": delivered_count, "subscription_count": len(subscriptions)},
        )
    else:
        lines = aggregate_delivered_lines(delivered_lines)

    total = round_money(sum((line.amount for line in lines), ZERO))
    return InvoiceAmounts(lines=lines, total_amount=total, used_subscription_fallback=used_fallback)


# ============================================================================
# Invoice numbering
# ============================================================================


def invoice_number_prefix(prefix: str, on: date) -> str:
    """``INV`` + 2026-02-14 -> ``INV-202602``."""
    return f"{prefix}-{on.year:04d}{on.month:02d}"


def format_invoice_number(
    month_prefix: str,
    sequence: int,
    width: int = DEFAULT_SEQUENCE_WIDTH,
) -> str:
    """``INV-202602`` + 7 -> ``INV-202602-007``.  Wider numbers are not cut."""
    if sequence < 1:
        raise ValueError(f"Invoice sequence must be positive: {sequence}")
    return f"{month_prefix}-{sequence:0{width}d}"


# ============================================================================
# Payment settlement and status helpers
# ============================================================================


class InvoiceFigures(Protocol):
    payment_status: str
    due_date: date | None
    final_amount: Decimal
    paid_amount: Decimal | None


@dataclass(frozen=True)
class PaymentSettlement:
    """Outcome of applying a payment to an invoice."""

    paid_amount: Decimal
    remaining: Decimal
    payment_status: PaymentStatus
    payment_date: date | None


def settle_payment(
    final_amount: Decimal,
    paid_amount: Decimal | None,
    amount: Decimal,
    on: date,
) -> PaymentSettlement:
    """Apply ``amount``: fully covered becomes paid, anything less partial."""
    new_paid = round_money(to_decimal(paid_amount) + to_decimal(amount))
    remaining = round_money(to_decimal(final_amount) - new_paid)
    if remaining <= 0:
        return PaymentSettlement(new_paid, remaining, PaymentStatus.PAID, on)
    return PaymentSettlement(new_paid, remaining, PaymentStatus.PARTIAL, None)


def effective_payment_status(
    payment_status: str,
    due_date: date | None,
    as_of: date,
) -> str:
    """Stored ``paid`` wins; past due is ``overdue``; else the stored status."""
    if payment_status == PaymentStatus.PAID.value:
        return PaymentStatus.PAID.value
    if due_date is not None and due_date < as_of:
        return PaymentStatus.OVERDUE.value
    return payment_status


def invoice_balance(invoice: InvoiceFigures) -> Decimal:
    return round_money(to_decimal(invoice.final_amount) - to_decimal(invoice.paid_amount))


def is_overdue(invoice: InvoiceFigures, as_of: date) -> bool:
    return (
        effective_payment_status(invoice.payment_status, invoice.due_date, as_of)
        == PaymentStatus.OVERDUE.value
    )


def outstanding_balance(invoices: Iterable[InvoiceFigures]) -> Decimal:
    """Sum of remaining balances over every invoice not marked paid."""
    return round_money(sum(
        (invoice_balance(i) for i in invoices if i.payment_status != PaymentStatus.PAID.value),
        ZERO,
    ))


def overdue_balance(invoices: Iterable[InvoiceFigures], as_of: date) -> Decimal:
    return round_money(sum(
        (invoice_balance(i) for i in invoices if is_overdue(i, as_of)),
        ZERO,
    ))
