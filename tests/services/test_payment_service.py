"""
Tests for PaymentService -- invoice settlement, ledger credit, notifications.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from dairy_kernel.exceptions import InvalidAmountError, RecordNotFoundError
from dairy_kernel.models import Invoice, LedgerEntry, Payment
from dairy_kernel.services.ledger_service import LedgerService
from dairy_kernel.services.notifier import EventType
from dairy_services.payment_service import PaymentService


@pytest.fixture
def payments(session, deterministic_clock, config, notifier):
    return PaymentService(session, deterministic_clock, config, notifier)


@pytest.fixture
def posted_invoice(session, deterministic_clock, make_customer, make_invoice):
    """A 500.00 invoice whose debit is already on the ledger."""
    customer = make_customer(name="Farah Khan")
    invoice = make_invoice(customer, number="INV-202401-001", amount="500.00")
    LedgerService(session, deterministic_clock).log_invoice(
        customer.id, invoice.id, invoice.invoice_number, invoice.final_amount,
    )
    session.commit()
    return invoice


class TestInvoicePayment:
    def test_partial_payment(self, session, payments, posted_invoice):
        result = payments.record_invoice_payment(posted_invoice.id, "200")

        assert result.payment_status == "partial"
        assert result.paid_amount == Decimal("200.00")
        assert result.remaining == Decimal("300.00")
        assert result.payment_date is None
        assert result.running_balance == Decimal("300.00")

        invoice = session.get(Invoice, posted_invoice.id)
        assert invoice.payment_status == "partial"
        assert invoice.payment_date is None

    def test_settling_payment_marks_paid(self, session, payments, posted_invoice):
        payments.record_invoice_payment(posted_invoice.id, "200")

        result = payments.record_invoice_payment(posted_invoice.id, Decimal("300"), payment_mode="upi")

        assert result.payment_status == "paid"
        assert result.remaining == Decimal("0.00")
        assert result.payment_date == date(2024, 1, 15)
        assert result.running_balance == Decimal("0.00")
        invoice = session.get(Invoice, posted_invoice.id)
        assert invoice.paid_amount == Decimal("500.00")
        assert invoice.payment_date == date(2024, 1, 15)

    def test_payment_row_and_ledger_credit(self, session, payments, posted_invoice):
        result = payments.record_invoice_payment(
            posted_invoice.id, "150.50", payment_mode="upi", reference_number="UTR123",
        )

        payment = session.get(Payment, result.payment_id)
        assert payment.amount == Decimal("150.50")
        assert payment.payment_mode == "upi"
        assert payment.reference_number == "UTR123"
        entry = session.get(LedgerEntry, result.ledger_entry_id)
        assert entry.credit_amount == Decimal("150.50")
        assert entry.reference_id == payment.id
        assert entry.description == "Payment received (upi)"

    def test_payment_received_event(self, payments, posted_invoice, notifier):
        payments.record_invoice_payment(posted_invoice.id, "100")

        [payload] = notifier.of_type(EventType.PAYMENT_RECEIVED)
        assert payload["amount"] == "100.00"
        assert payload["invoice_number"] == "INV-202401-001"
        assert notifier.of_type(EventType.LARGE_TRANSACTION) == []

    def test_large_payment_event(self, payments, make_customer, make_invoice, notifier):
        invoice = make_invoice(make_customer(), amount="15000.00")

        payments.record_invoice_payment(invoice.id, "12000")

        [payload] = notifier.of_type(EventType.LARGE_TRANSACTION)
        assert payload["amount"] == "12000.00"
        assert payload["threshold"] == "10000"

    @pytest.mark.parametrize("amount", ["0", "-5", "abc"])
    def test_invalid_amount_writes_nothing(self, session, payments, posted_invoice, amount):
        with pytest.raises(InvalidAmountError):
            payments.record_invoice_payment(posted_invoice.id, amount)

        assert session.execute(select(Payment)).scalars().all() == []

    def test_unknown_invoice(self, payments):
        with pytest.raises(RecordNotFoundError) as exc_info:
            payments.record_invoice_payment(uuid4(), "10")
        assert exc_info.value.entity == "Invoice"

    def test_failing_notifier_does_not_fail_payment(
        self, session, deterministic_clock, config, failing_notifier, posted_invoice, captured_logs,
    ):
        service = PaymentService(session, deterministic_clock, config, failing_notifier)

        result = service.record_invoice_payment(posted_invoice.id, "500")

        assert result.payment_status == "paid"
        assert any(r["message"] == "notification_failed" for r in captured_logs())

    def test_dates_agree_across_utc_midnight(self, session, payments, posted_invoice, deterministic_clock):
        # 01:30 IST on 1 Mar, still 29 Feb in UTC
        deterministic_clock.set_time(datetime(2024, 2, 29, 20, 0, tzinfo=timezone.utc))

        result = payments.record_invoice_payment(posted_invoice.id, "500")

        payment = session.get(Payment, result.payment_id)
        entry = session.get(LedgerEntry, result.ledger_entry_id)
        assert result.payment_date == date(2024, 3, 1)
        assert payment.payment_date == date(2024, 3, 1)
        assert entry.transaction_date == date(2024, 3, 1)


class TestAdvancePayment:
    def test_advance_credit(self, session, payments, make_customer, notifier):
        customer = make_customer()

        result = payments.record_advance_payment(customer.id, "1000", notes="Advance for February")

        assert result.payment_id is None
        assert result.running_balance == Decimal("-1000.00")
        entry = session.get(LedgerEntry, result.ledger_entry_id)
        assert entry.transaction_type == "advance"
        assert entry.description == "Advance for February"
        [payload] = notifier.of_type(EventType.PAYMENT_RECEIVED)
        assert payload["payment_mode"] == "advance"

    def test_unknown_customer(self, payments):
        with pytest.raises(RecordNotFoundError):
            payments.record_advance_payment(uuid4(), "10")


class TestAccountSummary:
    @pytest.fixture
    def account(self, payments, make_customer, make_invoice):
        customer = make_customer(name="Farah Khan")
        december = make_invoice(customer, number="INV-202312-001", amount="500.00",
                                start=date(2023, 12, 1), end=date(2023, 12, 31), due=date(2024, 1, 10))
        make_invoice(customer, number="INV-202401-001", amount="400.00")
        november = make_invoice(customer, number="INV-202311-001", amount="100.00",
                                start=date(2023, 11, 1), end=date(2023, 11, 30), due=date(2024, 1, 5))
        payments.record_invoice_payment(december.id, "200")
        payments.record_invoice_payment(november.id, "100")
        return customer

    def test_outstanding_and_overdue_today(self, payments, account):
        summary = payments.account_summary(account.id)

        assert summary.as_of == date(2024, 1, 15)
        assert summary.outstanding == Decimal("700.00")
        assert summary.overdue == Decimal("300.00")
        assert summary.overdue_invoices == ("INV-202312-001",)
        assert summary.invoice_statuses == {
            "INV-202311-001": "paid",
            "INV-202312-001": "overdue",
            "INV-202401-001": "pending",
        }
        assert summary.ledger_balance == Decimal("-300.00")

    def test_overdue_is_derived_not_stored(self, session, payments, account):
        summary = payments.account_summary(account.id, as_of=date(2024, 2, 16))

        assert summary.overdue == Decimal("700.00")
        statuses = session.execute(select(Invoice.payment_status)).scalars().all()
        assert "overdue" not in statuses

    def test_unknown_customer(self, payments):
        with pytest.raises(RecordNotFoundError):
            payments.account_summary(uuid4())
