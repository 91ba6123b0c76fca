"""
Tests for InvoiceGenerator -- monthly billing, numbering, idempotency and
the ledger debit posted with each invoice.
"""

from dataclasses import replace
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from dairy_kernel.domain.enums import DeliveryStatus, PaymentStatus
from dairy_kernel.exceptions import InvalidBillingPeriodError
from dairy_kernel.models import DairySettings, Invoice, LedgerEntry
from dairy_services.invoice_generator import InvoiceGenerator


@pytest.fixture
def generator(session, deterministic_clock, config):
    return InvoiceGenerator(session, deterministic_clock, config)


@pytest.fixture
def billed_customer(make_customer, make_product, make_delivery):
    """Two delivered days in December 2023 worth 500.00 in total."""
    customer = make_customer(name="Meena Iyer")
    milk = make_product(name="Cow Milk", base_price="62.50")
    make_delivery(customer, date(2023, 12, 4), items=[(milk, "4", "62.50")])
    make_delivery(customer, date(2023, 12, 5), items=[(milk, "4", "62.50")])
    return customer


def _invoices(session):
    return session.execute(select(Invoice).order_by(Invoice.invoice_number)).scalars().all()


class TestGenerateMonthlyInvoices:
    def test_invoice_figures(self, session, generator, billed_customer):
        result = generator.generate_monthly_invoices(2023, 12)

        assert result.generated == 1
        assert result.total_amount == Decimal("500.00")
        [invoice] = _invoices(session)
        assert invoice.customer_id == billed_customer.id
        assert invoice.total_amount == Decimal("500.00")
        assert invoice.final_amount == Decimal("500.00")
        assert invoice.paid_amount == Decimal("0")
        assert invoice.payment_status == PaymentStatus.PENDING.value
        assert invoice.billing_period_start == date(2023, 12, 1)
        assert invoice.billing_period_end == date(2023, 12, 31)
        assert invoice.due_date == date(2024, 1, 15)

    def test_number_uses_current_month(self, session, generator, billed_customer):
        result = generator.generate_monthly_invoices(2023, 12)

        assert [i.invoice_number for i in result.invoices] == ["INV-202401-001"]

    def test_numbers_increase_per_customer(self, generator, make_customer, make_product, make_delivery):
        milk = make_product()
        for name in ("Anil", "Bhavna", "Chitra"):
            make_delivery(make_customer(name=name), date(2023, 12, 1), items=[(milk, "1", "60.00")])

        result = generator.generate_monthly_invoices(2023, 12)

        assert sorted(i.invoice_number for i in result.invoices) == [
            "INV-202401-001",
            "INV-202401-002",
            "INV-202401-003",
        ]

    def test_rerun_is_idempotent(self, session, generator, billed_customer):
        generator.generate_monthly_invoices(2023, 12)

        result = generator.generate_monthly_invoices(2023, 12)

        assert result.generated == 0
        assert result.skipped == 1
        assert len(_invoices(session)) == 1

    def test_settings_prefix_and_upi_snapshot(self, session, generator, billed_customer):
        session.add(DairySettings(dairy_name="Gokul Dairy", invoice_prefix="GKL", upi_handle="gokul@upi"))
        session.commit()

        generator.generate_monthly_invoices(2023, 12)

        [invoice] = _invoices(session)
        assert invoice.invoice_number == "GKL-202401-001"
        assert invoice.upi_handle == "gokul@upi"

    def test_nothing_delivered_nothing_billed(self, session, generator, make_customer, make_delivery):
        customer = make_customer()
        make_delivery(customer, date(2023, 12, 3), status=DeliveryStatus.PENDING.value)

        result = generator.generate_monthly_invoices(2023, 12)

        assert (result.generated, result.skipped) == (0, 1)
        assert _invoices(session) == []

    def test_subscription_fallback_for_itemless_deliveries(
        self, session, generator, make_subscriber, make_delivery,
    ):
        customer = make_subscriber(quantity="2", price="30.00")
        make_delivery(customer, date(2023, 12, 1))
        make_delivery(customer, date(2023, 12, 2))
        make_delivery(customer, date(2023, 12, 3))

        result = generator.generate_monthly_invoices(2023, 12)

        [generated] = result.invoices
        assert generated.used_subscription_fallback is True
        assert generated.amount == Decimal("180.00")

    def test_ledger_debit_posted(self, session, generator, billed_customer):
        generator.generate_monthly_invoices(2023, 12)

        [invoice] = _invoices(session)
        [entry] = session.execute(select(LedgerEntry)).scalars().all()
        assert entry.customer_id == billed_customer.id
        assert entry.transaction_type == "invoice"
        assert entry.reference_id == invoice.id
        assert entry.debit_amount == Decimal("500.00")
        assert entry.running_balance == Decimal("500.00")
        assert entry.description == "Invoice INV-202401-001 generated"

    def test_ledger_posting_can_be_switched_off(
        self, session, deterministic_clock, config, billed_customer,
    ):
        config = replace(config, billing=replace(config.billing, post_invoices_to_ledger=False))

        InvoiceGenerator(session, deterministic_clock, config).generate_monthly_invoices(2023, 12)

        assert len(_invoices(session)) == 1
        assert session.execute(select(LedgerEntry)).scalars().all() == []

    def test_failing_customer_does_not_block_others(
        self, session, generator, billed_customer, make_customer, make_product, make_delivery, monkeypatch,
    ):
        other = make_customer(name="Ravi Kumar")
        buffalo = make_product(name="Buffalo Milk", base_price="70.00")
        make_delivery(other, date(2023, 12, 4), items=[(buffalo, "1", "70.00")])
        bad_id = other.id
        delivered_ids_in_period = generator._deliveries.delivered_ids_in_period

        def flaky_delivered_ids(customer_id, *args):
            if customer_id == bad_id:
                raise OperationalError("SELECT deliveries", {}, Exception("database is locked"))
            return delivered_ids_in_period(customer_id, *args)

        monkeypatch.setattr(generator._deliveries, "delivered_ids_in_period", flaky_delivered_ids)

        result = generator.generate_monthly_invoices(2023, 12)

        assert result.generated == 1
        assert len(result.errors) == 1
        assert "Ravi Kumar" in result.errors[0]
        [invoice] = _invoices(session)
        assert invoice.customer_id == billed_customer.id

    def test_invalid_month(self, generator):
        with pytest.raises(InvalidBillingPeriodError):
            generator.generate_monthly_invoices(2024, 13)


class TestCalculateCustomerInvoice:
    def test_preview_writes_nothing(self, session, generator, billed_customer):
        data = generator.calculate_customer_invoice(
            billed_customer.id, date(2023, 12, 1), date(2023, 12, 31),
        )

        assert data.delivered_count == 2
        assert data.total_amount == Decimal("500.00")
        [line] = data.lines
        assert line.product_name == "Cow Milk"
        assert line.quantity == Decimal("8")
        assert _invoices(session) == []

    def test_unknown_customer(self, generator):
        assert generator.calculate_customer_invoice(uuid4(), date(2023, 12, 1), date(2023, 12, 31)) is None


class TestNextInvoiceNumber:
    def test_seeded_from_existing_invoices(self, session, generator, make_customer, make_invoice):
        make_invoice(make_customer(name="A"), number="INV-202401-001")
        make_invoice(make_customer(name="B"), number="INV-202401-002")

        assert generator.next_invoice_number() == "INV-202401-003"
        assert generator.next_invoice_number() == "INV-202401-004"
