"""
Pytest fixtures for the dairy automation test suite.

Provides:
- In-memory SQLite engine and sessions with every table created
- A deterministic clock and a recording notifier
- Structured log capture
- Factory helpers for customers, products, subscriptions, vacations,
  deliveries, invoices and cattle
"""

import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO
from typing import Any

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from dairy_config import DairyConfig
from dairy_kernel.db.base import Base
from dairy_kernel.domain.clock import DeterministicClock
from dairy_kernel.domain.enums import DeliveryStatus, PaymentStatus
from dairy_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from dairy_kernel.models import (
    BreedingRecord,
    Cattle,
    Customer,
    Delivery,
    DeliveryItem,
    Invoice,
    MilkProduction,
    Product,
    SubscriptionLine,
    Vacation,
    import_all_models,
)
from dairy_kernel.services.notifier import EventType, Notifier


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture dairy_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, scheduler):
            scheduler.schedule_deliveries_for_date(day)
            logs = captured_logs()
            assert any(r["message"] == "delivery_scheduled" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("dairy_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def engine():
    """Fresh in-memory SQLite database per test."""
    import_all_models()
    eng = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory) -> Session:
    s = session_factory()
    yield s
    s.close()


# =============================================================================
# Clock, config, notifier
# =============================================================================


@pytest.fixture
def deterministic_clock():
    """Monday 2024-01-15, 09:00 UTC (14:30 in Asia/Kolkata)."""
    return DeterministicClock(datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def config():
    return DairyConfig()


class RecordingNotifier(Notifier):
    """Keeps every event; optionally raises to exercise emit_event."""

    def __init__(self, fail: bool = False):
        self.events: list[tuple[EventType, dict[str, Any]]] = []
        self.fail = fail

    def notify(self, event_type: EventType, payload: dict[str, Any]) -> None:
        if self.fail:
            raise RuntimeError("push gateway unavailable")
        self.events.append((event_type, payload))

    def of_type(self, event_type: EventType) -> list[dict[str, Any]]:
        return [payload for kind, payload in self.events if kind == event_type]


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def failing_notifier():
    return RecordingNotifier(fail=True)


# =============================================================================
# Factories
# =============================================================================


@pytest.fixture
def make_product(session):
    def _make(name: str = "Cow Milk", base_price: str = "60.00", **kwargs) -> Product:
        product = Product(name=name, base_price=Decimal(base_price), **kwargs)
        session.add(product)
        session.commit()
        return product

    return _make


@pytest.fixture
def make_customer(session):
    def _make(
        name: str = "Asha Rao",
        subscription_type: str = "daily",
        **kwargs,
    ) -> Customer:
        customer = Customer(name=name, subscription_type=subscription_type, **kwargs)
        session.add(customer)
        session.commit()
        return customer

    return _make


@pytest.fixture
def subscribe(session):
    def _subscribe(
        customer: Customer,
        product: Product,
        quantity: str = "1",
        custom_price: str | None = None,
        is_active: bool = True,
    ) -> SubscriptionLine:
        line = SubscriptionLine(
            customer_id=customer.id,
            product_id=product.id,
            quantity=Decimal(quantity),
            custom_price=Decimal(custom_price) if custom_price is not None else None,
            is_active=is_active,
        )
        session.add(line)
        session.commit()
        return line

    return _subscribe


@pytest.fixture
def make_subscriber(make_customer, make_product, subscribe):
    """A customer with one active subscription line."""

    def _make(
        name: str = "Asha Rao",
        subscription_type: str = "daily",
        quantity: str = "1",
        price: str = "60.00",
        product_name: str | None = None,
        **kwargs,
    ) -> Customer:
        customer = make_customer(name=name, subscription_type=subscription_type, **kwargs)
        product = make_product(name=product_name or f"Milk for {name}", base_price=price)
        subscribe(customer, product, quantity)
        return customer

    return _make


@pytest.fixture
def make_vacation(session):
    def _make(customer: Customer, start: date, end: date, is_active: bool = True) -> Vacation:
        vacation = Vacation(
            customer_id=customer.id, start_date=start, end_date=end, is_active=is_active,
        )
        session.add(vacation)
        session.commit()
        return vacation

    return _make


@pytest.fixture
def make_delivery(session):
    def _make(
        customer: Customer,
        day: date,
        items: list[tuple[Product, str, str]] = (),
        status: str = DeliveryStatus.DELIVERED.value,
    ) -> Delivery:
        """``items`` are (product, quantity, unit_price) triples."""
        delivery = Delivery(customer_id=customer.id, delivery_date=day, status=status)
        session.add(delivery)
        session.flush()
        for product, quantity, unit_price in items:
            session.add(DeliveryItem(
                delivery_id=delivery.id,
                product_id=product.id,
                quantity=Decimal(quantity),
                unit_price=Decimal(unit_price),
                total_amount=Decimal(quantity) * Decimal(unit_price),
            ))
        session.commit()
        return delivery

    return _make


@pytest.fixture
def make_invoice(session):
    def _make(
        customer: Customer,
        number: str = "INV-202401-001",
        amount: str = "500.00",
        start: date = date(2024, 1, 1),
        end: date = date(2024, 1, 31),
        due: date = date(2024, 2, 15),
    ) -> Invoice:
        invoice = Invoice(
            invoice_number=number,
            customer_id=customer.id,
            billing_period_start=start,
            billing_period_end=end,
            total_amount=Decimal(amount),
            final_amount=Decimal(amount),
            paid_amount=Decimal("0"),
            payment_status=PaymentStatus.PENDING.value,
            due_date=due,
        )
        session.add(invoice)
        session.commit()
        return invoice

    return _make


@pytest.fixture
def make_cow(session):
    def _make(tag: str = "COW-001", lactation_status: str | None = "lactating", **kwargs) -> Cattle:
        cow = Cattle(tag_number=tag, lactation_status=lactation_status, **kwargs)
        session.add(cow)
        session.commit()
        return cow

    return _make


@pytest.fixture
def add_breeding(session):
    def _add(cow: Cattle, record_type: str, record_date: date, **kwargs) -> BreedingRecord:
        record = BreedingRecord(
            cattle_id=cow.id, record_type=record_type, record_date=record_date, **kwargs,
        )
        session.add(record)
        session.commit()
        return record

    return _add


@pytest.fixture
def add_production(session):
    def _add(cow: Cattle, day: date, liters: str = "8.5", milk_session: str = "morning") -> MilkProduction:
        row = MilkProduction(
            cattle_id=cow.id,
            production_date=day,
            session=milk_session,
            quantity_liters=Decimal(liters),
        )
        session.add(row)
        session.commit()
        return row

    return _add

