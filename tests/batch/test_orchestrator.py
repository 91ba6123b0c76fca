"""
Tests for dairy_batch.orchestrator and the built-in dairy tasks, run end to
end against an in-memory database.
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from dairy_batch.domain.types import JobRunStatus
from dairy_batch.orchestrator import AutomationOrchestrator
from dairy_batch.services.scheduler import AutomationScheduler
from dairy_config import DEFAULTS_PATH
from dairy_config.loader import load_config
from dairy_kernel.models import Delivery, Invoice
from dairy_kernel.services.notifier import EventType

BUILT_IN_TASKS = (
    "billing.monthly_invoices",
    "cattle.status_sweep",
    "deliveries.auto_deliver",
    "deliveries.schedule",
    "integrity.check",
    "ledger.sync_invoices",
)


@pytest.fixture
def orchestrator(session, deterministic_clock, config, notifier):
    return AutomationOrchestrator.from_session(
        session, config=config, clock=deterministic_clock, notifier=notifier,
    )


class TestWiring:
    def test_default_registry_has_every_task(self, orchestrator):
        assert orchestrator.task_registry.list_tasks() == BUILT_IN_TASKS

    def test_explicit_registry_is_used(self, session, registry):
        orchestrator = AutomationOrchestrator.from_session(session, task_registry=registry)
        assert orchestrator.task_registry is registry

    def test_create_scheduler_uses_configured_jobs(self, session, session_factory, deterministic_clock):
        config = load_config(DEFAULTS_PATH)
        orchestrator = AutomationOrchestrator.from_session(session, config=config, clock=deterministic_clock)

        scheduler = orchestrator.create_scheduler(session_factory)

        assert isinstance(scheduler, AutomationScheduler)
        assert {s.name for s in scheduler.schedules} == {j.name for j in config.jobs}


class TestBuiltInTasks:
    def test_schedule_deliveries(self, session, orchestrator, make_subscriber):
        make_subscriber()

        result = orchestrator.run_task("deliveries.schedule", {"date": "2024-01-15", "days": 2})

        assert result.status == JobRunStatus.COMPLETED
        assert result.processed == 2
        assert result.result_data["start_date"] == "2024-01-15"
        assert len(session.execute(select(Delivery)).scalars().all()) == 2

    def test_auto_deliver_announces(self, orchestrator, make_subscriber, notifier):
        make_subscriber()

        result = orchestrator.run_task("deliveries.auto_deliver")

        assert result.processed == 1
        assert len(notifier.of_type(EventType.DELIVERY_COMPLETED)) == 1

    def test_monthly_invoices_default_to_previous_month(
        self, session, orchestrator, make_customer, make_product, make_delivery,
    ):
        customer = make_customer()
        make_delivery(customer, date(2023, 12, 10), items=[(make_product(), "2", "60.00")])

        result = orchestrator.run_task("billing.monthly_invoices")

        assert result.status == JobRunStatus.COMPLETED
        assert result.result_data["period_start"] == "2023-12-01"
        assert result.result_data["total_amount"] == "120.00"
        assert result.result_data["invoice_numbers"] == ["INV-202401-001"]
        [invoice] = session.execute(select(Invoice)).scalars().all()
        assert invoice.final_amount == Decimal("120.00")

    def test_integrity_failure_is_partial(self, orchestrator, make_customer, make_invoice):
        make_invoice(make_customer())

        result = orchestrator.run_task("integrity.check")

        assert result.status == JobRunStatus.PARTIALLY_COMPLETED
        assert result.errors == ("orphaned_invoices: 1 invoice(s) without a ledger entry",)
        assert result.result_data["orphaned_invoices"] == "fail"

    def test_ledger_sync_repairs_integrity(self, orchestrator, make_customer, make_invoice):
        make_invoice(make_customer())

        sync = orchestrator.run_task("ledger.sync_invoices")
        check = orchestrator.run_task("integrity.check")

        assert sync.processed == 1
        assert check.status == JobRunStatus.COMPLETED

    def test_cattle_sweep(self, orchestrator, make_cow):
        make_cow("COW-001")

        result = orchestrator.run_task("cattle.status_sweep")

        assert result.processed == 1
        assert result.result_data["updates"][0]["new_value"] == "dry"
