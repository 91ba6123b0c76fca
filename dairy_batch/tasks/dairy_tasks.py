"""
Built-in automation tasks.

Each task wraps one service call and turns its result DTO into a
TaskOutcome.  Parameters arrive from YAML or the command line, so dates are
ISO strings and numbers may be strings.

    deliveries.schedule       date (default today), days (default 1),
                              auto_mark_delivered (default from config)
    deliveries.auto_deliver   date (default today)
    billing.monthly_invoices  year, month (default the previous month)
    ledger.sync_invoices      customer_id (default all customers)
    cattle.status_sweep       --
    integrity.check           --
"""

from __future__ import annotations

from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from dairy_batch.domain.types import TaskOutcome
from dairy_batch.tasks.base import TaskRegistry
from dairy_config import DairyConfig
from dairy_engines.invoicing import previous_month
from dairy_kernel.domain.clock import Clock
from dairy_kernel.services.notifier import Notifier
from dairy_services.cattle_status_automation import CattleStatusAutomation
from dairy_services.delivery_scheduler import DeliveryScheduler
from dairy_services.integrity_service import FinancialIntegrityService
from dairy_services.invoice_generator import InvoiceGenerator
from dairy_services.ledger_automation import LedgerAutomationService


def _date_param(parameters: dict[str, Any], key: str, default: date) -> date:
    value = parameters.get(key)
    if value is None:
        return default
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def _bool_param(parameters: dict[str, Any], key: str, default: bool) -> bool:
    value = parameters.get(key)
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


class _ConfiguredTask:
    """Shared constructor: tasks read the dairy config and may notify."""

    def __init__(self, config: DairyConfig | None = None, notifier: Notifier | None = None):
        self._config = config or DairyConfig()
        self._notifier = notifier

    def _today(self, clock: Clock) -> date:
        return clock.today(self._config.tzinfo)


class ScheduleDeliveriesTask(_ConfiguredTask):

    @property
    def task_type(self) -> str:
        return "deliveries.schedule"

    @property
    def description(self) -> str:
        return "Create the day's deliveries for every due customer"

    def run(self, parameters: dict[str, Any], session: Session, clock: Clock) -> TaskOutcome:
        start = _date_param(parameters, "date", self._today(clock))
        days = int(parameters.get("days", 1))
        auto = _bool_param(
            parameters, "auto_mark_delivered", self._config.scheduling.auto_mark_delivered,
        )
        scheduler = DeliveryScheduler(session, clock, self._config, self._notifier)
        results = scheduler.schedule_deliveries_for_range(start, days, auto)

        reasons: dict[str, int] = {}
        for result in results:
            for reason, count in result.skip_reasons.items():
                reasons[reason] = reasons.get(reason, 0) + count

        return TaskOutcome(
            processed=sum(r.scheduled for r in results),
            skipped=sum(r.skipped for r in results),
            errors=tuple(e for r in results for e in r.errors),
            result_data={
                "start_date": start.isoformat(),
                "days": days,
                "auto_delivered": sum(r.auto_delivered for r in results),
                "skip_reasons": dict(sorted(reasons.items())),
            },
        )


class AutoDeliverTask(_ConfiguredTask):

    @property
    def task_type(self) -> str:
        return "deliveries.auto_deliver"

    @property
    def description(self) -> str:
        return "Schedule, mark the day's deliveries delivered and announce totals"

    def run(self, parameters: dict[str, Any], session: Session, clock: Clock) -> TaskOutcome:
        day = _date_param(parameters, "date", self._today(clock))
        scheduler = DeliveryScheduler(session, clock, self._config, self._notifier)
        result = scheduler.run_daily_auto_delivery(day)
        return TaskOutcome(
            processed=result.schedule.auto_delivered + result.sweep.delivered,
            skipped=result.schedule.skipped,
            errors=result.errors,
            result_data={
                "delivery_date": day.isoformat(),
                "completed_count": result.completed_count,
                "total_count": result.total_count,
                "pending_count": result.pending_count,
                "backfilled": result.sweep.backfilled,
            },
        )


class MonthlyInvoicesTask(_ConfiguredTask):

    @property
    def task_type(self) -> str:
        return "billing.monthly_invoices"

    @property
    def description(self) -> str:
        return "Generate invoices for a calendar month (default: last month)"

    def run(self, parameters: dict[str, Any], session: Session, clock: Clock) -> TaskOutcome:
        default_year, default_month = previous_month(self._today(clock))
        year = int(parameters.get("year", default_year))
        month = int(parameters.get("month", default_month))

        result = InvoiceGenerator(session, clock, self._config).generate_monthly_invoices(year, month)
        return TaskOutcome(
            processed=result.generated,
            skipped=result.skipped,
            errors=result.errors,
            result_data={
                "period_start": result.period_start.isoformat(),
                "period_end": result.period_end.isoformat(),
                "total_amount": str(result.total_amount),
                "invoice_numbers": [inv.invoice_number for inv in result.invoices],
            },
        )


class LedgerSyncTask(_ConfiguredTask):

    @property
    def task_type(self) -> str:
        return "ledger.sync_invoices"

    @property
    def description(self) -> str:
        return "Post missing invoice debits to customer ledgers"

    def run(self, parameters: dict[str, Any], session: Session, clock: Clock) -> TaskOutcome:
        service = LedgerAutomationService(session, clock, self._config)
        customer_id = parameters.get("customer_id")
        if customer_id:
            single = service.sync_invoices_to_ledger(UUID(str(customer_id)))
            return TaskOutcome(
                processed=single.created,
                errors=single.errors,
                result_data={"customers": 1},
            )
        result = service.sync_all_customers()
        return TaskOutcome(
            processed=result.created,
            errors=result.errors,
            result_data={"customers": result.customers},
        )


class CattleStatusTask(_ConfiguredTask):

    @property
    def task_type(self) -> str:
        return "cattle.status_sweep"

    @property
    def description(self) -> str:
        return "Update lactation status from breeding and production records"

    def run(self, parameters: dict[str, Any], session: Session, clock: Clock) -> TaskOutcome:
        result = CattleStatusAutomation(session, clock, self._config).run_automation()
        return TaskOutcome(
            processed=result.updated,
            errors=result.errors,
            result_data={
                "updates": [
                    {
                        "tag_number": u.tag_number,
                        "old_value": u.old_value,
                        "new_value": u.new_value,
                        "rule": u.rule,
                    }
                    for u in result.updates
                ],
            },
        )


class IntegrityCheckTask(_ConfiguredTask):
    """Failed checks are reported as errors so the run ends partially_completed."""

    @property
    def task_type(self) -> str:
        return "integrity.check"

    @property
    def description(self) -> str:
        return "Cross-check ledger balances and invoice postings"

    def run(self, parameters: dict[str, Any], session: Session, clock: Clock) -> TaskOutcome:
        results = FinancialIntegrityService(session).run_checks()
        return TaskOutcome(
            processed=len(results),
            errors=tuple(f"{r.name}: {r.detail}" for r in results if not r.passed),
            result_data={r.name: r.status.value for r in results},
        )


def default_registry(
    config: DairyConfig | None = None,
    notifier: Notifier | None = None,
) -> TaskRegistry:
    """A registry pre-loaded with every built-in task."""
    registry = TaskRegistry()
    for task_cls in (
        ScheduleDeliveriesTask,
        AutoDeliverTask,
        MonthlyInvoicesTask,
        LedgerSyncTask,
        CattleStatusTask,
        IntegrityCheckTask,
    ):
        registry.register(task_cls(config, notifier))
    return registry
