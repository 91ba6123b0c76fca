"""
DeliveryScheduler -- turns subscriptions into daily Delivery rows.

Responsibility:
    For a target date, creates one Delivery (plus one line item per active
    subscription line) for every customer who is due, and sweeps pending
    deliveries to delivered for the end-of-day auto-delivery run.

Architecture position:
    Services.  Reads through kernel selectors, decides through
    ``dairy_engines.schedule``, writes ORM rows.

Invariants enforced:
    - At most one Delivery per (customer, date): existence check first,
      UNIQUE constraint as the backstop for concurrent runs.
    - ``total_amount = quantity * unit_price`` with
      ``unit_price = custom_price ?? base_price ?? 0``.
    - One commit per customer; a failure rolls back only that customer.
    - Never raises from a batch operation.

Skip reasons (counted, never errors):
    inactive, vacation, duplicate, not_due, no_subscriptions
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import date, timedelta
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from dairy_config import DairyConfig
from dairy_engines.invoicing import line_total, resolve_unit_price
from dairy_engines.schedule import (
    DeliverySchedule,
    is_delivery_due,
    is_on_vacation,
    parse_legacy_schedule,
)
from dairy_kernel.domain.clock import Clock, SystemClock
from dairy_kernel.domain.enums import DeliveryStatus, SubscriptionType
from dairy_kernel.exceptions import DairyKernelError, InvalidScheduleError
from dairy_kernel.logging_config import LogContext, get_logger
from dairy_kernel.models.customer import Customer
from dairy_kernel.models.delivery import Delivery, DeliveryItem
from dairy_kernel.selectors.customer_selector import (
    CustomerSelector,
    CustomerView,
    SubscriptionView,
)
from dairy_kernel.selectors.delivery_selector import DeliverySelector
from dairy_kernel.services.notifier import EventType, Notifier, emit_event

logger = get_logger("services.delivery_scheduler")

SKIP_INACTIVE = "inactive"
SKIP_VACATION = "vacation"
SKIP_DUPLICATE = "duplicate"
SKIP_NOT_DUE = "not_due"
SKIP_NO_SUBSCRIPTIONS = "no_subscriptions"


# =============================================================================
# Result DTOs
# =============================================================================


@dataclass(frozen=True)
class ScheduleResult:
    target_date: date
    scheduled: int = 0
    skipped: int = 0
    auto_delivered: int = 0
    errors: tuple[str, ...] = ()
    skip_reasons: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class AutoDeliverResult:
    target_date: date
    delivered: int = 0
    backfilled: int = 0
    errors: tuple[str, ...] = ()


@dataclass(frozen=True)
class DailyAutoDeliveryResult:
    target_date: date
    schedule: ScheduleResult
    sweep: AutoDeliverResult
    completed_count: int
    total_count: int
    pending_count: int

    @property
    def errors(self) -> tuple[str, ...]:
        return self.schedule.errors + self.sweep.errors


@dataclass(frozen=True)
class _CustomerOutcome:
    skip_reason: str | None = None
    delivered: bool = False


# =============================================================================
# Service
# =============================================================================


class DeliveryScheduler:
    """
    Creates and completes daily deliveries.

    Contract:
        - ``schedule_deliveries_for_date()`` / ``schedule_deliveries_for_range()``
          create deliveries for due customers.
        - ``run_daily_auto_scheduler()`` schedules today.
        - ``auto_deliver_pending_for_date()`` marks pending deliveries
          delivered, backfilling items for deliveries that have none.
        - ``run_daily_auto_delivery()`` does both for one day and emits
          ``delivery_completed``.
        - ``migrate_legacy_schedules()`` copies ``Schedule:{json}`` blobs
          out of notes into the structured column.

    Non-goals:
        - Does NOT post ledger entries; billing is monthly.
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
        self._customers = CustomerSelector(session)
        self._deliveries = DeliverySelector(session)

    def today(self) -> date:
        return self._clock.today(self._config.tzinfo)

    # -------------------------------------------------------------------------
    # Scheduling
    # -------------------------------------------------------------------------

    def schedule_deliveries_for_date(
        self,
        target_date: date,
        auto_mark_delivered: bool = False,
    ) -> ScheduleResult:
        """Create deliveries for every due customer on ``target_date``."""
        scheduled = 0
        auto_delivered = 0
        errors: list[str] = []
        reasons: Counter[str] = Counter()

        try:
            customer_ids = self._customers.customer_ids_with_active_subscriptions()
        except SQLAlchemyError as exc:
            self._session.rollback()
            logger.exception(
                "delivery_candidates_load_failed",
                extra={"target_date": target_date},
            )
            return ScheduleResult(
                target_date=target_date,
                errors=(f"Failed to load customers: {exc}",),
            )

        logger.info(
            "delivery_scheduling_started",
            extra={
                "target_date": target_date,
                "candidate_count": len(customer_ids),
                "auto_mark_delivered": auto_mark_delivered,
            },
        )

        for customer_id in customer_ids:
            with LogContext.bind(customer_id=str(customer_id)):
                try:
                    outcome = self._schedule_customer(
                        customer_id, target_date, auto_mark_delivered,
                    )
                except (SQLAlchemyError, DairyKernelError) as exc:
                    self._session.rollback()
                    logger.exception(
                        "delivery_schedule_failed",
                        extra={"target_date": target_date},
                    )
                    errors.append(f"Customer {customer_id}: {exc}")
                    continue

            if outcome.skip_reason is not None:
                reasons[outcome.skip_reason] += 1
                continue
            scheduled += 1
            if outcome.delivered:
                auto_delivered += 1

        result = ScheduleResult(
            target_date=target_date,
            scheduled=scheduled,
            skipped=sum(reasons.values()),
            auto_delivered=auto_delivered,
            errors=tuple(errors),
            skip_reasons=dict(sorted(reasons.items())),
        )
        logger.info(
            "delivery_scheduling_completed",
            extra={
                "target_date": target_date,
                "scheduled": result.scheduled,
                "skipped": result.skipped,
                "auto_delivered": result.auto_delivered,
                "error_count": len(result.errors),
                "skip_reasons": result.skip_reasons,
            },
        )
        return result

    def schedule_deliveries_for_range(
        self,
        start_date: date,
        days: int,
        auto_mark_delivered: bool = False,
    ) -> tuple[ScheduleResult, ...]:
        """Schedule ``days`` consecutive dates starting at ``start_date``."""
        return tuple(
            self.schedule_deliveries_for_date(start_date + timedelta(days=offset), auto_mark_delivered)
            for offset in range(max(days, 0))
        )

    def run_daily_auto_scheduler(self) -> ScheduleResult:
        return self.schedule_deliveries_for_date(self.today(), auto_mark_delivered=False)

    def _schedule_customer(
        self,
        customer_id: UUID,
        target_date: date,
        auto_mark_delivered: bool,
    ) -> _CustomerOutcome:
        customer = self._customers.get(customer_id)
        if customer is None or not customer.is_active:
            return _CustomerOutcome(SKIP_INACTIVE)

        if is_on_vacation(target_date, self._customers.vacation_windows(customer_id)):
            return _CustomerOutcome(SKIP_VACATION)

        if self._deliveries.exists(customer_id, target_date):
            return _CustomerOutcome(SKIP_DUPLICATE)

        schedule = self._resolve_schedule(customer)
        scheduling = self._config.scheduling
        if not is_delivery_due(
            customer.subscription_type,
            target_date,
            schedule,
            alternate_epoch=scheduling.alternate_epoch,
            weekly_day=scheduling.weekly_delivery_day,
        ):
            return _CustomerOutcome(SKIP_NOT_DUE)

        subscriptions = self._customers.active_subscriptions(customer_id)
        if not subscriptions:
            return _CustomerOutcome(SKIP_NO_SUBSCRIPTIONS)

        delivered = auto_mark_delivered or (schedule is not None and schedule.auto_deliver)
        delivery = Delivery(
            customer_id=customer_id,
            delivery_date=target_date,
            status=(DeliveryStatus.DELIVERED if delivered else DeliveryStatus.PENDING).value,
            delivery_time=self._clock.now() if delivered else None,
        )
        self._session.add(delivery)
        try:
            self._session.flush()
        except IntegrityError:
            # Another run created it between the check and the insert
            self._session.rollback()
            if self._deliveries.exists(customer_id, target_date):
                return _CustomerOutcome(SKIP_DUPLICATE)
            raise

        for subscription in subscriptions:
            self._session.add(self._item_for(delivery.id, subscription))
        self._session.commit()

        logger.info(
            "delivery_scheduled",
            extra={
                "delivery_id": str(delivery.id),
                "target_date": target_date,
                "status": delivery.status,
                "item_count": len(subscriptions),
            },
        )
        return _CustomerOutcome(delivered=delivered)

    def _resolve_schedule(self, customer: CustomerView) -> DeliverySchedule | None:
        """Structured column first, then a legacy notes blob; None falls back to the type."""
        try:
            schedule = DeliverySchedule.from_mapping(customer.delivery_schedule)
            if schedule is None:
                schedule = parse_legacy_schedule(customer.notes)
                if schedule is not None:
                    logger.debug("legacy_schedule_used")
        except InvalidScheduleError:
            logger.warning("delivery_schedule_invalid", exc_info=True)
            schedule = None

        if schedule is None and customer.subscription_type == SubscriptionType.CUSTOM.value:
            logger.info("schedule_missing_fail_open")
        return schedule

    @staticmethod
    def _item_for(delivery_id: UUID, subscription: SubscriptionView) -> DeliveryItem:
        unit_price = resolve_unit_price(subscription.custom_price, subscription.base_price)
        return DeliveryItem(
            delivery_id=delivery_id,
            product_id=subscription.product_id,
            quantity=subscription.quantity,
            unit_price=unit_price,
            total_amount=line_total(subscription.quantity, unit_price),
        )

    # -------------------------------------------------------------------------
    # Auto-delivery
    # -------------------------------------------------------------------------

    def auto_deliver_pending_for_date(self, target_date: date) -> AutoDeliverResult:
        """Mark every pending delivery on ``target_date`` delivered."""
        delivered = 0
        backfilled = 0
        errors: list[str] = []

        try:
            pending = self._deliveries.pending_for_date(target_date)
        except SQLAlchemyError as exc:
            self._session.rollback()
            logger.exception("pending_deliveries_load_failed", extra={"target_date": target_date})
            return AutoDeliverResult(target_date=target_date, errors=(f"Failed to load deliveries: {exc}",))

        for view in pending:
            with LogContext.bind(customer_id=str(view.customer_id)):
                try:
                    row = self._session.get(Delivery, view.id)
                    if row is None or row.status != DeliveryStatus.PENDING.value:
                        continue
                    if view.item_count == 0:
                        subscriptions = self._customers.active_subscriptions(view.customer_id)
                        for subscription in subscriptions:
                            self._session.add(self._item_for(view.id, subscription))
                        if subscriptions:
                            backfilled += 1
                    row.status = DeliveryStatus.DELIVERED.value
                    row.delivery_time = self._clock.now()
                    self._session.commit()
                    delivered += 1
                except SQLAlchemyError as exc:
                    self._session.rollback()
                    logger.exception("auto_deliver_failed", extra={"delivery_id": str(view.id)})
                    errors.append(f"Delivery {view.id}: {exc}")

        logger.info(
            "auto_delivery_sweep_completed",
            extra={
                "target_date": target_date,
                "delivered": delivered,
                "backfilled": backfilled,
                "error_count": len(errors),
            },
        )
        return AutoDeliverResult(
            target_date=target_date,
            delivered=delivered,
            backfilled=backfilled,
            errors=tuple(errors),
        )

    def run_daily_auto_delivery(self, target_date: date | None = None) -> DailyAutoDeliveryResult:
        """Schedule with auto-mark, sweep leftovers, announce the day's totals."""
        day = target_date or self.today()
        schedule = self.schedule_deliveries_for_date(day, auto_mark_delivered=True)
        sweep = self.auto_deliver_pending_for_date(day)

        try:
            counts = self._deliveries.status_counts(day)
            completed, total, pending = counts.delivered, counts.total, counts.pending
        except SQLAlchemyError:
            self._session.rollback()
            logger.exception("delivery_counts_failed", extra={"target_date": day})
            completed = schedule.auto_delivered + sweep.delivered
            total = completed
            pending = 0

        emit_event(
            self._notifier,
            EventType.DELIVERY_COMPLETED,
            {
                "delivery_date": day.isoformat(),
                "completed_count": completed,
                "total_count": total,
                "pending_count": pending,
            },
        )
        return DailyAutoDeliveryResult(
            target_date=day,
            schedule=schedule,
            sweep=sweep,
            completed_count=completed,
            total_count=total,
            pending_count=pending,
        )

    # -------------------------------------------------------------------------
    # Migration
    # -------------------------------------------------------------------------

    def migrate_legacy_schedules(self) -> int:
        """Copy ``Schedule:{json}`` note blobs into ``delivery_schedule``.

        Customers that already have a structured schedule are left alone.
        Unparseable blobs are logged and skipped.  Returns the number of
        customers migrated.
        """
        migrated = 0
        for view in self._customers.all_customers():
            if view.delivery_schedule or not view.notes:
                continue
            with LogContext.bind(customer_id=str(view.id)):
                try:
                    schedule = parse_legacy_schedule(view.notes)
                except InvalidScheduleError:
                    logger.warning("legacy_schedule_unparseable", exc_info=True)
                    continue
                if schedule is None:
                    continue
                try:
                    row = self._session.get(Customer, view.id)
                    row.delivery_schedule = schedule.to_mapping()
                    self._session.commit()
                except SQLAlchemyError:
                    self._session.rollback()
                    logger.exception("legacy_schedule_migration_failed")
                    continue
                migrated += 1
                logger.info("legacy_schedule_migrated")
        return migrated
