"""
CattleStatusAutomation -- keeps lactation status in step with the records.

Responsibility:
    Sweeps every active cow, folds her breeding records and recent milk
    production into facts, applies ``dairy_engines.lactation`` rules, and
    writes the new status when it changed.

Invariants enforced:
    - Only ``status = active`` and ``cattle_type = cow`` are considered.
    - First matching rule wins; a row is written only on an actual change.
    - One commit per cow; a failed cow does not block the rest.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dairy_config import DairyConfig
from dairy_engines.lactation import (
    BreedingEvent,
    CowState,
    LactationWindows,
    build_breeding_facts,
    evaluate_lactation_status,
    latest_production_date,
)
from dairy_kernel.domain.clock import Clock, SystemClock
from dairy_kernel.logging_config import get_logger
from dairy_kernel.models.cattle import Cattle
from dairy_kernel.selectors.cattle_selector import CattleSelector

logger = get_logger("services.cattle_status")


@dataclass(frozen=True)
class CattleUpdate:
    cattle_id: UUID
    tag_number: str
    update_type: str
    old_value: str | None
    new_value: str
    rule: str
    reason: str


@dataclass(frozen=True)
class CattleAutomationResult:
    updated: int = 0
    updates: tuple[CattleUpdate, ...] = ()
    errors: tuple[str, ...] = ()


class CattleStatusAutomation:

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: DairyConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or DairyConfig()
        self._cattle = CattleSelector(session)

    def run_automation(self) -> CattleAutomationResult:
        today = self._clock.today(self._config.tzinfo)
        cattle_cfg = self._config.cattle
        windows = LactationWindows(
            dry_off_days=cattle_cfg.dry_off_window_days,
            calving_days=cattle_cfg.calving_window_days,
            production_lookback_days=cattle_cfg.production_lookback_days,
        )

        try:
            cows = self._cattle.active_cows()
            breeding = self._cattle.breeding_records_by_cattle()
            production = self._cattle.production_dates_since(
                today - timedelta(days=windows.production_lookback_days)
            )
        except SQLAlchemyError as exc:
            self._session.rollback()
            logger.exception("cattle_sweep_load_failed")
            return CattleAutomationResult(errors=(f"Failed to fetch cattle: {exc}",))

        updates: list[CattleUpdate] = []
        errors: list[str] = []

        for cow in cows:
            facts = build_breeding_facts(
                BreedingEvent(
                    record_type=r.record_type,
                    record_date=r.record_date,
                    pregnancy_confirmed=r.pregnancy_confirmed,
                    expected_calving_date=r.expected_calving_date,
                    actual_calving_date=r.actual_calving_date,
                )
                for r in breeding.get(cow.id, ())
            )
            state = CowState(
                lactation_status=cow.lactation_status,
                facts=facts,
                last_production_date=latest_production_date(
                    production.get(cow.id, ()), today, windows.production_lookback_days,
                ),
            )
            change = evaluate_lactation_status(state, today, windows)
            if change is None:
                continue

            try:
                row = self._session.get(Cattle, cow.id)
                row.lactation_status = change.new_value
                self._session.commit()
            except SQLAlchemyError as exc:
                self._session.rollback()
                logger.exception("lactation_status_update_failed", extra={"tag_number": cow.tag_number})
                errors.append(f"Failed to update {cow.tag_number}: {exc}")
                continue

            logger.info(
                "lactation_status_changed",
                extra={
                    "cattle_id": str(cow.id),
                    "tag_number": cow.tag_number,
                    "old_value": change.old_value,
                    "new_value": change.new_value,
                    "rule": change.rule,
                },
            )
            updates.append(
                CattleUpdate(
                    cattle_id=cow.id,
                    tag_number=cow.tag_number,
                    update_type="lactation_status",
                    old_value=change.old_value,
                    new_value=change.new_value,
                    rule=change.rule,
                    reason=change.reason,
                )
            )

        return CattleAutomationResult(updated=len(updates), updates=tuple(updates), errors=tuple(errors))
