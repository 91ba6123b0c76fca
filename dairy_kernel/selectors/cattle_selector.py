"""Read-only queries over the herd."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from uuid import UUID

from sqlalchemy import select

from dairy_kernel.domain.enums import CattleStatus, CattleType
from dairy_kernel.models.cattle import BreedingRecord, Cattle, MilkProduction
from dairy_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class CattleView:
    id: UUID
    tag_number: str
    lactation_status: str | None


@dataclass(frozen=True)
class BreedingRecordView:
    cattle_id: UUID
    record_type: str
    record_date: date
    pregnancy_confirmed: bool | None
    expected_calving_date: date | None
    actual_calving_date: date | None


class CattleSelector(BaseSelector):

    def active_cows(self) -> tuple[CattleView, ...]:
        rows = self.session.execute(
            select(Cattle.id, Cattle.tag_number, Cattle.lactation_status)
            .where(
                Cattle.status == CattleStatus.ACTIVE.value,
                Cattle.cattle_type == CattleType.COW.value,
            )
            .order_by(Cattle.tag_number)
        ).all()
        return tuple(CattleView(id=r[0], tag_number=r[1], lactation_status=r[2]) for r in rows)

    def breeding_records_by_cattle(self) -> dict[UUID, list[BreedingRecordView]]:
        rows = self.session.execute(
            select(BreedingRecord).order_by(BreedingRecord.record_date.desc())
        ).scalars()
        grouped: dict[UUID, list[BreedingRecordView]] = defaultdict(list)
        for r in rows:
            grouped[r.cattle_id].append(
                BreedingRecordView(
                    cattle_id=r.cattle_id,
                    record_type=r.record_type,
                    record_date=r.record_date,
                    pregnancy_confirmed=r.pregnancy_confirmed,
                    expected_calving_date=r.expected_calving_date,
                    actual_calving_date=r.actual_calving_date,
                )
            )
        return dict(grouped)

    def production_dates_since(self, since: date) -> dict[UUID, list[date]]:
        rows = self.session.execute(
            select(MilkProduction.cattle_id, MilkProduction.production_date).where(
                MilkProduction.production_date >= since
            )
        ).all()
        grouped: dict[UUID, list[date]] = defaultdict(list)
        for cattle_id, day in rows:
            grouped[cattle_id].append(day)
        return dict(grouped)
