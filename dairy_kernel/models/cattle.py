"""
Herd records: animals, breeding events and milk production.

Invariants enforced:
    - ``cattle.tag_number`` is UNIQUE.
    - ``lactation_status`` is NULL (no status yet) or one of lactating /
      dry / pregnant / calving.
    - At most one MilkProduction row per (cattle_id, production_date,
      session).
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from dairy_kernel.db.base import TrackedBase, UUIDString
from dairy_kernel.domain.enums import CattleStatus, CattleType


class Cattle(TrackedBase):
    __tablename__ = "cattle"

    __table_args__ = (
        Index("ix_cattle_status_type", "status", "cattle_type"),
    )

    tag_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    breed: Mapped[str | None] = mapped_column(String(100), nullable=True)
    cattle_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=CattleType.COW.value,
    )
    date_of_birth: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=CattleStatus.ACTIVE.value,
    )
    lactation_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    lactation_number: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_calving_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    expected_calving_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)


class BreedingRecord(TrackedBase):
    """Heat, insemination, pregnancy check or calving event."""

    __tablename__ = "breeding_records"

    __table_args__ = (
        Index("ix_breeding_records_cattle_type", "cattle_id", "record_type"),
    )

    cattle_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("cattle.id"), nullable=False,
    )
    record_type: Mapped[str] = mapped_column(String(30), nullable=False)
    record_date: Mapped[date] = mapped_column(Date, nullable=False)
    pregnancy_confirmed: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    expected_calving_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    actual_calving_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)


class MilkProduction(TrackedBase):
    """Litres recorded for one cow in one milking session."""

    __tablename__ = "milk_production"

    __table_args__ = (
        UniqueConstraint(
            "cattle_id", "production_date", "session",
            name="uq_milk_production_cattle_date_session",
        ),
    )

    cattle_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("cattle.id"), nullable=False,
    )
    production_date: Mapped[date] = mapped_column(Date, nullable=False)
    session: Mapped[str] = mapped_column(String(20), nullable=False)
    quantity_liters: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)
    fat_percentage: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    snf_percentage: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
