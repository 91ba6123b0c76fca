"""
Lactation-status rules for the herd.

Pure functions with deterministic behavior. No I/O.

Facts per cow are folded from breeding records and the production window
by ``build_breeding_facts``; ``evaluate_lactation_status`` then applies the
rules in order and returns the first that both matches and changes the
stored status.

Rules (first match wins):
    1. dry_off      -- confirmed pregnancy due within the dry-off window
                       and currently lactating                 -> dry
    2. calving      -- calved within the calving window and not
                       lactating                               -> lactating
    3. pregnancy    -- pregnant and no lactation status yet     -> pregnant
    4. no_production -- lactating with no production recorded in the
                       lookback window                         -> dry

A dry cow whose pregnancy is then confirmed stays dry: rule 3 only fills
an empty status.  A cow inside the calving window is held by rule 2 even
when already lactating, so a fresh calver with no yield yet is not dried
off by rule 4.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable

from dairy_kernel.domain.enums import BreedingRecordType, LactationStatus

DRY_OFF_WINDOW_DAYS = 60
CALVING_WINDOW_DAYS = 7
PRODUCTION_LOOKBACK_DAYS = 30

REASON_DRY_OFF = "60 days before expected calving - dry-off required"
REASON_CALVING = "Recent calving - now lactating"
REASON_PREGNANCY = "Pregnancy confirmed"
REASON_NO_PRODUCTION = "No milk production recorded for 30+ days"


@dataclass(frozen=True)
class LactationWindows:
    dry_off_days: int = DRY_OFF_WINDOW_DAYS
    calving_days: int = CALVING_WINDOW_DAYS
    production_lookback_days: int = PRODUCTION_LOOKBACK_DAYS


@dataclass(frozen=True)
class BreedingEvent:
    """The fields of a breeding record the rules look at."""

    record_type: str
    record_date: date
    pregnancy_confirmed: bool | None = None
    expected_calving_date: date | None = None
    actual_calving_date: date | None = None


@dataclass(frozen=True)
class BreedingFacts:
    last_calving_date: date | None = None
    last_confirmed_check_date: date | None = None
    expected_calving_date: date | None = None

    @property
    def is_pregnant(self) -> bool:
        """A confirmed check not followed by a calving."""
        if self.last_confirmed_check_date is None:
            return False
        if self.last_calving_date is None:
            return True
        return self.last_calving_date < self.last_confirmed_check_date


@dataclass(frozen=True)
class CowState:
    lactation_status: str | None
    facts: BreedingFacts
    last_production_date: date | None


@dataclass(frozen=True)
class StatusChange:
    rule: str
    old_value: str | None
    new_value: str
    reason: str


def build_breeding_facts(events: Iterable[BreedingEvent]) -> BreedingFacts:
    """Latest calving, and the latest confirmed pregnancy check with its due date."""
    last_calving: date | None = None
    last_check: BreedingEvent | None = None

    for event in events:
        if event.record_type == BreedingRecordType.CALVING.value and event.actual_calving_date:
            if last_calving is None or event.actual_calving_date > last_calving:
                last_calving = event.actual_calving_date
        elif (
            event.record_type == BreedingRecordType.PREGNANCY_CHECK.value
            and event.pregnancy_confirmed
        ):
            if last_check is None or event.record_date > last_check.record_date:
                last_check = event

    return BreedingFacts(
        last_calving_date=last_calving,
        last_confirmed_check_date=last_check.record_date if last_check else None,
        expected_calving_date=last_check.expected_calving_date if last_check else None,
    )


def latest_production_date(
    production_dates: Iterable[date],
    today: date,
    lookback_days: int = PRODUCTION_LOOKBACK_DAYS,
) -> date | None:
    """Most recent production date within ``[today - lookback, today]``."""
    latest: date | None = None
    for day in production_dates:
        if 0 <= (today - day).days <= lookback_days:
            if latest is None or day > latest:
                latest = day
    return latest


def needs_dry_off(facts: BreedingFacts, today: date, window_days: int = DRY_OFF_WINDOW_DAYS) -> bool:
    if not facts.is_pregnant or facts.expected_calving_date is None:
        return False
    days_until = (facts.expected_calving_date - today).days
    return 0 < days_until <= window_days


def calved_recently(facts: BreedingFacts, today: date, window_days: int = CALVING_WINDOW_DAYS) -> bool:
    if facts.last_calving_date is None:
        return False
    return 0 <= (today - facts.last_calving_date).days <= window_days


def evaluate_lactation_status(
    cow: CowState,
    today: date,
    windows: LactationWindows = LactationWindows(),
) -> StatusChange | None:
    """First matching rule, or None when nothing applies or nothing changes."""
    current = cow.lactation_status
    lactating = current == LactationStatus.LACTATING.value
    change: StatusChange | None = None

    if lactating and needs_dry_off(cow.facts, today, windows.dry_off_days):
        change = StatusChange("dry_off", current, LactationStatus.DRY.value, REASON_DRY_OFF)
    elif calved_recently(cow.facts, today, windows.calving_days):
        # Already lactating: matches without a change, so rule 4 stays out
        change = StatusChange("calving", current, LactationStatus.LACTATING.value, REASON_CALVING)
    elif cow.facts.is_pregnant and current is None:
        change = StatusChange("pregnancy", current, LactationStatus.PREGNANT.value, REASON_PREGNANCY)
    elif lactating and (
        cow.last_production_date is None
        or (today - cow.last_production_date).days > windows.production_lookback_days
    ):
        change = StatusChange("no_production", current, LactationStatus.DRY.value, REASON_NO_PRODUCTION)

    if change is None or change.new_value == current:
        return None
    return change
