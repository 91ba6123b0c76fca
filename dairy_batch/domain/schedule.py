"""
Pure schedule evaluation functions.

Contract:
    ``should_fire(schedule, as_of)`` and ``compute_next_run()`` are PURE --
    no I/O, no side effects.  Timestamps come from the caller and are
    evaluated in whatever timezone they carry, so the scheduler passes
    local (dairy timezone) datetimes.

Cron dialect:
    ``minute hour day_of_month month day_of_week`` with ``*``, values,
    ranges, lists and steps.  Day-of-week 0 is Sunday.  Day-of-month and
    day-of-week must BOTH match (no classic cron OR-ing).
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from dairy_batch.domain.types import JobSchedule, ScheduleFrequency

_SEARCH_DAYS = 366


# =============================================================================
# CronSpec (lightweight cron parser)
# =============================================================================


@dataclass(frozen=True)
class CronSpec:
    """Parsed cron expression.  Each field is a frozenset of allowed values."""

    minutes: frozenset[int] = field(default_factory=lambda: frozenset(range(60)))
    hours: frozenset[int] = field(default_factory=lambda: frozenset(range(24)))
    days_of_month: frozenset[int] = field(default_factory=lambda: frozenset(range(1, 32)))
    months: frozenset[int] = field(default_factory=lambda: frozenset(range(1, 13)))
    days_of_week: frozenset[int] = field(default_factory=lambda: frozenset(range(7)))


def _check_bounds(value: int, min_val: int, max_val: int) -> int:
    if value < min_val or value > max_val:
        raise ValueError(f"Value {value} outside range [{min_val}, {max_val}]")
    return value


def _parse_cron_field(field_str: str, min_val: int, max_val: int) -> frozenset[int]:
    """Parse one cron field.

    Supports ``*``, ``N``, ``N-M``, ``*/S``, ``N-M/S``, ``N/S`` and
    comma-separated lists of those.

    Raises:
        ValueError: syntactically invalid or out of range.
    """
    values: set[int] = set()

    for part in field_str.split(","):
        part = part.strip()
        if not part:
            raise ValueError(f"Empty cron field part in '{field_str}'")

        step = 1
        if "/" in part:
            part, step_str = part.split("/", 1)
            step = int(step_str)
            if step <= 0:
                raise ValueError(f"Step must be positive: {step}")

        if part == "*":
            start, end = min_val, max_val
        elif "-" in part:
            s, e = part.split("-", 1)
            start = _check_bounds(int(s), min_val, max_val)
            end = _check_bounds(int(e), min_val, max_val)
            if start > end:
                raise ValueError(f"Range start > end: {start}-{end}")
        else:
            start = _check_bounds(int(part), min_val, max_val)
            end = max_val if step > 1 else start

        values.update(range(start, end + 1, step))

    return frozenset(values)


def parse_cron(expression: str) -> CronSpec:
    """Parse a 5-field cron expression.

    Raises:
        ValueError: If expression is malformed.
    """
    parts = expression.strip().split()
    if len(parts) != 5:
        raise ValueError(
            f"Cron expression must have 5 fields, got {len(parts)}: '{expression}'"
        )

    return CronSpec(
        minutes=_parse_cron_field(parts[0], 0, 59),
        hours=_parse_cron_field(parts[1], 0, 23),
        days_of_month=_parse_cron_field(parts[2], 1, 31),
        months=_parse_cron_field(parts[3], 1, 12),
        days_of_week=_parse_cron_field(parts[4], 0, 6),
    )


def _cron_weekday(dt: datetime) -> int:
    # Python weekday() is 0=Monday; cron is 0=Sunday
    return (dt.weekday() + 1) % 7


def _day_matches(spec: CronSpec, dt: datetime) -> bool:
    return (
        dt.month in spec.months
        and dt.day in spec.days_of_month
        and _cron_weekday(dt) in spec.days_of_week
    )


def matches_cron(spec: CronSpec, dt: datetime) -> bool:
    """True when ``dt`` (to the minute) is one of the expression's slots."""
    return dt.minute in spec.minutes and dt.hour in spec.hours and _day_matches(spec, dt)


# =============================================================================
# Schedule evaluation (pure)
# =============================================================================


def should_fire(schedule: JobSchedule, as_of: datetime) -> bool:
    """Whether a schedule is due at ``as_of``.

    Rules:
        - Inactive and ON_DEMAND schedules never fire.
        - ONCE fires if it never ran.
        - With ``next_run_at`` known: fires once ``as_of >= next_run_at``
          (a slot missed by a late tick still fires).
        - Otherwise a cron schedule fires only on a matching minute and a
          plain frequency fires immediately.
    """
    if not schedule.is_active:
        return False

    if schedule.frequency == ScheduleFrequency.ON_DEMAND:
        return False

    if schedule.frequency == ScheduleFrequency.ONCE:
        return schedule.last_run_at is None

    if schedule.next_run_at is not None:
        return as_of >= schedule.next_run_at

    if schedule.cron_expression:
        try:
            return matches_cron(parse_cron(schedule.cron_expression), as_of)
        except ValueError:
            return False

    return True


def add_months(dt: datetime, months: int) -> datetime:
    """Same day-of-month ``months`` later, clamped to the month's last day."""
    index = dt.month - 1 + months
    year, month = dt.year + index // 12, index % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def compute_next_run(
    frequency: ScheduleFrequency,
    last_run_at: datetime | None,
    cron_expression: str | None = None,
    base_time: datetime | None = None,
) -> datetime | None:
    """Next slot strictly after ``base_time`` (or ``last_run_at``).

    Returns None for ON_DEMAND and ONCE, or when there is no base time.

    Raises:
        ValueError: malformed cron expression, or one with no slot in the
            next year (e.g. ``0 0 31 2 *``).
    """
    if frequency in (ScheduleFrequency.ON_DEMAND, ScheduleFrequency.ONCE):
        return None

    base = base_time or last_run_at
    if base is None:
        return None

    if cron_expression:
        return _next_cron_match(parse_cron(cron_expression), base)

    if frequency == ScheduleFrequency.MONTHLY:
        return add_months(base, 1)

    delta_map = {
        ScheduleFrequency.HOURLY: timedelta(hours=1),
        ScheduleFrequency.DAILY: timedelta(days=1),
        ScheduleFrequency.WEEKLY: timedelta(weeks=1),
    }
    return base + delta_map[frequency]


def _next_cron_match(spec: CronSpec, after: datetime) -> datetime:
    """First matching minute strictly after ``after``.

    Skips whole non-matching days and hours, so the search over a year is
    cheap.
    """
    candidate = after.replace(second=0, microsecond=0) + timedelta(minutes=1)
    limit = candidate + timedelta(days=_SEARCH_DAYS)

    while candidate < limit:
        if not _day_matches(spec, candidate):
            candidate = (candidate + timedelta(days=1)).replace(hour=0, minute=0)
        elif candidate.hour not in spec.hours:
            candidate = (candidate + timedelta(hours=1)).replace(minute=0)
        elif candidate.minute not in spec.minutes:
            candidate += timedelta(minutes=1)
        else:
            return candidate

    raise ValueError(f"No cron match found within {_SEARCH_DAYS} days after {after}")
