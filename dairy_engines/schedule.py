"""
Delivery due-date policy.

Responsibility:
    Decides whether a customer is due a delivery on a calendar day, and
    parses the per-weekday ``delivery_schedule`` structure (or the legacy
    ``Schedule:{json}`` blob that older records carry in free-text notes).

Architecture position:
    Engines -- pure functions, zero I/O.

Policy (first match wins):
    1. A structured schedule decides by its flag for the day's weekday.
       A weekday missing from the map counts as "no delivery".
    2. Otherwise by subscription type:
         daily      -- every day
         alternate  -- days whose distance from ALTERNATE_EPOCH is even
         weekly     -- Sundays (configurable)
         custom     -- every day (no schedule to consult)
         unknown    -- every day

Failure modes:
    - InvalidScheduleError from ``DeliverySchedule.from_mapping`` and
      ``parse_legacy_schedule`` when the stored structure is malformed.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import date
from typing import Any, Mapping

from dairy_kernel.domain.enums import SubscriptionType
from dairy_kernel.exceptions import InvalidScheduleError

ALTERNATE_EPOCH = date(2024, 1, 1)

SUNDAY = 6  # date.weekday()

WEEKDAY_NAMES = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

_LEGACY_MARKER = "Schedule:"


@dataclass(frozen=True)
class DeliverySchedule:
    """Per-weekday delivery flags plus the auto-deliver switch.

    ``days`` holds the ``date.weekday()`` numbers (Monday = 0) on which the
    customer receives a delivery.
    """

    days: frozenset[int]
    auto_deliver: bool = False

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> DeliverySchedule | None:
        """Build from the stored JSON shape.

        ``{"delivery_days": {"monday": true, ...}, "auto_deliver": false}``.
        Returns None when there is no ``delivery_days`` map, which means
        "fall back to the subscription type".

        Raises:
            InvalidScheduleError: ``delivery_days`` is present but not a map
                of weekday name to boolean.
        """
        if not data:
            return None
        if not isinstance(data, Mapping):
            raise InvalidScheduleError(f"expected an object, got {type(data).__name__}")
        delivery_days = data.get("delivery_days")
        if delivery_days is None:
            return None
        if not isinstance(delivery_days, Mapping):
            raise InvalidScheduleError("delivery_days must be an object")

        days: set[int] = set()
        for name, flag in delivery_days.items():
            key = str(name).lower()
            if key not in WEEKDAY_NAMES:
                raise InvalidScheduleError(f"unknown weekday {name!r}")
            if not isinstance(flag, bool):
                raise InvalidScheduleError(f"flag for {key} must be true/false")
            if flag:
                days.add(WEEKDAY_NAMES.index(key))

        return cls(days=frozenset(days), auto_deliver=bool(data.get("auto_deliver", False)))

    def to_mapping(self) -> dict[str, Any]:
        return {
            "delivery_days": {
                name: index in self.days for index, name in enumerate(WEEKDAY_NAMES)
            },
            "auto_deliver": self.auto_deliver,
        }

    def delivers_on(self, day: date) -> bool:
        return day.weekday() in self.days


def parse_legacy_schedule(notes: str | None) -> DeliverySchedule | None:
    """Extract a schedule from a ``Schedule:{json}`` blob inside notes.

    Text after the JSON object is ignored.  Returns None when the notes
    carry no marker.

    Raises:
        InvalidScheduleError: The marker is present but the JSON is not
            decodable or has the wrong shape.
    """
    if not notes:
        return None
    index = notes.find(_LEGACY_MARKER)
    if index == -1:
        return None
    raw = notes[index + len(_LEGACY_MARKER):].strip()
    try:
        data, _ = json.JSONDecoder().raw_decode(raw)
    except json.JSONDecodeError as exc:
        raise InvalidScheduleError(f"legacy notes blob: {exc.msg}") from exc
    return DeliverySchedule.from_mapping(data)


def is_alternate_day(day: date, epoch: date = ALTERNATE_EPOCH) -> bool:
    """True when ``day`` is an even number of days from ``epoch``.

    Works on either side of the epoch (Python's modulo is non-negative).
    """
    return (day - epoch).days % 2 == 0


def is_delivery_due(
    subscription_type: str,
    day: date,
    schedule: DeliverySchedule | None = None,
    *,
    alternate_epoch: date = ALTERNATE_EPOCH,
    weekly_day: int = SUNDAY,
) -> bool:
    """Apply the due-date policy for one customer on one day."""
    if schedule is not None:
        return schedule.delivers_on(day)

    if subscription_type == SubscriptionType.DAILY.value:
        return True
    if subscription_type == SubscriptionType.ALTERNATE.value:
        return is_alternate_day(day, alternate_epoch)
    if subscription_type == SubscriptionType.WEEKLY.value:
        return day.weekday() == weekly_day
    # custom without a schedule, or an unrecognised type: fail open
    return True


def is_on_vacation(day: date, windows: tuple[tuple[date, date], ...]) -> bool:
    """True when any (start, end) window covers ``day`` inclusively."""
    return any(start <= day <= end for start, end in windows)


def weekday_number(name: str) -> int:
    """Map a weekday name ("sunday") to ``date.weekday()`` numbering.

    Raises:
        ValueError: Unknown weekday name.
    """
    try:
        return WEEKDAY_NAMES.index(name.strip().lower())
    except ValueError:
        raise ValueError(f"Unknown weekday: {name!r}") from None
