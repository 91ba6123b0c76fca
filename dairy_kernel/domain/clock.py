"""
Clock -- Deterministic time abstraction.

Responsibility:
    Provides an injectable clock interface so that engine and service code
    never calls ``datetime.now()`` or ``date.today()`` directly.  "Today"
    for scheduling, billing and herd rules is the calendar date in the
    dairy's configured timezone.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O (except SystemClock,
    which is the one sanctioned I/O boundary for time).
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone, tzinfo


class Clock(ABC):
    """
    Abstract clock interface.

    Contract:
        All services that need current time receive a Clock instance via
        constructor injection.

    Guarantees:
        - ``now()`` returns a timezone-aware ``datetime`` in the clock's
          local zone.
        - ``now_utc()`` returns a UTC-normalized ``datetime``.
        - ``today()`` returns the local calendar date.
    """

    @abstractmethod
    def now(self) -> datetime:
        """Get the current time."""
        ...

    def now_utc(self) -> datetime:
        """Get the current UTC time."""
        return self.now().astimezone(timezone.utc)

    def today(self, tz: tzinfo | None = None) -> date:
        """Get the current calendar date, in ``tz`` when given."""
        now = self.now()
        return (now.astimezone(tz) if tz is not None else now).date()


class SystemClock(Clock):
    """
    Production clock that returns actual system time.

    Contract:
        The sole sanctioned I/O boundary for time.  ``tz`` is the dairy's
        business timezone; UTC when not given.
    """

    def __init__(self, tz: tzinfo | None = None):
        self._tz = tz or timezone.utc

    def now(self) -> datetime:
        return datetime.now(self._tz)


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    Guarantees:
        - ``now()`` returns the same value on repeated calls until
          ``advance()``, ``advance_days()`` or ``set_time()`` is called.
    """

    def __init__(self, fixed_time: datetime | None = None):
        """
        Args:
            fixed_time: Time the clock reports.  Defaults to
                2024-01-01 12:00 UTC.
        """
        self._fixed_time = fixed_time or datetime(
            2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc
        )
        self._advance_seconds = 0

    @classmethod
    def on(cls, day: date, hour: int = 9) -> "DeterministicClock":
        """Build a clock fixed at ``hour``:00 UTC on ``day``."""
        return cls(datetime(day.year, day.month, day.day, hour, tzinfo=timezone.utc))

    def now(self) -> datetime:
        return self._fixed_time + timedelta(seconds=self._advance_seconds)

    def set_time(self, time: datetime) -> None:
        """Set the clock to a specific time."""
        self._fixed_time = time
        self._advance_seconds = 0

    def advance(self, seconds: int = 1) -> None:
        """Advance the clock by the specified seconds."""
        self._advance_seconds += seconds

    def advance_days(self, days: int = 1) -> None:
        """Advance the clock by whole calendar days."""
        self.advance(days * 86400)
