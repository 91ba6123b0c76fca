"""
Configuration schema (``dairy_config.schema``).

Frozen dataclasses that the loader builds from YAML.  Every field has a
default so that an empty document yields a working configuration.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, tzinfo
from decimal import Decimal
from typing import Any
from zoneinfo import ZoneInfo


@dataclass(frozen=True)
class DatabaseConfig:
    url: str = "sqlite:///dairy.db"
    echo: bool = False


@dataclass(frozen=True)
class SchedulingConfig:
    """Delivery due-date policy knobs.

    ``weekly_delivery_day`` uses ``date.weekday()`` numbering (Sunday = 6).
    """

    alternate_epoch: date = date(2024, 1, 1)
    weekly_delivery_day: int = 6
    auto_mark_delivered: bool = False


@dataclass(frozen=True)
class BillingConfig:
    invoice_prefix: str = "INV"
    sequence_width: int = 3
    due_days: int = 15
    post_invoices_to_ledger: bool = True


@dataclass(frozen=True)
class CattleConfig:
    dry_off_window_days: int = 60
    calving_window_days: int = 7
    production_lookback_days: int = 30


@dataclass(frozen=True)
class NotificationConfig:
    large_payment_threshold: Decimal = Decimal("10000")


@dataclass(frozen=True)
class JobScheduleDef:
    """A recurring automation job.

    ``frequency`` is a ``dairy_batch.domain.types.ScheduleFrequency`` value.
    """

    name: str
    task_type: str
    frequency: str = "daily"
    cron_expression: str | None = None
    parameters: dict[str, Any] = field(default_factory=dict)
    is_active: bool = True


@dataclass(frozen=True)
class DairyConfig:
    timezone: str = "Asia/Kolkata"
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    scheduling: SchedulingConfig = field(default_factory=SchedulingConfig)
    billing: BillingConfig = field(default_factory=BillingConfig)
    cattle: CattleConfig = field(default_factory=CattleConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    jobs: tuple[JobScheduleDef, ...] = ()

    @property
    def tzinfo(self) -> tzinfo:
        return ZoneInfo(self.timezone)
