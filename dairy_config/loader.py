"""
Configuration Loader (``dairy_config.loader``).

Responsibility
--------------
Loads a YAML document and parses it into the frozen dataclasses of
``dairy_config.schema``.  Callers use ``dairy_config.get_active_config()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys (job ``name`` / ``task_type``)  -> ``KeyError``.
* Out-of-range or mistyped values  -> ``ValueError`` naming the field.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from dairy_config.schema import (
    BillingConfig,
    CattleConfig,
    DairyConfig,
    DatabaseConfig,
    JobScheduleDef,
    NotificationConfig,
    SchedulingConfig,
)
from dairy_engines.schedule import weekday_number


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return data


def parse_date(value: Any) -> date:
    """Parse a date from YAML (string or date object)."""
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value)
    raise ValueError(f"Cannot parse date from {value!r}")


def _positive_int(data: dict[str, Any], key: str, default: int, *, allow_zero: bool = False) -> int:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer, got {value!r}")
    if value < 0 or (value == 0 and not allow_zero):
        raise ValueError(f"{key} must be positive, got {value}")
    return value


def _weekday(value: Any) -> int:
    invalid = ValueError(f"weekly_delivery_day must be a weekday name or 0-6, got {value!r}")
    if isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= 6:
        return value
    if not isinstance(value, str):
        raise invalid
    try:
        return weekday_number(value)
    except ValueError:
        raise invalid from None


def parse_database(data: dict[str, Any]) -> DatabaseConfig:
    defaults = DatabaseConfig()
    return DatabaseConfig(
        url=str(data.get("url", defaults.url)),
        echo=bool(data.get("echo", defaults.echo)),
    )


def parse_scheduling(data: dict[str, Any]) -> SchedulingConfig:
    defaults = SchedulingConfig()
    return SchedulingConfig(
        alternate_epoch=parse_date(data.get("alternate_epoch", defaults.alternate_epoch)),
        weekly_delivery_day=_weekday(data.get("weekly_delivery_day", defaults.weekly_delivery_day)),
        auto_mark_delivered=bool(data.get("auto_mark_delivered", defaults.auto_mark_delivered)),
    )


def parse_billing(data: dict[str, Any]) -> BillingConfig:
    defaults = BillingConfig()
    prefix = str(data.get("invoice_prefix", defaults.invoice_prefix)).strip()
    if not prefix:
        raise ValueError("invoice_prefix must not be empty")
    return BillingConfig(
        invoice_prefix=prefix,
        sequence_width=_positive_int(data, "sequence_width", defaults.sequence_width),
        due_days=_positive_int(data, "due_days", defaults.due_days, allow_zero=True),
        post_invoices_to_ledger=bool(
            data.get("post_invoices_to_ledger", defaults.post_invoices_to_ledger)
        ),
    )


def parse_cattle(data: dict[str, Any]) -> CattleConfig:
    defaults = CattleConfig()
    return CattleConfig(
        dry_off_window_days=_positive_int(data, "dry_off_window_days", defaults.dry_off_window_days),
        calving_window_days=_positive_int(data, "calving_window_days", defaults.calving_window_days),
        production_lookback_days=_positive_int(
            data, "production_lookback_days", defaults.production_lookback_days
        ),
    )


def parse_notifications(data: dict[str, Any]) -> NotificationConfig:
    defaults = NotificationConfig()
    raw = data.get("large_payment_threshold", defaults.large_payment_threshold)
    try:
        threshold = Decimal(str(raw))
    except InvalidOperation:
        raise ValueError(f"large_payment_threshold is not a number: {raw!r}") from None
    if threshold <= 0:
        raise ValueError(f"large_payment_threshold must be positive, got {threshold}")
    return NotificationConfig(large_payment_threshold=threshold)


def parse_job(data: dict[str, Any]) -> JobScheduleDef:
    """Parse one job definition.  ``name`` and ``task_type`` are required."""
    parameters = data.get("parameters") or {}
    if not isinstance(parameters, dict):
        raise ValueError(f"job {data['name']}: parameters must be a mapping")
    return JobScheduleDef(
        name=data["name"],
        task_type=data["task_type"],
        frequency=str(data.get("frequency", "daily")),
        cron_expression=data.get("cron"),
        parameters=dict(parameters),
        is_active=bool(data.get("is_active", True)),
    )


def parse_config(data: dict[str, Any]) -> DairyConfig:
    timezone = str(data.get("timezone", DairyConfig.timezone))
    try:
        ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown timezone: {timezone!r}") from None

    jobs = tuple(parse_job(j) for j in data.get("jobs") or ())
    names = [j.name for j in jobs]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ValueError(f"Duplicate job names: {duplicates}")

    return DairyConfig(
        timezone=timezone,
        database=parse_database(data.get("database") or {}),
        scheduling=parse_scheduling(data.get("scheduling") or {}),
        billing=parse_billing(data.get("billing") or {}),
        cattle=parse_cattle(data.get("cattle") or {}),
        notifications=parse_notifications(data.get("notifications") or {}),
        jobs=jobs,
    )


def load_config(path: Path) -> DairyConfig:
    return parse_config(load_yaml_file(path))
