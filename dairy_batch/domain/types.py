"""
dairy_batch.domain.types -- Frozen dataclasses for the automation runner.

Frozen dataclasses with enum status fields and tuples for collections,
the same shape as the service result DTOs.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID


# =============================================================================
# Status enums
# =============================================================================


class JobRunStatus(str, Enum):
    """Lifecycle of one job run."""

    RUNNING = "running"
    COMPLETED = "completed"
    PARTIALLY_COMPLETED = "partially_completed"  # Task returned item errors
    FAILED = "failed"  # Task raised


class ScheduleFrequency(str, Enum):
    """Recurrence frequency for scheduled jobs."""

    ONCE = "once"  # Fire once, no recurrence
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    ON_DEMAND = "on_demand"  # Manual trigger only


# =============================================================================
# Task and run DTOs
# =============================================================================


@dataclass(frozen=True)
class TaskOutcome:
    """What a task reports back to the runner.

    ``result_data`` must be JSON-serialisable; it is stored on the run row.
    """

    processed: int = 0
    skipped: int = 0
    errors: tuple[str, ...] = ()
    result_data: dict[str, Any] = field(default_factory=dict)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)


@dataclass(frozen=True)
class JobRunResult:
    """Immutable result of one ``JobRunner.run()``."""

    run_id: UUID
    task_type: str
    idempotency_key: str
    status: JobRunStatus
    processed: int = 0
    skipped: int = 0
    errors: tuple[str, ...] = ()
    result_data: dict[str, Any] = field(default_factory=dict)
    job_name: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int = 0


# =============================================================================
# Schedule DTOs
# =============================================================================


@dataclass(frozen=True)
class JobSchedule:
    """Snapshot of a recurring job and where it stands.

    ``next_run_at`` is the slot the job is waiting for; ``None`` until the
    scheduler first sees the job.
    """

    name: str
    task_type: str
    frequency: ScheduleFrequency
    parameters: dict[str, Any] = field(default_factory=dict)
    cron_expression: str | None = None
    next_run_at: datetime | None = None
    last_run_at: datetime | None = None
    last_run_status: JobRunStatus | None = None
    is_active: bool = True

    def advanced(
        self,
        *,
        next_run_at: datetime | None,
        last_run_at: datetime | None = None,
        last_run_status: JobRunStatus | None = None,
    ) -> JobSchedule:
        return replace(
            self,
            next_run_at=next_run_at,
            last_run_at=last_run_at or self.last_run_at,
            last_run_status=last_run_status or self.last_run_status,
        )
