"""
ORM model for automation run history.

Contract:
    One row per job run, written by JobRunner.  ``to_dto()`` converts a
    finished row into the ``JobRunResult`` handed back to callers.

Invariants enforced:
    - ``idempotency_key`` is UNIQUE: a key that already has a row is never
      run again, whatever that row's status.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from dairy_batch.domain.types import JobRunResult, JobRunStatus
from dairy_kernel.db.base import TrackedBase


class JobRunModel(TrackedBase):
    """Persistent record of one automation run."""

    __tablename__ = "automation_job_runs"

    __table_args__ = (
        Index("ix_automation_job_runs_task_type", "task_type"),
        Index("ix_automation_job_runs_status", "status"),
    )

    task_type: Mapped[str] = mapped_column(String(100), nullable=False)
    job_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    idempotency_key: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    status: Mapped[str] = mapped_column(String(30), nullable=False)
    parameters: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    processed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    skipped: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    error_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    errors: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    error_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    result_data: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    duration_ms: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    correlation_id: Mapped[str | None] = mapped_column(String(200), nullable=True)

    def to_dto(self) -> JobRunResult:
        return JobRunResult(
            run_id=self.id,
            task_type=self.task_type,
            idempotency_key=self.idempotency_key,
            status=JobRunStatus(self.status),
            processed=self.processed,
            skipped=self.skipped,
            errors=tuple(self.errors or ()),
            result_data=self.result_data or {},
            job_name=self.job_name,
            started_at=self.started_at,
            completed_at=self.completed_at,
            duration_ms=self.duration_ms,
        )
