"""
JobRunner -- runs one automation task and records the run.

Contract:
    ``run(task_type, parameters, idempotency_key)`` checks the key, writes a
    ``running`` row, invokes the task, and finishes the row as
    ``completed``, ``partially_completed`` (the task reported errors) or
    ``failed`` (the task raised).

Invariants enforced:
    - Idempotency: a key with an existing row raises JobAlreadyRunError;
      a concurrent runner that loses the race hits the UNIQUE constraint
      and gets the same error.
    - The ``running`` row is committed before the task starts, so a crash
      mid-task leaves evidence.
    - A task exception never propagates; it is recorded on the row.

Failure modes:
    - TaskNotRegisteredError: unknown task_type (nothing written).
    - JobAlreadyRunError: duplicate idempotency key (nothing written).
"""

from __future__ import annotations

import time
from dataclasses import replace
from typing import Any
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from dairy_batch.domain.types import JobRunResult, JobRunStatus
from dairy_batch.models import JobRunModel
from dairy_batch.tasks.base import TaskRegistry
from dairy_kernel.domain.clock import Clock, SystemClock
from dairy_kernel.exceptions import JobAlreadyRunError
from dairy_kernel.logging_config import LogContext, get_logger

logger = get_logger("batch.runner")

_MAX_STORED_ERRORS = 100


class JobRunner:
    """Executes registered tasks with run-history bookkeeping.

    Non-goals:
        - Does NOT retry.  A failed run keeps its key; re-running needs a
          new key.
    """

    def __init__(
        self,
        session: Session,
        task_registry: TaskRegistry,
        clock: Clock | None = None,
    ):
        self._session = session
        self._task_registry = task_registry
        self._clock = clock or SystemClock()

    def run(
        self,
        task_type: str,
        parameters: dict[str, Any] | None = None,
        idempotency_key: str | None = None,
        job_name: str | None = None,
    ) -> JobRunResult:
        task = self._task_registry.get(task_type)
        params = dict(parameters or {})
        key = idempotency_key or f"{task_type}:{uuid4()}"

        existing = self.find_run(key)
        if existing is not None:
            raise JobAlreadyRunError(key, str(existing.id))

        run = self._start_run(task_type, job_name, key, params)

        with LogContext.bind(run_id=str(run.id), task_type=task_type):
            logger.info(
                "job_run_started",
                extra={"job_name": job_name, "idempotency_key": key},
            )
            start_time = time.monotonic()
            try:
                outcome = task.run(params, self._session, self._clock)
            except Exception as exc:
                self._session.rollback()
                logger.exception("job_run_failed")
                return self._finish(
                    run,
                    JobRunStatus.FAILED,
                    start_time,
                    errors=(f"{type(exc).__name__}: {exc}",),
                    error_summary=str(exc),
                )

            status = (
                JobRunStatus.PARTIALLY_COMPLETED if outcome.has_errors
                else JobRunStatus.COMPLETED
            )
            return self._finish(
                run,
                status,
                start_time,
                processed=outcome.processed,
                skipped=outcome.skipped,
                errors=outcome.errors,
                result_data=outcome.result_data,
                error_summary=outcome.errors[0] if outcome.errors else None,
            )

    def find_run(self, idempotency_key: str) -> JobRunModel | None:
        return self._session.execute(
            select(JobRunModel).where(JobRunModel.idempotency_key == idempotency_key)
        ).scalar_one_or_none()

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _start_run(
        self,
        task_type: str,
        job_name: str | None,
        key: str,
        params: dict[str, Any],
    ) -> JobRunModel:
        correlation = LogContext.get_all().get("correlation_id")
        run = JobRunModel(
            task_type=task_type,
            job_name=job_name,
            idempotency_key=key,
            status=JobRunStatus.RUNNING.value,
            parameters=params or None,
            started_at=self._clock.now(),
            correlation_id=correlation,
        )
        self._session.add(run)
        try:
            self._session.commit()
        except IntegrityError:
            self._session.rollback()
            existing = self.find_run(key)
            raise JobAlreadyRunError(key, str(existing.id) if existing else "unknown") from None
        return run

    def _finish(
        self,
        run: JobRunModel,
        status: JobRunStatus,
        start_time: float,
        *,
        processed: int = 0,
        skipped: int = 0,
        errors: tuple[str, ...] = (),
        result_data: dict[str, Any] | None = None,
        error_summary: str | None = None,
    ) -> JobRunResult:
        run.status = status.value
        run.processed = processed
        run.skipped = skipped
        run.error_count = len(errors)
        run.errors = list(errors[:_MAX_STORED_ERRORS]) or None
        run.error_summary = error_summary
        run.result_data = result_data or None
        run.completed_at = self._clock.now()
        run.duration_ms = int((time.monotonic() - start_time) * 1000)
        self._session.commit()

        logger.info(
            "job_run_finished",
            extra={
                "status": status.value,
                "processed": processed,
                "skipped": skipped,
                "error_count": len(errors),
                "duration_ms": run.duration_ms,
            },
        )
        result = run.to_dto()
        # Full error list even when the stored copy was truncated
        if len(errors) > _MAX_STORED_ERRORS:
            result = replace(result, errors=tuple(errors))
        return result
