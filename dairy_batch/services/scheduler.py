"""
AutomationScheduler -- In-process polling scheduler.

Contract:
    Holds the configured job schedules in memory.  Each ``tick()`` reads the
    clock in the dairy timezone, evaluates ``should_fire()`` for every job,
    and runs the due ones through JobRunner.

Invariants enforced:
    - All timestamps from the injected Clock, converted to the dairy
      timezone so cron fields mean local wall-clock time.
    - The idempotency key is ``<job name>:<slot>``; a slot that already ran
      (e.g. before a restart) is skipped, not repeated.
    - Graceful shutdown: ``stop()`` is honoured between jobs.
"""

from __future__ import annotations

import threading
from datetime import datetime, tzinfo
from typing import Callable, Iterable

from sqlalchemy.orm import Session

from dairy_batch.domain.schedule import compute_next_run, should_fire
from dairy_batch.domain.types import JobRunStatus, JobSchedule, ScheduleFrequency
from dairy_batch.services.runner import JobRunner
from dairy_batch.tasks.base import TaskRegistry
from dairy_config import JobScheduleDef
from dairy_kernel.domain.clock import Clock, SystemClock
from dairy_kernel.exceptions import JobAlreadyRunError
from dairy_kernel.logging_config import get_logger

logger = get_logger("batch.scheduler")


def schedule_from_def(definition: JobScheduleDef) -> JobSchedule:
    return JobSchedule(
        name=definition.name,
        task_type=definition.task_type,
        frequency=ScheduleFrequency(definition.frequency),
        parameters=dict(definition.parameters),
        cron_expression=definition.cron_expression,
        is_active=definition.is_active,
    )


def slot_key(name: str, slot: datetime) -> str:
    return f"{name}:{slot.strftime('%Y%m%d-%H%M')}"


class AutomationScheduler:
    """In-process polling scheduler for the configured jobs.

    Contract:
        - ``tick()`` evaluates all schedules and fires due ones.
        - ``start()`` / ``stop()`` for background thread operation.

    Non-goals:
        - NOT a distributed scheduler; the idempotency key is what stops
          two processes running the same slot.
        - Schedule state is not persisted; after a restart each job waits
          for its next slot.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        task_registry: TaskRegistry,
        jobs: Iterable[JobScheduleDef],
        clock: Clock | None = None,
        tz: tzinfo | None = None,
        tick_interval_seconds: int = 60,
    ):
        self._session_factory = session_factory
        self._task_registry = task_registry
        self._clock = clock or SystemClock()
        self._tz = tz
        self._tick_interval = tick_interval_seconds
        self._schedules: dict[str, JobSchedule] = {
            d.name: schedule_from_def(d) for d in jobs
        }
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    @property
    def schedules(self) -> tuple[JobSchedule, ...]:
        return tuple(self._schedules.values())

    def tick(self) -> int:
        """Evaluate and fire due schedules.  Returns the number fired."""
        now = self._local_now()
        session = self._session_factory()
        try:
            return self._evaluate_schedules(session, now)
        finally:
            session.close()

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="dairy-automation-scheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info(
            "scheduler_started",
            extra={"tick_interval": self._tick_interval, "job_count": len(self._schedules)},
        )

    def stop(self, timeout: float = 30.0) -> None:
        """Signal stop and wait for the current tick to finish."""
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("scheduler_stopped")

    def wait(self) -> None:
        """Block until ``stop()`` is called (foreground use)."""
        self._stop_event.wait()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _local_now(self) -> datetime:
        now = self._clock.now()
        return now.astimezone(self._tz) if self._tz is not None else now

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception:
                logger.exception("scheduler_tick_exception")
            self._stop_event.wait(timeout=self._tick_interval)

    def _evaluate_schedules(self, session: Session, now: datetime) -> int:
        runner = JobRunner(session, self._task_registry, self._clock)
        fired = 0

        for name, schedule in list(self._schedules.items()):
            if self._stop_event.is_set():
                break

            if not should_fire(schedule, now):
                if schedule.next_run_at is None:
                    self._schedules[name] = schedule.advanced(
                        next_run_at=self._next_run(schedule, now),
                    )
                continue

            slot = (schedule.next_run_at or now).replace(second=0, microsecond=0)
            status: JobRunStatus | None = None
            try:
                result = runner.run(
                    schedule.task_type,
                    schedule.parameters,
                    idempotency_key=slot_key(name, slot),
                    job_name=name,
                )
                status = result.status
                fired += 1
            except JobAlreadyRunError:
                logger.info("schedule_slot_already_run", extra={"job_name": name, "slot": slot})
            except Exception:
                session.rollback()
                logger.exception("schedule_fire_failed", extra={"job_name": name})
                status = JobRunStatus.FAILED

            next_run = self._next_run(schedule, now)
            self._schedules[name] = schedule.advanced(
                next_run_at=next_run,
                last_run_at=now,
                last_run_status=status,
            )
            logger.info(
                "schedule_fired",
                extra={
                    "job_name": name,
                    "task_type": schedule.task_type,
                    "status": status.value if status else None,
                    "next_run_at": next_run,
                },
            )

        return fired

    def _next_run(self, schedule: JobSchedule, now: datetime) -> datetime | None:
        try:
            return compute_next_run(
                schedule.frequency,
                last_run_at=schedule.last_run_at,
                cron_expression=schedule.cron_expression,
                base_time=now,
            )
        except ValueError:
            logger.exception("schedule_invalid", extra={"job_name": schedule.name})
            return None
