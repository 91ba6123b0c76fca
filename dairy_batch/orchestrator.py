"""
AutomationOrchestrator -- wiring for the automation system.

Contract:
    Composes the config, clock, notifier and TaskRegistry, and hands out a
    JobRunner for ad-hoc runs or an AutomationScheduler for the configured
    recurring jobs.  The single place where batch dependencies meet.

Invariants enforced:
    - Every runner and task receives the same Clock and DairyConfig.
"""

from __future__ import annotations

from typing import Any, Callable

from sqlalchemy.orm import Session

from dairy_batch.domain.types import JobRunResult
from dairy_batch.services.runner import JobRunner
from dairy_batch.services.scheduler import AutomationScheduler
from dairy_batch.tasks.base import TaskRegistry
from dairy_batch.tasks.dairy_tasks import default_registry
from dairy_config import DairyConfig
from dairy_kernel.domain.clock import Clock, SystemClock
from dairy_kernel.logging_config import get_logger
from dairy_kernel.services.notifier import LoggingNotifier, Notifier

logger = get_logger("batch.orchestrator")


class AutomationOrchestrator:
    """DI container for the automation system.

    Non-goals:
        - Does NOT start the scheduler automatically -- caller decides.
        - Does NOT own the session; tasks commit their own work.
    """

    def __init__(
        self,
        session: Session,
        task_registry: TaskRegistry,
        config: DairyConfig | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._session = session
        self._task_registry = task_registry
        self._config = config or DairyConfig()
        self._clock = clock or SystemClock()

    @classmethod
    def from_session(
        cls,
        session: Session,
        config: DairyConfig | None = None,
        clock: Clock | None = None,
        notifier: Notifier | None = None,
        task_registry: TaskRegistry | None = None,
    ) -> AutomationOrchestrator:
        """Create a fully wired orchestrator.

        Args:
            task_registry: Optional pre-built registry.  If None, every
                built-in task is registered with ``config`` and ``notifier``
                (LoggingNotifier by default).
        """
        effective_config = config or DairyConfig()
        registry = (
            task_registry if task_registry is not None
            else default_registry(effective_config, notifier or LoggingNotifier())
        )
        logger.info(
            "automation_orchestrator_created",
            extra={"task_count": len(registry), "timezone": effective_config.timezone},
        )
        return cls(session, registry, effective_config, clock)

    def create_runner(self, session: Session | None = None) -> JobRunner:
        return JobRunner(session or self._session, self._task_registry, self._clock)

    def run_task(
        self,
        task_type: str,
        parameters: dict[str, Any] | None = None,
        idempotency_key: str | None = None,
    ) -> JobRunResult:
        """Run one task now on the orchestrator's session."""
        return self.create_runner().run(task_type, parameters, idempotency_key)

    def create_scheduler(
        self,
        session_factory: Callable[[], Session],
        tick_interval_seconds: int = 60,
    ) -> AutomationScheduler:
        """Scheduler over ``config.jobs`` evaluated in the dairy timezone."""
        return AutomationScheduler(
            session_factory=session_factory,
            task_registry=self._task_registry,
            jobs=self._config.jobs,
            clock=self._clock,
            tz=self._config.tzinfo,
            tick_interval_seconds=tick_interval_seconds,
        )

    @property
    def session(self) -> Session:
        return self._session

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def config(self) -> DairyConfig:
        return self._config

    @property
    def task_registry(self) -> TaskRegistry:
        return self._task_registry
