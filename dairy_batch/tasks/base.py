"""
AutomationTask protocol and TaskRegistry.

Contract:
    ``AutomationTask`` is the interface every scheduled job implements.
    ``TaskRegistry`` stores tasks keyed by ``task_type``.

Invariants enforced:
    - One task per ``task_type`` string.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from sqlalchemy.orm import Session

from dairy_batch.domain.types import TaskOutcome
from dairy_kernel.domain.clock import Clock
from dairy_kernel.exceptions import TaskNotRegisteredError


@runtime_checkable
class AutomationTask(Protocol):
    """A unit of scheduled work (e.g. "billing.monthly_invoices").

    Contract:
        - ``run()`` does the whole job and returns a TaskOutcome.
        - Item-level failures are reported in ``TaskOutcome.errors``;
          raising means the job as a whole failed.

    Non-goals:
        - Does NOT record run history -- JobRunner does.
    """

    @property
    def task_type(self) -> str: ...

    @property
    def description(self) -> str: ...

    def run(
        self,
        parameters: dict[str, Any],
        session: Session,
        clock: Clock,
    ) -> TaskOutcome:
        ...


class TaskRegistry:
    """Registry mapping task_type strings to AutomationTask implementations.

    Contract:
        - ``register()`` adds a task; raises ValueError on duplicate.
        - ``get()`` retrieves by task_type; raises TaskNotRegisteredError.
    """

    def __init__(self) -> None:
        self._tasks: dict[str, AutomationTask] = {}

    def register(self, task: AutomationTask) -> None:
        if task.task_type in self._tasks:
            raise ValueError(f"Task type '{task.task_type}' is already registered")
        self._tasks[task.task_type] = task

    def get(self, task_type: str) -> AutomationTask:
        try:
            return self._tasks[task_type]
        except KeyError:
            raise TaskNotRegisteredError(task_type, self.list_tasks()) from None

    def list_tasks(self) -> tuple[str, ...]:
        """All registered task_type strings, sorted."""
        return tuple(sorted(self._tasks))

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_type: str) -> bool:
        return task_type in self._tasks
