"""
Fixtures for the automation runner and scheduler tests.

Provides small AutomationTask implementations with predictable outcomes and
a registry holding all of them.
"""

from typing import Any

import pytest
from sqlalchemy.orm import Session

from dairy_batch.domain.types import TaskOutcome
from dairy_batch.tasks.base import TaskRegistry
from dairy_kernel.domain.clock import Clock


class CountingTask:
    """Always succeeds; remembers every call."""

    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []

    @property
    def task_type(self) -> str:
        return "test.counting"

    @property
    def description(self) -> str:
        return "Counts its invocations"

    def run(self, parameters: dict[str, Any], session: Session, clock: Clock) -> TaskOutcome:
        self.calls.append(dict(parameters))
        return TaskOutcome(processed=3, skipped=1, result_data={"calls": len(self.calls)})


class PartialTask:
    """Reports item errors without raising."""

    def __init__(self, error_count: int = 2) -> None:
        self.error_count = error_count

    @property
    def task_type(self) -> str:
        return "test.partial"

    @property
    def description(self) -> str:
        return "Some items fail"

    def run(self, parameters: dict[str, Any], session: Session, clock: Clock) -> TaskOutcome:
        errors = tuple(f"item {i} failed" for i in range(self.error_count))
        return TaskOutcome(processed=5, errors=errors)


class ExplodingTask:
    """Raises from run()."""

    @property
    def task_type(self) -> str:
        return "test.exploding"

    @property
    def description(self) -> str:
        return "Always raises"

    def run(self, parameters: dict[str, Any], session: Session, clock: Clock) -> TaskOutcome:
        raise RuntimeError("boom")


@pytest.fixture
def counting_task():
    return CountingTask()


@pytest.fixture
def registry(counting_task):
    reg = TaskRegistry()
    reg.register(counting_task)
    reg.register(PartialTask())
    reg.register(ExplodingTask())
    return reg


@pytest.fixture
def noisy_registry():
    """A registry whose only task reports more errors than a run row stores."""
    reg = TaskRegistry()
    reg.register(PartialTask(error_count=150))
    return reg
