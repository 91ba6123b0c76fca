"""
dairy_batch.domain -- Pure types and schedule evaluation.

ZERO I/O.  All types are frozen dataclasses.
"""

from dairy_batch.domain.types import (
    JobRunResult,
    JobRunStatus,
    JobSchedule,
    ScheduleFrequency,
    TaskOutcome,
)

__all__ = [
    "JobRunResult",
    "JobRunStatus",
    "JobSchedule",
    "ScheduleFrequency",
    "TaskOutcome",
]
