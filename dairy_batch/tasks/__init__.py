"""Automation task implementations and the task registry."""

from dairy_batch.tasks.base import AutomationTask, TaskRegistry

__all__ = ["AutomationTask", "TaskRegistry"]
