"""
Tests for dairy_batch.services.runner -- run lifecycle, idempotency and
run-history rows.
"""

import pytest
from sqlalchemy import select

from dairy_batch.domain.types import JobRunStatus
from dairy_batch.models import JobRunModel
from dairy_batch.services.runner import JobRunner
from dairy_kernel.exceptions import JobAlreadyRunError, TaskNotRegisteredError


@pytest.fixture
def runner(session, registry, deterministic_clock):
    return JobRunner(session, registry, deterministic_clock)


def _rows(session):
    return session.execute(select(JobRunModel)).scalars().all()


class TestRun:
    def test_completed_run(self, session, runner, counting_task):
        result = runner.run("test.counting", {"date": "2024-01-15"}, idempotency_key="k-1", job_name="nightly_sweep")

        assert result.status == JobRunStatus.COMPLETED
        assert (result.processed, result.skipped) == (3, 1)
        assert result.errors == ()
        assert result.result_data == {"calls": 1}
        assert result.job_name == "nightly_sweep"
        assert counting_task.calls == [{"date": "2024-01-15"}]

        [row] = _rows(session)
        assert row.status == "completed"
        assert row.idempotency_key == "k-1"
        assert row.parameters == {"date": "2024-01-15"}
        assert row.completed_at is not None

    def test_partial_run(self, runner):
        result = runner.run("test.partial")

        assert result.status == JobRunStatus.PARTIALLY_COMPLETED
        assert result.errors == ("item 0 failed", "item 1 failed")

    def test_failed_run_is_recorded_not_raised(self, session, runner):
        result = runner.run("test.exploding", idempotency_key="k-boom")

        assert result.status == JobRunStatus.FAILED
        assert result.errors == ("RuntimeError: boom",)
        [row] = _rows(session)
        assert row.status == "failed"
        assert row.error_summary == "boom"

    def test_default_key_is_unique_per_run(self, runner):
        first = runner.run("test.counting")
        second = runner.run("test.counting")

        assert first.idempotency_key.startswith("test.counting:")
        assert first.idempotency_key != second.idempotency_key

    def test_duplicate_key_rejected(self, session, runner, counting_task):
        first = runner.run("test.counting", idempotency_key="monthly:202401")

        with pytest.raises(JobAlreadyRunError) as exc_info:
            runner.run("test.counting", idempotency_key="monthly:202401")

        assert exc_info.value.existing_run_id == str(first.run_id)
        assert len(counting_task.calls) == 1
        assert len(_rows(session)) == 1

    def test_unknown_task_writes_nothing(self, session, runner):
        with pytest.raises(TaskNotRegisteredError):
            runner.run("billing.nope")
        assert _rows(session) == []

    def test_stored_errors_are_capped(self, session, noisy_registry, deterministic_clock):
        result = JobRunner(session, noisy_registry, deterministic_clock).run("test.partial")

        assert len(result.errors) == 150
        [row] = _rows(session)
        assert row.error_count == 150
        assert len(row.errors) == 100

    def test_run_logs_carry_run_context(self, runner, captured_logs):
        result = runner.run("test.counting")

        started = next(r for r in captured_logs() if r["message"] == "job_run_started")
        assert started["run_id"] == str(result.run_id)
        assert started["task_type"] == "test.counting"
