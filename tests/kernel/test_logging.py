"""
Tests for structured JSON logging: envelope, context binding, exceptions.
"""

import json
import logging
import sys
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from dairy_kernel.exceptions import LedgerConflictError
from dairy_kernel.logging_config import LogContext, StructuredFormatter, get_logger


def _format(record_kwargs: dict | None = None, exc_info=None, msg: str = "event") -> dict:
    record = logging.LogRecord(
        "dairy_kernel.test", logging.INFO, __file__, 1, msg, (), exc_info,
    )
    for key, val in (record_kwargs or {}).items():
        setattr(record, key, val)
    return json.loads(StructuredFormatter().format(record))


class TestStructuredFormatter:
    def test_envelope(self):
        payload = _format(msg="delivery_scheduled")
        assert payload["message"] == "delivery_scheduled"
        assert payload["level"] == "INFO"
        assert payload["logger"] == "dairy_kernel.test"
        assert "ts" in payload

    def test_extra_values_serialized(self):
        customer_id = uuid4()
        payload = _format({
            "customer_id": customer_id,
            "amount": Decimal("120.50"),
            "delivery_date": date(2024, 1, 15),
        })
        assert payload["customer_id"] == str(customer_id)
        assert payload["amount"] == "120.50"
        assert payload["delivery_date"] == "2024-01-15"

    def test_exception_fields(self):
        try:
            raise LedgerConflictError("cust-1", 4)
        except LedgerConflictError:
            payload = _format(exc_info=sys.exc_info())
        assert payload["exc_type"] == "LedgerConflictError"
        assert payload["exc_code"] == "LEDGER_CONFLICT"
        assert payload["exc_chain_position"] == 4
        assert payload["exc_customer_id"] == "cust-1"
        assert "traceback" in payload


class TestLogContext:
    def test_bind_adds_and_restores_fields(self):
        with LogContext.bind(run_id="run-1", task_type="integrity.check"):
            payload = _format()
            assert payload["run_id"] == "run-1"
            assert payload["task_type"] == "integrity.check"
        assert "run_id" not in _format()

    def test_bind_ignores_none(self):
        with LogContext.bind(run_id=None, customer_id="c-9"):
            assert LogContext.get_all() == {"customer_id": "c-9"}

    def test_nested_bind_restores_outer(self):
        with LogContext.bind(run_id="outer"):
            with LogContext.bind(run_id="inner"):
                assert LogContext.get_all()["run_id"] == "inner"
            assert LogContext.get_all()["run_id"] == "outer"

    def test_context_reaches_handler(self, captured_logs):
        with LogContext.bind(correlation_id="corr-7"):
            get_logger("test").info("context_bound", extra={"step": 1})
        record = next(r for r in captured_logs() if r["message"] == "context_bound")
        assert record["correlation_id"] == "corr-7"
        assert record["step"] == 1

    def test_unknown_field_rejected(self):
        with pytest.raises(TypeError, match="invoice_no"):
            with LogContext.bind(invoice_no="INV-1"):
                pass
