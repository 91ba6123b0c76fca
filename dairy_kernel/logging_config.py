"""
Structured JSON logging for the dairy kernel.

Every record under the ``dairy_kernel`` logger hierarchy is written as one
JSON line: a fixed envelope (ts, level, logger, message), the run-scoped
fields bound through ``LogContext``, then whatever the call site passed in
``extra``.  Call sites log snake_case event names::

    logger.info("delivery_scheduled", extra={"delivery_date": day})

Run-scoped fields (``run_id``, ``task_type``, ``customer_id``, ...) live in
ContextVars, so the scheduler thread and the CLI never see each other's
values.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from contextlib import contextmanager
from contextvars import ContextVar, Token
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any, Iterator
from uuid import UUID

_LOGGER_PREFIX = "dairy_kernel"

# ---------------------------------------------------------------------------
# Run-scoped context
# ---------------------------------------------------------------------------

CONTEXT_FIELDS = ("correlation_id", "run_id", "task_type", "customer_id", "actor_id")

_context_vars: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"dairy_log_{name}", default=None) for name in CONTEXT_FIELDS
}


class LogContext:
    """Fields stamped onto every record logged while they are bound."""

    @staticmethod
    def get_all() -> dict[str, str]:
        """Bound fields only; unset ones are omitted."""
        return {
            name: value
            for name, var in _context_vars.items()
            if (value := var.get()) is not None
        }

    @staticmethod
    def clear() -> None:
        for var in _context_vars.values():
            var.set(None)

    @staticmethod
    @contextmanager
    def bind(**fields: object) -> Iterator[type["LogContext"]]:
        """Bind fields for the duration of a ``with`` block.

        None values are skipped, so ``bind(customer_id=maybe_id)`` is safe.
        Nested binds restore the outer value on exit.

        Raises:
            TypeError: a field name that is not in CONTEXT_FIELDS.
        """
        unknown = set(fields) - set(CONTEXT_FIELDS)
        if unknown:
            raise TypeError(f"Unknown log context field(s): {sorted(unknown)}")

        tokens: list[tuple[ContextVar[str | None], Token]] = [
            (_context_vars[name], _context_vars[name].set(str(value)))
            for name, value in fields.items()
            if value is not None
        ]
        try:
            yield LogContext
        finally:
            for var, token in reversed(tokens):
                var.reset(token)


# ---------------------------------------------------------------------------
# Formatter
# ---------------------------------------------------------------------------

# Attributes every LogRecord has; anything else on a record came from extra=
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (UUID, Decimal)):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    return str(obj)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    """Type, message, ``code`` and public attributes of a DairyKernelError."""
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    for key, value in vars(exc).items():
        if not key.startswith("_") and key not in ("args", "code"):
            fields[f"exc_{key}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        payload.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and key not in payload
        )

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------

_configured = False
_lock = threading.Lock()


def get_logger(name: str) -> logging.Logger:
    """``get_logger("services.invoice_generator")`` -> ``dairy_kernel.services.invoice_generator``."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach one JSON handler to the ``dairy_kernel`` hierarchy.

    Idempotent: only the first call in a process has any effect, so the
    CLI, the engine initializer and the test suite can all call it.
    """
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    root = logging.getLogger(_LOGGER_PREFIX)
    root.setLevel(level)
    root.propagate = False

    target = handler or logging.StreamHandler(stream or sys.stderr)
    target.setFormatter(StructuredFormatter())
    root.addHandler(target)


def reset_logging() -> None:
    """Undo configure_logging. FOR TESTING ONLY."""
    global _configured
    with _lock:
        _configured = False
    root = logging.getLogger(_LOGGER_PREFIX)
    root.handlers.clear()
    root.setLevel(logging.WARNING)
