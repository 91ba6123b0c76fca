"""
Notifier -- fire-and-forget domain events.

Responsibility:
    Lets services announce business events (payment received, deliveries
    completed, ...) to whatever delivers push notifications, without the
    delivery channel being able to fail the business operation.

Invariants enforced:
    - ``emit_event`` never raises.  A notifier failure is logged as
      ``notification_failed`` and swallowed; the caller's transaction has
      already been committed by the time events are emitted.

Non-goals:
    - Notification wording, recipients and transport.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any

from dairy_kernel.logging_config import get_logger

logger = get_logger("services.notifier")


class EventType(str, Enum):
    PAYMENT_RECEIVED = "payment_received"
    LARGE_TRANSACTION = "large_transaction"
    DELIVERY_COMPLETED = "delivery_completed"
    HEALTH_ALERT = "health_alert"
    LOW_INVENTORY = "low_inventory"
    PRODUCTION_RECORDED = "production_recorded"
    PROCUREMENT_RECORDED = "procurement_recorded"


class Notifier(ABC):
    """Receives domain events.  Implementations may raise; callers use emit_event."""

    @abstractmethod
    def notify(self, event_type: EventType, payload: dict[str, Any]) -> None:
        ...


class LoggingNotifier(Notifier):
    """Default notifier: one structured log line per event."""

    def notify(self, event_type: EventType, payload: dict[str, Any]) -> None:
        logger.info(
            "domain_event",
            extra={"event_type": event_type.value, "payload": payload},
        )


def emit_event(
    notifier: Notifier | None,
    event_type: EventType,
    payload: dict[str, Any],
) -> bool:
    """Send one event; returns False (after logging) if the notifier failed."""
    if notifier is None:
        return False
    try:
        notifier.notify(event_type, payload)
    except Exception:
        logger.exception(
            "notification_failed",
            extra={"event_type": event_type.value},
        )
        return False
    return True
