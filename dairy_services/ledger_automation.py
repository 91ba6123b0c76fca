"""
LedgerAutomationService -- backfills ledger debits for invoices.

Responsibility:
    Makes sure every invoice has exactly one ``invoice`` ledger entry
    (``reference_id = invoice.id``).  Used after imports, after invoices
    were generated with ledger posting switched off, and to repair runs
    that failed part-way.

Invariants enforced:
    - Idempotent: invoices that already have an entry are left alone.
    - Invoices are posted oldest first, one commit per invoice, so the
      running balance follows billing order.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dairy_config import DairyConfig
from dairy_kernel.domain.clock import Clock, SystemClock
from dairy_kernel.exceptions import DairyKernelError
from dairy_kernel.logging_config import LogContext, get_logger
from dairy_kernel.selectors.invoice_selector import InvoiceSelector
from dairy_kernel.selectors.ledger_selector import LedgerSelector
from dairy_kernel.services.ledger_service import LedgerService

logger = get_logger("services.ledger_automation")


@dataclass(frozen=True)
class LedgerSyncResult:
    created: int = 0
    errors: tuple[str, ...] = ()


@dataclass(frozen=True)
class LedgerSyncAllResult:
    customers: int = 0
    created: int = 0
    errors: tuple[str, ...] = ()


class LedgerAutomationService:
    """Invoice-to-ledger synchronisation."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: DairyConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or DairyConfig()
        self._invoices = InvoiceSelector(session)
        self._ledger_reads = LedgerSelector(session)
        self._ledger = LedgerService(session, self._clock, self._config.tzinfo)

    def sync_invoices_to_ledger(self, customer_id: UUID) -> LedgerSyncResult:
        """Post a debit for each of the customer's invoices that lacks one."""
        created = 0
        errors: list[str] = []

        with LogContext.bind(customer_id=str(customer_id)):
            try:
                invoices = self._invoices.for_customer(customer_id)
                posted = self._ledger_reads.invoice_reference_ids(customer_id)
            except SQLAlchemyError as exc:
                self._session.rollback()
                logger.exception("ledger_sync_load_failed")
                return LedgerSyncResult(errors=(f"Failed to load invoices: {exc}",))

            for invoice in invoices:
                if invoice.id in posted:
                    continue
                try:
                    self._ledger.log_invoice(
                        customer_id, invoice.id, invoice.invoice_number, invoice.final_amount,
                    )
                    self._session.commit()
                    created += 1
                except (SQLAlchemyError, DairyKernelError) as exc:
                    self._session.rollback()
                    logger.exception(
                        "ledger_sync_invoice_failed",
                        extra={"invoice_number": invoice.invoice_number},
                    )
                    errors.append(f"Invoice {invoice.invoice_number}: {exc}")

        if created or errors:
            logger.info(
                "ledger_sync_completed",
                extra={"customer_id": str(customer_id), "created": created, "error_count": len(errors)},
            )
        return LedgerSyncResult(created=created, errors=tuple(errors))

    def sync_all_customers(self) -> LedgerSyncAllResult:
        """Run ``sync_invoices_to_ledger`` for every customer with invoices."""
        try:
            customer_ids = self._invoices.customer_ids_with_invoices()
        except SQLAlchemyError as exc:
            self._session.rollback()
            logger.exception("ledger_sync_all_load_failed")
            return LedgerSyncAllResult(errors=(f"Failed to load customers: {exc}",))

        created = 0
        errors: list[str] = []
        for customer_id in customer_ids:
            result = self.sync_invoices_to_ledger(customer_id)
            created += result.created
            errors.extend(result.errors)

        return LedgerSyncAllResult(customers=len(customer_ids), created=created, errors=tuple(errors))
