"""
FinancialIntegrityService -- read-only consistency checks.

Runs three checks and reports each as pass/fail with the offending records:

    ledger_balance_sync      independent sum of debits minus credits equals
                             the latest running balance, and every running
                             balance follows from the one before it
    orphaned_invoices        every invoice has an ``invoice`` ledger entry
    orphaned_ledger_entries  every ``invoice`` ledger entry names an
                             existing invoice

Never writes.  Repairs are the job of LedgerAutomationService.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from sqlalchemy.orm import Session

from dairy_kernel.db.types import round_money, to_decimal
from dairy_kernel.domain.ledger import verify_chain
from dairy_kernel.logging_config import get_logger
from dairy_kernel.selectors.invoice_selector import InvoiceSelector
from dairy_kernel.selectors.ledger_selector import LedgerSelector
from dairy_kernel.services.ledger_service import LedgerService

logger = get_logger("services.integrity")


class CheckStatus(str, Enum):
    PASS = "pass"
    FAIL = "fail"


@dataclass(frozen=True)
class IntegrityCheckResult:
    name: str
    status: CheckStatus
    detail: str
    mismatches: tuple[dict, ...] = ()

    @property
    def passed(self) -> bool:
        return self.status == CheckStatus.PASS


def _result(name: str, mismatches: list[dict], ok: str, failed: str) -> IntegrityCheckResult:
    if mismatches:
        return IntegrityCheckResult(name, CheckStatus.FAIL, failed.format(n=len(mismatches)), tuple(mismatches))
    return IntegrityCheckResult(name, CheckStatus.PASS, ok)


class FinancialIntegrityService:

    def __init__(self, session: Session):
        self._session = session
        self._ledger_reads = LedgerSelector(session)
        self._invoices = InvoiceSelector(session)
        self._ledger = LedgerService(session)

    def run_checks(self) -> tuple[IntegrityCheckResult, ...]:
        results = (
            self.check_ledger_balance_sync(),
            self.check_orphaned_invoices(),
            self.check_orphaned_ledger_entries(),
        )
        for result in results:
            log = logger.info if result.passed else logger.warning
            log(
                "integrity_check_completed",
                extra={
                    "check": result.name,
                    "status": result.status.value,
                    "mismatch_count": len(result.mismatches),
                },
            )
        return results

    def check_ledger_balance_sync(self) -> IntegrityCheckResult:
        mismatches: list[dict] = []
        for customer_id in self._ledger_reads.customer_ids_with_entries():
            summary = self._ledger.calculate_balance(customer_id)
            latest = self._ledger_reads.latest(customer_id)
            stored = round_money(to_decimal(latest.running_balance)) if latest else summary.balance
            breaks = verify_chain(self._ledger_reads.chain(customer_id))
            if stored != summary.balance or breaks:
                mismatches.append({
                    "customer_id": str(customer_id),
                    "calculated_balance": str(summary.balance),
                    "running_balance": str(stored),
                    "broken_positions": [b.chain_position for b in breaks],
                })
        return _result(
            "ledger_balance_sync",
            mismatches,
            "All customer ledger balances are in sync",
            "{n} customer(s) with ledger balance mismatches",
        )

    def check_orphaned_invoices(self) -> IntegrityCheckResult:
        posted = self._ledger_reads.invoice_reference_ids()
        mismatches = [
            {
                "invoice_id": str(inv.id),
                "invoice_number": inv.invoice_number,
                "customer_id": str(inv.customer_id),
                "final_amount": str(inv.final_amount),
            }
            for inv in self._invoices.all_invoices()
            if inv.id not in posted
        ]
        return _result(
            "orphaned_invoices",
            mismatches,
            "Every invoice has a ledger entry",
            "{n} invoice(s) without a ledger entry",
        )

    def check_orphaned_ledger_entries(self) -> IntegrityCheckResult:
        mismatches = [
            {
                "ledger_entry_id": str(e.id),
                "customer_id": str(e.customer_id),
                "reference_id": str(e.reference_id) if e.reference_id else None,
                "description": e.description,
            }
            for e in self._ledger_reads.orphaned_invoice_entries()
        ]
        return _result(
            "orphaned_ledger_entries",
            mismatches,
            "Every invoice ledger entry references an invoice",
            "{n} invoice ledger entries without an invoice",
        )
