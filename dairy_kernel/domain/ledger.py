"""
Customer-ledger balance arithmetic (kernel domain).

Pure functions with deterministic behavior. No I/O.

A ledger entry moves the balance by ``debit - credit``.  Exactly one side
is positive; the other is zero (stored as NULL).  The running balance
after entry N equals the sum of all movements up to N, so
``summarize_entries`` over the whole ledger must agree with the last
entry's stored ``running_balance``; ``verify_chain`` checks every link.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Sequence

from dairy_kernel.db.types import ZERO, round_money, to_decimal
from dairy_kernel.exceptions import InvalidLedgerAmountError


@dataclass(frozen=True)
class LedgerMovement:
    """Validated debit/credit pair; one side is zero."""

    debit: Decimal
    credit: Decimal

    @property
    def delta(self) -> Decimal:
        return self.debit - self.credit

    @property
    def stored_debit(self) -> Decimal | None:
        return self.debit if self.debit > 0 else None

    @property
    def stored_credit(self) -> Decimal | None:
        return self.credit if self.credit > 0 else None


@dataclass(frozen=True)
class BalanceSummary:
    total_debit: Decimal
    total_credit: Decimal
    balance: Decimal


@dataclass(frozen=True)
class ChainLink:
    """The figures of one stored entry, in chain order."""

    chain_position: int
    debit: Decimal | None
    credit: Decimal | None
    running_balance: Decimal


@dataclass(frozen=True)
class ChainBreak:
    chain_position: int
    expected_balance: Decimal
    stored_balance: Decimal


def validate_movement(debit: object = ZERO, credit: object = ZERO) -> LedgerMovement:
    """Exactly one positive side; negatives and both/neither are rejected.

    Raises:
        InvalidLedgerAmountError
    """
    d = round_money(to_decimal(debit))
    c = round_money(to_decimal(credit))
    if d < 0 or c < 0 or (d > 0) == (c > 0):
        raise InvalidLedgerAmountError(d, c)
    return LedgerMovement(debit=d, credit=c)


def next_running_balance(current: Decimal, movement: LedgerMovement) -> Decimal:
    return round_money(to_decimal(current) + movement.delta)


def summarize_entries(
    entries: Iterable[tuple[Decimal | None, Decimal | None]],
) -> BalanceSummary:
    """Total debits, total credits and their difference over (debit, credit) pairs."""
    total_debit = ZERO
    total_credit = ZERO
    for debit, credit in entries:
        total_debit += to_decimal(debit)
        total_credit += to_decimal(credit)
    return BalanceSummary(
        total_debit=round_money(total_debit),
        total_credit=round_money(total_credit),
        balance=round_money(total_debit - total_credit),
    )


def verify_chain(links: Sequence[ChainLink]) -> tuple[ChainBreak, ...]:
    """Recompute each running balance from the previous one.

    ``links`` must be in chain order.  Returns every entry whose stored
    balance disagrees with the recomputed one (empty when intact).
    """
    breaks: list[ChainBreak] = []
    expected = ZERO
    for link in links:
        expected = round_money(expected + to_decimal(link.debit) - to_decimal(link.credit))
        stored = round_money(to_decimal(link.running_balance))
        if stored != expected:
            breaks.append(ChainBreak(link.chain_position, expected, stored))
            # Continue from what is stored so one bad row is reported once
            expected = stored
    return tuple(breaks)
