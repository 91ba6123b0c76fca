"""
SequenceService -- monotonic sequence allocation via locked counter rows.

Responsibility:
    Hands out strictly increasing numbers per named sequence.  Invoice
    numbering uses one sequence per month prefix (``invoice:INV-202602``).

Architecture position:
    Kernel > Services -- imperative shell infrastructure.  Called by the
    invoice generator.

Invariants enforced:
    - The counting-then-writing pattern (count existing invoices, add one)
      is never used per call: the locked counter row is the sole source of
      the next value.  Two concurrent generators serialize on
      ``SELECT ... FOR UPDATE`` and cannot receive the same number.
    - Transactional: the increment becomes visible when the caller commits.
      Rollback returns the value.

Failure modes:
    - SequenceConflictError: two transactions created the same counter row
      at once.  The loser's transaction must be rolled back by its owner;
      re-running allocates from the winner's row.
"""

from typing import Callable

from sqlalchemy import BigInteger, String, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, Session, mapped_column

from dairy_kernel.db.base import Base
from dairy_kernel.exceptions import SequenceConflictError
from dairy_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row is a named sequence with its last allocated value.
    """

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    def __init__(self, session: Session):
        self._session = session

    def next_value(
        self,
        sequence_name: str,
        seed: Callable[[], int] | None = None,
    ) -> int:
        """
        Lock (or create) the counter row, increment it, return the new value.

        Args:
            sequence_name: Name of the sequence.
            seed: Called once, only when the counter does not exist yet, to
                find the last value already used outside the counter (for
                example, invoices numbered before counters existed).

        Returns:
            The next value (always > 0).

        Raises:
            SequenceConflictError: a concurrent transaction created the
                counter first.
        """
        counter = self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

        if counter is None:
            start = seed() if seed is not None else 0
            counter = SequenceCounter(name=sequence_name, current_value=start + 1)
            self._session.add(counter)
            try:
                self._session.flush()
            except IntegrityError as exc:
                logger.warning(
                    "sequence_counter_race",
                    extra={"sequence_name": sequence_name},
                )
                raise SequenceConflictError(sequence_name) from exc
            logger.debug(
                "sequence_counter_created",
                extra={"sequence_name": sequence_name, "value": counter.current_value},
            )
            return counter.current_value

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Current value of a sequence without incrementing (None if unused)."""
        return self._session.execute(
            select(SequenceCounter.current_value).where(
                SequenceCounter.name == sequence_name
            )
        ).scalar_one_or_none()
