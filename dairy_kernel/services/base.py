"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every kernel service.  Concrete services receive a SQLAlchemy
    ``Session`` and use ``session.flush()`` -- never ``session.commit()``.

Invariants enforced:
    Transaction boundaries belong to the caller.  The automation services in
    ``dairy_services`` commit once per customer/invoice/cow and roll back
    that unit alone on failure, so a kernel service that committed on its
    own would break that isolation.
"""

from abc import ABC

from sqlalchemy.orm import Session

from dairy_kernel.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """
    Abstract base class for all kernel services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.

    Non-goals:
        - Does NOT provide query-only (read) methods -- those belong in
          ``dairy_kernel/selectors/``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
