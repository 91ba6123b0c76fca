"""
Module: dairy_kernel.selectors.base
Responsibility: Abstract base for all read-only query selectors.
Architecture position: Kernel > Selectors.  May import from db/ and models/.
    MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only: selectors MUST NOT call session.add(), delete(), commit()
      or flush().
    - DTO return convention: selectors return frozen dataclasses, not ORM
      instances.  The automation services commit and roll back per item,
      and DTOs stay valid across those boundaries where ORM rows would be
      expired or detached.
    - The caller owns the session.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Non-goals:
        - Defines no queries; subclasses implement domain-specific reads.
    """

    def __init__(self, session: Session):
        self.session = session
