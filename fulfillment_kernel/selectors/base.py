"""
Module: fulfillment_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    domain/ value types.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: selectors MUST NOT call session.add(), delete(),
      commit() or flush().
    - Selectors return frozen dataclasses, not ORM instances.
    - The caller owns the session and its transaction scope.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only
        queries, and return DTOs or computed results.
    """

    def __init__(self, session: Session):
        self.session = session
