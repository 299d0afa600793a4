"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Common constructor and session-handling contract for every write-side
    service.  Services use ``session.flush()`` and conditional UPDATE
    statements; they never commit.

Architecture position:
    Kernel > Services.  The FulfillmentEngine facade owns the transaction
    around each call.

Invariants enforced:
    - Services never call ``session.commit()`` or ``session.rollback()``.
    - Order reads used for decisions always reload from the database
      (populate_existing) so a stale identity map never feeds a
      compare-and-set.
"""

from abc import ABC

from sqlalchemy import select
from sqlalchemy.orm import Session

from fulfillment_kernel.domain.clock import Clock, SystemClock
from fulfillment_kernel.exceptions import OfficerNotFoundError, OrderNotFoundError
from fulfillment_kernel.models.officer import OfficerProfile
from fulfillment_kernel.models.order import Order

SYSTEM_ACTOR = "system"


class BaseService(ABC):
    """
    Abstract base class for all kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and persists
        changes within the caller's transaction.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide dashboard reads; those live in selectors/.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self._clock = clock or SystemClock()

    def _find_order(self, order_number: str) -> Order | None:
        return self.session.execute(
            select(Order)
            .where(Order.order_number == order_number)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _get_order(self, order_number: str) -> Order:
        """Load an order by number.

        Raises:
            OrderNotFoundError: If no such order exists.
        """
        order = self._find_order(order_number)
        if order is None:
            raise OrderNotFoundError(order_number)
        return order

    def _get_officer(self, officer_id: str) -> OfficerProfile:
        """Load an officer profile by user id.

        Raises:
            OfficerNotFoundError: If the user has no officer profile.
        """
        officer = self.session.execute(
            select(OfficerProfile)
            .where(OfficerProfile.user_id == officer_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if officer is None:
            raise OfficerNotFoundError(officer_id)
        return officer
