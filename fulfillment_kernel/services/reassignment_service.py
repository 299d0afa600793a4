"""
ReassignmentService -- bounded automatic reassignment after a rejection.

Responsibility:
    Runs as a detached unit of work after an officer rejects an order.
    Re-verifies that the order still needs an officer, enforces the attempt
    ceiling, and offers the order to the next least-loaded officer,
    excluding the one who just rejected.

Architecture position:
    Kernel > Services.  Scheduled by the FulfillmentEngine through its
    background task queue; never called on the rejecting officer's path.

Invariants enforced:
    - Attempts are counted by the integer column reassignment_attempts,
      which is incremented by the same UPDATE that makes each offer.
    - When reassignment_attempts >= max_attempts the order is flagged for
      manual intervention and no further offer is made.
    - Stale triggers are silent no-ops: if the order is no longer REJECTED,
      already has an officer, is no longer CONFIRMED, or has no completed
      payment, another actor has resolved it.
    - The offer UPDATE restates all of the above in its WHERE clause.

Failure modes:
    - None raised for expected outcomes; each is a ReassignmentStatus.
      Database errors propagate to the task boundary, which logs them.
"""

from dataclasses import dataclass
from enum import Enum

from sqlalchemy import update
from sqlalchemy.orm import Session

from fulfillment_kernel.domain.clock import Clock
from fulfillment_kernel.domain.statuses import AssignmentStatus, OrderStatus
from fulfillment_kernel.logging_config import get_logger
from fulfillment_kernel.models.order import Order
from fulfillment_kernel.selectors.order_selector import OrderSelector
from fulfillment_kernel.selectors.workload_selector import WorkloadSelector
from fulfillment_kernel.services.base import SYSTEM_ACTOR, BaseService

logger = get_logger("services.reassignment")

AUTO_REASSIGN_NOTE = "Auto-reassigned after rejection"
MANUAL_INTERVENTION_NOTE = "Automatic reassignment limit reached; manual assignment required"


class ReassignmentStatus(str, Enum):
    REASSIGNED = "reassigned"
    DISABLED = "disabled"
    STALE = "stale"  # Order already resolved by another actor
    MANUAL_INTERVENTION = "manual_intervention"
    NO_CAPACITY = "no_capacity"
    CONFLICT = "conflict"


@dataclass(frozen=True)
class ReassignmentResult:
    order_number: str
    status: ReassignmentStatus
    officer_id: str | None = None
    attempts: int = 0
    reason: str | None = None


class ReassignmentService(BaseService):
    """
    Auto-reassignment loop step.

    Contract:
        ``reassign_after_rejection`` performs at most one state change on
        the order: either an offer to a new officer or the manual
        intervention flag.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        *,
        auto_assign_enabled: bool = True,
        auto_reassign_enabled: bool = True,
        max_attempts: int = 3,
    ):
        super().__init__(session, clock)
        self._auto_assign_enabled = auto_assign_enabled
        self._auto_reassign_enabled = auto_reassign_enabled
        self._max_attempts = max_attempts

    def reassign_after_rejection(
        self,
        order_number: str,
        rejected_by: str,
    ) -> ReassignmentResult:
        if not (self._auto_assign_enabled and self._auto_reassign_enabled):
            logger.info(
                "auto_reassign_disabled",
                extra={
                    "order_number": order_number,
                    "auto_assign_enabled": self._auto_assign_enabled,
                    "auto_reassign_enabled": self._auto_reassign_enabled,
                },
            )
            return ReassignmentResult(order_number, ReassignmentStatus.DISABLED)

        order = self._find_order(order_number)
        if order is None:
            return ReassignmentResult(
                order_number, ReassignmentStatus.STALE, reason="order not found"
            )

        stale_reason = self._stale_reason(order)
        if stale_reason is not None:
            logger.info(
                "auto_reassign_stale",
                extra={"order_number": order_number, "reason": stale_reason},
            )
            return ReassignmentResult(
                order_number,
                ReassignmentStatus.STALE,
                attempts=order.reassignment_attempts,
                reason=stale_reason,
            )

        attempts = order.reassignment_attempts
        if attempts >= self._max_attempts:
            return self._flag_manual_intervention(order)

        choice = WorkloadSelector(self.session).select_officer(
            exclude_officer_id=rejected_by
        )
        if choice is None:
            logger.warning(
                "no_officer_capacity",
                extra={
                    "order_number": order_number,
                    "excluded_officer_id": rejected_by,
                    "reassignment_attempts": attempts,
                },
            )
            return ReassignmentResult(
                order_number, ReassignmentStatus.NO_CAPACITY, attempts=attempts
            )

        result = self.session.execute(
            update(Order)
            .where(*self._still_rejected(order, attempts))
            .values(
                assigned_officer_id=choice.officer_id,
                assignment_status=AssignmentStatus.REASSIGNED,
                assigned_at=self._clock.now(),
                assignment_responded_at=None,
                assignment_notes=AUTO_REASSIGN_NOTE,
                reassignment_attempts=Order.reassignment_attempts + 1,
                updated_by_id=SYSTEM_ACTOR,
            )
            .execution_options(synchronize_session=False)
        )
        self.session.refresh(order)
        if result.rowcount == 0:
            logger.info("auto_reassign_conflict", extra={"order_number": order_number})
            return ReassignmentResult(
                order_number,
                ReassignmentStatus.CONFLICT,
                attempts=order.reassignment_attempts,
            )

        logger.info(
            "order_auto_reassigned",
            extra={
                "order_number": order_number,
                "officer_id": choice.officer_id,
                "excluded_officer_id": rejected_by,
                "reassignment_attempts": order.reassignment_attempts,
                "max_attempts": self._max_attempts,
            },
        )
        return ReassignmentResult(
            order_number,
            ReassignmentStatus.REASSIGNED,
            officer_id=choice.officer_id,
            attempts=order.reassignment_attempts,
        )

    # ------------------------------------------------------------------

    def _stale_reason(self, order: Order) -> str | None:
        if order.assignment_status != AssignmentStatus.REJECTED:
            return f"assignment status is {order.assignment_status.value}"
        if order.assigned_officer_id is not None:
            return "an officer was assigned manually"
        if order.status != OrderStatus.CONFIRMED:
            return f"order status is {order.status.value}"
        if order.needs_manual_intervention:
            return "already flagged for manual intervention"
        if not OrderSelector(self.session).has_completed_payment(order.id):
            return "no completed payment"
        return None

    @staticmethod
    def _still_rejected(order: Order, attempts: int) -> tuple:
        return (
            Order.id == order.id,
            Order.assignment_status == AssignmentStatus.REJECTED,
            Order.assigned_officer_id.is_(None),
            Order.status == OrderStatus.CONFIRMED,
            Order.needs_manual_intervention.is_(False),
            Order.reassignment_attempts == attempts,
        )

    def _flag_manual_intervention(self, order: Order) -> ReassignmentResult:
        attempts = order.reassignment_attempts
        result = self.session.execute(
            update(Order)
            .where(*self._still_rejected(order, attempts))
            .values(
                needs_manual_intervention=True,
                manual_intervention_flagged_at=self._clock.now(),
                assignment_notes=MANUAL_INTERVENTION_NOTE,
                updated_by_id=SYSTEM_ACTOR,
            )
            .execution_options(synchronize_session=False)
        )
        self.session.refresh(order)
        if result.rowcount == 0:
            return ReassignmentResult(
                order.order_number, ReassignmentStatus.CONFLICT, attempts=attempts
            )

        logger.warning(
            "manual_intervention_flagged",
            extra={
                "order_number": order.order_number,
                "reassignment_attempts": attempts,
                "max_attempts": self._max_attempts,
            },
        )
        return ReassignmentResult(
            order.order_number,
            ReassignmentStatus.MANUAL_INTERVENTION,
            attempts=attempts,
        )
