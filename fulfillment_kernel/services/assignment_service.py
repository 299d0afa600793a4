"""
AssignmentService -- the assign / auto-assign / respond protocol.

Responsibility:
    Moves an order's assignment through
        UNASSIGNED -> PENDING_ACCEPTANCE -> ACCEPTED | REJECTED
    and admin reassignment (-> REASSIGNED).  Auto-reassignment after a
    rejection lives in ReassignmentService.

Architecture position:
    Kernel > Services.  Officer choice is delegated to WorkloadSelector.

Invariants enforced:
    - assigned_officer_id and assignment_status are always written by the
      same UPDATE statement, so no reader ever sees an officer without a
      holding status or a holding status without an officer.
    - Every write is compare-and-set: the WHERE clause restates the state
      the decision was based on.  A zero rowcount means another actor won.
    - A response is only accepted from the currently assigned officer while
      the assignment is PENDING_ACCEPTANCE or REASSIGNED.
    - Order status never moves backwards: ACCEPT promotes CONFIRMED to
      ASSIGNED and leaves later statuses alone.
    - Admin assignment clears the manual-intervention flag and does not
      touch reassignment_attempts.

Failure modes:
    - OrderNotFoundError / OfficerNotFoundError.
    - OrderStateError: admin assignment of an unpaid or finished order.
    - OfficerInactiveError: target officer's account is disabled.
    - AssignmentAlreadyRespondedError: response on a settled assignment.
    - NotAssignedOfficerError: responder is not the assignee.
    - AssignmentConflictError: the order changed under the response.
    - InvalidDecisionError: decision is not ACCEPT or REJECT.
"""

from dataclasses import dataclass
from enum import Enum

from sqlalchemy import case, update

from fulfillment_kernel.domain.dtos import AssignmentView
from fulfillment_kernel.domain.statuses import (
    ASSIGNABLE_ORDER_STATUSES,
    PENDING_RESPONSE_STATUSES,
    AssignmentDecision,
    AssignmentStatus,
    OrderStatus,
    can_transition,
)
from fulfillment_kernel.exceptions import (
    AssignmentAlreadyRespondedError,
    AssignmentConflictError,
    InvalidDecisionError,
    NotAssignedOfficerError,
    OfficerInactiveError,
    OrderStateError,
)
from fulfillment_kernel.logging_config import get_logger
from fulfillment_kernel.models.order import Order
from fulfillment_kernel.selectors.order_selector import OrderSelector, to_assignment_view
from fulfillment_kernel.selectors.workload_selector import WorkloadSelector
from fulfillment_kernel.services.base import SYSTEM_ACTOR, BaseService

logger = get_logger("services.assignment")

ADMIN_REASSIGN_NOTE = "Reassigned by admin"
ADMIN_ASSIGN_NOTE = "Assigned by admin"
AUTO_ASSIGN_NOTE = "Auto-assigned to officer with lowest workload"


class AutoAssignStatus(str, Enum):
    ASSIGNED = "assigned"
    DISABLED = "disabled"
    SKIPPED = "skipped"  # Order not in an auto-assignable state
    NO_CAPACITY = "no_capacity"  # Expected backpressure, not an error
    CONFLICT = "conflict"  # Another actor assigned the order first


@dataclass(frozen=True)
class AutoAssignResult:
    order_number: str
    status: AutoAssignStatus
    officer_id: str | None = None
    reason: str | None = None

    @property
    def assigned(self) -> bool:
        return self.status == AutoAssignStatus.ASSIGNED


@dataclass(frozen=True)
class RespondResult:
    decision: AssignmentDecision
    officer_id: str
    assignment: AssignmentView

    @property
    def rejected(self) -> bool:
        return self.decision == AssignmentDecision.REJECT


def parse_decision(value) -> AssignmentDecision:
    if isinstance(value, AssignmentDecision):
        return value
    try:
        return AssignmentDecision(str(value).strip().upper())
    except ValueError:
        raise InvalidDecisionError(value) from None


def _values(*statuses: Enum) -> list[str]:
    return sorted(s.value for s in statuses)


# Order statuses that an ACCEPT promotes to ASSIGNED; later ones stay put
_PROMOTED_ON_ACCEPT = _values(
    *(s for s in OrderStatus if can_transition(s, OrderStatus.ASSIGNED))
)


class AssignmentService(BaseService):
    """
    Assignment protocol for one order at a time.

    Contract:
        Each public method performs at most one assignment UPDATE on one
        order row and flushes nothing else.  The caller commits.
    """

    def assign_order(
        self,
        order_number: str,
        officer_id: str,
        notes: str | None = None,
        admin_id: str = SYSTEM_ACTOR,
    ) -> AssignmentView:
        """
        Admin assignment or reassignment of an order to an officer.

        If the order already has an officer this is a reassignment
        (REASSIGNED); otherwise the offer is PENDING_ACCEPTANCE.  The
        branch is decided inside the UPDATE so that two concurrent admins
        both leave a consistent row (last writer wins).
        """
        order = self._get_order(order_number)
        if order.status not in ASSIGNABLE_ORDER_STATUSES:
            raise OrderStateError(order_number, order.status.value, "assign")

        officer = self._get_officer(officer_id)
        if not officer.is_active:
            raise OfficerInactiveError(officer_id)

        previous_officer = order.assigned_officer_id
        default_note = ADMIN_REASSIGN_NOTE if previous_officer else ADMIN_ASSIGN_NOTE

        result = self.session.execute(
            update(Order)
            .where(
                Order.id == order.id,
                Order.status.in_(sorted(ASSIGNABLE_ORDER_STATUSES, key=lambda s: s.value)),
            )
            .values(
                assignment_status=case(
                    (
                        Order.assigned_officer_id.is_(None),
                        AssignmentStatus.PENDING_ACCEPTANCE.value,
                    ),
                    else_=AssignmentStatus.REASSIGNED.value,
                ),
                assigned_officer_id=officer_id,
                assigned_at=self._clock.now(),
                assignment_responded_at=None,
                assignment_response_reason=None,
                assignment_notes=notes or default_note,
                needs_manual_intervention=False,
                manual_intervention_flagged_at=None,
                updated_by_id=admin_id,
            )
            .execution_options(synchronize_session=False)
        )
        self.session.refresh(order)
        if result.rowcount == 0:
            raise OrderStateError(order_number, order.status.value, "assign")

        logger.info(
            "order_assigned",
            extra={
                "order_number": order_number,
                "officer_id": officer_id,
                "previous_officer_id": previous_officer,
                "assignment_status": order.assignment_status.value,
                "admin_id": admin_id,
            },
        )
        return to_assignment_view(order)

    def auto_assign_order(
        self,
        order_number: str,
        enabled: bool = True,
    ) -> AutoAssignResult:
        """
        Offer a paid, unassigned order to the least-loaded officer.

        No-op (with a logged reason) when disabled, when the order is not
        CONFIRMED, unpaid, already assigned, or flagged for a human, and
        when no officer has capacity.  Increments reassignment_attempts in
        the same UPDATE that makes the offer.
        """
        if not enabled:
            logger.info("auto_assign_disabled", extra={"order_number": order_number})
            return AutoAssignResult(order_number, AutoAssignStatus.DISABLED)

        order = self._get_order(order_number)
        skip_reason = self._auto_assign_skip_reason(order)
        if skip_reason is not None:
            logger.info(
                "auto_assign_skipped",
                extra={"order_number": order_number, "reason": skip_reason},
            )
            return AutoAssignResult(
                order_number, AutoAssignStatus.SKIPPED, reason=skip_reason
            )

        choice = WorkloadSelector(self.session).select_officer()
        if choice is None:
            logger.warning("no_officer_capacity", extra={"order_number": order_number})
            return AutoAssignResult(
                order_number,
                AutoAssignStatus.NO_CAPACITY,
                reason="no available officer with capacity",
            )

        result = self.session.execute(
            update(Order)
            .where(
                Order.id == order.id,
                Order.status == OrderStatus.CONFIRMED,
                Order.assigned_officer_id.is_(None),
                Order.needs_manual_intervention.is_(False),
            )
            .values(
                assigned_officer_id=choice.officer_id,
                assignment_status=AssignmentStatus.PENDING_ACCEPTANCE,
                assigned_at=self._clock.now(),
                assignment_responded_at=None,
                assignment_response_reason=None,
                assignment_notes=AUTO_ASSIGN_NOTE,
                reassignment_attempts=Order.reassignment_attempts + 1,
                updated_by_id=SYSTEM_ACTOR,
            )
            .execution_options(synchronize_session=False)
        )
        self.session.refresh(order)
        if result.rowcount == 0:
            logger.info(
                "auto_assign_conflict",
                extra={
                    "order_number": order_number,
                    "assignment_status": order.assignment_status.value,
                },
            )
            return AutoAssignResult(
                order_number,
                AutoAssignStatus.CONFLICT,
                reason="order changed before the offer was written",
            )

        logger.info(
            "order_auto_assigned",
            extra={
                "order_number": order_number,
                "officer_id": choice.officer_id,
                "active_orders_count": choice.active_orders_count,
                "reassignment_attempts": order.reassignment_attempts,
            },
        )
        return AutoAssignResult(
            order_number, AutoAssignStatus.ASSIGNED, officer_id=choice.officer_id
        )

    def respond_to_assignment(
        self,
        order_number: str,
        officer_id: str,
        decision: AssignmentDecision | str,
        reason: str | None = None,
    ) -> RespondResult:
        """
        Record the assigned officer's ACCEPT or REJECT.

        The state checks are repeated inside the UPDATE so that an admin
        reassignment racing with this call makes it fail with
        AssignmentConflictError instead of overwriting the new officer.
        Scheduling the auto-reassignment after a REJECT is the caller's job.
        """
        choice = parse_decision(decision)
        order = self._get_order(order_number)

        if order.assignment_status not in PENDING_RESPONSE_STATUSES:
            raise AssignmentAlreadyRespondedError(
                order_number, order.assignment_status.value
            )
        if order.assigned_officer_id != officer_id:
            raise NotAssignedOfficerError(order_number, officer_id)

        now = self._clock.now()
        stmt = update(Order).where(
            Order.id == order.id,
            Order.assigned_officer_id == officer_id,
            Order.assignment_status.in_(_values(*PENDING_RESPONSE_STATUSES)),
        )
        if choice == AssignmentDecision.ACCEPT:
            stmt = stmt.values(
                assignment_status=AssignmentStatus.ACCEPTED,
                assignment_responded_at=now,
                assignment_response_reason=reason,
                status=case(
                    (Order.status.in_(_PROMOTED_ON_ACCEPT), OrderStatus.ASSIGNED.value),
                    else_=Order.status,
                ),
                updated_by_id=officer_id,
            )
        else:
            stmt = stmt.values(
                assignment_status=AssignmentStatus.REJECTED,
                assigned_officer_id=None,
                assignment_responded_at=now,
                assignment_response_reason=reason,
                updated_by_id=officer_id,
            )

        result = self.session.execute(
            stmt.execution_options(synchronize_session=False)
        )
        self.session.refresh(order)
        if result.rowcount == 0:
            raise AssignmentConflictError(
                order_number, "respond", order.assignment_status.value
            )

        logger.info(
            "assignment_responded",
            extra={
                "order_number": order_number,
                "officer_id": officer_id,
                "decision": choice.value,
                "order_status": order.status.value,
            },
        )
        return RespondResult(
            decision=choice,
            officer_id=officer_id,
            assignment=to_assignment_view(order),
        )

    def get_assignment_status(
        self,
        order_number: str,
        officer_id: str | None = None,
    ) -> AssignmentView:
        """
        Current assignment of an order.

        Admins pass no ``officer_id``.  An officer caller may only see an
        order currently assigned to them.
        """
        order = self._get_order(order_number)
        if officer_id is not None and order.assigned_officer_id != officer_id:
            raise NotAssignedOfficerError(order_number, officer_id)
        return to_assignment_view(order)

    # ------------------------------------------------------------------

    def _auto_assign_skip_reason(self, order: Order) -> str | None:
        if order.status != OrderStatus.CONFIRMED:
            return f"order status is {order.status.value}"
        if order.assigned_officer_id is not None:
            return "order already has an officer"
        if order.needs_manual_intervention:
            return "order is flagged for manual intervention"
        if not OrderSelector(self.session).has_completed_payment(order.id):
            return "no completed payment"
        return None
