"""
Module: fulfillment_kernel.domain.statuses
Responsibility: Status enums for orders, items, assignments, officers and
    payments, plus the status sets and the order transition table.  Every
    service write that changes an order status is checked with
    can_transition().
Architecture position: Kernel > Domain.  Pure values, zero I/O.

Invariants enforced:
    - Order status only moves forward along
      DRAFT -> CONFIRMED -> ASSIGNED -> IN_PROGRESS -> COMPLETED, with
      CANCELLED reachable from any non-terminal state.
    - An officer is assigned iff the assignment status is one of
      OFFICER_HOLDING_ASSIGNMENT_STATUSES.
"""

from enum import Enum


class OrderStatus(str, Enum):
    """
    Order lifecycle.

    State machine:
        DRAFT -> CONFIRMED          (payment recorded)
        CONFIRMED -> ASSIGNED       (officer accepted)
        CONFIRMED | ASSIGNED -> IN_PROGRESS   (an item left PENDING)
        IN_PROGRESS -> COMPLETED    (every item DELIVERED)
        CONFIRMED | ASSIGNED -> COMPLETED   (every item DELIVERED in one step)
        any non-terminal -> CANCELLED
    """

    DRAFT = "DRAFT"
    CONFIRMED = "CONFIRMED"
    ASSIGNED = "ASSIGNED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class AssignmentStatus(str, Enum):
    """
    Assignment protocol state.

    State machine:
        UNASSIGNED -> PENDING_ACCEPTANCE
        PENDING_ACCEPTANCE | REASSIGNED -> ACCEPTED | REJECTED
        REJECTED -> REASSIGNED      (auto-reassignment or admin)
        ACCEPTED -> REASSIGNED      (admin override)
    """

    UNASSIGNED = "UNASSIGNED"
    PENDING_ACCEPTANCE = "PENDING_ACCEPTANCE"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    REASSIGNED = "REASSIGNED"


class OrderItemStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    SOURCING = "SOURCING"
    READY = "READY"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    UNAVAILABLE = "UNAVAILABLE"
    CANCELLED = "CANCELLED"


class AvailabilityStatus(str, Enum):
    """Officer-declared availability for new work."""

    AVAILABLE = "AVAILABLE"
    UNAVAILABLE = "UNAVAILABLE"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class PaymentMethod(str, Enum):
    BANK_TRANSFER = "BANK_TRANSFER"
    CARD = "CARD"
    USSD = "USSD"


class AssignmentDecision(str, Enum):
    ACCEPT = "ACCEPT"
    REJECT = "REJECT"


# Statuses in which an officer may be assigned by an admin (payment required)
ASSIGNABLE_ORDER_STATUSES: frozenset[OrderStatus] = frozenset({
    OrderStatus.CONFIRMED,
    OrderStatus.ASSIGNED,
    OrderStatus.IN_PROGRESS,
})

# Assignment statuses awaiting an officer's response
PENDING_RESPONSE_STATUSES: frozenset[AssignmentStatus] = frozenset({
    AssignmentStatus.PENDING_ACCEPTANCE,
    AssignmentStatus.REASSIGNED,
})

# assigned_officer_id is non-null iff assignment_status is one of these
OFFICER_HOLDING_ASSIGNMENT_STATUSES: frozenset[AssignmentStatus] = frozenset({
    AssignmentStatus.PENDING_ACCEPTANCE,
    AssignmentStatus.ACCEPTED,
    AssignmentStatus.REASSIGNED,
})

# Definition of an officer's active workload
ACTIVE_WORKLOAD_ORDER_STATUSES: frozenset[OrderStatus] = frozenset({
    OrderStatus.ASSIGNED,
    OrderStatus.IN_PROGRESS,
})
ACTIVE_WORKLOAD_ASSIGNMENT_STATUSES: frozenset[AssignmentStatus] = frozenset({
    AssignmentStatus.PENDING_ACCEPTANCE,
    AssignmentStatus.ACCEPTED,
})

TERMINAL_ORDER_STATUSES: frozenset[OrderStatus] = frozenset({
    OrderStatus.COMPLETED,
    OrderStatus.CANCELLED,
})

# Allowed order status transitions (from -> set of valid targets)
VALID_ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.DRAFT: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({
        OrderStatus.ASSIGNED,
        OrderStatus.IN_PROGRESS,
        OrderStatus.COMPLETED,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.ASSIGNED: frozenset({
        OrderStatus.IN_PROGRESS, OrderStatus.COMPLETED, OrderStatus.CANCELLED,
    }),
    OrderStatus.IN_PROGRESS: frozenset({
        OrderStatus.COMPLETED, OrderStatus.CANCELLED,
    }),
    **{status: frozenset() for status in TERMINAL_ORDER_STATUSES},
}


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    """Whether the order may move from ``current`` to ``target``."""
    return target in VALID_ORDER_TRANSITIONS[current]


def classify_payment_method(raw: str | None) -> PaymentMethod:
    """Map a gateway payment method name onto the stored classification.

    Unknown or missing methods are recorded as bank transfers.
    """
    mapping = {
        "ACCOUNT_TRANSFER": PaymentMethod.BANK_TRANSFER,
        "CARD": PaymentMethod.CARD,
        "USSD": PaymentMethod.USSD,
    }
    if raw is None:
        return PaymentMethod.BANK_TRANSFER
    return mapping.get(raw.strip().upper(), PaymentMethod.BANK_TRANSFER)
