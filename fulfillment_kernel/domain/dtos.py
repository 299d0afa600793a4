"""
Module: fulfillment_kernel.domain.dtos
Responsibility: Immutable value objects passed between selectors, services
    and the engine facade.  None of them hold ORM references, so they stay
    valid after the session that produced them is closed.
Architecture position: Kernel > Domain.  Zero I/O.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from fulfillment_kernel.domain.statuses import (
    AssignmentStatus,
    AvailabilityStatus,
    OrderItemStatus,
    OrderStatus,
)


@dataclass(frozen=True)
class OfficerWorkload:
    """
    Point-in-time workload of one procurement officer.

    active_orders_count counts orders held by the officer with status
    ASSIGNED or IN_PROGRESS and assignment PENDING_ACCEPTANCE or ACCEPTED.
    pending_orders_count counts offers awaiting the officer's response.
    """

    officer_id: str
    display_name: str | None
    is_active: bool
    availability_status: AvailabilityStatus
    max_active_orders: int
    active_orders_count: int = 0
    pending_orders_count: int = 0

    @property
    def has_capacity(self) -> bool:
        return self.active_orders_count < self.max_active_orders


@dataclass(frozen=True)
class OfficerAvailability:
    officer_id: str
    availability_status: AvailabilityStatus
    max_active_orders: int
    is_active: bool
    updated_at: datetime | None = None


@dataclass(frozen=True)
class AssignmentView:
    """Current assignment state of an order."""

    order_number: str
    order_status: OrderStatus
    assignment_status: AssignmentStatus
    assigned_officer_id: str | None
    assigned_at: datetime | None
    responded_at: datetime | None
    notes: str | None
    response_reason: str | None
    reassignment_attempts: int
    needs_manual_intervention: bool


@dataclass(frozen=True)
class ManualInterventionEntry:
    order_number: str
    order_status: OrderStatus
    assignment_status: AssignmentStatus
    reassignment_attempts: int
    flagged_at: datetime | None
    last_response_reason: str | None
    total_amount: Decimal


@dataclass(frozen=True)
class ItemView:
    item_id: str
    position: int
    product_name: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal
    status: OrderItemStatus
    status_updated_at: datetime | None
    status_updated_by: str | None
    note: str | None


@dataclass(frozen=True)
class OrderView:
    order_number: str
    status: OrderStatus
    assignment_status: AssignmentStatus
    assigned_officer_id: str | None
    total_amount: Decimal
    currency: str
    customer_name: str | None
    customer_email: str | None
    checkout_url: str | None
    payment_expires_at: datetime | None
    gateway_invoice_ref: str | None
    reassignment_attempts: int
    needs_manual_intervention: bool
    items: tuple[ItemView, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class NewOrderItem:
    """Line requested at order placement."""

    product_name: str
    quantity: int
    unit_price: Decimal

    def __post_init__(self) -> None:
        if self.quantity < 1:
            raise ValueError("quantity must be >= 1")
        if self.unit_price < 0:
            raise ValueError("unit_price must be >= 0")

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class ItemStatusChange:
    """One entry of a bulk item status update."""

    item_id: str
    status: str
    note: str | None = None
