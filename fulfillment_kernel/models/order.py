"""
Module: fulfillment_kernel.models.order
Responsibility: ORM persistence for the order aggregate: the order header
    with its lifecycle and assignment state, and its line items.
Architecture position: Kernel > Models.  May import from db/ and
    domain/statuses only.

Invariants enforced:
    - order_number is unique and never changes after creation
      (uq_order_number).
    - gateway_invoice_ref is unique when present (uq_order_invoice_ref).
    - Items never outlive their order (cascade delete-orphan).
    - assigned_officer_id is non-null iff assignment_status is
      PENDING_ACCEPTANCE, ACCEPTED or REASSIGNED.  The ORM does not check
      this; AssignmentService and ReassignmentService write both columns in
      the same UPDATE statement.

Failure modes:
    - IntegrityError on duplicate order_number or gateway_invoice_ref.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fulfillment_kernel.db.base import TrackedBase, UUIDString
from fulfillment_kernel.db.types import StrEnumType, UTCDateTime
from fulfillment_kernel.domain.statuses import (
    OFFICER_HOLDING_ASSIGNMENT_STATUSES,
    AssignmentStatus,
    OrderItemStatus,
    OrderStatus,
)


class Order(TrackedBase):
    """
    Customer order placed through the catalog.

    Guarantees:
        - status and assignment_status are always enum members.
        - reassignment_attempts counts automated officer offers; it is only
          ever incremented in the same statement that makes the offer.
        - needs_manual_intervention is set when automated offers are
          exhausted and cleared by an admin assignment.

    Non-goals:
        - Pricing and tax are computed upstream; total_amount is stored as
          given.
    """

    __tablename__ = "orders"

    __table_args__ = (
        UniqueConstraint("order_number", name="uq_order_number"),
        UniqueConstraint("gateway_invoice_ref", name="uq_order_invoice_ref"),
        Index("idx_order_status", "status"),
        Index("idx_order_assigned_officer", "assigned_officer_id"),
        Index("idx_order_manual_intervention", "needs_manual_intervention"),
    )

    order_number: Mapped[str] = mapped_column(String(30), nullable=False)

    status: Mapped[OrderStatus] = mapped_column(
        StrEnumType(OrderStatus),
        nullable=False,
        default=OrderStatus.DRAFT,
    )

    # Assignment protocol state
    assignment_status: Mapped[AssignmentStatus] = mapped_column(
        StrEnumType(AssignmentStatus),
        nullable=False,
        default=AssignmentStatus.UNASSIGNED,
    )

    assigned_officer_id: Mapped[str | None] = mapped_column(
        String(100),
        ForeignKey("officer_profiles.user_id"),
        nullable=True,
    )

    assigned_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    assignment_responded_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True
    )

    # Free text for humans, never parsed
    assignment_notes: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    assignment_response_reason: Mapped[str | None] = mapped_column(
        String(2000), nullable=True
    )

    reassignment_attempts: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    needs_manual_intervention: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    manual_intervention_flagged_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True
    )

    # Commercial details
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="NGN")

    customer_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    customer_email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Payment gateway invoice
    gateway_invoice_ref: Mapped[str | None] = mapped_column(String(100), nullable=True)

    checkout_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    payment_expires_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True
    )

    # Relationships
    items: Mapped[list["OrderItem"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.position",
        lazy="selectin",
    )

    payments: Mapped[list["PaymentRecord"]] = relationship(  # noqa: F821
        back_populates="order",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return (
            f"<Order {self.order_number} status={self.status.value} "
            f"assignment={self.assignment_status.value}>"
        )

    @property
    def assignment_is_consistent(self) -> bool:
        """Whether the officer reference agrees with the assignment status."""
        holds = self.assignment_status in OFFICER_HOLDING_ASSIGNMENT_STATUSES
        return holds == (self.assigned_officer_id is not None)


class OrderItem(TrackedBase):
    """
    One line of an order.

    Guarantees:
        - status_updated_at and status_updated_by are set on every status
          mutation (by ItemStatusService or PaymentEventService).
    """

    __tablename__ = "order_items"

    __table_args__ = (
        Index("idx_order_item_order", "order_id"),
    )

    order_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("orders.id"),
        nullable=False,
    )

    position: Mapped[int] = mapped_column(Integer, nullable=False)

    product_name: Mapped[str] = mapped_column(String(255), nullable=False)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    unit_price: Mapped[Decimal] = mapped_column(nullable=False)

    line_total: Mapped[Decimal] = mapped_column(nullable=False)

    status: Mapped[OrderItemStatus] = mapped_column(
        StrEnumType(OrderItemStatus),
        nullable=False,
        default=OrderItemStatus.PENDING,
    )

    status_updated_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True
    )

    status_updated_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

    processing_notes: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    order: Mapped["Order"] = relationship(back_populates="items")

    def __repr__(self) -> str:
        return f"<OrderItem {self.id} order={self.order_id} status={self.status.value}>"
