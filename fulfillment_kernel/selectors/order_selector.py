"""
Module: fulfillment_kernel.selectors.order_selector
Responsibility: Read-only order queries: order and assignment views, payment
    presence, and the manual-intervention worklist.
Architecture position: Kernel > Selectors.
"""

from uuid import UUID

from sqlalchemy import exists, select

from fulfillment_kernel.domain.dtos import (
    AssignmentView,
    ItemView,
    ManualInterventionEntry,
    OrderView,
)
from fulfillment_kernel.domain.statuses import PaymentStatus
from fulfillment_kernel.models.order import Order
from fulfillment_kernel.models.payment import PaymentRecord
from fulfillment_kernel.selectors.base import BaseSelector


class OrderSelector(BaseSelector):
    """Read-only order queries returning frozen views."""

    def _load(self, order_number: str) -> Order | None:
        return self.session.execute(
            select(Order).where(Order.order_number == order_number)
        ).scalar_one_or_none()

    def get_order(self, order_number: str) -> OrderView | None:
        order = self._load(order_number)
        if order is None:
            return None
        return to_order_view(order)

    def has_completed_payment(self, order_id: UUID) -> bool:
        stmt = select(
            exists().where(
                PaymentRecord.order_id == order_id,
                PaymentRecord.status == PaymentStatus.COMPLETED,
            )
        )
        return bool(self.session.execute(stmt).scalar())

    def list_needing_manual_intervention(self) -> list[ManualInterventionEntry]:
        """Flagged orders, most recently flagged first."""
        orders = self.session.execute(
            select(Order)
            .where(Order.needs_manual_intervention.is_(True))
            .order_by(
                Order.manual_intervention_flagged_at.desc(),
                Order.order_number,
            )
        ).scalars()
        return [
            ManualInterventionEntry(
                order_number=o.order_number,
                order_status=o.status,
                assignment_status=o.assignment_status,
                reassignment_attempts=o.reassignment_attempts,
                flagged_at=o.manual_intervention_flagged_at,
                last_response_reason=o.assignment_response_reason,
                total_amount=o.total_amount,
            )
            for o in orders
        ]


def to_assignment_view(order: Order) -> AssignmentView:
    return AssignmentView(
        order_number=order.order_number,
        order_status=order.status,
        assignment_status=order.assignment_status,
        assigned_officer_id=order.assigned_officer_id,
        assigned_at=order.assigned_at,
        responded_at=order.assignment_responded_at,
        notes=order.assignment_notes,
        response_reason=order.assignment_response_reason,
        reassignment_attempts=order.reassignment_attempts,
        needs_manual_intervention=order.needs_manual_intervention,
    )


def to_order_view(order: Order) -> OrderView:
    return OrderView(
        order_number=order.order_number,
        status=order.status,
        assignment_status=order.assignment_status,
        assigned_officer_id=order.assigned_officer_id,
        total_amount=order.total_amount,
        currency=order.currency,
        customer_name=order.customer_name,
        customer_email=order.customer_email,
        checkout_url=order.checkout_url,
        payment_expires_at=order.payment_expires_at,
        gateway_invoice_ref=order.gateway_invoice_ref,
        reassignment_attempts=order.reassignment_attempts,
        needs_manual_intervention=order.needs_manual_intervention,
        items=tuple(
            ItemView(
                item_id=str(item.id),
                position=item.position,
                product_name=item.product_name,
                quantity=item.quantity,
                unit_price=item.unit_price,
                line_total=item.line_total,
                status=item.status,
                status_updated_at=item.status_updated_at,
                status_updated_by=item.status_updated_by,
                note=item.processing_notes,
            )
            for item in order.items
        ),
    )
