"""
OrderService -- order placement.

Responsibility:
    Persists a new DRAFT order with its items and the payment invoice
    issued for it.

Architecture position:
    Kernel > Services.  The FulfillmentEngine generates the order number and
    obtains the invoice from the payment gateway before calling in here.

Invariants enforced:
    - line_total = quantity x unit_price for every item; total_amount is
      the sum of line totals.
    - New orders are DRAFT / UNASSIGNED with every item PENDING.
    - Item position follows request order.

Failure modes:
    - ValueError for an order without items.
    - IntegrityError on a duplicate order number (caller retries).
"""

from collections.abc import Sequence
from datetime import datetime
from decimal import Decimal

from fulfillment_kernel.db.types import round_money
from fulfillment_kernel.domain.dtos import NewOrderItem, OrderView
from fulfillment_kernel.domain.statuses import (
    AssignmentStatus,
    OrderItemStatus,
    OrderStatus,
)
from fulfillment_kernel.logging_config import get_logger
from fulfillment_kernel.models.order import Order, OrderItem
from fulfillment_kernel.selectors.order_selector import to_order_view
from fulfillment_kernel.services.base import BaseService

logger = get_logger("services.order")


def order_total(items: Sequence[NewOrderItem]) -> Decimal:
    return round_money(sum((i.line_total for i in items), Decimal("0")))


class OrderService(BaseService):
    """Order placement."""

    def create_order(
        self,
        order_number: str,
        items: Sequence[NewOrderItem],
        actor_id: str,
        customer_name: str | None = None,
        customer_email: str | None = None,
        currency: str = "NGN",
        gateway_invoice_ref: str | None = None,
        checkout_url: str | None = None,
        payment_expires_at: datetime | None = None,
    ) -> OrderView:
        if not items:
            raise ValueError("an order needs at least one item")

        now = self._clock.now()
        order = Order(
            order_number=order_number,
            status=OrderStatus.DRAFT,
            assignment_status=AssignmentStatus.UNASSIGNED,
            reassignment_attempts=0,
            needs_manual_intervention=False,
            total_amount=order_total(items),
            currency=currency,
            customer_name=customer_name,
            customer_email=customer_email,
            gateway_invoice_ref=gateway_invoice_ref,
            checkout_url=checkout_url,
            payment_expires_at=payment_expires_at,
            created_by_id=actor_id,
        )
        for position, line in enumerate(items, start=1):
            order.items.append(
                OrderItem(
                    position=position,
                    product_name=line.product_name,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    line_total=round_money(line.line_total),
                    status=OrderItemStatus.PENDING,
                    status_updated_at=now,
                    status_updated_by=actor_id,
                    created_by_id=actor_id,
                )
            )
        self.session.add(order)
        self.session.flush()

        logger.info(
            "order_created",
            extra={
                "order_number": order_number,
                "total_amount": order.total_amount,
                "item_count": len(items),
                "gateway_invoice_ref": gateway_invoice_ref,
            },
        )
        return to_order_view(order)
