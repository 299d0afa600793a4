"""
PaymentEventService -- idempotent ingestion of "payment confirmed" events.

Responsibility:
    Records a confirmed gateway payment against its order, confirms the
    order and marks its pending items paid, all inside the caller's
    transaction.  Duplicate deliveries of the same gateway transaction are
    recognised and short-circuited.

Architecture position:
    Kernel > Services.  Called by the FulfillmentEngine for webhook
    deliveries and for payment verification by polling.  Auto-assignment
    after the commit is the engine's job, not this service's.

Invariants enforced:
    - At most one PaymentRecord per gateway transaction id.  The existence
      check catches sequential re-deliveries; the UNIQUE constraint on
      transaction_id catches concurrent ones (surfaced as
      DuplicatePaymentError so the caller rolls back).
    - The order moves DRAFT -> CONFIRMED at most once (the transition table
      allows it only from DRAFT; the write is compare-and-set on the status
      that was read).  A later payment on an already confirmed order is
      recorded without another transition.
    - Only PENDING items become PAID; items already progressed are left
      alone.

Failure modes:
    - ORDER_NOT_FOUND result (not an exception) when the reference matches
      no order, so the gateway is not told to retry forever.
    - DuplicatePaymentError when a concurrent delivery inserted the same
      transaction id first.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError

from fulfillment_kernel.domain.statuses import (
    OrderItemStatus,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    can_transition,
    classify_payment_method,
)
from fulfillment_kernel.exceptions import DuplicatePaymentError
from fulfillment_kernel.logging_config import get_logger
from fulfillment_kernel.models.order import Order, OrderItem
from fulfillment_kernel.models.payment import PaymentRecord
from fulfillment_kernel.services.base import SYSTEM_ACTOR, BaseService

logger = get_logger("services.payment_event")


class PaymentEventStatus(str, Enum):
    PROCESSED = "processed"
    DUPLICATE = "duplicate"  # Idempotent success
    ORDER_NOT_FOUND = "order_not_found"
    IGNORED = "ignored"  # Notification is not a successful payment
    NOT_PAID = "not_paid"  # Polled invoice is not paid yet


@dataclass(frozen=True)
class PaymentEventResult:
    status: PaymentEventStatus
    order_reference: str
    transaction_id: str
    order_number: str | None = None
    order_confirmed: bool = False
    message: str | None = None

    @property
    def success(self) -> bool:
        """Whether the event was acknowledged, including duplicates."""
        return self.status in (
            PaymentEventStatus.PROCESSED,
            PaymentEventStatus.DUPLICATE,
            PaymentEventStatus.IGNORED,
        )

    @property
    def processed(self) -> bool:
        """Whether this delivery changed anything."""
        return self.status == PaymentEventStatus.PROCESSED


class PaymentEventService(BaseService):
    """
    Ingests confirmed payments.

    Contract:
        ``handle_payment_confirmed`` writes the payment, the order
        transition and the item transitions in the caller's transaction, so
        they commit or roll back together.

    Non-goals:
        - Does NOT verify webhook signatures or parse gateway payloads
          (fulfillment_services.webhook does).
        - Does NOT trigger assignment.
    """

    def find_order(self, order_reference: str) -> Order | None:
        """Resolve an order by order number or gateway invoice reference."""
        return self.session.execute(
            select(Order)
            .where(
                or_(
                    Order.order_number == order_reference,
                    Order.gateway_invoice_ref == order_reference,
                )
            )
            .execution_options(populate_existing=True)
        ).scalars().first()

    def find_payment(self, transaction_id: str) -> PaymentRecord | None:
        return self.session.execute(
            select(PaymentRecord).where(PaymentRecord.transaction_id == transaction_id)
        ).scalar_one_or_none()

    def handle_payment_confirmed(
        self,
        order_reference: str,
        transaction_id: str,
        amount: Decimal,
        paid_at: datetime,
        method: PaymentMethod | str | None = None,
        payment_reference: str | None = None,
    ) -> PaymentEventResult:
        order = self.find_order(order_reference)
        if order is None:
            logger.warning(
                "payment_order_not_found",
                extra={
                    "order_reference": order_reference,
                    "transaction_id": transaction_id,
                },
            )
            return PaymentEventResult(
                status=PaymentEventStatus.ORDER_NOT_FOUND,
                order_reference=order_reference,
                transaction_id=transaction_id,
                message="Order not found",
            )

        if self.find_payment(transaction_id) is not None:
            logger.info(
                "payment_duplicate",
                extra={
                    "order_number": order.order_number,
                    "transaction_id": transaction_id,
                },
            )
            return PaymentEventResult(
                status=PaymentEventStatus.DUPLICATE,
                order_reference=order_reference,
                transaction_id=transaction_id,
                order_number=order.order_number,
                message="Payment already processed",
            )

        if not isinstance(method, PaymentMethod):
            method = classify_payment_method(method)

        # A failed flush expires the order; read what the duplicate log needs first
        order_id = order.id
        order_number = order.order_number
        self.session.add(
            PaymentRecord(
                order_id=order_id,
                transaction_id=transaction_id,
                payment_reference=payment_reference,
                amount=amount,
                method=method,
                status=PaymentStatus.COMPLETED,
                paid_at=paid_at,
                created_by_id=SYSTEM_ACTOR,
            )
        )
        try:
            self.session.flush()
        except IntegrityError as exc:
            logger.info(
                "payment_duplicate_concurrent",
                extra={
                    "order_number": order_number,
                    "transaction_id": transaction_id,
                },
            )
            raise DuplicatePaymentError(transaction_id) from exc

        if amount != order.total_amount:
            logger.warning(
                "payment_amount_mismatch",
                extra={
                    "order_number": order.order_number,
                    "amount_paid": amount,
                    "order_total": order.total_amount,
                },
            )

        now = self._clock.now()
        confirmed = False
        if can_transition(order.status, OrderStatus.CONFIRMED):
            confirmed = self.session.execute(
                update(Order)
                .where(Order.id == order.id, Order.status == order.status)
                .values(status=OrderStatus.CONFIRMED, updated_by_id=SYSTEM_ACTOR)
                .execution_options(synchronize_session=False)
            ).rowcount == 1

        items_paid = self.session.execute(
            update(OrderItem)
            .where(
                OrderItem.order_id == order.id,
                OrderItem.status == OrderItemStatus.PENDING,
            )
            .values(
                status=OrderItemStatus.PAID,
                status_updated_at=now,
                status_updated_by=SYSTEM_ACTOR,
                updated_by_id=SYSTEM_ACTOR,
            )
            .execution_options(synchronize_session=False)
        ).rowcount
        self.session.refresh(order)

        logger.info(
            "payment_processed",
            extra={
                "order_number": order.order_number,
                "transaction_id": transaction_id,
                "amount": amount,
                "method": method.value,
                "order_confirmed": confirmed,
                "items_paid": items_paid,
            },
        )
        return PaymentEventResult(
            status=PaymentEventStatus.PROCESSED,
            order_reference=order_reference,
            transaction_id=transaction_id,
            order_number=order.order_number,
            order_confirmed=confirmed,
            message="Payment processed",
        )
