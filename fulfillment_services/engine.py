"""
fulfillment_services.engine -- FulfillmentEngine facade.

Responsibility:
    The public surface of the fulfillment system.  Owns exactly one
    transaction per operation, wires kernel services to the active
    settings, the payment gateway and the background task queue, and
    schedules the detached follow-ups (auto-assignment after payment,
    auto-reassignment after rejection) only after the triggering
    transaction has committed.

Architecture position:
    Services -- outermost layer.  Kernel services never commit and never
    read configuration; this module does both on their behalf.

Invariants enforced:
    - Every public operation runs inside ``session_scope()``: commit on
      success, rollback on any error.
    - Follow-up work is submitted after commit, so a failing or slow
      follow-up can never roll back or delay the acknowledgement.
    - A concurrent duplicate payment (unique constraint on the gateway
      transaction id) is reported as DUPLICATE, never as an error.

Failure modes:
    - Typed FulfillmentError subclasses from the kernel propagate unchanged.
    - PaymentGatewayError from invoice creation or payment verification.
    - WebhookSignatureError when a webhook secret is configured and the
      signature does not match.

Usage:
    engine = FulfillmentEngine(
        session_factory=get_session_factory(),
        settings=get_active_config(),
        gateway=gateway,
        task_queue=BackgroundTaskQueue(4),
    )
    engine.handle_webhook(raw_body, signature)
"""

from __future__ import annotations

import random
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime, timedelta
from decimal import Decimal
from functools import partial

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from fulfillment_config import FulfillmentSettings
from fulfillment_kernel.db.engine import (
    get_session_factory,
    init_engine_from_url,
    session_scope,
)
from fulfillment_kernel.domain.clock import Clock, SystemClock
from fulfillment_kernel.domain.dtos import (
    AssignmentView,
    ItemStatusChange,
    ManualInterventionEntry,
    NewOrderItem,
    OfficerAvailability,
    OfficerWorkload,
    OrderView,
)
from fulfillment_kernel.domain.statuses import (
    AssignmentDecision,
    AvailabilityStatus,
    OrderItemStatus,
)
from fulfillment_kernel.exceptions import (
    DuplicatePaymentError,
    OfficerNotFoundError,
    OrderNotFoundError,
)
from fulfillment_kernel.logging_config import LogContext, get_logger
from fulfillment_kernel.selectors.order_selector import OrderSelector
from fulfillment_kernel.selectors.workload_selector import WorkloadSelector
from fulfillment_kernel.services.assignment_service import (
    AssignmentService,
    AutoAssignResult,
    RespondResult,
)
from fulfillment_kernel.services.base import SYSTEM_ACTOR
from fulfillment_kernel.services.item_status_service import (
    BulkUpdateResult,
    ItemStatusService,
    ItemUpdateResult,
    RecomputeResult,
)
from fulfillment_kernel.services.officer_service import OfficerService
from fulfillment_kernel.services.order_service import OrderService, order_total
from fulfillment_kernel.services.payment_event_service import (
    PaymentEventResult,
    PaymentEventService,
    PaymentEventStatus,
)
from fulfillment_kernel.services.reassignment_service import (
    ReassignmentResult,
    ReassignmentService,
)
from fulfillment_kernel.utils.order_numbers import generate_order_number
from fulfillment_services.payment_gateway import InvoiceRequest, PaymentGateway
from fulfillment_services.task_queue import BackgroundTaskQueue, TaskQueue
from fulfillment_services.webhook import (
    WebhookSignatureError,
    parse_webhook_payload,
    verify_webhook_signature,
)

logger = get_logger("engine")

# Order number collisions are rare (3 random digits per millisecond)
MAX_ORDER_NUMBER_ATTEMPTS = 5


class FulfillmentEngine:
    """Facade over the fulfillment kernel.

    Contract:
        Each public method is one unit of work: it opens a session from
        ``session_factory``, runs kernel services, commits, and returns
        detached DTOs or result dataclasses.

    Non-goals:
        - Does NOT authenticate callers.  ``admin_id`` / ``officer_id``
          arguments are trusted identities from the surrounding system.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        settings: FulfillmentSettings,
        gateway: PaymentGateway,
        task_queue: TaskQueue | None = None,
        clock: Clock | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._session_factory = session_factory
        self.settings = settings
        self.gateway = gateway
        self.task_queue = task_queue or BackgroundTaskQueue(
            max_workers=settings.workers.background_workers
        )
        self._clock = clock or SystemClock()
        self._rng = rng

    @classmethod
    def from_settings(
        cls,
        settings: FulfillmentSettings,
        gateway: PaymentGateway,
        clock: Clock | None = None,
    ) -> FulfillmentEngine:
        """Build an engine with its own database engine and worker pool."""
        init_engine_from_url(settings.database_url)
        return cls(
            session_factory=get_session_factory(),
            settings=settings,
            gateway=gateway,
            task_queue=BackgroundTaskQueue(settings.workers.background_workers),
            clock=clock,
        )

    def close(self) -> bool:
        """Drain outstanding background work and stop the worker pool."""
        drained = self.task_queue.drain(timeout=self.settings.workers.drain_timeout_seconds)
        self.task_queue.shutdown(wait=drained)
        return drained

    @contextmanager
    def _unit_of_work(self, **context: str | None) -> Iterator[Session]:
        with LogContext.bind(**context), session_scope(self._session_factory) as session:
            yield session

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    def create_order(
        self,
        items: Sequence[NewOrderItem],
        actor_id: str,
        customer_name: str | None = None,
        customer_email: str | None = None,
        description: str | None = None,
    ) -> OrderView:
        """
        Place a DRAFT order and issue its payment invoice.

        The order number is regenerated when it collides with an existing
        one.  The invoice is requested before the order row is written, so
        a gateway failure leaves nothing behind.  A number taken between the
        availability check and the insert abandons that attempt's invoice,
        which is logged with the collision.
        """
        if not items:
            raise ValueError("an order needs at least one item")

        payments = self.settings.payments
        total = order_total(items)

        for attempt in range(1, MAX_ORDER_NUMBER_ATTEMPTS + 1):
            now = self._clock.now()
            order_number = generate_order_number(now, self._rng)
            with session_scope(self._session_factory) as session:
                taken = OrderSelector(session).get_order(order_number) is not None
            if taken:
                continue

            invoice = self.gateway.create_invoice(
                InvoiceRequest(
                    amount=total,
                    reference=order_number,
                    customer_name=customer_name,
                    customer_email=customer_email,
                    description=description or f"Payment for order {order_number}",
                    currency=payments.currency,
                    expires_at=now + timedelta(hours=payments.invoice_expiry_hours),
                )
            )
            try:
                with self._unit_of_work(actor_id=actor_id, order_number=order_number) as session:
                    return OrderService(session, self._clock).create_order(
                        order_number=order_number,
                        items=items,
                        actor_id=actor_id,
                        customer_name=customer_name,
                        customer_email=customer_email,
                        currency=payments.currency,
                        gateway_invoice_ref=invoice.transaction_reference,
                        checkout_url=invoice.checkout_url,
                        payment_expires_at=invoice.expires_at,
                    )
            except IntegrityError:
                # The gateway has no cancel call; the invoice lapses at expires_at
                logger.warning(
                    "order_number_collision",
                    extra={
                        "order_number": order_number,
                        "attempt": attempt,
                        "abandoned_invoice_ref": invoice.transaction_reference,
                    },
                )

        raise RuntimeError(
            f"could not allocate a unique order number after {MAX_ORDER_NUMBER_ATTEMPTS} attempts"
        )

    def get_order(self, order_number: str) -> OrderView:
        with self._unit_of_work(order_number=order_number) as session:
            view = OrderSelector(session).get_order(order_number)
        if view is None:
            raise OrderNotFoundError(order_number)
        return view

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    def handle_payment_confirmed(
        self,
        order_reference: str,
        transaction_id: str,
        amount: Decimal,
        paid_at: datetime,
        method: str | None = None,
        payment_reference: str | None = None,
    ) -> PaymentEventResult:
        """
        Record a confirmed payment, then schedule auto-assignment.

        Safe under at-least-once delivery: re-deliveries of the same
        transaction id, sequential or concurrent, return DUPLICATE.
        """
        try:
            with self._unit_of_work(order_number=order_reference) as session:
                result = PaymentEventService(session, self._clock).handle_payment_confirmed(
                    order_reference=order_reference,
                    transaction_id=transaction_id,
                    amount=amount,
                    paid_at=paid_at,
                    method=method,
                    payment_reference=payment_reference,
                )
        except DuplicatePaymentError:
            return PaymentEventResult(
                status=PaymentEventStatus.DUPLICATE,
                order_reference=order_reference,
                transaction_id=transaction_id,
                message="Payment already processed",
            )

        if result.processed and result.order_number is not None:
            self._schedule_auto_assign(result.order_number)
        return result

    def handle_webhook(self, raw_body: bytes, signature: str | None = None) -> PaymentEventResult:
        """
        Entry point for the gateway's payment notification.

        When a webhook secret is configured the signature must match the
        raw body.  Notifications that are not successful payments are
        acknowledged without changing anything.
        """
        secret = self.settings.payments.webhook_secret
        if secret and not verify_webhook_signature(raw_body, signature, secret):
            logger.warning("webhook_signature_rejected")
            raise WebhookSignatureError()
        return self.process_webhook_payload(raw_body)

    def process_webhook_payload(self, payload) -> PaymentEventResult:
        notification = parse_webhook_payload(payload)
        if not notification.is_successful:
            logger.info(
                "webhook_ignored",
                extra={
                    "event_type": notification.event_type,
                    "payment_status": notification.payment_status,
                    "transaction_id": notification.transaction_reference,
                },
            )
            return PaymentEventResult(
                status=PaymentEventStatus.IGNORED,
                order_reference=notification.order_reference,
                transaction_id=notification.transaction_reference,
                message="Not a successful payment notification",
            )

        return self.handle_payment_confirmed(
            order_reference=notification.order_reference,
            transaction_id=notification.transaction_reference,
            amount=notification.amount_paid,
            paid_at=notification.paid_on,
            method=notification.payment_method,
            payment_reference=notification.payment_reference,
        )

    def verify_payment(self, order_number: str) -> PaymentEventResult:
        """
        Poll the gateway for the order's invoice.

        A PAID invoice goes through the same idempotent path as a webhook.
        """
        order = self.get_order(order_number)
        status = self.gateway.get_invoice_status(order.gateway_invoice_ref or order_number)
        if not status.is_paid:
            return PaymentEventResult(
                status=PaymentEventStatus.NOT_PAID,
                order_reference=order_number,
                transaction_id=status.transaction_reference,
                order_number=order_number,
                message=f"Payment status: {status.payment_status}",
            )

        return self.handle_payment_confirmed(
            order_reference=order_number,
            transaction_id=status.transaction_reference,
            amount=order.total_amount if status.amount_paid is None else status.amount_paid,
            paid_at=status.paid_on or self._clock.now(),
            method=status.payment_method,
            payment_reference=status.payment_reference,
        )

    # ------------------------------------------------------------------
    # Assignment
    # ------------------------------------------------------------------

    def assign_order(
        self,
        order_number: str,
        officer_id: str,
        notes: str | None = None,
        admin_id: str = SYSTEM_ACTOR,
    ) -> AssignmentView:
        with self._unit_of_work(actor_id=admin_id, order_number=order_number) as session:
            return AssignmentService(session, self._clock).assign_order(
                order_number, officer_id, notes=notes, admin_id=admin_id
            )

    def auto_assign_order(self, order_number: str) -> AutoAssignResult:
        with self._unit_of_work(actor_id=SYSTEM_ACTOR, order_number=order_number) as session:
            return AssignmentService(session, self._clock).auto_assign_order(
                order_number,
                enabled=self.settings.assignment.auto_assign_enabled,
            )

    def respond_to_assignment(
        self,
        order_number: str,
        officer_id: str,
        decision: AssignmentDecision | str,
        reason: str | None = None,
    ) -> RespondResult:
        """Record the officer's decision; a REJECT schedules reassignment."""
        with self._unit_of_work(
            actor_id=officer_id, officer_id=officer_id, order_number=order_number
        ) as session:
            result = AssignmentService(session, self._clock).respond_to_assignment(
                order_number, officer_id, decision, reason=reason
            )

        if result.rejected:
            self.task_queue.submit(
                "reassign_after_rejection",
                partial(self.reassign_after_rejection, order_number, officer_id),
                order_number=order_number,
                officer_id=officer_id,
            )
        return result

    def reassign_after_rejection(self, order_number: str, rejected_by: str) -> ReassignmentResult:
        policy = self.settings.assignment
        with self._unit_of_work(actor_id=SYSTEM_ACTOR, order_number=order_number) as session:
            return ReassignmentService(
                session,
                self._clock,
                auto_assign_enabled=policy.auto_assign_enabled,
                auto_reassign_enabled=policy.auto_reassign_after_rejection,
                max_attempts=policy.max_reassign_attempts,
            ).reassign_after_rejection(order_number, rejected_by)

    def get_assignment_status(
        self,
        order_number: str,
        officer_id: str | None = None,
    ) -> AssignmentView:
        with self._unit_of_work(order_number=order_number, officer_id=officer_id) as session:
            return AssignmentService(session, self._clock).get_assignment_status(
                order_number, officer_id=officer_id
            )

    def list_orders_needing_manual_intervention(self) -> list[ManualInterventionEntry]:
        with self._unit_of_work() as session:
            return OrderSelector(session).list_needing_manual_intervention()

    def _schedule_auto_assign(self, order_number: str) -> None:
        self.task_queue.submit(
            "auto_assign_order",
            partial(self.auto_assign_order, order_number),
            order_number=order_number,
        )

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    def update_item_status(
        self,
        order_number: str,
        item_id: str,
        new_status: OrderItemStatus | str,
        note: str | None = None,
        actor_id: str = SYSTEM_ACTOR,
        officer_id: str | None = None,
    ) -> ItemUpdateResult:
        with self._unit_of_work(
            actor_id=officer_id or actor_id, officer_id=officer_id, order_number=order_number
        ) as session:
            return ItemStatusService(session, self._clock).update_item_status(
                order_number,
                item_id,
                new_status,
                note=note,
                actor_id=actor_id,
                officer_id=officer_id,
            )

    def bulk_update_item_statuses(
        self,
        order_number: str,
        changes: Sequence[ItemStatusChange],
        actor_id: str = SYSTEM_ACTOR,
        officer_id: str | None = None,
    ) -> BulkUpdateResult:
        with self._unit_of_work(
            actor_id=officer_id or actor_id, officer_id=officer_id, order_number=order_number
        ) as session:
            return ItemStatusService(session, self._clock).bulk_update_item_statuses(
                order_number, changes, actor_id=actor_id, officer_id=officer_id
            )

    def recompute_order_status(self, order_number: str) -> RecomputeResult:
        with self._unit_of_work(order_number=order_number) as session:
            return ItemStatusService(session, self._clock).recompute_order_status(order_number)

    # ------------------------------------------------------------------
    # Officers
    # ------------------------------------------------------------------

    def register_officer(
        self,
        user_id: str,
        display_name: str | None = None,
        max_active_orders: int | None = None,
        availability_status: AvailabilityStatus | str = AvailabilityStatus.AVAILABLE,
        is_active: bool = True,
        actor_id: str = SYSTEM_ACTOR,
    ) -> OfficerAvailability:
        if max_active_orders is None:
            max_active_orders = self.settings.assignment.default_max_active_orders
        with self._unit_of_work(actor_id=actor_id, officer_id=user_id) as session:
            return OfficerService(session, self._clock).register_officer(
                user_id,
                display_name=display_name,
                max_active_orders=max_active_orders,
                availability_status=availability_status,
                is_active=is_active,
                actor_id=actor_id,
            )

    def set_account_active(
        self,
        user_id: str,
        active: bool,
        actor_id: str = SYSTEM_ACTOR,
    ) -> OfficerAvailability:
        with self._unit_of_work(actor_id=actor_id, officer_id=user_id) as session:
            return OfficerService(session, self._clock).set_account_active(
                user_id, active, actor_id=actor_id
            )

    def update_officer_availability(
        self,
        officer_id: str,
        availability_status: AvailabilityStatus | str,
        max_active_orders: int | None = None,
    ) -> OfficerAvailability:
        with self._unit_of_work(actor_id=officer_id, officer_id=officer_id) as session:
            return OfficerService(session, self._clock).update_availability(
                officer_id, availability_status, max_active_orders=max_active_orders
            )

    def get_officer_availability(self, officer_id: str) -> OfficerAvailability:
        with self._unit_of_work(officer_id=officer_id) as session:
            availability = WorkloadSelector(session).get_availability(officer_id)
        if availability is None:
            raise OfficerNotFoundError(officer_id)
        return availability

    def list_officer_availability(self) -> list[OfficerAvailability]:
        with self._unit_of_work() as session:
            return WorkloadSelector(session).list_availability()

    def list_officer_workloads(self) -> list[OfficerWorkload]:
        with self._unit_of_work() as session:
            return WorkloadSelector(session).list_workloads()
