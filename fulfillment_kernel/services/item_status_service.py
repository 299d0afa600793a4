"""
ItemStatusService -- item status updates and order status aggregation.

Responsibility:
    The only write path for order item statuses (apart from the payment
    transition PENDING -> PAID).  After item changes it recomputes the
    order status from the item statuses.

Architecture position:
    Kernel > Services.  Derivation rules live in
    domain.item_aggregation.derive_order_status(); this service loads,
    validates, writes and applies the derived status.

Invariants enforced:
    - Items cannot change while the order is DRAFT (unpaid).
    - status_updated_at / status_updated_by are stamped on every change.
    - Recomputation is idempotent: unchanged items never cause a second
      transition.
    - A bulk update recomputes the order status once, and only when every
      item in the batch succeeded.
    - The order status write is compare-and-set on the status that was
      read, so a concurrent accept or recompute cannot be overwritten.
    - A derived status the transition table does not allow is logged and
      not written.

Failure modes:
    - OrderNotFoundError, OrderItemNotFoundError.
    - InvalidItemStatusError for values outside OrderItemStatus.
    - OrderNotPaidError while the order is DRAFT.
    - NotAssignedOfficerError when an officer caller is not the assignee.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import update

from fulfillment_kernel.domain.dtos import ItemStatusChange
from fulfillment_kernel.domain.item_aggregation import derive_order_status
from fulfillment_kernel.domain.statuses import OrderItemStatus, OrderStatus, can_transition
from fulfillment_kernel.exceptions import (
    FulfillmentError,
    InvalidItemStatusError,
    NotAssignedOfficerError,
    OrderItemNotFoundError,
    OrderNotPaidError,
)
from fulfillment_kernel.logging_config import get_logger
from fulfillment_kernel.models.order import Order, OrderItem
from fulfillment_kernel.services.base import BaseService

logger = get_logger("services.item_status")

# Bounded re-reads when a concurrent writer changes the order status
_MAX_RECOMPUTE_ROUNDS = 3


@dataclass(frozen=True)
class RecomputeResult:
    order_number: str
    previous_status: OrderStatus
    status: OrderStatus

    @property
    def changed(self) -> bool:
        return self.previous_status != self.status


@dataclass(frozen=True)
class ItemUpdateResult:
    order_number: str
    item_id: str
    status: OrderItemStatus
    note: str | None
    updated_at: datetime
    updated_by: str
    order_status: OrderStatus
    order_status_changed: bool


@dataclass(frozen=True)
class ItemOutcome:
    item_id: str
    success: bool
    message: str
    status: OrderItemStatus | None = None


@dataclass(frozen=True)
class BulkUpdateResult:
    order_number: str
    total: int
    success_count: int
    failure_count: int
    results: tuple[ItemOutcome, ...]
    order_status: OrderStatus
    order_status_changed: bool

    @property
    def message(self) -> str:
        return (
            f"Bulk update completed: {self.success_count} successful, "
            f"{self.failure_count} failed"
        )


def parse_item_status(value) -> OrderItemStatus:
    """Coerce ``value`` to an OrderItemStatus.

    Raises:
        InvalidItemStatusError: If the value is not a known item status.
    """
    if isinstance(value, OrderItemStatus):
        return value
    try:
        return OrderItemStatus(str(value).strip().upper())
    except ValueError:
        raise InvalidItemStatusError(value) from None


class ItemStatusService(BaseService):
    """
    Item status updates with order status recomputation.

    Contract:
        ``update_item_status`` changes one item and recomputes the order.
        ``bulk_update_item_statuses`` attempts every item independently and
        reports per-item outcomes.

    Non-goals:
        - Role checks beyond "an officer caller must be the assignee"; the
          surrounding system decides who is an admin.
    """

    def update_item_status(
        self,
        order_number: str,
        item_id: str,
        new_status: OrderItemStatus | str,
        note: str | None = None,
        actor_id: str = "system",
        officer_id: str | None = None,
    ) -> ItemUpdateResult:
        """
        Change one item's status, then recompute the order status.

        Args:
            officer_id: Set when the caller is a procurement officer; the
                officer must be the one assigned to the order.
        """
        status = parse_item_status(new_status)
        order = self._get_order(order_number)
        self._check_mutable(order, officer_id)

        item = self._find_item(order, item_id)
        if item is None:
            raise OrderItemNotFoundError(order_number, str(item_id))

        actor = officer_id or actor_id
        self._apply(item, status, note, actor)
        self.session.flush()

        recompute = self.recompute_order_status(order_number)

        return ItemUpdateResult(
            order_number=order_number,
            item_id=str(item.id),
            status=item.status,
            note=item.processing_notes,
            updated_at=item.status_updated_at,
            updated_by=actor,
            order_status=recompute.status,
            order_status_changed=recompute.changed,
        )

    def bulk_update_item_statuses(
        self,
        order_number: str,
        changes: Sequence[ItemStatusChange],
        actor_id: str = "system",
        officer_id: str | None = None,
    ) -> BulkUpdateResult:
        """
        Apply several item changes, each independently.

        Order-level failures (order missing, unpaid, wrong officer) raise
        before any item is touched.  Item-level failures are recorded in the
        returned outcomes.
        """
        order = self._get_order(order_number)
        self._check_mutable(order, officer_id)
        actor = officer_id or actor_id

        outcomes: list[ItemOutcome] = []
        for change in changes:
            try:
                status = parse_item_status(change.status)
                item = self._find_item(order, change.item_id)
                if item is None:
                    raise OrderItemNotFoundError(order_number, str(change.item_id))
                self._apply(item, status, change.note, actor)
            except FulfillmentError as exc:
                outcomes.append(
                    ItemOutcome(item_id=str(change.item_id), success=False, message=str(exc))
                )
                continue
            outcomes.append(
                ItemOutcome(
                    item_id=str(item.id),
                    success=True,
                    message="Item status updated",
                    status=status,
                )
            )

        self.session.flush()

        failures = sum(1 for o in outcomes if not o.success)
        if changes and failures == 0:
            recompute = self.recompute_order_status(order_number)
            order_status, changed = recompute.status, recompute.changed
        else:
            order_status, changed = order.status, False
            if failures:
                logger.info(
                    "bulk_item_update_partial",
                    extra={
                        "order_number": order_number,
                        "failure_count": failures,
                        "total": len(changes),
                    },
                )

        return BulkUpdateResult(
            order_number=order_number,
            total=len(changes),
            success_count=len(outcomes) - failures,
            failure_count=failures,
            results=tuple(outcomes),
            order_status=order_status,
            order_status_changed=changed,
        )

    def recompute_order_status(self, order_number: str) -> RecomputeResult:
        """
        Apply the status implied by the order's items.

        Idempotent.  The write only succeeds if the status is still the one
        the derivation was based on; on a lost race the order is re-read
        and derived again.
        """
        order = self._get_order(order_number)
        original = order.status

        for _ in range(_MAX_RECOMPUTE_ROUNDS):
            current = order.status
            derived = derive_order_status(current, (i.status for i in order.items))
            if derived == current:
                return RecomputeResult(order_number, original, current)
            if not can_transition(current, derived):
                logger.warning(
                    "order_status_transition_refused",
                    extra={
                        "order_number": order_number,
                        "from_status": current.value,
                        "to_status": derived.value,
                    },
                )
                return RecomputeResult(order_number, original, current)

            result = self.session.execute(
                update(Order)
                .where(Order.id == order.id, Order.status == current)
                .values(status=derived)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                self.session.refresh(order)
                logger.info(
                    "order_status_recomputed",
                    extra={
                        "order_number": order_number,
                        "from_status": current.value,
                        "to_status": derived.value,
                    },
                )
                return RecomputeResult(order_number, original, derived)

            order = self._get_order(order_number)

        logger.warning(
            "order_status_recompute_contended",
            extra={"order_number": order_number, "status": order.status.value},
        )
        return RecomputeResult(order_number, original, order.status)

    # ------------------------------------------------------------------

    def _check_mutable(self, order: Order, officer_id: str | None) -> None:
        if order.status == OrderStatus.DRAFT:
            raise OrderNotPaidError(order.order_number, order.status.value)
        if officer_id is not None and order.assigned_officer_id != officer_id:
            raise NotAssignedOfficerError(order.order_number, officer_id)

    @staticmethod
    def _find_item(order: Order, item_id) -> OrderItem | None:
        try:
            wanted = item_id if isinstance(item_id, UUID) else UUID(str(item_id))
        except ValueError:
            return None
        for item in order.items:
            if item.id == wanted:
                return item
        return None

    def _apply(
        self,
        item: OrderItem,
        status: OrderItemStatus,
        note: str | None,
        actor: str,
    ) -> None:
        previous = item.status
        item.status = status
        if note is not None:
            item.processing_notes = note
        item.status_updated_at = self._clock.now()
        item.status_updated_by = actor
        item.updated_by_id = actor
        logger.info(
            "order_item_status_updated",
            extra={
                "item_id": str(item.id),
                "from_status": previous.value,
                "to_status": status.value,
                "actor_id": actor,
            },
        )
