"""
Module: fulfillment_kernel.domain.item_aggregation
Responsibility: Derive the order-level status implied by the statuses of
    its items.  Pure function; the service layer applies the result.
Architecture position: Kernel > Domain.  Zero I/O.

Rules:
    1. CONFIRMED or ASSIGNED, and any item has progressed past the payment
       states (not PENDING, not PAID)        -> IN_PROGRESS
    2. IN_PROGRESS and every item DELIVERED  -> COMPLETED
    No other automatic transitions occur.

Invariants enforced:
    - The result is a fixed point: feeding the derived status back in with
      the same items yields the same status, so recomputation is idempotent.
    - Derived transitions never move an order backwards.
"""

from collections.abc import Iterable

from fulfillment_kernel.domain.statuses import OrderItemStatus, OrderStatus

_PRE_FULFILLMENT_ITEM_STATUSES = frozenset({
    OrderItemStatus.PENDING,
    OrderItemStatus.PAID,
})

_PROMOTABLE_ORDER_STATUSES = frozenset({
    OrderStatus.CONFIRMED,
    OrderStatus.ASSIGNED,
})


def derive_order_status(
    current: OrderStatus,
    item_statuses: Iterable[OrderItemStatus],
) -> OrderStatus:
    """
    Return the order status implied by ``item_statuses``.

    Returns ``current`` unchanged when no rule applies.  An order with no
    items never completes.
    """
    statuses = list(item_statuses)
    derived = current

    if derived in _PROMOTABLE_ORDER_STATUSES and any(
        s not in _PRE_FULFILLMENT_ITEM_STATUSES for s in statuses
    ):
        derived = OrderStatus.IN_PROGRESS

    if (
        derived == OrderStatus.IN_PROGRESS
        and statuses
        and all(s == OrderItemStatus.DELIVERED for s in statuses)
    ):
        derived = OrderStatus.COMPLETED

    return derived
