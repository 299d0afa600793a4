"""
Typed Exception Hierarchy for the Fulfillment Kernel.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from FulfillmentError:

    FulfillmentError (base)
    |
    +-- NotFoundError                        (http 404)
    |   +-- OrderNotFoundError
    |   +-- OrderItemNotFoundError
    |   +-- OfficerNotFoundError
    |
    +-- ForbiddenError                       (http 403)
    |   +-- NotAssignedOfficerError
    |
    +-- InvalidStateError                    (http 400)
    |   +-- OrderNotPaidError
    |   +-- OrderStateError
    |   +-- AssignmentAlreadyRespondedError
    |   +-- AssignmentConflictError
    |   +-- OfficerInactiveError
    |
    +-- FulfillmentValidationError           (http 400)
    |   +-- InvalidItemStatusError
    |   +-- InvalidDecisionError
    |   +-- InvalidCapacityError
    |   +-- InvalidAvailabilityStatusError
    |   +-- InvalidWebhookPayloadError
    |
    +-- DuplicatePaymentError                (internal, never surfaced)

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                           | When Raised
-------------|--------------------------------|---------------------------------
NotFound     | ORDER_NOT_FOUND                | Order number does not exist
             | ORDER_ITEM_NOT_FOUND           | Item missing or not on the order
             | OFFICER_NOT_FOUND              | No officer profile for user
-------------|--------------------------------|---------------------------------
Forbidden    | NOT_ASSIGNED_OFFICER           | Caller is not the assignee
-------------|--------------------------------|---------------------------------
InvalidState | ORDER_NOT_PAID                 | Item update before payment
             | ORDER_STATE_INVALID            | Admin assign on DRAFT/terminal
             | ASSIGNMENT_ALREADY_RESPONDED   | Respond on a settled assignment
             | ASSIGNMENT_CONFLICT            | Lost a compare-and-set race
             | OFFICER_INACTIVE               | Target officer account disabled
-------------|--------------------------------|---------------------------------
Validation   | INVALID_ITEM_STATUS            | Unknown item status value
             | INVALID_DECISION               | Decision not ACCEPT/REJECT
             | INVALID_CAPACITY               | max_active_orders < 1
             | INVALID_AVAILABILITY_STATUS    | Unknown availability value
             | INVALID_WEBHOOK_PAYLOAD        | Malformed gateway notification

Each category carries an ``http_status`` class attribute so an outer layer
can map errors to responses without inspecting message text.
===============================================================================
"""

from typing import Any


class FulfillmentError(Exception):
    """
    Base exception for all fulfillment kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "FULFILLMENT_ERROR"
    http_status: int = 500


# Not found


class NotFoundError(FulfillmentError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"
    http_status: int = 404


class OrderNotFoundError(NotFoundError):
    """Order with the given number does not exist."""

    code: str = "ORDER_NOT_FOUND"

    def __init__(self, order_number: str):
        self.order_number = order_number
        super().__init__(f"Order not found: {order_number}")


class OrderItemNotFoundError(NotFoundError):
    """Item does not exist or does not belong to the order."""

    code: str = "ORDER_ITEM_NOT_FOUND"

    def __init__(self, order_number: str, item_id: str):
        self.order_number = order_number
        self.item_id = item_id
        super().__init__(
            f"Order item {item_id} not found on order {order_number}"
        )


class OfficerNotFoundError(NotFoundError):
    """No procurement officer profile exists for the user."""

    code: str = "OFFICER_NOT_FOUND"

    def __init__(self, officer_id: str):
        self.officer_id = officer_id
        super().__init__(f"Procurement officer not found: {officer_id}")


# Forbidden


class ForbiddenError(FulfillmentError):
    """Base exception for actions the caller may not perform."""

    code: str = "FORBIDDEN"
    http_status: int = 403


class NotAssignedOfficerError(ForbiddenError):
    """Caller is not the officer assigned to the order."""

    code: str = "NOT_ASSIGNED_OFFICER"

    def __init__(self, order_number: str, officer_id: str):
        self.order_number = order_number
        self.officer_id = officer_id
        super().__init__(
            f"Officer {officer_id} is not assigned to order {order_number}"
        )


# Invalid state


class InvalidStateError(FulfillmentError):
    """Base exception for operations illegal in the current state."""

    code: str = "INVALID_STATE"
    http_status: int = 400


class OrderNotPaidError(InvalidStateError):
    """Items cannot progress until the order is paid."""

    code: str = "ORDER_NOT_PAID"

    def __init__(self, order_number: str, current_status: str):
        self.order_number = order_number
        self.current_status = current_status
        super().__init__(
            f"Order {order_number} is not paid (status {current_status})"
        )


class OrderStateError(InvalidStateError):
    """Order is in a state that does not allow the operation."""

    code: str = "ORDER_STATE_INVALID"

    def __init__(self, order_number: str, current_status: str, operation: str):
        self.order_number = order_number
        self.current_status = current_status
        self.operation = operation
        super().__init__(
            f"Cannot {operation} order {order_number} in status {current_status}"
        )


class AssignmentAlreadyRespondedError(InvalidStateError):
    """The assignment has already been accepted or rejected."""

    code: str = "ASSIGNMENT_ALREADY_RESPONDED"

    def __init__(self, order_number: str, current_status: str):
        self.order_number = order_number
        self.current_status = current_status
        super().__init__(
            f"Assignment for order {order_number} already responded "
            f"(assignment status {current_status})"
        )


class AssignmentConflictError(InvalidStateError):
    """
    The assignment changed between read and write.

    Raised when a compare-and-set update affects zero rows because another
    actor changed the order first.
    """

    code: str = "ASSIGNMENT_CONFLICT"

    def __init__(
        self,
        order_number: str,
        operation: str,
        current_status: str | None = None,
    ):
        self.order_number = order_number
        self.operation = operation
        self.current_status = current_status
        super().__init__(
            f"Concurrent modification of order {order_number} during {operation}"
            + (f" (assignment status now {current_status})" if current_status else "")
        )


class OfficerInactiveError(InvalidStateError):
    """Officer account is disabled."""

    code: str = "OFFICER_INACTIVE"

    def __init__(self, officer_id: str):
        self.officer_id = officer_id
        super().__init__(f"Procurement officer account is inactive: {officer_id}")


# Validation


class FulfillmentValidationError(FulfillmentError):
    """Base exception for malformed input."""

    code: str = "VALIDATION_ERROR"
    http_status: int = 400


class InvalidItemStatusError(FulfillmentValidationError):
    code: str = "INVALID_ITEM_STATUS"

    def __init__(self, value: Any):
        self.value = value
        super().__init__(f"Invalid item status: {value!r}")


class InvalidDecisionError(FulfillmentValidationError):
    code: str = "INVALID_DECISION"

    def __init__(self, value: Any):
        self.value = value
        super().__init__(f"Invalid assignment decision: {value!r}")


class InvalidCapacityError(FulfillmentValidationError):
    code: str = "INVALID_CAPACITY"

    def __init__(self, value: Any):
        self.value = value
        super().__init__(f"max_active_orders must be an integer >= 1, got {value!r}")


class InvalidAvailabilityStatusError(FulfillmentValidationError):
    code: str = "INVALID_AVAILABILITY_STATUS"

    def __init__(self, value: Any):
        self.value = value
        super().__init__(f"Invalid availability status: {value!r}")


class InvalidWebhookPayloadError(FulfillmentValidationError):
    """Payment notification is missing required fields."""

    code: str = "INVALID_WEBHOOK_PAYLOAD"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid payment webhook payload: {reason}")


# Internal signals


class DuplicatePaymentError(FulfillmentError):
    """
    A payment with this transaction id was recorded concurrently.

    Raised inside the payment transaction when the unique constraint on
    transaction_id fires. The engine converts it into a processed=False
    result after rollback; it never reaches callers.
    """

    code: str = "DUPLICATE_PAYMENT"
    http_status: int = 200

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Payment already recorded: {transaction_id}")
