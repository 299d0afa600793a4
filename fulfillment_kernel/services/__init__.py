"""Write-side services.  Services flush; callers commit."""

from fulfillment_kernel.services.assignment_service import (
    AssignmentService,
    AutoAssignResult,
    AutoAssignStatus,
    RespondResult,
)
from fulfillment_kernel.services.item_status_service import (
    BulkUpdateResult,
    ItemOutcome,
    ItemStatusService,
    ItemUpdateResult,
    RecomputeResult,
)
from fulfillment_kernel.services.officer_service import OfficerService
from fulfillment_kernel.services.order_service import OrderService
from fulfillment_kernel.services.payment_event_service import (
    PaymentEventResult,
    PaymentEventService,
    PaymentEventStatus,
)
from fulfillment_kernel.services.reassignment_service import (
    ReassignmentResult,
    ReassignmentService,
    ReassignmentStatus,
)

__all__ = [
    "AssignmentService",
    "AutoAssignResult",
    "AutoAssignStatus",
    "BulkUpdateResult",
    "ItemOutcome",
    "ItemStatusService",
    "ItemUpdateResult",
    "OfficerService",
    "OrderService",
    "PaymentEventResult",
    "PaymentEventService",
    "PaymentEventStatus",
    "ReassignmentResult",
    "ReassignmentService",
    "ReassignmentStatus",
    "RecomputeResult",
    "RespondResult",
]
