"""ORM models for the fulfillment kernel."""

from fulfillment_kernel.models.officer import DEFAULT_MAX_ACTIVE_ORDERS, OfficerProfile
from fulfillment_kernel.models.order import Order, OrderItem
from fulfillment_kernel.models.payment import PaymentRecord

__all__ = [
    "DEFAULT_MAX_ACTIVE_ORDERS",
    "OfficerProfile",
    "Order",
    "OrderItem",
    "PaymentRecord",
]
