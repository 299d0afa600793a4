"""
fulfillment_services -- outer shell around the fulfillment kernel.

The FulfillmentEngine facade owns transactions and schedules background
follow-ups; the payment gateway port and webhook parsing adapt the
external payment provider.
"""

from fulfillment_services.engine import FulfillmentEngine
from fulfillment_services.payment_gateway import (
    FakePaymentGateway,
    Invoice,
    InvoiceRequest,
    InvoiceStatus,
    PaymentGateway,
    PaymentGatewayError,
)
from fulfillment_services.task_queue import (
    BackgroundTaskQueue,
    ImmediateTaskQueue,
    TaskQueue,
)
from fulfillment_services.webhook import (
    PaymentNotification,
    WebhookSignatureError,
    parse_webhook_payload,
    verify_webhook_signature,
)

__all__ = [
    "BackgroundTaskQueue",
    "FakePaymentGateway",
    "FulfillmentEngine",
    "ImmediateTaskQueue",
    "Invoice",
    "InvoiceRequest",
    "InvoiceStatus",
    "PaymentGateway",
    "PaymentGatewayError",
    "PaymentNotification",
    "TaskQueue",
    "WebhookSignatureError",
    "parse_webhook_payload",
    "verify_webhook_signature",
]
