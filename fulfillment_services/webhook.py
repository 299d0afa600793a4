"""
Payment gateway webhook ingestion.

Responsibility:
    Turns a raw gateway notification into a ``PaymentNotification`` and
    verifies its signature.  Only the fields the fulfillment engine needs
    are read; everything else in the body is ignored.

Accepted shapes:
    Flat:
        {"eventType": ..., "transactionReference": ..., "paymentReference": ...,
         "amountPaid": ..., "paidOn": ..., "paymentMethod": ..., "paymentStatus": ...}
    Envelope:
        {"eventType": "SUCCESSFUL_TRANSACTION", "eventData": {<flat fields>}}

Failure modes:
    - InvalidWebhookPayloadError for unparsable bodies and missing or
      ill-typed required fields.
    - WebhookSignatureError when a secret is configured and the signature
      does not match.
"""

from __future__ import annotations

import hashlib
import hmac
import json
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from fulfillment_kernel.db.types import utc
from fulfillment_kernel.exceptions import ForbiddenError, InvalidWebhookPayloadError

SUCCESSFUL_EVENT_TYPE = "SUCCESSFUL_TRANSACTION"
PAID_STATUS = "PAID"


class WebhookSignatureError(ForbiddenError):
    """Notification signature is missing or does not match."""

    code: str = "INVALID_WEBHOOK_SIGNATURE"

    def __init__(self) -> None:
        super().__init__("Payment webhook signature verification failed")


@dataclass(frozen=True)
class PaymentNotification:
    event_type: str | None
    transaction_reference: str
    payment_reference: str | None
    amount_paid: Decimal
    paid_on: datetime
    payment_method: str | None
    payment_status: str | None

    @property
    def order_reference(self) -> str:
        """Reference used to find the order: ours if present, else the gateway's."""
        return self.payment_reference or self.transaction_reference

    @property
    def is_successful(self) -> bool:
        if self.event_type is not None and self.event_type.upper() == SUCCESSFUL_EVENT_TYPE:
            return True
        return (self.payment_status or "").upper() == PAID_STATUS


def verify_webhook_signature(raw_body: bytes, signature: str | None, secret: str) -> bool:
    """HMAC-SHA512 of the raw body, hex encoded, compared in constant time."""
    if not signature or not secret:
        return False
    expected = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha512).hexdigest()
    return hmac.compare_digest(expected, signature.strip().lower())


def sign_webhook_body(raw_body: bytes, secret: str) -> str:
    """Signature the gateway would send for ``raw_body``."""
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha512).hexdigest()


def parse_webhook_payload(payload: Mapping[str, Any] | bytes | str) -> PaymentNotification:
    if isinstance(payload, (bytes, str)):
        try:
            payload = json.loads(payload)
        except (ValueError, UnicodeDecodeError) as exc:
            raise InvalidWebhookPayloadError(f"body is not JSON: {exc}") from exc
    if not isinstance(payload, Mapping):
        raise InvalidWebhookPayloadError("body must be a JSON object")

    event_type = _optional_str(payload, "eventType")
    data = payload.get("eventData", payload)
    if not isinstance(data, Mapping):
        raise InvalidWebhookPayloadError("eventData must be an object")

    return PaymentNotification(
        event_type=event_type,
        transaction_reference=_required_str(data, "transactionReference"),
        payment_reference=_optional_str(data, "paymentReference"),
        amount_paid=_parse_amount(data.get("amountPaid")),
        paid_on=_parse_timestamp(data.get("paidOn")),
        payment_method=_optional_str(data, "paymentMethod"),
        payment_status=_optional_str(data, "paymentStatus"),
    )


def _required_str(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise InvalidWebhookPayloadError(f"{key} is required")
    return value.strip()


def _optional_str(data: Mapping[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidWebhookPayloadError(f"{key} must be a string")
    return value.strip() or None


def _parse_amount(value: Any) -> Decimal:
    if value is None or isinstance(value, bool):
        raise InvalidWebhookPayloadError("amountPaid is required")
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise InvalidWebhookPayloadError(f"amountPaid is not a number: {value!r}") from None
    if not amount.is_finite() or amount < 0:
        raise InvalidWebhookPayloadError(f"amountPaid is invalid: {value!r}")
    return amount


def _parse_timestamp(value: Any) -> datetime:
    if not isinstance(value, str) or not value.strip():
        raise InvalidWebhookPayloadError("paidOn is required")
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError:
        raise InvalidWebhookPayloadError(f"paidOn is not a timestamp: {value!r}") from None
    return utc(parsed)
