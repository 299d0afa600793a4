"""Webhook payload parsing and signature verification."""

import json
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from fulfillment_kernel.exceptions import InvalidWebhookPayloadError
from fulfillment_services.webhook import (
    parse_webhook_payload,
    sign_webhook_body,
    verify_webhook_signature,
)

FLAT = {
    "eventType": "SUCCESSFUL_TRANSACTION",
    "transactionReference": "MNFY|20240101|000123",
    "paymentReference": "JOO04512345123",
    "amountPaid": "120000.00",
    "paidOn": "2024-01-01T12:30:00",
    "paymentMethod": "ACCOUNT_TRANSFER",
    "paymentStatus": "PAID",
    "customer": {"email": "ada@example.com"},
}


class TestParseWebhookPayload:
    def test_flat_shape(self):
        note = parse_webhook_payload(FLAT)
        assert note.transaction_reference == "MNFY|20240101|000123"
        assert note.order_reference == "JOO04512345123"
        assert note.amount_paid == Decimal("120000.00")
        assert note.paid_on == datetime(2024, 1, 1, 12, 30, tzinfo=timezone.utc)
        assert note.payment_method == "ACCOUNT_TRANSFER"
        assert note.is_successful

    def test_envelope_shape(self):
        body = {
            "eventType": "SUCCESSFUL_TRANSACTION",
            "eventData": {k: v for k, v in FLAT.items() if k != "eventType"},
        }
        note = parse_webhook_payload(json.dumps(body).encode())
        assert note.event_type == "SUCCESSFUL_TRANSACTION"
        assert note.payment_reference == "JOO04512345123"

    def test_numeric_amount_kept_exact(self):
        note = parse_webhook_payload({**FLAT, "amountPaid": 100.1})
        assert note.amount_paid == Decimal("100.1")

    def test_offset_timestamp_normalised_to_utc(self):
        note = parse_webhook_payload({**FLAT, "paidOn": "2024-01-01T13:30:00+01:00"})
        assert note.paid_on == datetime(2024, 1, 1, 12, 30, tzinfo=timezone.utc)

    def test_order_reference_falls_back_to_transaction(self):
        body = {k: v for k, v in FLAT.items() if k != "paymentReference"}
        assert parse_webhook_payload(body).order_reference == "MNFY|20240101|000123"

    def test_unsuccessful_event(self):
        note = parse_webhook_payload(
            {**FLAT, "eventType": "FAILED_TRANSACTION", "paymentStatus": "FAILED"}
        )
        assert not note.is_successful

    def test_paid_status_without_event_type(self):
        body = {k: v for k, v in FLAT.items() if k != "eventType"}
        assert parse_webhook_payload(body).is_successful

    @pytest.mark.parametrize(
        "body",
        [
            b"not json",
            b"[1, 2]",
            {k: v for k, v in FLAT.items() if k != "transactionReference"},
            {**FLAT, "amountPaid": None},
            {**FLAT, "amountPaid": "lots"},
            {**FLAT, "amountPaid": "-5"},
            {**FLAT, "amountPaid": True},
            {**FLAT, "paidOn": "yesterday"},
            {**FLAT, "paymentMethod": 7},
            {"eventType": "SUCCESSFUL_TRANSACTION", "eventData": "oops"},
        ],
    )
    def test_invalid_payloads(self, body):
        with pytest.raises(InvalidWebhookPayloadError):
            parse_webhook_payload(body)


class TestSignature:
    def test_valid_signature(self):
        body = json.dumps(FLAT).encode()
        assert verify_webhook_signature(body, sign_webhook_body(body, "secret"), "secret")

    def test_signature_is_case_insensitive_hex(self):
        body = b"{}"
        assert verify_webhook_signature(body, sign_webhook_body(body, "k").upper(), "k")

    def test_tampered_body(self):
        body = json.dumps(FLAT).encode()
        signature = sign_webhook_body(body, "secret")
        assert not verify_webhook_signature(body + b" ", signature, "secret")

    def test_wrong_secret(self):
        body = b"{}"
        assert not verify_webhook_signature(body, sign_webhook_body(body, "a"), "b")

    @pytest.mark.parametrize("signature", [None, ""])
    def test_missing_signature(self, signature):
        assert not verify_webhook_signature(b"{}", signature, "secret")
