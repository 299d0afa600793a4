"""Payment gateway port and fake adapter.

The fulfillment engine needs two things from the gateway: an invoice for a
new order and, for polling verification, the invoice's current status.
Real adapters (HTTP clients for the provider) implement ``PaymentGateway``;
``FakePaymentGateway`` backs tests and local runs.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from fulfillment_kernel.exceptions import FulfillmentError


class PaymentGatewayError(FulfillmentError):
    """The gateway refused or failed a request."""

    code: str = "PAYMENT_GATEWAY_ERROR"
    http_status: int = 502

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Payment gateway {operation} failed: {reason}")


@dataclass(frozen=True)
class InvoiceRequest:
    amount: Decimal
    reference: str  # our order number
    customer_name: str | None
    customer_email: str | None
    description: str
    currency: str
    expires_at: datetime


@dataclass(frozen=True)
class BankAccount:
    account_number: str
    account_name: str
    bank_name: str
    bank_code: str | None = None


@dataclass(frozen=True)
class Invoice:
    """Invoice issued by the gateway."""

    transaction_reference: str
    checkout_url: str
    expires_at: datetime
    accounts: tuple[BankAccount, ...] = ()


@dataclass(frozen=True)
class InvoiceStatus:
    """Gateway view of an invoice, used for polling verification."""

    payment_status: str  # PAID, PENDING, EXPIRED, ...
    transaction_reference: str
    amount_paid: Decimal | None = None
    paid_on: datetime | None = None
    payment_method: str | None = None
    payment_reference: str | None = None

    @property
    def is_paid(self) -> bool:
        return self.payment_status.upper() == "PAID"


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def create_invoice(self, request: InvoiceRequest) -> Invoice:
        """Issue an invoice for an order."""
        ...

    @abstractmethod
    def get_invoice_status(self, reference: str) -> InvoiceStatus:
        """Look up an invoice by our order number or the gateway reference."""
        ...


class FakePaymentGateway(PaymentGateway):
    """Configurable in-memory gateway for development and testing."""

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Gateway unavailable"
        self.calls: list[dict] = []
        self._invoices: dict[str, tuple[InvoiceRequest, Invoice]] = {}
        self._statuses: dict[str, InvoiceStatus] = {}

    def configure(self, should_succeed: bool, failure_reason: str = "Gateway unavailable") -> None:
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def create_invoice(self, request: InvoiceRequest) -> Invoice:
        self.calls.append({
            "method": "create_invoice",
            "reference": request.reference,
            "amount": request.amount,
            "currency": request.currency,
        })
        if not self.should_succeed:
            raise PaymentGatewayError("create_invoice", self.failure_reason)

        txn_ref = f"FAKE|{uuid4().hex[:12].upper()}"
        invoice = Invoice(
            transaction_reference=txn_ref,
            checkout_url=f"https://checkout.fake-gateway.test/{txn_ref}",
            expires_at=request.expires_at,
            accounts=(
                BankAccount(
                    account_number="0000000000",
                    account_name=f"Order {request.reference}",
                    bank_name="Fake Bank",
                    bank_code="000",
                ),
            ),
        )
        self._invoices[request.reference] = (request, invoice)
        self._invoices[txn_ref] = (request, invoice)
        return invoice

    def mark_paid(
        self,
        reference: str,
        paid_on: datetime,
        amount: Decimal | None = None,
        payment_method: str = "ACCOUNT_TRANSFER",
    ) -> InvoiceStatus:
        """Simulate the customer paying an invoice."""
        request, invoice = self._invoices[reference]
        status = InvoiceStatus(
            payment_status="PAID",
            transaction_reference=invoice.transaction_reference,
            amount_paid=request.amount if amount is None else amount,
            paid_on=paid_on,
            payment_method=payment_method,
            payment_reference=request.reference,
        )
        self._statuses[request.reference] = status
        self._statuses[invoice.transaction_reference] = status
        return status

    def get_invoice_status(self, reference: str) -> InvoiceStatus:
        self.calls.append({"method": "get_invoice_status", "reference": reference})
        if not self.should_succeed:
            raise PaymentGatewayError("get_invoice_status", self.failure_reason)
        if reference in self._statuses:
            return self._statuses[reference]
        if reference in self._invoices:
            _, invoice = self._invoices[reference]
            return InvoiceStatus(
                payment_status="PENDING",
                transaction_reference=invoice.transaction_reference,
                payment_reference=reference,
            )
        raise PaymentGatewayError("get_invoice_status", f"unknown invoice {reference}")
