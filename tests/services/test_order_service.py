"""OrderService and FulfillmentEngine.create_order: order placement."""

from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from fulfillment_kernel.domain.dtos import NewOrderItem
from fulfillment_kernel.domain.statuses import AssignmentStatus, OrderItemStatus, OrderStatus
from fulfillment_kernel.models.order import Order
from fulfillment_kernel.selectors.order_selector import OrderSelector
from fulfillment_kernel.services.order_service import OrderService
from fulfillment_services.payment_gateway import PaymentGatewayError


class TestOrderService:
    def test_create_order(self, session, deterministic_clock):
        view = OrderService(session, deterministic_clock).create_order(
            order_number="JOO00000001001",
            items=[
                NewOrderItem("Rice 50kg", 2, Decimal("45000.00")),
                NewOrderItem("Beans 25kg", 3, Decimal("12500.50")),
            ],
            actor_id="customer-1",
        )

        assert view.status == OrderStatus.DRAFT
        assert view.assignment_status == AssignmentStatus.UNASSIGNED
        assert view.total_amount == Decimal("127501.50")
        assert [i.position for i in view.items] == [1, 2]
        assert [i.line_total for i in view.items] == [Decimal("90000.00"), Decimal("37501.50")]
        assert {i.status for i in view.items} == {OrderItemStatus.PENDING}

    def test_order_needs_items(self, session, deterministic_clock):
        with pytest.raises(ValueError):
            OrderService(session, deterministic_clock).create_order("JOO1", [], actor_id="c")


class TestEngineCreateOrder:
    def test_invoice_issued_and_stored(
        self, fulfillment_engine, payment_gateway, deterministic_clock, settings
    ):
        order = fulfillment_engine.create_order(
            items=[NewOrderItem("Rice 50kg", 1, Decimal("45000.00"))],
            actor_id="customer-1",
            customer_email="ada@example.com",
        )

        assert order.order_number.startswith("JOO")
        assert order.gateway_invoice_ref.startswith("FAKE|")
        assert order.checkout_url.endswith(order.gateway_invoice_ref)
        assert order.payment_expires_at == deterministic_clock.now() + timedelta(
            hours=settings.payments.invoice_expiry_hours
        )
        assert order.currency == "NGN"

        call = payment_gateway.calls[0]
        assert call["method"] == "create_invoice"
        assert call["reference"] == order.order_number
        assert call["amount"] == Decimal("45000.00")

    def test_order_numbers_unique(self, fulfillment_engine, make_engine):
        """A second engine with the same random seed still gets a fresh number."""
        first = fulfillment_engine.create_order(
            items=[NewOrderItem("Rice", 1, Decimal("1.00"))], actor_id="c"
        )
        second = make_engine().create_order(
            items=[NewOrderItem("Rice", 1, Decimal("1.00"))], actor_id="c"
        )
        assert first.order_number != second.order_number

    def test_number_taken_after_check_abandons_invoice(
        self, fulfillment_engine, make_engine, payment_gateway, session, captured_logs, monkeypatch
    ):
        """The insert loses the race: the attempt's invoice is logged and a new number used."""
        items = [NewOrderItem("Rice", 1, Decimal("1.00"))]
        first = fulfillment_engine.create_order(items=items, actor_id="c")
        monkeypatch.setattr(OrderSelector, "get_order", lambda self, order_number: None)

        second = make_engine().create_order(items=items, actor_id="c")

        assert second.order_number != first.order_number
        collisions = [r for r in captured_logs() if r["message"] == "order_number_collision"]
        assert len(collisions) == 1
        assert collisions[0]["order_number"] == first.order_number
        abandoned = collisions[0]["abandoned_invoice_ref"]
        assert abandoned.startswith("FAKE|")
        assert abandoned not in (first.gateway_invoice_ref, second.gateway_invoice_ref)
        assert [c["reference"] for c in payment_gateway.calls] == [
            first.order_number,
            first.order_number,
            second.order_number,
        ]
        assert session.execute(select(func.count(Order.id))).scalar_one() == 2

    def test_gateway_failure_leaves_nothing(self, fulfillment_engine, payment_gateway, session):
        payment_gateway.configure(should_succeed=False, failure_reason="timeout")
        with pytest.raises(PaymentGatewayError):
            fulfillment_engine.create_order(
                items=[NewOrderItem("Rice", 1, Decimal("1.00"))], actor_id="c"
            )

        assert session.execute(select(func.count(Order.id))).scalar_one() == 0
