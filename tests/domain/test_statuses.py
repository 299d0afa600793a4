"""Status enums, transition table and payment method classification."""

import pytest

from fulfillment_kernel.domain.statuses import (
    OFFICER_HOLDING_ASSIGNMENT_STATUSES,
    TERMINAL_ORDER_STATUSES,
    VALID_ORDER_TRANSITIONS,
    AssignmentStatus,
    OrderStatus,
    PaymentMethod,
    can_transition,
    classify_payment_method,
)


class TestOrderTransitions:
    def test_every_status_has_an_entry(self):
        assert set(VALID_ORDER_TRANSITIONS) == set(OrderStatus)

    def test_forward_path(self):
        assert can_transition(OrderStatus.DRAFT, OrderStatus.CONFIRMED)
        assert can_transition(OrderStatus.CONFIRMED, OrderStatus.ASSIGNED)
        assert can_transition(OrderStatus.ASSIGNED, OrderStatus.IN_PROGRESS)
        assert can_transition(OrderStatus.IN_PROGRESS, OrderStatus.COMPLETED)

    def test_all_delivered_at_once_skips_in_progress(self):
        assert can_transition(OrderStatus.CONFIRMED, OrderStatus.COMPLETED)
        assert can_transition(OrderStatus.ASSIGNED, OrderStatus.COMPLETED)
        assert not can_transition(OrderStatus.DRAFT, OrderStatus.COMPLETED)

    def test_no_backwards_moves(self):
        assert not can_transition(OrderStatus.ASSIGNED, OrderStatus.CONFIRMED)
        assert not can_transition(OrderStatus.IN_PROGRESS, OrderStatus.ASSIGNED)
        assert not can_transition(OrderStatus.CONFIRMED, OrderStatus.DRAFT)

    @pytest.mark.parametrize("status", sorted(TERMINAL_ORDER_STATUSES, key=lambda s: s.value))
    def test_terminal_statuses_have_no_exits(self, status):
        assert VALID_ORDER_TRANSITIONS[status] == frozenset()

    def test_officer_holding_statuses(self):
        assert AssignmentStatus.UNASSIGNED not in OFFICER_HOLDING_ASSIGNMENT_STATUSES
        assert AssignmentStatus.REJECTED not in OFFICER_HOLDING_ASSIGNMENT_STATUSES


class TestClassifyPaymentMethod:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("ACCOUNT_TRANSFER", PaymentMethod.BANK_TRANSFER),
            ("account_transfer", PaymentMethod.BANK_TRANSFER),
            ("CARD", PaymentMethod.CARD),
            ("USSD", PaymentMethod.USSD),
            ("PHONE_NUMBER", PaymentMethod.BANK_TRANSFER),
            (None, PaymentMethod.BANK_TRANSFER),
        ],
    )
    def test_mapping(self, raw, expected):
        assert classify_payment_method(raw) == expected
