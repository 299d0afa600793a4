"""
ReassignmentService: bounded auto-reassignment after a rejection.

Default ceiling is 3 automated offers:
    auto-assign -> reject -> reassign -> reject -> reassign -> reject
    => flagged for manual intervention, no fourth offer.
"""

import pytest

from fulfillment_kernel.domain.statuses import AssignmentStatus, AvailabilityStatus
from fulfillment_kernel.selectors.order_selector import OrderSelector
from fulfillment_kernel.services.assignment_service import AssignmentService, AutoAssignStatus
from fulfillment_kernel.services.reassignment_service import (
    AUTO_REASSIGN_NOTE,
    MANUAL_INTERVENTION_NOTE,
    ReassignmentService,
    ReassignmentStatus,
)


@pytest.fixture
def assignment_service(session, deterministic_clock):
    return AssignmentService(session, deterministic_clock)


@pytest.fixture
def make_reassigner(session, deterministic_clock):
    def _make(**kwargs):
        return ReassignmentService(session, deterministic_clock, **kwargs)

    return _make


@pytest.fixture
def three_officers(make_officer):
    for user_id in ("officer-a", "officer-b", "officer-c"):
        make_officer(user_id)


def reject(assignment_service, order_number):
    view = assignment_service.get_assignment_status(order_number)
    assignment_service.respond_to_assignment(
        order_number, view.assigned_officer_id, "REJECT", reason="Cannot source"
    )
    return view.assigned_officer_id


class TestReassignAfterRejection:
    def test_offers_to_next_officer_excluding_rejecter(
        self, three_officers, make_paid_order, assignment_service, make_reassigner, captured_logs
    ):
        order_number = make_paid_order()
        assignment_service.auto_assign_order(order_number)
        rejecter = reject(assignment_service, order_number)

        result = make_reassigner().reassign_after_rejection(order_number, rejecter)

        assert result.status == ReassignmentStatus.REASSIGNED
        assert result.officer_id != rejecter
        assert result.attempts == 2
        view = assignment_service.get_assignment_status(order_number)
        assert view.assignment_status == AssignmentStatus.REASSIGNED
        assert view.assigned_officer_id == result.officer_id
        assert view.notes == AUTO_REASSIGN_NOTE
        assert view.responded_at is None
        assert any(r["message"] == "order_auto_reassigned" for r in captured_logs())

    def test_attempt_ceiling_flags_manual_intervention(
        self,
        session,
        three_officers,
        make_paid_order,
        assignment_service,
        make_reassigner,
        captured_logs,
    ):
        order_number = make_paid_order()
        reassigner = make_reassigner(max_attempts=3)
        assert assignment_service.auto_assign_order(order_number).assigned

        statuses = []
        for _ in range(3):
            rejecter = reject(assignment_service, order_number)
            statuses.append(reassigner.reassign_after_rejection(order_number, rejecter).status)

        assert statuses == [
            ReassignmentStatus.REASSIGNED,
            ReassignmentStatus.REASSIGNED,
            ReassignmentStatus.MANUAL_INTERVENTION,
        ]
        view = assignment_service.get_assignment_status(order_number)
        assert view.needs_manual_intervention is True
        assert view.assignment_status == AssignmentStatus.REJECTED
        assert view.assigned_officer_id is None
        assert view.reassignment_attempts == 3
        assert view.notes == MANUAL_INTERVENTION_NOTE
        assert any(
            r["message"] == "manual_intervention_flagged" and r["level"] == "WARNING"
            for r in captured_logs()
        )

        flagged = OrderSelector(session).list_needing_manual_intervention()
        assert [e.order_number for e in flagged] == [order_number]
        assert flagged[0].last_response_reason == "Cannot source"

    def test_flagged_order_not_auto_assigned(
        self, three_officers, make_paid_order, assignment_service, make_reassigner
    ):
        order_number = make_paid_order()
        reassigner = make_reassigner(max_attempts=1)
        assignment_service.auto_assign_order(order_number)
        rejecter = reject(assignment_service, order_number)
        assert (
            reassigner.reassign_after_rejection(order_number, rejecter).status
            == ReassignmentStatus.MANUAL_INTERVENTION
        )

        assert assignment_service.auto_assign_order(order_number).status == AutoAssignStatus.SKIPPED

    def test_admin_assignment_clears_flag(
        self, session, three_officers, make_paid_order, assignment_service, make_reassigner
    ):
        order_number = make_paid_order()
        reassigner = make_reassigner(max_attempts=1)
        assignment_service.auto_assign_order(order_number)
        rejecter = reject(assignment_service, order_number)
        reassigner.reassign_after_rejection(order_number, rejecter)

        view = assignment_service.assign_order(order_number, "officer-c", admin_id="admin-1")

        assert view.needs_manual_intervention is False
        assert view.assignment_status == AssignmentStatus.PENDING_ACCEPTANCE
        assert view.reassignment_attempts == 1
        assert OrderSelector(session).list_needing_manual_intervention() == []

    @pytest.mark.parametrize(
        "flags",
        [
            {"auto_assign_enabled": False},
            {"auto_reassign_enabled": False},
        ],
    )
    def test_either_flag_disables(
        self, three_officers, make_paid_order, assignment_service, make_reassigner, flags
    ):
        order_number = make_paid_order()
        assignment_service.auto_assign_order(order_number)
        rejecter = reject(assignment_service, order_number)

        result = make_reassigner(**flags).reassign_after_rejection(order_number, rejecter)

        assert result.status == ReassignmentStatus.DISABLED
        view = assignment_service.get_assignment_status(order_number)
        assert view.assignment_status == AssignmentStatus.REJECTED

    def test_stale_when_admin_already_assigned(
        self, three_officers, make_paid_order, assignment_service, make_reassigner
    ):
        """A trigger that arrives after an admin resolved the order is a no-op."""
        order_number = make_paid_order()
        assignment_service.auto_assign_order(order_number)
        rejecter = reject(assignment_service, order_number)
        assignment_service.assign_order(order_number, "officer-c")

        result = make_reassigner().reassign_after_rejection(order_number, rejecter)

        assert result.status == ReassignmentStatus.STALE
        view = assignment_service.get_assignment_status(order_number)
        assert view.assigned_officer_id == "officer-c"

    def test_stale_when_order_missing(self, make_reassigner):
        result = make_reassigner().reassign_after_rejection("JOO-MISSING", "officer-a")
        assert result.status == ReassignmentStatus.STALE

    def test_no_capacity_leaves_order_rejected(
        self, make_officer, make_paid_order, assignment_service, make_reassigner
    ):
        """The only other officer is unavailable: nothing changes, no error."""
        make_officer("officer-a")
        make_officer("officer-b", availability_status=AvailabilityStatus.UNAVAILABLE)
        order_number = make_paid_order()
        assignment_service.auto_assign_order(order_number)
        rejecter = reject(assignment_service, order_number)

        result = make_reassigner().reassign_after_rejection(order_number, rejecter)

        assert result.status == ReassignmentStatus.NO_CAPACITY
        view = assignment_service.get_assignment_status(order_number)
        assert view.assignment_status == AssignmentStatus.REJECTED
        assert view.assigned_officer_id is None
        assert view.reassignment_attempts == 1
