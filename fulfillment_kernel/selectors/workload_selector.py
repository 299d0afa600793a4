"""
Module: fulfillment_kernel.selectors.workload_selector
Responsibility: Officer workload queries and least-loaded officer selection.
Architecture position: Kernel > Selectors.  Loads OfficerWorkload snapshots
    and hands them to domain.officer_choice.choose_officer().

Invariants enforced:
    - Workload counts are derived from orders at call time, never stored
      or cached.
    - active_orders_count uses the single definition in domain.statuses
      (ACTIVE_WORKLOAD_ORDER_STATUSES x ACTIVE_WORKLOAD_ASSIGNMENT_STATUSES).

Failure modes:
    - None beyond database errors.  An empty result from select_officer()
      is a capacity outcome, not a failure.

Concurrency:
    Reads are not locked.  The chosen officer may have gained work by the
    time the caller writes the assignment; transient over-assignment is
    accepted.
"""

from sqlalchemy import func, select

from fulfillment_kernel.domain.dtos import OfficerAvailability, OfficerWorkload
from fulfillment_kernel.domain.officer_choice import choose_officer
from fulfillment_kernel.domain.statuses import (
    ACTIVE_WORKLOAD_ASSIGNMENT_STATUSES,
    ACTIVE_WORKLOAD_ORDER_STATUSES,
    PENDING_RESPONSE_STATUSES,
    AvailabilityStatus,
)
from fulfillment_kernel.models.officer import OfficerProfile
from fulfillment_kernel.models.order import Order
from fulfillment_kernel.selectors.base import BaseSelector


def _sorted(values):
    return sorted(values, key=lambda v: v.value)


class WorkloadSelector(BaseSelector):
    """
    Read-only officer workload queries.

    Contract:
        ``select_officer()`` returns the eligible officer with the fewest
        active orders (ties broken by officer id), or None.
    """

    def _active_counts(self):
        return (
            select(
                Order.assigned_officer_id.label("officer_id"),
                func.count(Order.id).label("active_count"),
            )
            .where(
                Order.assigned_officer_id.is_not(None),
                Order.status.in_(_sorted(ACTIVE_WORKLOAD_ORDER_STATUSES)),
                Order.assignment_status.in_(
                    _sorted(ACTIVE_WORKLOAD_ASSIGNMENT_STATUSES)
                ),
            )
            .group_by(Order.assigned_officer_id)
            .subquery("active_counts")
        )

    def _pending_counts(self):
        return (
            select(
                Order.assigned_officer_id.label("officer_id"),
                func.count(Order.id).label("pending_count"),
            )
            .where(
                Order.assigned_officer_id.is_not(None),
                Order.assignment_status.in_(_sorted(PENDING_RESPONSE_STATUSES)),
            )
            .group_by(Order.assigned_officer_id)
            .subquery("pending_counts")
        )

    def _workload_query(self):
        active = self._active_counts()
        pending = self._pending_counts()
        return (
            select(
                OfficerProfile,
                func.coalesce(active.c.active_count, 0),
                func.coalesce(pending.c.pending_count, 0),
            )
            .outerjoin(active, active.c.officer_id == OfficerProfile.user_id)
            .outerjoin(pending, pending.c.officer_id == OfficerProfile.user_id)
            .order_by(OfficerProfile.user_id)
        )

    @staticmethod
    def _to_workload(profile: OfficerProfile, active: int, pending: int) -> OfficerWorkload:
        return OfficerWorkload(
            officer_id=profile.user_id,
            display_name=profile.display_name,
            is_active=profile.is_active,
            availability_status=profile.availability_status,
            max_active_orders=profile.max_active_orders,
            active_orders_count=int(active),
            pending_orders_count=int(pending),
        )

    def list_workloads(self) -> list[OfficerWorkload]:
        """Workload of every registered officer, ordered by officer id."""
        rows = self.session.execute(self._workload_query()).all()
        return [self._to_workload(*row) for row in rows]

    def get_workload(self, officer_id: str) -> OfficerWorkload | None:
        stmt = self._workload_query().where(OfficerProfile.user_id == officer_id)
        row = self.session.execute(stmt).first()
        if row is None:
            return None
        return self._to_workload(*row)

    def candidates(self, exclude_officer_id: str | None = None) -> list[OfficerWorkload]:
        """Active, AVAILABLE officers with their current workload."""
        stmt = self._workload_query().where(
            OfficerProfile.is_active.is_(True),
            OfficerProfile.availability_status == AvailabilityStatus.AVAILABLE,
        )
        if exclude_officer_id is not None:
            stmt = stmt.where(OfficerProfile.user_id != exclude_officer_id)
        rows = self.session.execute(stmt).all()
        return [self._to_workload(*row) for row in rows]

    def select_officer(
        self, exclude_officer_id: str | None = None
    ) -> OfficerWorkload | None:
        """Choose the least-loaded eligible officer, re-evaluated on every call."""
        return choose_officer(
            self.candidates(exclude_officer_id),
            exclude_officer_id=exclude_officer_id,
        )

    def get_availability(self, officer_id: str) -> OfficerAvailability | None:
        profile = self.session.execute(
            select(OfficerProfile).where(OfficerProfile.user_id == officer_id)
        ).scalar_one_or_none()
        if profile is None:
            return None
        return to_availability(profile)

    def list_availability(self) -> list[OfficerAvailability]:
        profiles = self.session.execute(
            select(OfficerProfile).order_by(OfficerProfile.user_id)
        ).scalars()
        return [to_availability(p) for p in profiles]


def to_availability(profile: OfficerProfile) -> OfficerAvailability:
    return OfficerAvailability(
        officer_id=profile.user_id,
        availability_status=profile.availability_status,
        max_active_orders=profile.max_active_orders,
        is_active=profile.is_active,
        updated_at=profile.updated_at,
    )
