"""
Module: fulfillment_kernel.models.officer
Responsibility: ORM persistence for procurement officer profiles (the
    Officer Registry).
Architecture position: Kernel > Models.  May import from db/ and
    domain/statuses only.

Invariants enforced:
    - One profile per external user (uq_officer_user).
    - max_active_orders >= 1 (ck_officer_capacity_positive).

Profiles are never deleted by the kernel.  is_active mirrors the external
account flag and is synced through OfficerService.set_account_active().
"""

from sqlalchemy import Boolean, CheckConstraint, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from fulfillment_kernel.db.base import TrackedBase
from fulfillment_kernel.db.types import StrEnumType
from fulfillment_kernel.domain.statuses import AvailabilityStatus

DEFAULT_MAX_ACTIVE_ORDERS = 5


class OfficerProfile(TrackedBase):
    """Procurement officer who sources and fulfils assigned orders."""

    __tablename__ = "officer_profiles"

    __table_args__ = (
        UniqueConstraint("user_id", name="uq_officer_user"),
        CheckConstraint("max_active_orders >= 1", name="ck_officer_capacity_positive"),
        Index("idx_officer_availability", "availability_status", "is_active"),
    )

    # External account identity; also the officer id used everywhere else
    user_id: Mapped[str] = mapped_column(String(100), nullable=False)

    display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    availability_status: Mapped[AvailabilityStatus] = mapped_column(
        StrEnumType(AvailabilityStatus),
        nullable=False,
        default=AvailabilityStatus.AVAILABLE,
    )

    max_active_orders: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=DEFAULT_MAX_ACTIVE_ORDERS,
    )

    def __repr__(self) -> str:
        return (
            f"<OfficerProfile {self.user_id} "
            f"{self.availability_status.value} cap={self.max_active_orders}>"
        )
