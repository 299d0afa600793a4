"""
OfficerService -- writes to the Officer Registry.

Responsibility:
    Creates officer profiles when procurement accounts are provisioned,
    mirrors the external account active flag, and lets officers set their
    availability and capacity.

Architecture position:
    Kernel > Services.  Workload reads live in WorkloadSelector.

Invariants enforced:
    - One profile per user id (uq_officer_user).
    - max_active_orders is an integer >= 1.
    - Profiles are never deleted.

Failure modes:
    - OfficerNotFoundError for unknown user ids.
    - InvalidAvailabilityStatusError, InvalidCapacityError on bad input.
"""

from sqlalchemy import select

from fulfillment_kernel.domain.dtos import OfficerAvailability
from fulfillment_kernel.domain.statuses import AvailabilityStatus
from fulfillment_kernel.exceptions import (
    InvalidAvailabilityStatusError,
    InvalidCapacityError,
)
from fulfillment_kernel.logging_config import get_logger
from fulfillment_kernel.models.officer import DEFAULT_MAX_ACTIVE_ORDERS, OfficerProfile
from fulfillment_kernel.selectors.workload_selector import to_availability
from fulfillment_kernel.services.base import SYSTEM_ACTOR, BaseService

logger = get_logger("services.officer")


def parse_availability(value) -> AvailabilityStatus:
    if isinstance(value, AvailabilityStatus):
        return value
    try:
        return AvailabilityStatus(str(value).strip().upper())
    except ValueError:
        raise InvalidAvailabilityStatusError(value) from None


def validate_capacity(value) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise InvalidCapacityError(value)
    return value


class OfficerService(BaseService):
    """Officer profile writes."""

    def register_officer(
        self,
        user_id: str,
        display_name: str | None = None,
        max_active_orders: int = DEFAULT_MAX_ACTIVE_ORDERS,
        availability_status: AvailabilityStatus | str = AvailabilityStatus.AVAILABLE,
        is_active: bool = True,
        actor_id: str = SYSTEM_ACTOR,
    ) -> OfficerAvailability:
        """
        Create the profile for a procurement account.

        Idempotent on user_id: an existing profile is returned unchanged.
        """
        existing = self.session.execute(
            select(OfficerProfile).where(OfficerProfile.user_id == user_id)
        ).scalar_one_or_none()
        if existing is not None:
            return to_availability(existing)

        profile = OfficerProfile(
            user_id=user_id,
            display_name=display_name,
            max_active_orders=validate_capacity(max_active_orders),
            availability_status=parse_availability(availability_status),
            is_active=is_active,
            created_by_id=actor_id,
        )
        self.session.add(profile)
        self.session.flush()
        logger.info(
            "officer_registered",
            extra={"officer_id": user_id, "max_active_orders": profile.max_active_orders},
        )
        return to_availability(profile)

    def set_account_active(
        self,
        user_id: str,
        active: bool,
        actor_id: str = SYSTEM_ACTOR,
    ) -> OfficerAvailability:
        """Mirror the external account's active flag."""
        profile = self._get_officer(user_id)
        profile.is_active = active
        profile.updated_by_id = actor_id
        self.session.flush()
        logger.info(
            "officer_account_status_changed",
            extra={"officer_id": user_id, "is_active": active},
        )
        return to_availability(profile)

    def update_availability(
        self,
        officer_id: str,
        availability_status: AvailabilityStatus | str,
        max_active_orders: int | None = None,
    ) -> OfficerAvailability:
        """
        Officer sets their own availability and, optionally, capacity.

        Lowering capacity below the current workload is allowed; the
        officer simply stops receiving new orders until under it again.
        """
        status = parse_availability(availability_status)
        if max_active_orders is not None:
            validate_capacity(max_active_orders)

        profile = self._get_officer(officer_id)
        profile.availability_status = status
        if max_active_orders is not None:
            profile.max_active_orders = max_active_orders
        profile.updated_by_id = officer_id
        self.session.flush()
        self.session.refresh(profile)

        logger.info(
            "officer_availability_updated",
            extra={
                "officer_id": officer_id,
                "availability_status": status.value,
                "max_active_orders": profile.max_active_orders,
            },
        )
        return to_availability(profile)
