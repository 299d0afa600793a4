"""OfficerService: registration, account sync and availability."""

import pytest

from fulfillment_kernel.domain.statuses import AvailabilityStatus
from fulfillment_kernel.exceptions import (
    InvalidAvailabilityStatusError,
    InvalidCapacityError,
    OfficerNotFoundError,
)
from fulfillment_kernel.services.officer_service import (
    OfficerService,
    parse_availability,
    validate_capacity,
)


@pytest.fixture
def officer_service(session, deterministic_clock):
    return OfficerService(session, deterministic_clock)


class TestRegisterOfficer:
    def test_defaults(self, officer_service):
        officer = officer_service.register_officer("officer-a", display_name="Ayo")
        assert officer.officer_id == "officer-a"
        assert officer.availability_status == AvailabilityStatus.AVAILABLE
        assert officer.max_active_orders == 5
        assert officer.is_active is True

    def test_idempotent_on_user_id(self, officer_service):
        """Re-registering returns the existing profile unchanged."""
        officer_service.register_officer("officer-a", max_active_orders=2)
        again = officer_service.register_officer("officer-a", max_active_orders=9)
        assert again.max_active_orders == 2

    @pytest.mark.parametrize("capacity", [0, -1, True, 2.5, "3"])
    def test_invalid_capacity(self, officer_service, capacity):
        with pytest.raises(InvalidCapacityError):
            officer_service.register_officer("officer-a", max_active_orders=capacity)


class TestAvailability:
    def test_update_status_and_capacity(self, officer_service, make_officer):
        make_officer("officer-a")
        updated = officer_service.update_availability("officer-a", "unavailable", max_active_orders=8)
        assert updated.availability_status == AvailabilityStatus.UNAVAILABLE
        assert updated.max_active_orders == 8

    def test_capacity_optional(self, officer_service, make_officer):
        make_officer("officer-a", max_active_orders=3)
        updated = officer_service.update_availability("officer-a", AvailabilityStatus.AVAILABLE)
        assert updated.max_active_orders == 3

    def test_unknown_officer(self, officer_service):
        with pytest.raises(OfficerNotFoundError):
            officer_service.update_availability("ghost", "AVAILABLE")

    def test_invalid_status(self, officer_service, make_officer):
        make_officer("officer-a")
        with pytest.raises(InvalidAvailabilityStatusError):
            officer_service.update_availability("officer-a", "ON_HOLIDAY")

    def test_invalid_capacity_checked_before_lookup(self, officer_service):
        with pytest.raises(InvalidCapacityError):
            officer_service.update_availability("ghost", "AVAILABLE", max_active_orders=0)


class TestAccountSync:
    def test_deactivate_and_reactivate(self, officer_service, make_officer):
        make_officer("officer-a")
        assert officer_service.set_account_active("officer-a", False).is_active is False
        assert officer_service.set_account_active("officer-a", True).is_active is True


class TestParsers:
    def test_parse_availability_case_insensitive(self):
        assert parse_availability(" available ") == AvailabilityStatus.AVAILABLE

    def test_validate_capacity_returns_value(self):
        assert validate_capacity(4) == 4
