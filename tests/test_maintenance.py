"""Unit tests for the maintenance request read model."""

import pytest

from hostelly.domain.errors import FetchError, MaintenanceRequestNotFound
from hostelly.domain.maintenance import (
    UNKNOWN_REPORTER,
    get_maintenance_request,
    list_maintenance_requests,
)

from helpers import FakeGateway


@pytest.fixture
def maint_gw(hostel_tables):
    hostel_tables["maintenance_requests"] = [
        {
            "id": 7,
            "issue": "Leaking tap",
            "room_number": "101",
            "reported_by_id": "s-1",
            "status": "Pending",
            "created_at": "2024-09-01T08:00:00Z",
        },
        {
            "id": 8,
            "issue": "Broken window latch",
            "room_number": "103",
            "reported_by_id": "gone",
            "status": "Resolved",
            "created_at": "2024-09-03T08:00:00Z",
        },
    ]
    return FakeGateway(hostel_tables)


class TestGetMaintenanceRequest:
    def test_includes_reporter_name(self, maint_gw):
        request = get_maintenance_request(maint_gw, 7)

        assert request.issue == "Leaking tap"
        assert request.reported_by_name == "Asha Verma"

    def test_missing_reporter_is_na(self, maint_gw):
        request = get_maintenance_request(maint_gw, 8)

        assert request.reported_by_name == UNKNOWN_REPORTER

    def test_reporter_lookup_failure_is_na(self, maint_gw):
        maint_gw.fail("select", "profiles", message="permission denied")

        request = get_maintenance_request(maint_gw, 7)

        assert request.reported_by_name == "N/A"

    def test_not_found(self, maint_gw):
        with pytest.raises(MaintenanceRequestNotFound):
            get_maintenance_request(maint_gw, 999)

    def test_other_failure_is_fetch_error(self, maint_gw):
        maint_gw.fail("select", "maintenance_requests", message="JWT expired")

        with pytest.raises(FetchError):
            get_maintenance_request(maint_gw, 7)


class TestListMaintenanceRequests:
    def test_newest_first_with_names(self, maint_gw):
        requests = list_maintenance_requests(maint_gw)

        assert [r.id for r in requests] == [8, 7]
        assert [r.reported_by_name for r in requests] == ["N/A", "Asha Verma"]

    def test_status_filter(self, maint_gw):
        requests = list_maintenance_requests(maint_gw, status="Pending")

        assert [r.id for r in requests] == [7]

    def test_invalid_status(self, maint_gw):
        with pytest.raises(ValueError):
            list_maintenance_requests(maint_gw, status="Closed")
        assert maint_gw.calls == []
