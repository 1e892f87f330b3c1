"""Maintenance requests (read-only).

Requests reference their reporter by profile id. The reporter's name is
resolved with a second read; a missing or unreadable profile shows as "N/A"
rather than failing the request.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from hostelly.domain.errors import FetchError, MaintenanceRequestNotFound
from hostelly.domain.fetching import fetch_rows
from hostelly.infra.gateway import Gateway
from hostelly.observability.logging import get_logger

logger = get_logger(__name__)

MAINTENANCE_STATUSES = ("Pending", "In Progress", "Resolved")

UNKNOWN_REPORTER = "N/A"


@dataclass(frozen=True)
class MaintenanceRequest:
    id: Any
    issue: str
    room_number: Any
    status: str
    created_at: str | None
    reported_by_id: str | None
    reported_by_name: str = UNKNOWN_REPORTER

    @classmethod
    def from_row(cls, row: dict[str, Any], reporter_name: str | None = None) -> MaintenanceRequest:
        return cls(
            id=row["id"],
            issue=row.get("issue") or "",
            room_number=row.get("room_number"),
            status=row.get("status") or "Pending",
            created_at=row.get("created_at"),
            reported_by_id=row.get("reported_by_id"),
            reported_by_name=reporter_name or UNKNOWN_REPORTER,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "issue": self.issue,
            "room_number": self.room_number,
            "status": self.status,
            "created_at": self.created_at,
            "reported_by_id": self.reported_by_id,
            "reported_by_name": self.reported_by_name,
        }


def _reporter_names(gw: Gateway, profile_ids: set[str]) -> dict[str, str]:
    """Resolve profile names; failures degrade to an empty mapping."""
    if not profile_ids:
        return {}
    try:
        rows = fetch_rows(
            gw,
            "profiles",
            what="reporters",
            columns="id, full_name",
            filters={"id": sorted(profile_ids)},
        )
    except FetchError as e:
        logger.warning(
            "reporter lookup failed",
            extra={"extra_fields": {"code": e.gateway_error.code}},
        )
        return {}
    return {row["id"]: row.get("full_name") for row in rows}


def get_maintenance_request(gw: Gateway, request_id: Any) -> MaintenanceRequest:
    """Fetch one request with its reporter's name.

    Raises:
        MaintenanceRequestNotFound: No request with this id.
        FetchError: The request read failed for another reason.
    """
    result = gw.select(
        "maintenance_requests", filters={"id": request_id}, single=True
    )
    if result.error:
        if result.error.is_no_rows:
            raise MaintenanceRequestNotFound("Maintenance request not found.")
        raise FetchError("maintenance request", result.error)

    row = result.data
    reporter_id = row.get("reported_by_id")
    names = _reporter_names(gw, {reporter_id} if reporter_id else set())
    return MaintenanceRequest.from_row(row, names.get(reporter_id))


def list_maintenance_requests(gw: Gateway, status: str | None = None) -> list[MaintenanceRequest]:
    """List requests newest first, optionally by status.

    Raises:
        ValueError: Unknown status.
        FetchError: The read failed.
    """
    filters: dict[str, Any] = {}
    if status is not None:
        if status not in MAINTENANCE_STATUSES:
            raise ValueError(f"Invalid maintenance status: {status}")
        filters["status"] = status

    rows = fetch_rows(
        gw,
        "maintenance_requests",
        what="maintenance requests",
        filters=filters or None,
        order="created_at",
        descending=True,
    )
    names = _reporter_names(
        gw, {row["reported_by_id"] for row in rows if row.get("reported_by_id")}
    )
    return [
        MaintenanceRequest.from_row(row, names.get(row.get("reported_by_id")))
        for row in rows
    ]
