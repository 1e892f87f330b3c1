"""Maintenance request endpoints (read-only).

GET /maintenance?status=...            → list, newest first (Staff+)
GET /maintenance/{id}                  → detail with reporter name (Staff+)
"""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, Path, Query

from hostelly.api.errors import http_error
from hostelly.api.rbac import RoleContext, require_role
from hostelly.domain.errors import HostellyError
from hostelly.domain.maintenance import (
    get_maintenance_request,
    list_maintenance_requests,
)

router = APIRouter(prefix="/maintenance", tags=["maintenance"])


@router.get("")
def get_requests(
    status: Literal["Pending", "In Progress", "Resolved"] | None = Query(None),
    ctx: RoleContext = Depends(require_role("Staff")),
) -> list[dict]:
    try:
        items = list_maintenance_requests(ctx.gateway(), status=status)
    except HostellyError as e:
        raise http_error(e)

    return [item.to_dict() for item in items]


@router.get("/{request_id}")
def get_request(
    request_id: str = Path(..., description="Maintenance request ID"),
    ctx: RoleContext = Depends(require_role("Staff")),
) -> dict:
    """One request. Reporter shows as "N/A" when their profile is gone."""
    try:
        request = get_maintenance_request(ctx.gateway(), request_id)
    except HostellyError as e:
        raise http_error(e)

    return request.to_dict()
