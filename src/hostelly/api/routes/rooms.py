"""Rooms endpoints for the console.

GET    /rooms                          → board: rooms + occupants (Staff+)
POST   /rooms                          → create, optional allocation (Admin, 201)
PATCH  /rooms/{id}                     → update number/type/status (Admin)
DELETE /rooms/{id}                     → delete an empty room (Admin, 204)
POST   /rooms/{id}/allocations         → allocate a student (Admin, 201)

Mutations return only what they wrote. Clients re-read GET /rooms afterwards;
the board is the only state they should render.
"""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Path
from pydantic import BaseModel, ConfigDict

from hostelly.api.errors import http_error
from hostelly.api.rbac import RoleContext, require_role
from hostelly.domain.errors import HostellyError
from hostelly.domain.rooms import (
    allocate_student,
    count_active_occupants,
    create_room,
    delete_room,
    load_room_board,
    update_room,
)
from hostelly.observability.correlation import get_correlation_id
from hostelly.observability.logging import get_logger
from hostelly.observability.redaction import safe_log_context

logger = get_logger(__name__)

router = APIRouter(prefix="/rooms", tags=["rooms"])

RoomType = Literal["Single", "Double", "Triple"]
RoomStatus = Literal["Vacant", "Occupied", "Maintenance"]


# ── Schemas ───────────────────────────────────────────────────────────────────


class CreateRoomRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    room_number: int | str
    type: RoomType = "Single"
    student_id: str | None = None
    # Accepted for form compatibility; the stored values are always
    # Vacant and the type's capacity.
    status: RoomStatus | None = None
    occupants: int | None = None


class UpdateRoomRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    room_number: int | str
    type: RoomType
    status: RoomStatus


class AllocateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    student_id: str


# ── GET /rooms ────────────────────────────────────────────────────────────────


@router.get("")
def get_room_board(
    ctx: RoleContext = Depends(require_role("Staff")),
) -> dict:
    """Rooms ordered by number, each with its active occupants' names.

    A failed read answers 200 with no rooms and the error message, so the
    console can show an empty state.
    """
    board = load_room_board(ctx.gateway())

    return {
        "rooms": [
            {
                **room.to_dict(),
                "occupant_names": board.occupants_of(room.id),
                "occupant_count": board.occupant_count(room.id),
            }
            for room in board.rooms
        ],
        "error": board.error,
    }


# ── POST /rooms ───────────────────────────────────────────────────────────────


@router.post("", status_code=201)
def post_room(
    body: CreateRoomRequest,
    ctx: RoleContext = Depends(require_role("Admin")),
) -> dict:
    """Create a Vacant room sized by its type.

    When student_id is given the student is allocated afterwards. If that
    step fails the room still exists: the response is 201 with
    allocation.ok = false and the gateway message.
    """
    try:
        creation = create_room(
            ctx.gateway(),
            room_number=body.room_number,
            room_type=body.type,
            student_id=body.student_id,
        )
    except HostellyError as e:
        raise http_error(e)

    if creation.partial is not None:
        allocation = {
            "requested": True,
            "ok": False,
            "message": f"Room created, but allocation failed: {creation.partial.message}",
        }
    elif creation.allocated_student_id is not None:
        allocation = {
            "requested": True,
            "ok": True,
            "message": "Room added and student allocated successfully!",
        }
    else:
        allocation = {"requested": False, "ok": True, "message": "Room added successfully!"}

    logger.info(
        "room create handled",
        extra={
            "extra_fields": safe_log_context(
                correlationId=get_correlation_id(),
                room_id=creation.room.id,
                allocation_ok=allocation["ok"],
                operator_id=ctx.user.id,
            )
        },
    )

    return {"room": creation.room.to_dict(), "allocation": allocation}


# ── PATCH /rooms/{room_id} ────────────────────────────────────────────────────


@router.patch("/{room_id}")
def patch_room(
    room_id: str = Path(..., description="Room ID"),
    body: UpdateRoomRequest = ...,
    ctx: RoleContext = Depends(require_role("Admin")),
) -> dict:
    """Update a room; capacity follows the new type.

    Fails with 409 (and no write) if the room currently holds more active
    occupants than the new type allows.
    """
    gw = ctx.gateway()
    try:
        occupants = count_active_occupants(gw, room_id)
        room = update_room(
            gw,
            room_id,
            room_number=body.room_number,
            room_type=body.type,
            status=body.status,
            occupant_count=occupants,
        )
    except HostellyError as e:
        raise http_error(e)

    return room.to_dict()


# ── DELETE /rooms/{room_id} ───────────────────────────────────────────────────


@router.delete("/{room_id}", status_code=204)
def remove_room(
    room_id: str = Path(..., description="Room ID"),
    ctx: RoleContext = Depends(require_role("Admin")),
) -> None:
    """Delete a room. Fails with 409 (and no delete) while it has occupants."""
    gw = ctx.gateway()
    try:
        occupants = count_active_occupants(gw, room_id)
        delete_room(gw, room_id, occupant_count=occupants)
    except HostellyError as e:
        raise http_error(e)


# ── POST /rooms/{room_id}/allocations ────────────────────────────────────────


@router.post("/{room_id}/allocations", status_code=201)
def post_allocation(
    room_id: str = Path(..., description="Room ID"),
    body: AllocateRequest = ...,
    ctx: RoleContext = Depends(require_role("Admin")),
) -> dict:
    """Allocate a student to an existing room.

    Capacity and one-active-allocation-per-student are enforced by the
    remote procedure; its rejection comes back as 502 with its message.
    """
    if not body.student_id:
        raise HTTPException(status_code=400, detail="student_id required")

    try:
        allocate_student(ctx.gateway(), student_id=body.student_id, room_id=room_id)
    except HostellyError as e:
        raise http_error(e)

    return {"room_id": room_id, "student_id": body.student_id}
