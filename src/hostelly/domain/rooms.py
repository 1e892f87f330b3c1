"""Room allocation workflow.

Rules:
- Capacity is derived from the room type only (Single=1, Double=2, Triple=3)
  and is what gets written to rooms.occupants, whatever the caller sent.
- New rooms are always created Vacant.
- Occupancy checks before update/delete are advisory: they use the occupant
  count from the caller's last snapshot. The allocate_room procedure is the
  authoritative capacity/uniqueness check.
- Creating a room and allocating a student to it are two remote calls with
  no rollback. A failed allocation leaves the room created (PartialSuccess).
- After any mutation the caller re-reads the board; nothing here patches
  local state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from hostelly.domain.errors import (
    CapacityViolation,
    FetchError,
    MutationError,
    RoomNotFound,
    RoomOccupiedError,
)
from hostelly.domain.fetching import fetch_in_parallel, fetch_rows
from hostelly.infra.gateway import Gateway
from hostelly.observability.logging import get_logger
from hostelly.observability.redaction import safe_log_context

logger = get_logger(__name__)

ROOM_TYPES = ("Single", "Double", "Triple")
ROOM_STATUSES = ("Vacant", "Occupied", "Maintenance")

_CAPACITY_BY_TYPE = {"Single": 1, "Double": 2, "Triple": 3}

ALLOCATE_ROOM_RPC = "allocate_room"


def capacity_of(room_type: str) -> int:
    """Maximum simultaneous active occupants for a room type.

    Unknown types count as Single.
    """
    return _CAPACITY_BY_TYPE.get(room_type, 1)


@dataclass(frozen=True)
class Room:
    id: Any
    room_number: Any
    type: str
    status: str
    occupants: int

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Room:
        return cls(
            id=row["id"],
            room_number=row.get("room_number"),
            type=row.get("type") or "Single",
            status=row.get("status") or "Vacant",
            occupants=(
                row["occupants"]
                if row.get("occupants") is not None
                else capacity_of(row.get("type") or "Single")
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "room_number": self.room_number,
            "type": self.type,
            "status": self.status,
            "occupants": self.occupants,
        }


@dataclass
class RoomBoard:
    """Snapshot of rooms and their current occupants' names.

    error is set (and both collections empty) when the read failed, so a
    view can render an empty state instead of crashing.
    """

    rooms: list[Room] = field(default_factory=list)
    occupants_by_room: dict[Any, list[str]] = field(default_factory=dict)
    error: str | None = None

    def occupants_of(self, room_id: Any) -> list[str]:
        return self.occupants_by_room.get(room_id, [])

    def occupant_count(self, room_id: Any) -> int:
        return len(self.occupants_of(room_id))


@dataclass(frozen=True)
class PartialSuccess:
    """Room was created but the follow-up allocation failed."""

    room: Room
    student_id: str
    message: str


@dataclass(frozen=True)
class RoomCreation:
    room: Room
    allocated_student_id: str | None = None
    partial: PartialSuccess | None = None

    @property
    def allocation_requested(self) -> bool:
        return self.allocated_student_id is not None or self.partial is not None


# ── Reads ────────────────────────────────────────────────


def list_rooms(gw: Gateway) -> list[Room]:
    """List all rooms ordered by room number.

    Raises:
        FetchError: On transport or policy failure.
    """
    rows = fetch_rows(gw, "rooms", what="rooms", order="room_number")
    return [Room.from_row(row) for row in rows]


def list_active_allocations_by_room(gw: Gateway) -> dict[Any, list[str]]:
    """Map room_id to the full names of its active occupants.

    Allocations whose profile no longer exists (embedded profile is null)
    are dropped from the projection.

    Raises:
        FetchError: On transport or policy failure.
    """
    rows = fetch_rows(
        gw,
        "room_allocations",
        what="allocations",
        columns="room_id, profiles(full_name)",
        filters={"is_active": True},
    )

    by_room: dict[Any, list[str]] = {}
    for row in rows:
        profile = row.get("profiles")
        if not profile:
            continue
        by_room.setdefault(row["room_id"], []).append(profile.get("full_name"))
    return by_room


def count_active_occupants(gw: Gateway, room_id: Any) -> int:
    """Number of active allocations for one room (advisory snapshot)."""
    rows = fetch_rows(
        gw,
        "room_allocations",
        what="allocations",
        columns="student_id",
        filters={"room_id": room_id, "is_active": True},
    )
    return len(rows)


def load_room_board(gw: Gateway) -> RoomBoard:
    """Fetch rooms and active allocations in parallel and join them.

    Never raises on a failed read: the returned board is empty and carries
    the gateway message.
    """
    try:
        rooms, occupants = fetch_in_parallel(
            lambda: list_rooms(gw),
            lambda: list_active_allocations_by_room(gw),
        )
    except FetchError as e:
        logger.error(
            "failed to fetch room board",
            extra={"extra_fields": safe_log_context(what=e.what, code=e.gateway_error.code)},
        )
        return RoomBoard(error=f"Failed to fetch data: {e}")

    return RoomBoard(rooms=rooms, occupants_by_room=occupants)


# ── Mutations ────────────────────────────────────────────


def allocate_student(gw: Gateway, *, student_id: str, room_id: Any) -> None:
    """Allocate a student to a room through the remote procedure.

    The procedure validates capacity and single-active-allocation atomically.

    Raises:
        MutationError: The procedure rejected the allocation or the call failed.
    """
    result = gw.rpc(
        ALLOCATE_ROOM_RPC, {"p_student_id": student_id, "p_room_id": room_id}
    )
    if result.error:
        raise MutationError.from_gateway("allocation", result.error)

    logger.info(
        "student allocated to room",
        extra={"extra_fields": safe_log_context(room_id=room_id, student_id=student_id)},
    )


def create_room(
    gw: Gateway,
    *,
    room_number: Any,
    room_type: str,
    student_id: str | None = None,
) -> RoomCreation:
    """Create a Vacant room sized by its type, optionally allocating a student.

    Args:
        gw: Gateway.
        room_number: Room number as entered.
        room_type: Single, Double or Triple.
        student_id: Optional student to allocate once the room exists.

    Returns:
        RoomCreation. When the allocation step fails, partial is set and the
        room is still reported as created.

    Raises:
        MutationError: The insert itself failed (no allocation attempted).
    """
    row = {
        "room_number": room_number,
        "type": room_type,
        "status": "Vacant",
        "occupants": capacity_of(room_type),
    }
    result = gw.insert("rooms", row)
    if result.error:
        raise MutationError.from_gateway("room", result.error)
    if not result.data:
        raise MutationError("room", "Failed to add room: no row returned")

    room = Room.from_row(result.data)
    logger.info(
        "room created",
        extra={"extra_fields": safe_log_context(room_id=room.id, type=room.type)},
    )

    if not student_id:
        return RoomCreation(room=room)

    try:
        allocate_student(gw, student_id=student_id, room_id=room.id)
    except MutationError as e:
        logger.warning(
            "room created but allocation failed",
            extra={
                "extra_fields": safe_log_context(
                    room_id=room.id, code=e.gateway_error.code if e.gateway_error else None
                )
            },
        )
        return RoomCreation(
            room=room,
            partial=PartialSuccess(room=room, student_id=student_id, message=str(e)),
        )

    return RoomCreation(room=room, allocated_student_id=student_id)


def update_room(
    gw: Gateway,
    room_id: Any,
    *,
    room_number: Any,
    room_type: str,
    status: str,
    occupant_count: int,
) -> Room:
    """Update a room, recomputing capacity from its type.

    Args:
        occupant_count: Active occupants from the caller's latest snapshot.

    Raises:
        ValueError: Unknown status.
        CapacityViolation: occupant_count exceeds the new capacity. No remote
            call is made.
        RoomNotFound: No room with this id.
        MutationError: The update failed remotely.
    """
    if status not in ROOM_STATUSES:
        raise ValueError(f"Invalid room status: {status}")

    capacity = capacity_of(room_type)
    if occupant_count > capacity:
        raise CapacityViolation(occupant_count, capacity)

    result = gw.update(
        "rooms",
        {
            "room_number": room_number,
            "type": room_type,
            "status": status,
            "occupants": capacity,
        },
        filters={"id": room_id},
    )
    if result.error:
        raise MutationError.from_gateway("room", result.error)
    if not result.data:
        raise RoomNotFound(f"Room {room_id} not found")

    return Room.from_row(result.data[0])


def delete_room(gw: Gateway, room_id: Any, *, occupant_count: int) -> None:
    """Delete an empty room.

    Raises:
        RoomOccupiedError: Room still has active occupants. No remote call
            is made.
        RoomNotFound: No room with this id.
        MutationError: The delete failed remotely.
    """
    if occupant_count > 0:
        raise RoomOccupiedError(occupant_count)

    result = gw.delete("rooms", filters={"id": room_id})
    if result.error:
        raise MutationError.from_gateway("room", result.error)
    if not result.data:
        raise RoomNotFound(f"Room {room_id} not found")

    logger.info(
        "room deleted",
        extra={"extra_fields": safe_log_context(room_id=room_id)},
    )
