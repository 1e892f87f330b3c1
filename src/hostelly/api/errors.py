"""Translate workflow errors into HTTP responses.

Gateway messages are passed through verbatim.
"""

from __future__ import annotations

from fastapi import HTTPException

from hostelly.domain.errors import (
    AccountExistsError,
    CapacityViolation,
    FetchError,
    HostellyError,
    MutationError,
    NotFound,
    RoomOccupiedError,
    WeakPasswordError,
)

_STATUS_BY_ERROR: list[tuple[type[HostellyError], int]] = [
    (NotFound, 404),
    (CapacityViolation, 409),
    (RoomOccupiedError, 409),
    (AccountExistsError, 409),
    (WeakPasswordError, 422),
    (FetchError, 502),
    (MutationError, 502),
]


def http_error(exc: HostellyError) -> HTTPException:
    """HTTPException for a workflow error (500 for anything unmapped)."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=500, detail="Internal error")
