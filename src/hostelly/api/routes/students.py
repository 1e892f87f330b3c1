"""Student roster endpoints.

GET    /students?q=...&status=...      → filtered roster (Staff+)
GET    /students/unallocated           → students without a room (Staff+)
POST   /students                       → create account (Admin, 201)
PATCH  /students/{id}                  → update profile, email ignored (Admin)
DELETE /students/{id}                  → delete profile row (Admin, 204)
"""

from __future__ import annotations

import os
from datetime import date
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from pydantic import BaseModel, ConfigDict

from hostelly.api.errors import http_error
from hostelly.api.rbac import RoleContext, require_role
from hostelly.domain.errors import HostellyError
from hostelly.domain.students import (
    create_student_account,
    delete_student,
    list_unallocated_students,
    load_roster,
    update_student,
)

router = APIRouter(prefix="/students", tags=["students"])


# ── Schemas ───────────────────────────────────────────────────────────────────


class CreateStudentRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    full_name: str
    email: str
    password: str
    phone: str | None = None
    course: str | None = None
    joining_date: date | None = None


class UpdateStudentRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    full_name: str | None = None
    phone: str | None = None
    course: str | None = None
    # Sent back by the edit form; never written
    email: str | None = None


# ── GET /students ─────────────────────────────────────────────────────────────


@router.get("")
def get_students(
    q: str = Query("", description="Search name, email, course or phone"),
    status: Literal["all", "allocated", "unallocated"] = Query("all"),
    ctx: RoleContext = Depends(require_role("Staff")),
) -> list[dict]:
    """Students newest first, filtered by text then allocation status."""
    try:
        roster = load_roster(ctx.gateway())
    except HostellyError as e:
        raise http_error(e)

    return [
        {**student.to_dict(), "allocated": roster.is_allocated(student)}
        for student in roster.filtered(q, status)
    ]


@router.get("/unallocated")
def get_unallocated_students(
    ctx: RoleContext = Depends(require_role("Staff")),
) -> list[dict]:
    """Students with no active allocation, by name. Never cached."""
    try:
        students = list_unallocated_students(ctx.gateway())
    except HostellyError as e:
        raise http_error(e)

    return [{"id": s.id, "full_name": s.full_name} for s in students]


# ── POST /students ────────────────────────────────────────────────────────────


@router.post("", status_code=201)
def post_student(
    body: CreateStudentRequest,
    ctx: RoleContext = Depends(require_role("Admin")),
) -> dict:
    """Create a student account.

    The student must verify their email before the account can log in.
    422 for a short password, 409 if the email is already registered.
    """
    try:
        outcome = create_student_account(
            ctx.gateway(),
            full_name=body.full_name,
            email=body.email,
            password=body.password,
            phone=body.phone,
            course=body.course,
            joining_date=body.joining_date,
            redirect_to=os.environ.get("SIGNUP_REDIRECT_URL") or None,
        )
    except HostellyError as e:
        raise http_error(e)

    return {
        "user_id": outcome.user_id,
        "email": outcome.email,
        "requires_email_verification": outcome.requires_email_verification,
        "message": outcome.message,
    }


# ── PATCH /students/{student_id} ─────────────────────────────────────────────


@router.patch("/{student_id}")
def patch_student(
    student_id: str = Path(..., description="Student profile ID"),
    body: UpdateStudentRequest = ...,
    ctx: RoleContext = Depends(require_role("Admin")),
) -> dict:
    """Update name, phone or course. A submitted email is ignored."""
    try:
        student = update_student(
            ctx.gateway(), student_id, body.model_dump(exclude_unset=True)
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except HostellyError as e:
        raise http_error(e)

    return student.to_dict()


# ── DELETE /students/{student_id} ────────────────────────────────────────────


@router.delete("/{student_id}", status_code=204)
def remove_student(
    student_id: str = Path(..., description="Student profile ID"),
    ctx: RoleContext = Depends(require_role("Admin")),
) -> None:
    """Delete the student's profile. Their identity record is left in place."""
    try:
        delete_student(ctx.gateway(), student_id)
    except HostellyError as e:
        raise http_error(e)
