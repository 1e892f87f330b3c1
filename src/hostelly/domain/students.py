"""Student roster workflow.

Students are rows of `profiles` with role = 'Student'. Accounts are created
through the identity service (profile fields travel as sign-up metadata and
the profile row is created server-side); edits and deletes go straight to
the profiles table.

Known asymmetry: delete_student() removes the profile row only. The identity
record stays behind until an administrative deletion procedure exists.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable, Mapping

from hostelly.domain.errors import (
    AccountExistsError,
    MutationError,
    StudentNotFound,
    WeakPasswordError,
)
from hostelly.domain.fetching import fetch_in_parallel, fetch_rows
from hostelly.infra.gateway import Gateway
from hostelly.observability.logging import get_logger
from hostelly.observability.redaction import safe_log_context

logger = get_logger(__name__)

STUDENT_ROLE = "Student"
MIN_PASSWORD_LENGTH = 6

STATUS_FILTERS = ("all", "allocated", "unallocated")

_STUDENT_COLUMNS = "id, full_name, email, course, phone, created_at"

# Email is fixed at sign-up
IMMUTABLE_FIELDS = frozenset({"email"})

VERIFICATION_NOTICE = (
    "Student account created! The user will need to verify their email to log in."
)


@dataclass(frozen=True)
class Student:
    id: str
    full_name: str
    email: str
    phone: str | None = None
    course: str | None = None
    created_at: str | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Student:
        return cls(
            id=row["id"],
            full_name=row.get("full_name") or "",
            email=row.get("email") or "",
            phone=row.get("phone"),
            course=row.get("course"),
            created_at=row.get("created_at"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "full_name": self.full_name,
            "email": self.email,
            "phone": self.phone,
            "course": self.course,
            "created_at": self.created_at,
        }


@dataclass
class Roster:
    """Snapshot of students and which of them hold an active allocation."""

    students: list[Student] = field(default_factory=list)
    allocated_ids: frozenset[str] = frozenset()

    def is_allocated(self, student: Student) -> bool:
        return student.id in self.allocated_ids

    def filtered(self, search_term: str = "", status_filter: str = "all") -> list[Student]:
        return filter_students(self.students, search_term, status_filter, self.allocated_ids)


@dataclass(frozen=True)
class SignUpOutcome:
    """Successful account creation. The account is unusable until verified."""

    user_id: str | None
    email: str
    requires_email_verification: bool = True
    message: str = VERIFICATION_NOTICE


# ── Reads ────────────────────────────────────────────────


def list_students(gw: Gateway) -> list[Student]:
    """List students, newest first.

    Raises:
        FetchError: On transport or policy failure.
    """
    rows = fetch_rows(
        gw,
        "profiles",
        what="students",
        columns=_STUDENT_COLUMNS,
        filters={"role": STUDENT_ROLE},
        order="created_at",
        descending=True,
    )
    return [Student.from_row(row) for row in rows]


def list_allocated_student_ids(gw: Gateway) -> frozenset[str]:
    """Ids of students holding an active allocation."""
    rows = fetch_rows(
        gw,
        "room_allocations",
        what="allocations",
        columns="student_id",
        filters={"is_active": True},
    )
    return frozenset(row["student_id"] for row in rows)


def load_roster(gw: Gateway) -> Roster:
    """Fetch students and allocated ids in parallel.

    Raises:
        FetchError: If either read fails.
    """
    students, allocated_ids = fetch_in_parallel(
        lambda: list_students(gw),
        lambda: list_allocated_student_ids(gw),
    )
    return Roster(students=students, allocated_ids=allocated_ids)


def list_unallocated_students(gw: Gateway) -> list[Student]:
    """Students with no active allocation, ordered by name.

    Recomputed from the gateway on every call.

    Raises:
        FetchError: If either read fails.
    """
    rows = fetch_rows(
        gw,
        "profiles",
        what="students",
        columns=_STUDENT_COLUMNS,
        filters={"role": STUDENT_ROLE},
        order="full_name",
    )
    allocated_ids = list_allocated_student_ids(gw)
    return [
        Student.from_row(row) for row in rows if row["id"] not in allocated_ids
    ]


def _matches(student: Student, lowered_term: str) -> bool:
    return (
        lowered_term in student.full_name.lower()
        or lowered_term in student.email.lower()
        or (bool(student.course) and lowered_term in student.course.lower())
        # phone is digits; matched as-is
        or (bool(student.phone) and lowered_term in student.phone)
    )


def filter_students(
    students: Iterable[Student],
    search_term: str = "",
    status_filter: str = "all",
    allocated_ids: Iterable[str] = frozenset(),
) -> list[Student]:
    """Filter a roster by free text, then by allocation status.

    Args:
        students: Students to filter (order is preserved).
        search_term: Case-insensitive substring of name, email or course, or
            a substring of the phone number. Empty means no text filter.
        status_filter: all, allocated or unallocated.
        allocated_ids: Ids of students with an active allocation.

    Raises:
        ValueError: Unknown status_filter.
    """
    if status_filter not in STATUS_FILTERS:
        raise ValueError(f"Invalid status filter: {status_filter}")

    filtered = list(students)

    if search_term:
        lowered = search_term.lower()
        filtered = [s for s in filtered if _matches(s, lowered)]

    if status_filter == "all":
        return filtered

    allocated = allocated_ids if isinstance(allocated_ids, (set, frozenset)) else set(allocated_ids)
    want_allocated = status_filter == "allocated"
    return [s for s in filtered if (s.id in allocated) == want_allocated]


# ── Mutations ────────────────────────────────────────────


def create_student_account(
    gw: Gateway,
    *,
    full_name: str,
    email: str,
    password: str,
    phone: str | None = None,
    course: str | None = None,
    joining_date: date | str | None = None,
    redirect_to: str | None = None,
) -> SignUpOutcome:
    """Create a student identity; the profile is built from its metadata.

    Args:
        joining_date: Defaults to today.
        redirect_to: Where the verification email should land.

    Returns:
        SignUpOutcome. The student must verify their email before logging in.

    Raises:
        WeakPasswordError: Password shorter than MIN_PASSWORD_LENGTH. Checked
            before any remote call.
        AccountExistsError: The email is already registered (the identity
            service answers with a user that has no identities).
        MutationError: The identity service returned an error (message kept
            verbatim) or no user at all.
    """
    if len(password) < MIN_PASSWORD_LENGTH:
        raise WeakPasswordError(MIN_PASSWORD_LENGTH)

    if joining_date is None:
        joining_date = date.today()
    if isinstance(joining_date, date):
        joining_date = joining_date.isoformat()

    result = gw.sign_up(
        email=email,
        password=password,
        metadata={
            "full_name": full_name,
            "role": STUDENT_ROLE,
            "phone": phone,
            "course": course,
            "joining_date": joining_date,
        },
        redirect_to=redirect_to,
    )
    if result.error:
        raise MutationError.from_gateway("student account", result.error)

    user = (result.data or {}).get("user")
    if not user:
        raise MutationError("student account", "An unknown error occurred during sign up.")

    identities = user.get("identities")
    if identities is not None and len(identities) == 0:
        logger.info("sign up rejected: account exists")
        raise AccountExistsError()

    logger.info(
        "student account created",
        extra={"extra_fields": safe_log_context(user_id=user.get("id"), email=email)},
    )
    return SignUpOutcome(user_id=user.get("id"), email=email)


def update_student(gw: Gateway, student_id: str, fields: Mapping[str, Any]) -> Student:
    """Update a student's profile. Email is never changed.

    Null values are dropped; name, phone and course cannot be cleared.

    Raises:
        ValueError: Nothing left to update once email and nulls are dropped.
        StudentNotFound: No profile with this id.
        MutationError: The update failed remotely.
    """
    values = {
        k: v for k, v in fields.items() if k not in IMMUTABLE_FIELDS and v is not None
    }
    if not values:
        raise ValueError("No fields to update")

    result = gw.update("profiles", values, filters={"id": student_id})
    if result.error:
        raise MutationError.from_gateway("student", result.error)
    if not result.data:
        raise StudentNotFound(f"Student {student_id} not found")

    return Student.from_row(result.data[0])


def delete_student(gw: Gateway, student_id: str) -> None:
    """Delete a student's profile row.

    The identity record is not touched.

    Raises:
        StudentNotFound: No profile with this id.
        MutationError: The delete failed remotely.
    """
    result = gw.delete("profiles", filters={"id": student_id})
    if result.error:
        raise MutationError.from_gateway("student", result.error)
    if not result.data:
        raise StudentNotFound(f"Student {student_id} not found")

    logger.info(
        "student profile deleted",
        extra={"extra_fields": safe_log_context(student_id=student_id)},
    )
