"""Error taxonomy for the console workflows.

Remote failures (FetchError, MutationError) carry the gateway message
verbatim. Local precondition failures (CapacityViolation, RoomOccupiedError,
WeakPasswordError) are raised before any remote call is attempted.
"""

from __future__ import annotations

from hostelly.infra.gateway import GatewayError


class HostellyError(Exception):
    """Base class for workflow errors."""


# ── Remote failures ──────────────────────────────────────


class FetchError(HostellyError):
    """A read against the gateway failed (transport or policy)."""

    def __init__(self, what: str, error: GatewayError):
        self.what = what
        self.gateway_error = error
        super().__init__(error.message)


class MutationError(HostellyError):
    """A write against the gateway failed."""

    def __init__(self, what: str, message: str, error: GatewayError | None = None):
        self.what = what
        self.gateway_error = error
        super().__init__(message)

    @classmethod
    def from_gateway(cls, what: str, error: GatewayError) -> MutationError:
        return cls(what, error.message, error)


# ── Local preconditions ──────────────────────────────────


class CapacityViolation(HostellyError):
    """Room has more active occupants than the requested type allows."""

    def __init__(self, occupants: int, capacity: int):
        self.occupants = occupants
        self.capacity = capacity
        super().__init__(
            f"Cannot change type. Room has {occupants} occupants, "
            f"exceeding new capacity of {capacity}."
        )


class RoomOccupiedError(HostellyError):
    def __init__(self, occupants: int):
        self.occupants = occupants
        super().__init__(
            "Cannot delete an occupied room. Please deallocate students first."
        )


class WeakPasswordError(HostellyError):
    def __init__(self, min_length: int):
        self.min_length = min_length
        super().__init__(f"Password must be at least {min_length} characters long.")


class AccountExistsError(HostellyError):
    """Identity provider reported the email as already registered."""

    def __init__(self) -> None:
        super().__init__(
            "An account with this email already exists. Please use a different email."
        )


# ── Lookups ──────────────────────────────────────────────


class NotFound(HostellyError):
    pass


class RoomNotFound(NotFound):
    pass


class StudentNotFound(NotFound):
    pass


class MaintenanceRequestNotFound(NotFound):
    pass
