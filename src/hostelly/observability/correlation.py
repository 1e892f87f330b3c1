"""Correlation ID management for request tracing.

The ID set by the HTTP middleware is forwarded on every gateway call, so a
console request can be followed into the hosted backend's logs.
"""

import uuid
from contextvars import ContextVar, Token

# Context variable for correlation ID - visible to the worker threads the
# workflows fan out to, as long as they run under copy_context()
correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")

CORRELATION_ID_HEADER = "X-Correlation-ID"


def generate_correlation_id() -> str:
    """Generate a new correlation ID."""
    return str(uuid.uuid4())


def get_correlation_id() -> str:
    """Get current correlation ID from context."""
    return correlation_id_var.get()


def set_correlation_id(cid: str) -> Token[str]:
    """Set correlation ID in context."""
    return correlation_id_var.set(cid)


def reset_correlation_id(token: Token[str]) -> None:
    """Reset correlation ID to previous value."""
    correlation_id_var.reset(token)


def correlation_headers() -> dict[str, str]:
    """Headers to propagate the current correlation ID downstream.

    Empty when no ID is bound (e.g. calls made outside a request).
    """
    cid = get_correlation_id()
    if not cid:
        return {}
    return {CORRELATION_ID_HEADER: cid}
