"""Shared read helpers for the workflows.

- fetch_rows(): gateway select that raises FetchError instead of returning it
- fetch_in_parallel(): fixed fan-out of independent reads, joined in order
"""

from __future__ import annotations

import contextvars
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, TypeVar

from hostelly.domain.errors import FetchError
from hostelly.infra.gateway import Gateway

T = TypeVar("T")


def fetch_rows(gw: Gateway, table: str, *, what: str | None = None, **select_kwargs: Any) -> Any:
    """Select from a table, raising FetchError on failure.

    Args:
        gw: Gateway to read through.
        table: Table name.
        what: Label for the error (defaults to the table name).
        **select_kwargs: Forwarded to Gateway.select.

    Returns:
        List of rows (empty list when the gateway returns nothing), or a
        single row when single=True.

    Raises:
        FetchError: On transport or policy failure.
    """
    result = gw.select(table, **select_kwargs)
    if result.error:
        raise FetchError(what or table, result.error)
    if result.data is None and not select_kwargs.get("single"):
        return []
    return result.data


def fetch_in_parallel(*calls: Callable[[], T]) -> list[T]:
    """Run independent reads concurrently and return results in call order.

    Each call runs in a copy of the caller's context so the correlation ID
    follows it. The first failure (in call order) is re-raised after all
    calls have finished; nothing is cancelled.
    """
    with ThreadPoolExecutor(max_workers=max(len(calls), 1)) as executor:
        futures = [
            executor.submit(contextvars.copy_context().run, call) for call in calls
        ]
    return [future.result() for future in futures]
