"""Remote data gateway client (Supabase REST + Auth).

Provides:
- Gateway: table select/insert/update/delete via PostgREST, remote procedure
  calls and identity sign-up via GoTrue.
- GatewayResult / GatewayError: every call returns a (data, error) pair.

Transport failures are folded into GatewayResult.error; nothing here raises
for a failed remote call. Interpreting the error is the caller's job.

Security: request/response bodies are NEVER logged (they carry emails,
phone numbers and passwords). Only table, method, status and error code.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Mapping

import requests

from hostelly.observability.correlation import correlation_headers
from hostelly.observability.logging import get_logger
from hostelly.observability.redaction import safe_log_context

logger = get_logger(__name__)

DEFAULT_HTTP_TIMEOUT = 10

# PostgREST error code for "single object requested, zero rows returned"
NO_ROWS_CODE = "PGRST116"

_OBJECT_ACCEPT = "application/vnd.pgrst.object+json"


@dataclass(frozen=True)
class GatewayError:
    """Error reported by the gateway (or by the transport to it)."""

    message: str
    code: str | None = None
    status: int | None = None

    @property
    def is_no_rows(self) -> bool:
        return self.code == NO_ROWS_CODE


@dataclass(frozen=True)
class GatewayResult:
    """Outcome of a gateway call: data on success, error otherwise."""

    data: Any = None
    error: GatewayError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _get_config(
    base_url: str | None = None,
    anon_key: str | None = None,
) -> dict[str, Any]:
    """Get gateway config from params or environment.

    Required env vars (if not provided as args):
    - SUPABASE_URL: project URL, e.g. https://xyz.supabase.co
    - SUPABASE_ANON_KEY: public anon key

    Optional:
    - GATEWAY_HTTP_TIMEOUT: request timeout in seconds (default: 10)
    """
    resolved_url = base_url or os.environ.get("SUPABASE_URL", "")
    resolved_key = anon_key or os.environ.get("SUPABASE_ANON_KEY", "")

    if not resolved_url or not resolved_key:
        raise RuntimeError(
            "Missing gateway config: SUPABASE_URL and SUPABASE_ANON_KEY required"
        )

    timeout = float(os.environ.get("GATEWAY_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT))

    return {
        "base_url": resolved_url.rstrip("/"),
        "anon_key": resolved_key,
        "timeout": timeout,
    }


def _encode_filter_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _filter_params(filters: Mapping[str, Any] | None) -> dict[str, str]:
    """Translate {column: value} into PostgREST filters.

    Scalars become eq., None becomes is.null, and lists/tuples/sets become
    in.(a,b,...).
    """
    if not filters:
        return {}
    params: dict[str, str] = {}
    for column, value in filters.items():
        if value is None:
            params[column] = "is.null"
        elif isinstance(value, (list, tuple, set, frozenset)):
            params[column] = "in.(" + ",".join(_encode_filter_value(v) for v in value) + ")"
        else:
            params[column] = "eq." + _encode_filter_value(value)
    return params


def _error_from_response(resp: requests.Response) -> GatewayError:
    """Build a GatewayError from a non-2xx response.

    PostgREST answers {code, message, details, hint}; GoTrue answers
    {code, error_code, msg} or {error, error_description}.
    """
    try:
        body = resp.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        message = (
            body.get("message")
            or body.get("msg")
            or body.get("error_description")
            or body.get("error")
        )
        code = body.get("code") or body.get("error_code")
    else:
        message = None
        code = None

    return GatewayError(
        message=str(message or resp.text or f"HTTP {resp.status_code}"),
        code=str(code) if code is not None else None,
        status=resp.status_code,
    )


class Gateway:
    """Client for the hosted tables, procedures and identity service.

    Usage:
        gw = Gateway(access_token=token)  # reads SUPABASE_URL/ANON_KEY from env
        result = gw.select("rooms", order="room_number")
        if result.error:
            ...

    When access_token is given, requests run as that user so row-level
    security policies apply; otherwise they run with the anon key.
    """

    def __init__(
        self,
        *,
        base_url: str | None = None,
        anon_key: str | None = None,
        access_token: str | None = None,
    ) -> None:
        config = _get_config(base_url, anon_key)
        self._base_url: str = config["base_url"]
        self._anon_key: str = config["anon_key"]
        self._timeout: float = config["timeout"]
        self._access_token = access_token

    # ── Transport ─────────────────────────────────────────────────────────

    def _headers(self, extra: Mapping[str, str] | None = None) -> dict[str, str]:
        headers = {
            "apikey": self._anon_key,
            "Authorization": f"Bearer {self._access_token or self._anon_key}",
            "Content-Type": "application/json",
        }
        headers.update(correlation_headers())
        if extra:
            headers.update(extra)
        return headers

    def _request(
        self,
        method: str,
        path: str,
        *,
        target: str,
        params: Mapping[str, str] | None = None,
        json: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> GatewayResult:
        url = f"{self._base_url}{path}"
        log_ctx = safe_log_context(method=method, target=target)

        try:
            resp = requests.request(
                method,
                url,
                params=params,
                json=json,
                headers=self._headers(headers),
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            logger.warning(
                "gateway transport failure",
                extra={
                    "extra_fields": safe_log_context(
                        **log_ctx, error_type=type(e).__name__
                    )
                },
            )
            return GatewayResult(error=GatewayError(message=str(e), code="transport"))

        if not resp.ok:
            error = _error_from_response(resp)
            logger.warning(
                "gateway call failed",
                extra={
                    "extra_fields": safe_log_context(
                        **log_ctx, status=resp.status_code, code=error.code
                    )
                },
            )
            return GatewayResult(error=error)

        if resp.status_code == 204 or not resp.content:
            return GatewayResult(data=None)

        try:
            return GatewayResult(data=resp.json())
        except ValueError:
            return GatewayResult(
                error=GatewayError(
                    message="Invalid JSON from gateway", status=resp.status_code
                )
            )

    # ── Tables ────────────────────────────────────────────────────────────

    def select(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: Mapping[str, Any] | None = None,
        order: str | None = None,
        descending: bool = False,
        single: bool = False,
    ) -> GatewayResult:
        """Read rows from a table.

        Args:
            table: Table name.
            columns: PostgREST select expression (supports embeds such as
                "room_id, profiles(full_name)").
            filters: Equality filters, {column: value}.
            order: Column to order by.
            descending: Order direction.
            single: Return one object instead of a list. Zero rows is an
                error with code NO_ROWS_CODE.
        """
        params = {"select": columns, **_filter_params(filters)}
        if order:
            params["order"] = f"{order}.{'desc' if descending else 'asc'}"
        headers = {"Accept": _OBJECT_ACCEPT} if single else None
        return self._request(
            "GET", f"/rest/v1/{table}", target=table, params=params, headers=headers
        )

    def insert(self, table: str, row: Mapping[str, Any], *, single: bool = True) -> GatewayResult:
        """Insert a row and return it as stored."""
        headers = {"Prefer": "return=representation"}
        if single:
            headers["Accept"] = _OBJECT_ACCEPT
        return self._request(
            "POST", f"/rest/v1/{table}", target=table, json=dict(row), headers=headers
        )

    def update(
        self,
        table: str,
        values: Mapping[str, Any],
        *,
        filters: Mapping[str, Any],
    ) -> GatewayResult:
        """Update matching rows. Data is the list of updated rows."""
        if not filters:
            raise ValueError("update requires at least one filter")
        return self._request(
            "PATCH",
            f"/rest/v1/{table}",
            target=table,
            params=_filter_params(filters),
            json=dict(values),
            headers={"Prefer": "return=representation"},
        )

    def delete(self, table: str, *, filters: Mapping[str, Any]) -> GatewayResult:
        """Delete matching rows. Data is the list of deleted rows."""
        if not filters:
            raise ValueError("delete requires at least one filter")
        return self._request(
            "DELETE",
            f"/rest/v1/{table}",
            target=table,
            params=_filter_params(filters),
            headers={"Prefer": "return=representation"},
        )

    # ── Procedures ────────────────────────────────────────────────────────

    def rpc(self, function: str, params: Mapping[str, Any]) -> GatewayResult:
        """Call a remote procedure."""
        return self._request(
            "POST", f"/rest/v1/rpc/{function}", target=f"rpc:{function}", json=dict(params)
        )

    # ── Identity ──────────────────────────────────────────────────────────

    def sign_up(
        self,
        *,
        email: str,
        password: str,
        metadata: Mapping[str, Any],
        redirect_to: str | None = None,
    ) -> GatewayResult:
        """Create an identity carrying profile metadata.

        Data is {"user": <user object or None>}. GoTrue answers with the bare
        user when email confirmation is on, or with a session wrapping the
        user otherwise; both are normalised here.
        """
        params = {"redirect_to": redirect_to} if redirect_to else None
        result = self._request(
            "POST",
            "/auth/v1/signup",
            target="auth:signup",
            params=params,
            json={"email": email, "password": password, "data": dict(metadata)},
        )
        if result.error:
            return result

        body = result.data if isinstance(result.data, dict) else {}
        if "id" in body:
            user = body
        else:
            user = body.get("user")
        return GatewayResult(data={"user": user})
