"""Shared test helper functions for Hostelly tests.

This module contains helper functions that can be imported by both conftest.py
and individual test files. These are NOT fixtures - they are regular functions
and classes.
"""

from __future__ import annotations

import base64
import itertools
import time
from typing import Any

import jwt
from cryptography.hazmat.primitives.asymmetric import rsa

from hostelly.infra.gateway import NO_ROWS_CODE, GatewayError, GatewayResult

SUPABASE_URL = "https://project.supabase.co"
ISSUER = f"{SUPABASE_URL}/auth/v1"

GATEWAY_ENV = {
    "SUPABASE_URL": SUPABASE_URL,
    "SUPABASE_ANON_KEY": "anon-key",
}


def _generate_rsa_keypair():
    """Generate RSA key pair for test JWT signing."""
    private_key = rsa.generate_private_key(
        public_exponent=65537,
        key_size=2048,
    )
    public_key = private_key.public_key()
    return private_key, public_key


def _create_jwks(public_key, kid: str = "test-key-1") -> dict:
    """Create JWKS from public key."""
    public_numbers = public_key.public_numbers()

    def int_to_base64(n: int) -> str:
        byte_length = (n.bit_length() + 7) // 8
        return (
            base64.urlsafe_b64encode(n.to_bytes(byte_length, "big"))
            .rstrip(b"=")
            .decode()
        )

    return {
        "keys": [
            {
                "kty": "RSA",
                "use": "sig",
                "alg": "RS256",
                "kid": kid,
                "n": int_to_base64(public_numbers.n),
                "e": int_to_base64(public_numbers.e),
            }
        ]
    }


def _create_token(
    private_key,
    kid: str = "test-key-1",
    sub: str = "admin-1",
    iss: str = ISSUER,
    aud: str = "authenticated",
    exp: int | None = None,
) -> str:
    """Create signed JWT for testing."""
    now = int(time.time())
    payload = {
        "sub": sub,
        "iss": iss,
        "aud": aud,
        "exp": exp if exp is not None else now + 3600,
        "iat": now,
        "role": "authenticated",
    }
    return jwt.encode(payload, private_key, algorithm="RS256", headers={"kid": kid})


def _matches(row: dict, filters: dict | None) -> bool:
    for column, value in (filters or {}).items():
        if isinstance(value, (list, tuple, set, frozenset)):
            if str(row.get(column)) not in {str(v) for v in value}:
                return False
        elif value is None:
            if row.get(column) is not None:
                return False
        elif isinstance(value, bool):
            if row.get(column) is not value:
                return False
        elif str(row.get(column)) != str(value):
            return False
    return True


class FakeGateway:
    """In-memory stand-in for Gateway that records every call.

    Only what the workflows use is modelled: equality/in filters, ordering,
    single-object reads, the profiles(full_name) embed on allocations, the
    allocate_room procedure and sign-up.
    """

    def __init__(self, tables: dict[str, list[dict]] | None = None) -> None:
        self.tables: dict[str, list[dict]] = {
            name: [dict(row) for row in rows] for name, rows in (tables or {}).items()
        }
        self.calls: list[tuple] = []
        self.errors: dict[tuple[str, str], GatewayError] = {}
        self.sign_up_response: GatewayResult = GatewayResult(
            data={"user": {"id": "new-user", "identities": [{"id": "identity-1"}]}}
        )
        self._ids = itertools.count(1000)

    def fail(self, method: str, target: str, message: str = "boom", code: str | None = None) -> None:
        self.errors[(method, target)] = GatewayError(message=message, code=code, status=400)

    def calls_to(self, method: str, target: str | None = None) -> list[tuple]:
        return [c for c in self.calls if c[0] == method and (target is None or c[1] == target)]

    def _error(self, method: str, target: str) -> GatewayResult | None:
        error = self.errors.get((method, target))
        return GatewayResult(error=error) if error else None

    def select(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: dict | None = None,
        order: str | None = None,
        descending: bool = False,
        single: bool = False,
    ) -> GatewayResult:
        self.calls.append(("select", table, {"columns": columns, "filters": filters}))
        if failed := self._error("select", table):
            return failed

        rows = [dict(r) for r in self.tables.get(table, []) if _matches(r, filters)]
        if order:
            rows.sort(key=lambda r: str(r.get(order)), reverse=descending)
        if "profiles(full_name)" in columns:
            profiles = {str(p["id"]): p for p in self.tables.get("profiles", [])}
            for row in rows:
                profile = profiles.get(str(row.get("student_id")))
                row["profiles"] = {"full_name": profile["full_name"]} if profile else None

        if single:
            if not rows:
                return GatewayResult(
                    error=GatewayError(message="no rows", code=NO_ROWS_CODE, status=406)
                )
            return GatewayResult(data=rows[0])
        return GatewayResult(data=rows)

    def insert(self, table: str, row: dict[str, Any], *, single: bool = True) -> GatewayResult:
        self.calls.append(("insert", table, dict(row)))
        if failed := self._error("insert", table):
            return failed
        stored = {"id": next(self._ids), **row}
        self.tables.setdefault(table, []).append(stored)
        return GatewayResult(data=dict(stored) if single else [dict(stored)])

    def update(self, table: str, values: dict[str, Any], *, filters: dict) -> GatewayResult:
        self.calls.append(("update", table, {"values": dict(values), "filters": filters}))
        if failed := self._error("update", table):
            return failed
        updated = []
        for row in self.tables.get(table, []):
            if _matches(row, filters):
                row.update(values)
                updated.append(dict(row))
        return GatewayResult(data=updated)

    def delete(self, table: str, *, filters: dict) -> GatewayResult:
        self.calls.append(("delete", table, {"filters": filters}))
        if failed := self._error("delete", table):
            return failed
        rows = self.tables.get(table, [])
        deleted = [dict(r) for r in rows if _matches(r, filters)]
        self.tables[table] = [r for r in rows if not _matches(r, filters)]
        return GatewayResult(data=deleted)

    def rpc(self, function: str, params: dict[str, Any]) -> GatewayResult:
        self.calls.append(("rpc", function, dict(params)))
        if failed := self._error("rpc", function):
            return failed
        if function == "allocate_room":
            self.tables.setdefault("room_allocations", []).append(
                {
                    "room_id": params["p_room_id"],
                    "student_id": params["p_student_id"],
                    "is_active": True,
                }
            )
        return GatewayResult(data=None)

    def sign_up(self, *, email: str, password: str, metadata: dict, redirect_to: str | None = None) -> GatewayResult:
        self.calls.append(
            ("sign_up", "auth", {"email": email, "metadata": dict(metadata), "redirect_to": redirect_to})
        )
        return self.sign_up_response
