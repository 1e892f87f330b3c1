"""Supabase access-token authentication.

Provides:
- verify_token(): Validates JWT against the project JWKS, returns subject claim
- get_current_user(): FastAPI dependency for the authenticated operator

The operator's token is kept on CurrentUser so gateway calls made on their
behalf run under the same row-level-security policies as the console did.
"""

from __future__ import annotations

import os
import threading
import time
from dataclasses import dataclass
from typing import Any

import jwt
import requests
from fastapi import HTTPException, Request

# JWKS cache with TTL
_jwks_cache: dict[str, Any] | None = None
_jwks_cache_time: float = 0
_jwks_cache_lock = threading.Lock()
_JWKS_CACHE_TTL = 600  # 10 minutes

_ALGORITHMS = ["RS256", "ES256"]


@dataclass
class CurrentUser:
    """Authenticated operator context."""

    id: str
    email: str | None
    name: str | None
    role: str
    access_token: str


def _get_settings() -> dict[str, str | None]:
    """Load token verification settings from environment."""
    base_url = os.environ.get("SUPABASE_URL", "").rstrip("/")
    issuer = f"{base_url}/auth/v1" if base_url else None
    jwks_url = os.environ.get("SUPABASE_JWKS_URL") or (
        f"{issuer}/.well-known/jwks.json" if issuer else None
    )

    return {
        "issuer": issuer,
        "audience": os.environ.get("SUPABASE_JWT_AUDIENCE", "authenticated"),
        "jwks_url": jwks_url,
    }


def _fetch_jwks(jwks_url: str) -> dict[str, Any]:
    """Fetch JWKS from URL."""
    resp = requests.get(jwks_url, timeout=10)
    resp.raise_for_status()
    return resp.json()


def _get_jwks(jwks_url: str, force_refresh: bool = False) -> dict[str, Any]:
    """Get JWKS with caching."""
    global _jwks_cache, _jwks_cache_time

    with _jwks_cache_lock:
        now = time.time()
        if not force_refresh and _jwks_cache is not None and (now - _jwks_cache_time) < _JWKS_CACHE_TTL:
            return _jwks_cache

        try:
            _jwks_cache = _fetch_jwks(jwks_url)
        except requests.RequestException:
            raise HTTPException(status_code=503, detail="Auth temporarily unavailable")
        _jwks_cache_time = now
        return _jwks_cache


def _find_key(jwks: dict[str, Any], kid: str) -> dict[str, Any] | None:
    """Find key by kid in JWKS."""
    for key in jwks.get("keys", []):
        if key.get("kid") == kid:
            return key
    return None


def verify_token(token: str) -> str:
    """Verify an access token and return its subject claim.

    Args:
        token: JWT issued by the project's auth service.

    Returns:
        Subject claim (sub), the operator's profile id.

    Raises:
        HTTPException: 401 if token is invalid.
    """
    settings = _get_settings()

    issuer = settings.get("issuer")
    audience = settings.get("audience")
    jwks_url = settings.get("jwks_url")

    if not issuer or not audience or not jwks_url:
        raise HTTPException(status_code=401, detail="Auth not configured")

    try:
        unverified_header = jwt.get_unverified_header(token)
    except jwt.exceptions.DecodeError:
        raise HTTPException(status_code=401, detail="Invalid token")

    kid = unverified_header.get("kid")
    if not kid:
        raise HTTPException(status_code=401, detail="Invalid token")

    jwks = _get_jwks(jwks_url)
    key_data = _find_key(jwks, kid)

    # Unknown kid: keys may have rotated, refetch once
    if key_data is None:
        jwks = _get_jwks(jwks_url, force_refresh=True)
        key_data = _find_key(jwks, kid)

    if key_data is None:
        raise HTTPException(status_code=401, detail="Invalid token")

    def _try_verify(jwk_data: dict[str, Any]) -> dict[str, Any]:
        try:
            signing_key = jwt.PyJWK(jwk_data).key
        except jwt.PyJWKError:
            raise HTTPException(status_code=401, detail="Invalid token")

        return jwt.decode(
            token,
            signing_key,
            algorithms=_ALGORITHMS,
            issuer=issuer,
            audience=audience,
            options={"require": ["exp", "iss", "aud", "sub"]},
        )

    try:
        payload = _try_verify(key_data)
    except jwt.InvalidSignatureError:
        jwks = _get_jwks(jwks_url, force_refresh=True)
        key_data = _find_key(jwks, kid)
        if key_data is None:
            raise HTTPException(status_code=401, detail="Invalid token")
        try:
            payload = _try_verify(key_data)
        except jwt.InvalidTokenError:
            raise HTTPException(status_code=401, detail="Invalid token")
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")

    sub = payload.get("sub")
    if not sub:
        raise HTTPException(status_code=401, detail="Invalid token")

    return sub


def _extract_bearer_token(request: Request) -> str:
    """Extract Bearer token from Authorization header.

    Raises:
        HTTPException: 401 if header missing or malformed.
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        raise HTTPException(status_code=401, detail="Missing authorization header")

    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(status_code=401, detail="Invalid authorization header")

    return parts[1]


def _get_profile(profile_id: str, access_token: str) -> dict[str, Any] | None:
    """Lookup the operator's profile through the gateway, as the operator.

    Returns:
        Profile row if found, None otherwise.

    Raises:
        HTTPException: 503 if the gateway cannot be reached.
    """
    from hostelly.infra.gateway import Gateway

    result = Gateway(access_token=access_token).select(
        "profiles",
        columns="id, full_name, email, role",
        filters={"id": profile_id},
        single=True,
    )
    if result.error:
        if result.error.is_no_rows:
            return None
        raise HTTPException(status_code=503, detail="Profile lookup unavailable")
    return result.data


def get_current_user(request: Request) -> CurrentUser:
    """FastAPI dependency: get authenticated operator.

    Raises:
        HTTPException: 401 if token invalid/missing, 403 if no profile.
    """
    token = _extract_bearer_token(request)
    sub = verify_token(token)

    profile = _get_profile(sub, token)
    if profile is None:
        raise HTTPException(status_code=403, detail="Profile not found")

    return CurrentUser(
        id=str(profile["id"]),
        email=profile.get("email"),
        name=profile.get("full_name"),
        role=profile.get("role") or "",
        access_token=token,
    )

