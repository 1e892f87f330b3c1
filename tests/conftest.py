"""Shared pytest fixtures for Hostelly tests."""
import sys
sys.dont_write_bytecode = True

from unittest.mock import patch  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from hostelly.api.factory import create_app  # noqa: E402

from helpers import (  # noqa: E402
    GATEWAY_ENV,
    FakeGateway,
    _create_jwks,
    _create_token,
    _generate_rsa_keypair,
)


@pytest.fixture(autouse=True)
def _reset_jwks_cache():
    """Reset global JWKS cache to avoid cross-test contamination.

    The JWKS cache is a module-level global that persists between tests.
    Without this reset, a cached JWKS from a previous test may not match
    the current test's keys.
    """
    import hostelly.api.auth as auth_module

    auth_module._jwks_cache = None
    auth_module._jwks_cache_time = 0
    yield
    auth_module._jwks_cache = None
    auth_module._jwks_cache_time = 0


@pytest.fixture
def hostel_tables():
    """A small hostel: three rooms, three students, two active allocations."""
    return {
        "rooms": [
            {"id": 1, "room_number": "101", "type": "Double", "status": "Occupied", "occupants": 2},
            {"id": 2, "room_number": "102", "type": "Single", "status": "Vacant", "occupants": 1},
            {"id": 3, "room_number": "103", "type": "Triple", "status": "Maintenance", "occupants": 3},
        ],
        "profiles": [
            {
                "id": "s-1",
                "full_name": "Asha Verma",
                "email": "asha@example.com",
                "phone": "9876543210",
                "course": "B.Tech CSE",
                "role": "Student",
                "created_at": "2024-07-01T10:00:00Z",
            },
            {
                "id": "s-2",
                "full_name": "Rahul Nair",
                "email": "rahul@example.com",
                "phone": "9123456780",
                "course": "MBA",
                "role": "Student",
                "created_at": "2024-07-02T10:00:00Z",
            },
            {
                "id": "s-3",
                "full_name": "Meera Iyer",
                "email": "meera@example.com",
                "phone": None,
                "course": None,
                "role": "Student",
                "created_at": "2024-07-03T10:00:00Z",
            },
            {
                "id": "admin-1",
                "full_name": "Warden Admin",
                "email": "admin@example.com",
                "role": "Admin",
                "created_at": "2024-01-01T10:00:00Z",
            },
        ],
        "room_allocations": [
            {"room_id": 1, "student_id": "s-1", "is_active": True},
            {"room_id": 1, "student_id": "s-2", "is_active": True},
            {"room_id": 2, "student_id": "s-3", "is_active": False},
        ],
    }


@pytest.fixture
def gw(hostel_tables):
    """Fake gateway seeded with hostel_tables."""
    return FakeGateway(hostel_tables)


# ── Auth / API fixtures ───────────────────────────────────────────────


@pytest.fixture(scope="session")
def rsa_keypair():
    """RSA key pair used to sign test access tokens."""
    return _generate_rsa_keypair()


@pytest.fixture
def jwks(rsa_keypair):
    _, public_key = rsa_keypair
    return _create_jwks(public_key)


@pytest.fixture
def auth_env():
    return dict(GATEWAY_ENV)


@pytest.fixture
def mock_jwks_fetch(jwks):
    """Patch the JWKS fetch so tokens signed with rsa_keypair verify."""
    with patch("hostelly.api.auth._fetch_jwks") as mock:
        mock.return_value = jwks
        yield mock


OPERATORS = {
    "admin-1": {"id": "admin-1", "full_name": "Warden Admin", "email": "admin@example.com", "role": "Admin"},
    "staff-1": {"id": "staff-1", "full_name": "Desk Staff", "email": "staff@example.com", "role": "Staff"},
    "student-1": {"id": "student-1", "full_name": "Some Student", "email": "st@example.com", "role": "Student"},
}


@pytest.fixture
def mock_profiles():
    """Resolve operator profiles without the gateway."""
    def lookup(profile_id, access_token):
        return OPERATORS.get(profile_id)

    with patch("hostelly.api.auth._get_profile", side_effect=lookup) as mock:
        yield mock


@pytest.fixture
def token_for(rsa_keypair):
    """Build an Authorization header for an operator id."""
    private_key, _ = rsa_keypair

    def build(sub: str = "admin-1") -> dict:
        return {"Authorization": f"Bearer {_create_token(private_key, sub=sub)}"}

    return build


@pytest.fixture
def api(auth_env, mock_jwks_fetch, mock_profiles, gw):
    """TestClient whose gateway calls land on the fake gateway."""
    with patch.dict("os.environ", auth_env), patch("hostelly.api.rbac.Gateway", return_value=gw):
        yield TestClient(create_app())
