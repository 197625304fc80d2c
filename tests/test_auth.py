# =============================================================================
# tests/test_auth.py - Authentication and Role Gate Tests
# =============================================================================
# Tests for token verification (HS256 session tokens), profile loading and
# the role checks in front of the back-office routes.
#
# Run with: pytest tests/test_auth.py -v
# =============================================================================

import time
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from app.auth.dependencies import decode_token
from app.config import settings
from app.exceptions import AuthenticationError
from app.main import app


def make_token(sub=None, email="staff@example.com", expires_in=3600, secret=None, **claims):
    payload = {
        "sub": str(sub or uuid4()),
        "email": email,
        "aud": "authenticated",
        "exp": int(time.time()) + expires_in,
        "role": "authenticated",
        **claims,
    }
    return jwt.encode(payload, secret or settings.SUPABASE_JWT_SECRET, algorithm="HS256")


@pytest.fixture
def raw_client(db):
    """TestClient without any auth override."""
    with TestClient(app) as client:
        yield client


def _bearer(token):
    return {"Authorization": f"Bearer {token}"}


# =============================================================================
# Token Verification
# =============================================================================

class TestDecodeToken:
    """Tests for decode_token()."""

    def test_valid_token(self):
        user_id = uuid4()

        user = decode_token(make_token(sub=user_id, email="a@b.co"))

        assert user.id == user_id
        assert user.email == "a@b.co"

    def test_expired(self):
        with pytest.raises(AuthenticationError) as exc_info:
            decode_token(make_token(expires_in=-60))
        assert exc_info.value.message == "Token has expired"

    def test_wrong_secret(self):
        with pytest.raises(AuthenticationError):
            decode_token(make_token(secret="some-other-secret-value"))

    def test_wrong_audience(self):
        with pytest.raises(AuthenticationError):
            decode_token(make_token(aud="anon"))

    def test_malformed_subject(self):
        with pytest.raises(AuthenticationError) as exc_info:
            decode_token(make_token(sub="not-a-uuid"))
        assert "malformed" in exc_info.value.message

    def test_garbage(self):
        with pytest.raises(AuthenticationError):
            decode_token("definitely.not.a-jwt")


# =============================================================================
# Routes
# =============================================================================

class TestAuthRoutes:
    """Tests for /auth/* and the role gate on real routes."""

    def test_missing_token(self, raw_client):
        response = raw_client.get("/api/v1/auth/verify")

        assert response.status_code == 401
        assert response.json()["code"] == "UNAUTHORIZED"

    def test_verify(self, raw_client):
        user_id = uuid4()

        response = raw_client.get("/api/v1/auth/verify", headers=_bearer(make_token(sub=user_id)))

        assert response.status_code == 200
        assert response.json() == {"valid": True, "user_id": str(user_id), "email": "staff@example.com"}

    def test_me_without_profile(self, raw_client):
        response = raw_client.get("/api/v1/auth/me", headers=_bearer(make_token()))

        assert response.status_code == 403
        assert response.json()["code"] == "PROFILE_NOT_FOUND"

    def test_me(self, db, raw_client):
        user_id = db.add_account("staff@example.com", role="dispatcher")

        response = raw_client.get("/api/v1/auth/me", headers=_bearer(make_token(sub=user_id)))

        body = response.json()
        assert response.status_code == 200
        assert body["role"] == "dispatcher"
        assert body["is_staff"] is True

    def test_client_role_denied(self, db, raw_client):
        """A valid session with a non-staff role gets 403 on back-office routes."""
        # Arrange
        user_id = db.add_account("client@example.com", role="client")

        # Act
        response = raw_client.get("/api/v1/trips", headers=_bearer(make_token(sub=user_id)))

        # Assert
        assert response.status_code == 403
        body = response.json()
        assert body["code"] == "FORBIDDEN"
        assert body["details"]["current_role"] == "client"

    def test_dispatcher_denied_admin_route(self, db, raw_client):
        user_id = db.add_account("d@example.com", role="dispatcher")

        response = raw_client.get("/api/v1/facilities", headers=_bearer(make_token(sub=user_id)))

        assert response.status_code == 403
        assert response.json()["details"]["required_roles"] == ["admin"]

    def test_admin_allowed(self, db, raw_client):
        user_id = db.add_account("boss@example.com", role="admin")

        response = raw_client.get("/api/v1/facilities", headers=_bearer(make_token(sub=user_id)))

        assert response.status_code == 200
        assert response.json() == {"facilities": [], "total_facilities": 0}
