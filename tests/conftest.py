# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# This module provides pytest fixtures and configuration for all tests.
#
# Key features:
# - Sets up mock environment variables before any imports
# - Installs an in-memory Supabase fake for every test
# - Provides a TestClient whose caller role can be switched per test
# =============================================================================

import os
from datetime import timedelta

# =============================================================================
# Set up test environment BEFORE any imports
# =============================================================================
# This must happen before importing app.config which loads settings immediately

os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret-with-enough-length")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DEBUG", "true")

import pytest

from lib.supabase_client import SupabaseClient
from lib.utils import utc_now
from tests.fakes import FakeSupabase

ADMIN_ID = "11111111-1111-4111-8111-111111111111"


def hours_from_now(hours: float) -> str:
    """ISO timestamp relative to now (negative for the past)."""
    return (utc_now() + timedelta(hours=hours)).isoformat()


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture(autouse=True)
def db(monkeypatch):
    """Fresh in-memory database installed as the Supabase singleton."""
    fake = FakeSupabase()
    monkeypatch.setattr(SupabaseClient, "_instance", fake)
    return fake


@pytest.fixture
def facility(db):
    """An active facility row."""
    return db.seed("facilities", {
        "name": "Riverside Care Home",
        "contact_email": "office@riverside.example.com",
        "status": "active",
        "created_at": "2024-01-01T00:00:00+00:00",
    })[0]


@pytest.fixture
def driver_id(db):
    """An available driver account."""
    return db.add_account(
        "driver@example.com", role="driver",
        first_name="Dana", last_name="Driver", status="available",
    )


@pytest.fixture
def client_id(db):
    """An individual client account."""
    return db.add_account(
        "client@example.com", role="client",
        first_name="Casey", last_name="Client",
    )


@pytest.fixture
def make_trip(db):
    """Factory that seeds a trip row and returns it."""
    def _make(status="pending", pickup_in_hours=48, **fields):
        row = {
            "status": status,
            "pickup_time": hours_from_now(pickup_in_hours),
            "pickup_address": "100 Main St",
            "destination_address": "Mercy Hospital",
            "created_at": hours_from_now(-1),
            **fields,
        }
        return db.seed("trips", row)[0]
    return _make


@pytest.fixture
def caller():
    """Who the API thinks is calling. Tests mutate role/id as needed."""
    return {"id": ADMIN_ID, "role": "admin", "email": "admin@example.com"}


@pytest.fixture
def api(db, caller):
    """TestClient with authentication replaced by the `caller` fixture."""
    from fastapi.testclient import TestClient

    from app.auth.dependencies import get_current_profile
    from app.auth.models import CurrentProfile
    from app.main import app

    def fake_profile():
        return CurrentProfile(**caller)

    app.dependency_overrides[get_current_profile] = fake_profile
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()
