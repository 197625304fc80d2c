# =============================================================================
# tests/ - Test Suite
# =============================================================================
# This package contains all tests for the back-office API:
# - fakes.py: In-memory stand-in for the Supabase client (tables + auth admin)
# - test_models.py: Unit tests for Pydantic model validation
# - test_trip_lifecycle.py / test_cascade.py / test_pricing.py: core logic
# - test_*_service.py: Service classes against the in-memory database
# - test_auth.py / test_api.py: Endpoints through the FastAPI TestClient
#
# Run tests with: pytest
# =============================================================================
