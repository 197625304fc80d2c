# =============================================================================
# tests/test_api.py - API Endpoint Tests
# =============================================================================
# End-to-end tests of the routers against the in-memory database: status
# codes, the unified error body, role gates and the response shapes the
# admin dashboard relies on.
#
# Authentication is replaced by the `caller` fixture (see conftest.py).
#
# Run with: pytest tests/test_api.py -v
# =============================================================================

from types import SimpleNamespace

import pytest
from fastapi import HTTPException

from app.routers.tasks import submit_task

MISSING_ID = "5e6f7a8b-0000-4000-8000-000000000000"


# =============================================================================
# Service Endpoints
# =============================================================================

class TestServiceEndpoints:
    """Tests for health checks, root and error shapes."""

    def test_health(self, api):
        response = api.get("/api/v1/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_ready(self, api):
        response = api.get("/api/v1/health/ready")
        assert response.json()["status"] == "ready"

    def test_ready_degraded(self, api, db):
        db.fail("profiles", "select", "connection refused")

        body = api.get("/api/v1/health/ready").json()

        assert body["status"] == "degraded"
        assert body["checks"]["auth"] == "healthy"

    def test_unknown_route(self, api):
        response = api.get("/api/v1/nope")
        assert response.status_code == 404
        assert response.json()["code"] == "HTTP_404"

    def test_validation_error_body(self, api):
        """Schema errors come back in the same body shape as every other error."""
        response = api.post("/api/v1/facilities", json={"contactEmail": "bad"})

        assert response.status_code == 422
        body = response.json()
        assert body["code"] == "VALIDATION_ERROR"
        fields = {e["field"] for e in body["details"]["errors"]}
        assert "body.name" in fields


# =============================================================================
# Facilities and Clients
# =============================================================================

class TestFacilityRoutes:
    """Tests for /facilities and /clients."""

    def test_create_and_get(self, api, db):
        # Act
        created = api.post("/api/v1/facilities", json={
            "name": "Sunrise", "contactEmail": "Office@Sunrise.example.com",
        })
        facility_id = created.json()["facility"]["id"]
        fetched = api.get(f"/api/v1/facilities/{facility_id}")

        # Assert
        assert created.status_code == 201
        assert created.json()["facility"]["billing_email"] == "office@sunrise.example.com"
        assert fetched.status_code == 200
        assert fetched.json()["counts"]["managed_clients"] == 0
        assert db.rows("audit_logs", action="create_facility")

    def test_missing_facility(self, api):
        response = api.get(f"/api/v1/facilities/{MISSING_ID}")

        assert response.status_code == 404
        assert response.json() == {
            "error": "Facility not found",
            "code": "FACILITY_NOT_FOUND",
            "suggestion": "Check that the facility ID is correct",
            "details": {"id": MISSING_ID},
        }

    def test_patch(self, api, facility):
        response = api.patch(f"/api/v1/facilities/{facility['id']}", json={"phoneNumber": "614-555-0100"})

        assert response.status_code == 200
        assert response.json()["facility"]["phone_number"] == "614-555-0100"
        assert response.json()["facility"]["name"] == "Riverside Care Home"

    def test_owner_then_conflict(self, api, facility):
        body = {"email": "owner@riverside.example.com", "firstName": "Olive", "lastName": "Owner"}

        first = api.post(f"/api/v1/facilities/{facility['id']}/owner", json=body)
        second = api.post(f"/api/v1/facilities/{facility['id']}/owner", json={**body, "email": "o2@r.example.com"})

        assert first.status_code == 201
        assert first.json()["credentials"]["email"] == "owner@riverside.example.com"
        assert second.status_code == 409
        assert second.json()["code"] == "CONFLICT"

    def test_managed_clients(self, api, facility):
        created = api.post(f"/api/v1/facilities/{facility['id']}/clients", json={
            "firstName": "Mo", "lastName": "Lee",
        })
        listed = api.get(f"/api/v1/facilities/{facility['id']}/clients")

        assert created.status_code == 201
        assert listed.json()["managed_count"] == 1

    def test_clients_list_and_create(self, api, facility):
        created = api.post("/api/v1/clients", json={
            "email": "c@example.com", "firstName": "Cy", "lastName": "Lo", "facilityId": facility["id"],
        })
        listed = api.get("/api/v1/clients", params={"facilityId": facility["id"]})

        assert created.status_code == 201
        assert created.json()["created"] is True
        assert listed.json()["individual_count"] == 1

    def test_admin_only(self, api, caller):
        caller["role"] = "dispatcher"
        assert api.get("/api/v1/facilities").status_code == 403
        assert api.get("/api/v1/clients").status_code == 403


# =============================================================================
# Drivers and Dispatchers
# =============================================================================

class TestPeopleRoutes:
    """Tests for /drivers and /dispatchers."""

    def test_dispatcher_can_list_drivers(self, api, caller, driver_id):
        caller["role"] = "dispatcher"

        response = api.get("/api/v1/drivers", params={"status": "available"})

        assert response.status_code == 200
        assert response.json()["total"] == 1

    def test_dispatcher_cannot_create_driver(self, api, caller):
        caller["role"] = "dispatcher"
        response = api.post("/api/v1/drivers", json={"email": "d@e.co", "firstName": "D", "lastName": "E"})
        assert response.status_code == 403

    def test_driver_lifecycle(self, api, db):
        created = api.post("/api/v1/drivers", json={
            "email": "d@example.com", "firstName": "Dee", "lastName": "Vee", "vehicleLicense": "ABC123",
        })
        driver_id = created.json()["user_id"]

        updated = api.put(f"/api/v1/drivers/{driver_id}", json={"status": "inactive"})
        fetched = api.get(f"/api/v1/drivers/{driver_id}")
        deleted = api.delete(f"/api/v1/drivers/{driver_id}")

        assert created.status_code == 201
        assert updated.json()["driver"]["status"] == "inactive"
        assert fetched.json()["driver"]["total_trips"] == 0
        assert deleted.status_code == 200
        assert db.rows("profiles", id=driver_id) == []

    def test_dispatcher_crud(self, api):
        created = api.post("/api/v1/dispatchers", json={"email": "x@example.com", "firstName": "X", "lastName": "Y"})
        dispatcher_id = created.json()["user_id"]

        updated = api.put(f"/api/v1/dispatchers/{dispatcher_id}", json={
            "firstName": "Xa", "lastName": "Y", "email": "x@example.com",
        })
        listed = api.get("/api/v1/dispatchers")
        deleted = api.delete(f"/api/v1/dispatchers/{dispatcher_id}")

        assert created.status_code == 201
        assert updated.json()["dispatcher"]["first_name"] == "Xa"
        assert listed.json()["total"] == 1
        assert deleted.json()["auth_user_deleted"] is True


# =============================================================================
# Trips
# =============================================================================

class TestTripRoutes:
    """Tests for /trips."""

    def test_book_as_dispatcher(self, api, caller, client_id):
        caller["role"] = "dispatcher"

        response = api.post("/api/v1/trips", json={
            "userId": client_id,
            "pickupAddress": "100 Main St",
            "destinationAddress": "Mercy Hospital",
            "pickupTime": "2030-03-06T10:00:00",
            "distance": 10,
            "isRoundTrip": True,
        })

        assert response.status_code == 201
        trip = response.json()["trip"]
        assert trip["status"] == "pending"
        assert trip["price"] == 160.0

    def test_booking_needs_one_client(self, api):
        response = api.post("/api/v1/trips", json={
            "pickupAddress": "a", "destinationAddress": "b", "pickupTime": "2030-03-06T10:00:00",
        })
        assert response.status_code == 422

    def test_quote(self, api):
        response = api.post("/api/v1/trips/quote", json={
            "distance": 5, "isVeteran": True, "pickupTime": "2030-03-06T10:00:00",
        })

        body = response.json()
        assert body["total"] == 52.0
        assert body["formatted_total"] == "$52.00"
        assert body["line_items"]["Veteran discount"] == -13.0

    def test_list_and_get(self, api, make_trip):
        trip = make_trip(status="confirmed")

        listed = api.get("/api/v1/trips", params={"status": "upcoming"})
        fetched = api.get(f"/api/v1/trips/{trip['id']}")

        assert listed.json()["total_trips"] == 1
        assert fetched.json()["trip"]["id"] == trip["id"]

    def test_delete_live_trip_refused(self, api, make_trip):
        trip = make_trip(status="pending")

        response = api.delete(f"/api/v1/trips/{trip['id']}")

        assert response.status_code == 400
        assert response.json()["code"] == "DELETION_BLOCKED"

    def test_unassign(self, api, driver_id, make_trip):
        trip = make_trip(status="upcoming", driver_id=driver_id)

        response = api.post(f"/api/v1/trips/{trip['id']}/unassign")

        assert response.json()["trip"]["status"] == "pending"

    def test_driver_rejects_own_trip(self, api, caller, driver_id, make_trip):
        caller.update(id=driver_id, role="driver")
        trip = make_trip(status="upcoming", driver_id=driver_id)

        response = api.post(f"/api/v1/trips/{trip['id']}/driver-rejection", json={"driverId": driver_id})

        assert response.status_code == 200
        assert response.json()["trip"]["status"] == "rejected"

    def test_driver_cannot_reject_for_someone_else(self, api, caller, driver_id, make_trip):
        caller.update(id=MISSING_ID, role="driver")
        trip = make_trip(status="upcoming", driver_id=driver_id)

        response = api.post(f"/api/v1/trips/{trip['id']}/driver-rejection", json={"driverId": driver_id})

        assert response.status_code == 403

    def test_client_cannot_use_trip_routes(self, api, caller):
        caller["role"] = "client"
        assert api.get("/api/v1/trips").status_code == 403


# =============================================================================
# Admin: dispatch
# =============================================================================

class TestAdminDispatch:
    """Tests for /admin/assign-trip, /admin/complete-trip and /admin/trip-actions."""

    def test_assign_as_dispatcher(self, api, caller, db, driver_id, make_trip):
        # Arrange
        caller["role"] = "dispatcher"
        trip = make_trip(status="pending")

        # Act
        response = api.post("/api/v1/admin/assign-trip", json={"tripId": trip["id"], "driverId": driver_id})

        # Assert
        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Trip assigned successfully"
        assert body["assigned_trip"]["status"] == "upcoming"
        assert db.rows("trips", id=trip["id"])[0]["driver_id"] == driver_id

    def test_assign_driver_alias(self, api, driver_id, make_trip):
        trip = make_trip(status="pending")
        response = api.post("/api/v1/admin/assign-driver", json={"tripId": trip["id"], "driverId": driver_id})
        assert response.status_code == 200

    def test_assign_conflict(self, api, driver_id, make_trip):
        trip = make_trip(status="pending", pickup_in_hours=24)
        make_trip(status="upcoming", pickup_in_hours=25, driver_id=driver_id)

        response = api.post("/api/v1/admin/assign-trip", json={"tripId": trip["id"], "driverId": driver_id})

        assert response.status_code == 400
        assert response.json()["code"] == "DRIVER_CONFLICT"

    def test_assign_taken_trip(self, api, driver_id, make_trip):
        trip = make_trip(status="upcoming", driver_id=MISSING_ID)

        response = api.post("/api/v1/admin/assign-trip", json={"tripId": trip["id"], "driverId": driver_id})

        assert response.status_code == 400
        assert response.json()["code"] == "TRIP_ALREADY_ASSIGNED"

    def test_complete(self, api, driver_id, make_trip):
        trip = make_trip(status="in_progress", driver_id=driver_id)

        response = api.post("/api/v1/admin/complete-trip", json={"tripId": trip["id"]})

        assert response.json()["trip"]["status"] == "completed"

    def test_trip_action(self, api, make_trip):
        trip = make_trip(status="pending")

        response = api.post("/api/v1/admin/trip-actions", json={
            "tripId": trip["id"], "action": "reject", "reason": "Outside service area",
        })

        body = response.json()
        assert body["new_status"] == "cancelled"
        assert body["trip"]["cancellation_reason"] == "Outside service area"

    def test_trip_action_invalid(self, api, make_trip):
        trip = make_trip(status="completed")

        response = api.post("/api/v1/admin/trip-actions", json={"tripId": trip["id"], "action": "approve"})

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_STATUS_TRANSITION"

    def test_trip_actions_admin_only(self, api, caller, make_trip):
        caller["role"] = "dispatcher"
        trip = make_trip(status="pending")

        response = api.post("/api/v1/admin/trip-actions", json={"tripId": trip["id"], "action": "approve"})

        assert response.status_code == 403


# =============================================================================
# Admin: deletions
# =============================================================================

class TestAdminDeletions:
    """Tests for the /admin/delete-* endpoints."""

    @pytest.mark.parametrize("path,label", [
        ("delete-facility", "Facility ID"),
        ("delete-client", "Client ID"),
        ("delete-managed-client", "Client ID"),
        ("delete-driver", "Driver ID"),
    ])
    def test_missing_id(self, api, path, label):
        response = api.delete(f"/api/v1/admin/{path}")

        assert response.status_code == 400
        assert response.json()["error"] == f"{label} is required"

    def test_delete_facility(self, api, db, facility):
        response = api.delete("/api/v1/admin/delete-facility", params={"facilityId": facility["id"]})

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == 'Facility "Riverside Care Home" and all associated data deleted successfully'
        assert body["deletion_summary"]["trips_deleted"] == 0
        assert db.rows("audit_logs", action="delete_facility")

    def test_delete_facility_blocked(self, api, facility, make_trip):
        make_trip(status="upcoming", facility_id=facility["id"])

        response = api.delete("/api/v1/admin/delete-facility", params={"facilityId": facility["id"]})

        assert response.status_code == 400
        assert response.json()["code"] == "DELETION_BLOCKED"

    def test_delete_client(self, api, client_id):
        response = api.delete("/api/v1/admin/delete-client", params={"clientId": client_id})
        assert response.json()["message"] == "Client deleted successfully"

    def test_delete_managed_client(self, api, facility, db):
        managed = db.seed("facility_managed_clients", {
            "facility_id": facility["id"], "first_name": "Mo", "last_name": "Lee",
        })[0]

        response = api.delete("/api/v1/admin/delete-managed-client", params={"clientId": managed["id"]})

        assert response.json()["message"] == "Client Mo Lee deleted successfully"

    def test_delete_unknown_managed_client(self, api):
        response = api.delete("/api/v1/admin/delete-managed-client", params={"clientId": MISSING_ID})
        assert response.status_code == 404
        assert response.json()["code"] == "MANAGED_CLIENT_NOT_FOUND"

    def test_delete_driver_with_active_trip(self, api, driver_id, make_trip):
        make_trip(status="upcoming", driver_id=driver_id)

        response = api.delete("/api/v1/admin/delete-driver", params={"driverId": driver_id})

        assert response.status_code == 400

    def test_cascade_failure_is_500(self, api, db, facility):
        db.fail("facilities", "delete", "foreign key violation")

        response = api.delete("/api/v1/admin/delete-facility", params={"facilityId": facility["id"]})

        assert response.status_code == 500
        body = response.json()
        assert body["code"] == "CASCADE_STEP_FAILED"
        assert body["details"]["step"] == "facility"


# =============================================================================
# Admin: accounts and maintenance
# =============================================================================

class TestAdminAccounts:
    """Tests for /admin/users, /admin/update-email and /admin/update-role."""

    def test_create_user(self, api, db):
        response = api.post("/api/v1/admin/users", json={
            "email": "New@Example.com", "role": "dispatcher", "firstName": "Ne", "lastName": "W",
        })

        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "Dispatcher created successfully"
        assert db.rows("profiles", id=body["user_id"])[0]["full_name"] == "Ne W"

    def test_create_user_role_clash(self, api, db):
        db.add_account("taken@example.com", role="driver")

        response = api.post("/api/v1/admin/users", json={
            "email": "taken@example.com", "role": "client", "firstName": "T", "lastName": "K",
        })

        assert response.status_code == 400

    def test_update_email_and_role(self, api, db, client_id):
        email = api.post("/api/v1/admin/update-email", json={"userId": client_id, "newEmail": "moved@example.com"})
        role = api.post("/api/v1/admin/update-role", json={"userId": client_id, "role": "dispatcher"})

        assert email.json()["new_email"] == "moved@example.com"
        assert role.json()["old_role"] == "client"
        assert db.rows("profiles", id=client_id)[0]["role"] == "dispatcher"

    def test_update_email_admin_only(self, api, caller, client_id):
        caller["role"] = "dispatcher"
        response = api.post("/api/v1/admin/update-email", json={"userId": client_id, "newEmail": "x@y.co"})
        assert response.status_code == 403


class TestAdminMaintenance:
    """Tests for orphan cleanup, audit, dashboard and management resets."""

    def test_orphan_report(self, api, db):
        db.add_account("ghost@example.com", profile=False)

        response = api.get("/api/v1/admin/orphaned-users")

        assert response.json()["summary"]["orphaned_auth_users"] == 1

    def test_cleanup_defaults_to_dry_run(self, api, db):
        orphan_id = db.add_account("ghost@example.com", profile=False)

        response = api.post("/api/v1/admin/cleanup-orphaned-users")

        assert response.json()["dry_run"] is True
        assert orphan_id in db.auth.admin.users

    def test_cleanup_for_real(self, api, db):
        orphan_id = db.add_account("ghost@example.com", profile=False)

        response = api.post("/api/v1/admin/cleanup-orphaned-users", json={"dryRun": False})

        assert response.json()["users_deleted"] == 1
        assert orphan_id not in db.auth.admin.users
        assert db.rows("audit_logs", action="cleanup_orphaned_users")

    def test_cleanup_in_background(self, api, monkeypatch):
        """background=true queues the job instead of running it."""
        queued = []

        def fake_submit(task, *args, description):
            queued.append(args)
            return {"task_id": "task-123", "status": "PENDING", "message": description}

        monkeypatch.setattr("app.routers.admin.submit_task", fake_submit)

        response = api.post("/api/v1/admin/cleanup-orphaned-users", json={"dryRun": False, "background": True})

        assert response.json()["task_id"] == "task-123"
        assert queued == [(False, "11111111-1111-4111-8111-111111111111")]

    def test_consistency_audit(self, api, make_trip):
        make_trip(status="confirmed")
        response = api.get("/api/v1/admin/consistency-audit")
        assert response.json()["issues_found"] == 1

    def test_dashboard_for_dispatchers(self, api, caller):
        caller["role"] = "dispatcher"
        response = api.get("/api/v1/admin/dashboard")
        assert response.status_code == 200
        assert response.json()["total_trips"] == 0

    def test_invoice_listing(self, api, db, client_id):
        db.seed(
            "invoices",
            {"user_id": client_id, "status": "paid", "total": 40, "created_at": "2025-01-01T00:00:00+00:00"},
            {"user_id": client_id, "status": "overdue", "total": 60, "created_at": "2025-02-01T00:00:00+00:00"},
        )

        everything = api.get("/api/v1/admin/invoices")
        overdue = api.get("/api/v1/admin/invoices", params={"status": "overdue"})

        assert everything.json()["stats"]["paid_amount"] == 40
        assert everything.json()["invoices"][0]["status"] == "overdue"
        assert [i["total"] for i in overdue.json()["invoices"]] == [60]

    def test_invoice_listing_admin_only(self, api, caller):
        caller["role"] = "dispatcher"
        assert api.get("/api/v1/admin/invoices").status_code == 403

    def test_invoice_listing_unknown_status(self, api):
        assert api.get("/api/v1/admin/invoices", params={"status": "lost"}).status_code == 422

    @pytest.mark.parametrize("path", ["facilities-management", "users-management", "trips-management"])
    def test_reset_requires_confirm(self, api, path):
        response = api.delete(f"/api/v1/admin/{path}")

        assert response.status_code == 400
        assert "confirm=true" in response.json()["error"]

    def test_trip_reset(self, api, db, make_trip):
        make_trip(status="pending")

        listing = api.get("/api/v1/admin/trips-management")
        response = api.delete("/api/v1/admin/trips-management", params={"confirm": "true"})

        assert listing.json()["total_trips"] == 1
        assert response.json()["trips_deleted"] == 1
        assert db.rows("trips") == []

    def test_user_reset_keeps_staff(self, api, db, client_id, driver_id):
        db.add_account("boss@example.com", role="admin")

        listing = api.get("/api/v1/admin/users-management")
        response = api.delete("/api/v1/admin/users-management", params={"confirm": "true"})

        assert listing.json()["summary"] == {"keep": 1, "delete": 2}
        assert response.json()["users_deleted"] == 2

    def test_facility_reset(self, api, facility):
        listing = api.get("/api/v1/admin/facilities-management")
        response = api.delete("/api/v1/admin/facilities-management", params={"confirm": "true"})

        assert listing.json()["total_facilities"] == 1
        assert response.json()["facilities_deleted"] == 1


# =============================================================================
# Background task submission
# =============================================================================

class TestSubmitTask:
    """Tests for submit_task()."""

    def test_returns_task_id(self):
        task = SimpleNamespace(delay=lambda *args: SimpleNamespace(id="abc"))

        response = submit_task(task, True, description="Orphaned user cleanup")

        assert response.task_id == "abc"
        assert response.status == "PENDING"
        assert response.message.startswith("Orphaned user cleanup submitted")

    def test_broker_down_is_503(self):
        def delay(*args):
            raise ConnectionError("redis unreachable")

        with pytest.raises(HTTPException) as exc_info:
            submit_task(SimpleNamespace(delay=delay), description="Consistency audit")

        assert exc_info.value.status_code == 503


# =============================================================================
# Entry point
# =============================================================================

class TestEntryPoint:
    """Tests for running app.main as a script."""

    def test_serves_on_configured_host_and_port(self, monkeypatch):
        import runpy

        import uvicorn

        from app.config import settings

        # Arrange
        calls = []
        monkeypatch.setattr(uvicorn, "run", lambda target, **kwargs: calls.append((target, kwargs)))
        monkeypatch.setattr(settings, "API_HOST", "127.0.0.1")
        monkeypatch.setattr(settings, "API_PORT", 9001)

        # Act
        runpy.run_module("app.main", run_name="__main__")

        # Assert
        assert calls == [(
            "app.main:app",
            {"host": "127.0.0.1", "port": 9001, "reload": settings.DEBUG},
        )]
