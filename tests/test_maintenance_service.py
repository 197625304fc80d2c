# =============================================================================
# tests/test_maintenance_service.py - Maintenance Job Tests
# =============================================================================
# Tests for the orphaned auth user report and cleanup, the consistency
# audit and the dashboard counts.
#
# Run with: pytest tests/test_maintenance_service.py -v
# =============================================================================

from core.services.maintenance_service import MaintenanceService


def _orphan(db, email):
    """An auth user with no profile."""
    return db.add_account(email, profile=False)


# =============================================================================
# Orphan Report
# =============================================================================

class TestOrphanReport:
    """Tests for MaintenanceService.orphan_report()."""

    def test_summary(self, db):
        # Arrange
        db.add_account("admin@example.com", role="admin")
        db.add_account("norole@example.com", role=None)
        orphan_id = _orphan(db, "ghost@example.com")
        db.seed("facility_managed_clients", {"email": "ADMIN@example.com"})

        # Act
        report = MaintenanceService.orphan_report()

        # Assert
        summary = report["summary"]
        assert summary["total_auth_users"] == 3
        assert summary["total_profiles"] == 2
        assert summary["total_managed_clients"] == 1
        assert summary["orphaned_auth_users"] == 1
        assert summary["users_by_role"] == {"admin": 1, "no_role": 1}
        assert [u["id"] for u in report["orphaned_auth_users"]] == [orphan_id]
        assert [p["email"] for p in report["profiles_without_role"]] == ["norole@example.com"]

    def test_duplicate_emails_across_sources(self, db):
        """The same address in auth, profiles and managed clients is one duplicate."""
        db.add_account("admin@example.com", role="admin")
        db.seed("facility_managed_clients", {"email": " Admin@Example.com "})

        report = MaintenanceService.orphan_report()

        assert report["summary"]["duplicate_emails_count"] == 1
        duplicate = report["duplicate_emails"][0]
        assert duplicate["email"] == "admin@example.com"
        assert sorted(o["source"] for o in duplicate["occurrences"]) == ["auth", "managed", "profile"]

    def test_managed_table_missing(self, db):
        db.missing_tables.add("facility_managed_clients")
        report = MaintenanceService.orphan_report()
        assert report["summary"]["total_managed_clients"] == 0


# =============================================================================
# Orphan Cleanup
# =============================================================================

class TestCleanupOrphanedUsers:
    """Tests for MaintenanceService.cleanup_orphaned_users()."""

    def test_no_orphans(self, db):
        db.add_account("admin@example.com", role="admin")

        result = MaintenanceService.cleanup_orphaned_users(dry_run=False)

        assert result["message"] == "No orphaned users found."
        assert result["users_deleted"] == 0

    def test_dry_run_deletes_nothing(self, db):
        orphan_id = _orphan(db, "ghost@example.com")

        result = MaintenanceService.cleanup_orphaned_users()

        assert result["dry_run"] is True
        assert result["orphaned_users_found"] == 1
        assert result["orphaned_users"][0]["email"] == "ghost@example.com"
        assert "dry_run=false" in result["message"]
        assert orphan_id in db.auth.admin.users

    def test_deletes_and_unlinks(self, db, make_trip):
        """Rows pointing at the orphan are removed or unlinked, then the login goes."""
        # Arrange
        orphan_id = _orphan(db, "ghost@example.com")
        trip = make_trip(status="completed", created_by=orphan_id, user_id="someone")
        db.seed("audit_logs", {"user_id": orphan_id, "action": "login"})
        db.seed("invoices", {"user_id": orphan_id})
        db.missing_tables.add("vehicle_checkoffs")

        # Act
        result = MaintenanceService.cleanup_orphaned_users(dry_run=False)

        # Assert
        assert result["users_deleted"] == 1
        assert result["deleted_users"] == [{"id": orphan_id, "email": "ghost@example.com"}]
        assert result["message"] == "Deleted 1 out of 1 orphaned users."
        assert orphan_id not in db.auth.admin.users
        assert db.rows("trips", id=trip["id"])[0]["created_by"] is None
        assert db.rows("audit_logs", user_id=orphan_id) == []
        assert db.rows("invoices") == []

    def test_user_with_trips_is_skipped(self, db, make_trip):
        """Orphans who still booked trips are reported, not deleted."""
        orphan_id = _orphan(db, "rider@example.com")
        make_trip(user_id=orphan_id)

        result = MaintenanceService.cleanup_orphaned_users(dry_run=False)

        assert result["users_deleted"] == 0
        assert result["errors"] == [{
            "user_id": orphan_id,
            "email": "rider@example.com",
            "error": "Has associated trips, skipping deletion",
        }]
        assert orphan_id in db.auth.admin.users

    def test_trips_by_email_count(self, db, make_trip):
        orphan_id = _orphan(db, "rider@example.com")
        make_trip(email="rider@example.com")

        result = MaintenanceService.cleanup_orphaned_users(dry_run=False)

        assert result["errors"][0]["user_id"] == orphan_id

    def test_trips_without_email_column(self, db):
        db.missing_columns.add(("trips", "email"))
        _orphan(db, "ghost@example.com")

        result = MaintenanceService.cleanup_orphaned_users(dry_run=False)

        assert result["users_deleted"] == 1

    def test_auth_failure_recorded(self, db):
        """One failing user doesn't stop the others."""
        # Arrange
        stuck_id = _orphan(db, "stuck@example.com")
        _orphan(db, "ghost@example.com")
        db.auth.admin.fail_delete.add(stuck_id)

        # Act
        result = MaintenanceService.cleanup_orphaned_users(dry_run=False)

        # Assert
        assert result["users_deleted"] == 1
        assert result["errors"][0]["email"] == "stuck@example.com"
        assert result["message"] == "Deleted 1 out of 2 orphaned users."


# =============================================================================
# Consistency Audit
# =============================================================================

class TestConsistencyAudit:
    """Tests for MaintenanceService.consistency_audit()."""

    def test_finds_issues(self, db, driver_id, make_trip):
        # Arrange
        db.seed("facilities",
                {"id": "f-none", "name": "No Owner"},
                {"id": "f-one", "name": "One Owner"},
                {"id": "f-two", "name": "Two Owners"})
        db.seed("facility_users",
                {"facility_id": "f-one", "user_id": "u1", "is_owner": True, "status": "active"},
                {"facility_id": "f-two", "user_id": "u2", "is_owner": True, "status": "active"},
                {"facility_id": "f-two", "user_id": "u3", "is_owner": True, "status": "active"},
                {"facility_id": "f-none", "user_id": "u4", "is_owner": True, "status": "inactive"})
        legacy = make_trip(status="confirmed")
        unknown = make_trip(status="mystery")
        ghost_driver = make_trip(status="upcoming", driver_id="deleted-driver")
        make_trip(status="upcoming", driver_id=driver_id)

        # Act
        report = MaintenanceService.consistency_audit()

        # Assert
        assert [f["id"] for f in report["facilities_without_owner"]] == ["f-none"]
        assert report["facilities_with_multiple_owners"][0]["owner_user_ids"] == ["u2", "u3"]
        assert report["trips_with_legacy_status"] == [
            {"id": legacy["id"], "status": "confirmed", "normalized": "upcoming"}
        ]
        assert [t["id"] for t in report["trips_with_unknown_status"]] == [unknown["id"]]
        assert [t["id"] for t in report["trips_with_missing_driver"]] == [ghost_driver["id"]]
        assert report["issues_found"] == 5

    def test_clean_database(self, db):
        assert MaintenanceService.consistency_audit()["issues_found"] == 0


# =============================================================================
# Dashboard
# =============================================================================

class TestDashboard:
    """Tests for MaintenanceService.dashboard_summary()."""

    def test_counts(self, db, facility, driver_id, client_id, make_trip):
        make_trip(status="pending")
        make_trip(status="confirmed")
        make_trip(status="mystery")

        summary = MaintenanceService.dashboard_summary()

        assert summary["total_users"] == 2
        assert summary["users_by_role"]["driver"] == 1
        assert summary["users_by_role"]["admin"] == 0
        assert summary["total_facilities"] == 1
        assert summary["trips_by_status"]["pending"] == 1
        assert summary["trips_by_status"]["upcoming"] == 1
        assert summary["trips_by_status"]["unknown"] == 1
        assert summary["total_trips"] == 3
