# =============================================================================
# core/services/maintenance_service.py - Data Hygiene Jobs
# =============================================================================
# Reports and cleanups that keep auth users, profiles and trips consistent:
# - orphan_report(): auth users without a profile, duplicate emails
# - cleanup_orphaned_users(): delete orphaned auth users that hold no trips
# - consistency_audit(): facility ownership and trip data problems
# - dashboard_summary(): headline counts for the admin dashboard
#
# The long-running ones are also exposed as Celery tasks (workers/tasks.py).
# =============================================================================

import logging
from typing import Any

from core.cascade import CascadePlan, CascadeStep, StepAction, run_cascade
from core.models.facility import RecordStatus
from core.models.profile import UserRole
from core.models.trip import TripStatus
from lib.supabase_client import SupabaseClient, SupabaseClientError, is_missing_relation

logger = logging.getLogger(__name__)

NO_ROLE = "no_role"

# Rows that point at an orphaned auth user. Every step is optional: the
# auth deletion is attempted whatever happens here.
UNLINK_ORPHAN_PLAN = CascadePlan(
    name="unlink_orphaned_user",
    steps=[
        CascadeStep("invoices", "user_id", "user_id"),
        CascadeStep("vehicle_checkoffs", "driver_id", "user_id"),
        CascadeStep("trips", "driver_id", "user_id", action=StepAction.NULLIFY),
        CascadeStep("trips", "rejected_by_driver_id", "user_id", action=StepAction.NULLIFY),
        CascadeStep("trips", "booked_by", "user_id", action=StepAction.NULLIFY),
        CascadeStep("trips", "created_by", "user_id", action=StepAction.NULLIFY),
        CascadeStep("trips", "last_edited_by", "user_id", action=StepAction.NULLIFY),
        CascadeStep("audit_logs", "user_id", "user_id"),
    ],
)


def _select_all(table: str, columns: str = "*") -> list[dict[str, Any]]:
    """All rows of a table; an empty list if the table doesn't exist."""
    try:
        return (
            SupabaseClient.get_client().table(table).select(columns).execute()
        ).data or []
    except Exception as e:
        if not is_missing_relation(e):
            raise
        logger.info(f"Table {table} not available, treating as empty")
        return []


class MaintenanceService:
    """
    Service for maintenance reports and cleanups.
    """

    # -------------------------------------------------------------------------
    # Orphaned auth users
    # -------------------------------------------------------------------------

    @staticmethod
    def find_orphaned_users() -> list[dict[str, Any]]:
        """Auth users with no profile row."""
        auth_users = SupabaseClient.list_auth_users()
        profile_ids = {row["id"] for row in _select_all("profiles", "id")}
        return [user for user in auth_users if user["id"] not in profile_ids]

    @staticmethod
    def orphan_report() -> dict[str, Any]:
        """
        Report on account consistency.

        Returns:
            Dict with summary totals, orphaned auth users, duplicate emails
            across auth/profiles/managed clients and profiles without a role
        """
        auth_users = SupabaseClient.list_auth_users()
        profiles = _select_all("profiles")
        managed = _select_all("facility_managed_clients")

        profile_ids = {p["id"] for p in profiles}
        orphaned = [u for u in auth_users if u["id"] not in profile_ids]

        users_by_role: dict[str, int] = {}
        for profile in profiles:
            role = profile.get("role") or NO_ROLE
            users_by_role[role] = users_by_role.get(role, 0) + 1

        occurrences: dict[str, list[dict[str, str]]] = {}
        sources = (
            ("auth", auth_users),
            ("profile", profiles),
            ("managed", managed),
        )
        for source, rows in sources:
            for row in rows:
                email = (row.get("email") or "").strip().lower()
                if email:
                    occurrences.setdefault(email, []).append({"source": source, "id": row["id"]})

        duplicates = [
            {"email": email, "occurrences": items}
            for email, items in sorted(occurrences.items())
            if len(items) > 1
        ]

        return {
            "summary": {
                "total_auth_users": len(auth_users),
                "total_profiles": len(profiles),
                "total_managed_clients": len(managed),
                "orphaned_auth_users": len(orphaned),
                "users_by_role": users_by_role,
                "duplicate_emails_count": len(duplicates),
            },
            "orphaned_auth_users": [
                {
                    "id": u["id"],
                    "email": u.get("email"),
                    "created_at": u.get("created_at"),
                    "last_sign_in_at": u.get("last_sign_in_at"),
                }
                for u in orphaned
            ],
            "duplicate_emails": duplicates,
            "profiles_without_role": [
                {"id": p["id"], "email": p.get("email"), "created_at": p.get("created_at")}
                for p in profiles
                if not p.get("role")
            ],
        }

    @staticmethod
    def _has_trips(user: dict[str, Any]) -> bool:
        """True if any trip references the user by ID or by email."""
        client = SupabaseClient.get_client()
        by_id = (
            client.table("trips").select("id").eq("user_id", user["id"]).limit(1).execute()
        ).data
        if by_id:
            return True

        if not user.get("email"):
            return False
        try:
            by_email = (
                client.table("trips").select("id").eq("email", user["email"]).limit(1).execute()
            ).data
        except Exception as e:
            if not is_missing_relation(e):
                raise
            return False
        return bool(by_email)

    @staticmethod
    def cleanup_orphaned_users(dry_run: bool = True) -> dict[str, Any]:
        """
        Delete auth users that have no profile.

        Users still referenced by trips are skipped and reported in errors.
        For the rest, rows pointing at them are removed or unlinked
        (best effort) before the auth user is deleted.

        Args:
            dry_run: Only report what would be deleted

        Returns:
            Dict with dry_run, orphaned_users_found, users_deleted,
            deleted_users, errors and message (plus orphaned_users on a dry run)
        """
        orphaned = MaintenanceService.find_orphaned_users()
        result: dict[str, Any] = {
            "dry_run": dry_run,
            "orphaned_users_found": len(orphaned),
            "users_deleted": 0,
            "deleted_users": [],
            "errors": [],
        }

        if not orphaned:
            result["message"] = "No orphaned users found."
            return result

        if dry_run:
            result["orphaned_users"] = [
                {
                    "id": u["id"],
                    "email": u.get("email"),
                    "created_at": u.get("created_at"),
                    "last_sign_in_at": u.get("last_sign_in_at"),
                }
                for u in orphaned
            ]
            result["message"] = (
                f"Found {len(orphaned)} orphaned users. Run with dry_run=false to delete them."
            )
            return result

        for user in orphaned:
            user_id, email = user["id"], user.get("email")
            try:
                if MaintenanceService._has_trips(user):
                    result["errors"].append({
                        "user_id": user_id,
                        "email": email,
                        "error": "Has associated trips, skipping deletion",
                    })
                    continue

                summary = run_cascade(UNLINK_ORPHAN_PLAN, {"user_id": user_id})
                for warning in summary.warnings:
                    logger.warning(f"Orphan {user_id} cleanup: {warning}")

                SupabaseClient.delete_auth_user(user_id)
            except SupabaseClientError as e:
                logger.error(f"Could not delete orphaned user {email}: {e}")
                result["errors"].append({"user_id": user_id, "email": email, "error": e.message})
                continue
            except Exception as e:
                logger.error(f"Orphan cleanup failed for {email}: {e}")
                result["errors"].append({"user_id": user_id, "email": email, "error": str(e)})
                continue

            result["users_deleted"] += 1
            result["deleted_users"].append({"id": user_id, "email": email})

        result["message"] = (
            f"Deleted {result['users_deleted']} out of {len(orphaned)} orphaned users."
        )
        logger.info(result["message"])
        return result

    # -------------------------------------------------------------------------
    # Consistency audit
    # -------------------------------------------------------------------------

    @staticmethod
    def consistency_audit() -> dict[str, Any]:
        """
        Look for data the back office relies on being consistent.

        Checks:
        - facilities with no active owner, or more than one
        - trips whose status isn't in the current vocabulary (legacy or unknown)
        - assigned trips whose driver profile is gone

        Returns:
            Dict with one list per check, and "issues_found" (total)
        """
        facilities = _select_all("facilities", "id, name")
        memberships = _select_all("facility_users", "facility_id, user_id, is_owner, status")
        trips = _select_all("trips", "id, status, driver_id")
        drivers = {
            row["id"]
            for row in _select_all("profiles", "id, role")
            if row.get("role") == UserRole.DRIVER.value
        }

        owners: dict[str, list[str]] = {}
        for membership in memberships:
            if membership.get("is_owner") and membership.get("status") == RecordStatus.ACTIVE.value:
                owners.setdefault(membership["facility_id"], []).append(membership["user_id"])

        without_owner = [
            {"id": f["id"], "name": f.get("name")}
            for f in facilities
            if not owners.get(f["id"])
        ]
        multiple_owners = [
            {"id": f["id"], "name": f.get("name"), "owner_user_ids": owners[f["id"]]}
            for f in facilities
            if len(owners.get(f["id"], [])) > 1
        ]

        current = {s.value for s in TripStatus}
        legacy_status = []
        unknown_status = []
        for trip in trips:
            status = trip.get("status")
            if status in current:
                continue
            entry = {"id": trip["id"], "status": status}
            if TripStatus.normalize(status) is not None:
                entry["normalized"] = TripStatus.normalize(status).value
                legacy_status.append(entry)
            else:
                unknown_status.append(entry)

        missing_driver = [
            {"id": t["id"], "driver_id": t["driver_id"], "status": t.get("status")}
            for t in trips
            if t.get("driver_id") and t["driver_id"] not in drivers
        ]

        issues = (
            len(without_owner) + len(multiple_owners)
            + len(legacy_status) + len(unknown_status) + len(missing_driver)
        )
        logger.info(f"Consistency audit: {issues} issues found")
        return {
            "facilities_without_owner": without_owner,
            "facilities_with_multiple_owners": multiple_owners,
            "trips_with_legacy_status": legacy_status,
            "trips_with_unknown_status": unknown_status,
            "trips_with_missing_driver": missing_driver,
            "issues_found": issues,
        }

    # -------------------------------------------------------------------------
    # Dashboard
    # -------------------------------------------------------------------------

    @staticmethod
    def dashboard_summary() -> dict[str, Any]:
        """Headline counts: users per role, facilities, trips per status."""
        profiles = _select_all("profiles", "role")
        trips = _select_all("trips", "status")

        users_by_role = {role.value: 0 for role in UserRole}
        for profile in profiles:
            role = profile.get("role") or NO_ROLE
            users_by_role[role] = users_by_role.get(role, 0) + 1

        trips_by_status = {status.value: 0 for status in TripStatus}
        for trip in trips:
            status = TripStatus.normalize(trip.get("status"))
            key = status.value if status else "unknown"
            trips_by_status[key] = trips_by_status.get(key, 0) + 1

        return {
            "users_by_role": users_by_role,
            "total_users": len(profiles),
            "total_facilities": SupabaseClient.count_rows("facilities"),
            "trips_by_status": trips_by_status,
            "total_trips": len(trips),
        }
