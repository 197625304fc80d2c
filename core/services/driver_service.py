# =============================================================================
# core/services/driver_service.py - Driver Business Logic
# =============================================================================
# Drivers are login accounts with profiles.role = "driver". Their profile
# also carries the vehicle (model, plate) and availability status.
#
# Deleting a driver keeps trip history: trips they drove stay in place with
# driver_id cleared.
# =============================================================================

import logging
from typing import Any
from uuid import UUID

from app.config import settings
from app.exceptions import BackendError, DeletionBlockedError, EntityNotFoundError, ValidationFailedError
from core.cascade import CascadePlan, CascadeStep, StepAction, run_cascade
from core.models.profile import DriverStatus, UserRole
from core.models.trip import TripStatus
from core.services.user_service import UserService
from core.trip_lifecycle import ACTIVE_STATUSES, stored_values
from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.utils import full_name, normalize_email, normalize_uuid, utc_now_iso

logger = logging.getLogger(__name__)


DELETE_DRIVER_PLAN = CascadePlan(
    name="delete_driver",
    steps=[
        CascadeStep("trips", "driver_id", "driver_id", action=StepAction.NULLIFY,
                    label="trips_unassigned"),
        CascadeStep("trips", "rejected_by_driver_id", "driver_id", action=StepAction.NULLIFY,
                    label="trip_rejections_cleared"),
        CascadeStep("vehicle_checkoffs", "driver_id", "driver_id"),
        CascadeStep("vehicles", "driver_id", "driver_id"),
        CascadeStep("driver_documents", "driver_id", "driver_id"),
        CascadeStep("driver_ratings", "driver_id", "driver_id"),
        CascadeStep("profiles", "id", "driver_id", critical=True, label="profile",
                    filters={"role": UserRole.DRIVER.value}),
    ],
    auth_user_key="driver_id",
)


class DriverService:
    """
    Service for driver accounts.
    """

    @staticmethod
    def get_driver_profile(driver_id: str | UUID) -> dict[str, Any]:
        """
        Get a driver's profile.

        Raises:
            EntityNotFoundError: If no driver profile has this ID
        """
        driver = SupabaseClient.fetch_one("profiles", driver_id, role=UserRole.DRIVER.value)
        if not driver:
            raise EntityNotFoundError("driver", normalize_uuid(driver_id))
        return driver

    @staticmethod
    def list_drivers(status: DriverStatus | str | None = None) -> list[dict[str, Any]]:
        """List drivers alphabetically, optionally filtered by availability."""
        client = SupabaseClient.get_client()
        query = client.table("profiles").select("*").eq("role", UserRole.DRIVER.value)
        if status:
            query = query.eq("status", DriverStatus(status).value)
        return query.order("last_name").execute().data or []

    @staticmethod
    def get_driver(driver_id: str | UUID) -> dict[str, Any]:
        """
        Get a driver with their trips and trip counts per status.

        Raises:
            EntityNotFoundError: If no driver profile has this ID
        """
        driver = DriverService.get_driver_profile(driver_id)
        trips = (
            SupabaseClient.get_client()
            .table("trips")
            .select("*")
            .eq("driver_id", driver["id"])
            .order("pickup_time", desc=True)
            .execute()
        ).data or []

        counts: dict[str, int] = {}
        for trip in trips:
            status = TripStatus.normalize(trip.get("status"))
            key = status.value if status else "unknown"
            counts[key] = counts.get(key, 0) + 1

        return {**driver, "trips": trips, "trip_counts": counts, "total_trips": len(trips)}

    @staticmethod
    def create_driver(data: dict[str, Any]) -> dict[str, Any]:
        """Register a driver account (status defaults to available)."""
        fields = dict(data)
        email = fields.pop("email")
        password = fields.pop("password", None)
        fields["status"] = DriverStatus(fields.get("status") or DriverStatus.AVAILABLE).value
        fields["full_name"] = full_name(fields.get("first_name"), fields.get("last_name"))
        return UserService.provision_user(email, UserRole.DRIVER, fields, password=password)

    @staticmethod
    def update_driver(driver_id: str | UUID, data: dict[str, Any]) -> dict[str, Any]:
        """
        Update a driver's profile; sync email/password changes to auth.

        A failing auth sync is logged and reported in "warnings" but doesn't
        undo the profile update.

        Raises:
            EntityNotFoundError: If no driver profile has this ID
            ValidationFailedError: If the new password is too short
        """
        driver = DriverService.get_driver_profile(driver_id)
        fields = {k: v for k, v in data.items() if v is not None}
        password = fields.pop("password", None)

        if password is not None and len(password) < settings.MIN_PASSWORD_LENGTH:
            raise ValidationFailedError(
                f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters",
                details={"field": "password"},
            )
        if "email" in fields:
            fields["email"] = normalize_email(fields["email"])
        if "status" in fields:
            fields["status"] = DriverStatus(fields["status"]).value
        if "first_name" in fields or "last_name" in fields:
            fields["full_name"] = full_name(
                fields.get("first_name", driver.get("first_name")),
                fields.get("last_name", driver.get("last_name")),
            )

        updated = dict(driver)
        if fields:
            fields["updated_at"] = utc_now_iso()
            client = SupabaseClient.get_client()
            try:
                response = (
                    client.table("profiles")
                    .update(fields)
                    .eq("id", driver["id"])
                    .eq("role", UserRole.DRIVER.value)
                    .execute()
                )
            except Exception as e:
                logger.error(f"Error updating driver {driver['id']}: {e}")
                raise BackendError("Failed to update driver", error=str(e))
            updated = response.data[0] if response.data else {**driver, **fields}

        auth_changes: dict[str, Any] = {}
        if fields.get("email") and fields["email"] != driver.get("email"):
            auth_changes["email"] = fields["email"]
            auth_changes["email_confirm"] = True
        if password:
            auth_changes["password"] = password

        warnings: list[str] = []
        if auth_changes:
            try:
                SupabaseClient.update_auth_user(driver["id"], auth_changes)
            except SupabaseClientError as e:
                logger.warning(f"Could not update auth user for driver {driver['id']}: {e}")
                warnings.append(f"Login details not updated: {e.message}")

        return {"driver": updated, "warnings": warnings}

    @staticmethod
    def set_status(driver_id: str | UUID, status: DriverStatus) -> bool:
        """
        Set a driver's availability. Returns False (and logs) on failure.

        Used as a side effect of trip assignment/completion, which must not
        fail because of it.
        """
        try:
            (
                SupabaseClient.get_client()
                .table("profiles")
                .update({"status": status.value, "updated_at": utc_now_iso()})
                .eq("id", normalize_uuid(driver_id))
                .execute()
            )
            return True
        except Exception as e:
            logger.warning(f"Could not set driver {driver_id} status to {status.value}: {e}")
            return False

    @staticmethod
    def delete_driver(driver_id: str | UUID) -> dict[str, Any]:
        """
        Delete a driver.

        Refused while the driver holds active trips. Past trips keep their
        history with driver_id cleared.

        Raises:
            EntityNotFoundError: If no driver profile has this ID
            DeletionBlockedError: If the driver has active trips
            CascadeStepError: If the profile can't be deleted
        """
        driver = DriverService.get_driver_profile(driver_id)
        driver_id = driver["id"]

        active = (
            SupabaseClient.get_client()
            .table("trips")
            .select("id, status")
            .eq("driver_id", driver_id)
            .in_("status", stored_values(ACTIVE_STATUSES))
            .execute()
        ).data or []

        if active:
            raise DeletionBlockedError(
                "Cannot delete driver with active trips. Please reassign or complete their trips first.",
                details={"active_trips": len(active), "trip_ids": [t["id"] for t in active]},
            )

        summary = run_cascade(DELETE_DRIVER_PLAN, {"driver_id": driver_id})

        logger.info(f"Deleted driver {driver_id}")
        return {
            "driver_id": driver_id,
            "driver_name": full_name(driver.get("first_name"), driver.get("last_name")),
            "deletion_summary": summary.counts,
            "auth_user_deleted": driver_id in summary.auth_users_deleted,
            "warnings": summary.warnings,
        }
