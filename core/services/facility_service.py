# =============================================================================
# core/services/facility_service.py - Facility Business Logic
# =============================================================================
# Handles facility CRUD, facility owner provisioning and facility deletion.
#
# Deleting a facility removes everything that hangs off it: trips and
# invoices of its clients, its managed clients, its staff memberships, the
# client and facility staff accounts, and finally the facility row.
# =============================================================================

import logging
from typing import Any
from uuid import UUID

from app.config import settings
from app.exceptions import (
    BackendError,
    ConflictError,
    DeletionBlockedError,
    EntityNotFoundError,
)
from core.cascade import CascadePlan, CascadeStep, StepAction, run_cascade
from core.models.facility import (
    FacilityUserRole,
    RecordStatus,
    UNPAID_INVOICE_STATUSES,
)
from core.models.profile import UserRole
from core.trip_lifecycle import is_active, is_blocking
from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.utils import (
    generate_password,
    normalize_email,
    normalize_uuid,
    parse_timestamp,
    utc_now,
    utc_now_iso,
)

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Cascade plans
# -----------------------------------------------------------------------------

DELETE_FACILITY_PLAN = CascadePlan(
    name="delete_facility",
    steps=[
        CascadeStep("trips", "user_id", "client_ids", critical=True, label="trips"),
        CascadeStep("trips", "managed_client_id", "managed_client_ids", critical=True, label="trips"),
        CascadeStep("trips", "facility_id", "facility_id", critical=True, label="trips"),
        CascadeStep("invoices", "user_id", "client_ids", critical=True, label="invoices"),
        CascadeStep("invoices", "facility_id", "facility_id", label="invoices"),
        CascadeStep("facility_managed_clients", "facility_id", "facility_id",
                    critical=True, label="managed_clients"),
        CascadeStep("facility_users", "facility_id", "facility_id", label="facility_users"),
        CascadeStep("facility_contracts", "facility_id", "facility_id", label="contracts"),
        CascadeStep("profiles", "facility_id", "facility_id", critical=True,
                    label="facility_clients", filters={"role": UserRole.CLIENT.value}),
        CascadeStep("profiles", "facility_id", "facility_id", critical=True,
                    label="facility_admins", filters={"role": UserRole.FACILITY.value}),
        CascadeStep("facilities", "id", "facility_id", critical=True, label="facility"),
    ],
    auth_user_key="auth_user_ids",
)

RESET_FACILITIES_PLAN = CascadePlan(
    name="delete_all_facilities",
    steps=[
        CascadeStep("facility_users", "id", None),
        CascadeStep("facility_contracts", "id", None),
        CascadeStep("facility_managed_clients", "id", None),
        CascadeStep("profiles", "facility_id", None, action=StepAction.NULLIFY),
        CascadeStep("facilities", "id", None, critical=True),
    ],
)


class FacilityService:
    """
    Service for facility operations.

    Provides a clean interface between API routes and database.
    """

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    @staticmethod
    def get_facility(facility_id: str | UUID) -> dict[str, Any]:
        """
        Get a facility by ID.

        Raises:
            EntityNotFoundError: If the facility doesn't exist
        """
        facility = SupabaseClient.fetch_one("facilities", facility_id)
        if not facility:
            raise EntityNotFoundError("facility", normalize_uuid(facility_id))
        return facility

    @staticmethod
    def facility_counts(facility_id: str) -> dict[str, int]:
        """Counts of the records attached to a facility."""
        return {
            "facility_users": SupabaseClient.count_rows("facility_users", facility_id=facility_id),
            "profiles": SupabaseClient.count_rows("profiles", facility_id=facility_id),
            "managed_clients": SupabaseClient.count_rows(
                "facility_managed_clients", facility_id=facility_id
            ),
            "contracts": SupabaseClient.count_rows("facility_contracts", facility_id=facility_id),
        }

    @staticmethod
    def list_facilities(with_counts: bool = True) -> dict[str, Any]:
        """
        List facilities, newest first, optionally with related-record counts.

        Returns:
            Dict with facilities (each carrying "counts") and total_facilities
        """
        client = SupabaseClient.get_client()
        response = (
            client.table("facilities")
            .select("*")
            .order("created_at", desc=True)
            .execute()
        )
        facilities = response.data or []

        if with_counts:
            for facility in facilities:
                facility["counts"] = FacilityService.facility_counts(facility["id"])

        return {"facilities": facilities, "total_facilities": len(facilities)}

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    @staticmethod
    def create_facility(data: dict[str, Any]) -> dict[str, Any]:
        """
        Create a facility.

        billing_email defaults to contact_email; status defaults to active.
        """
        record = {k: v for k, v in data.items() if v is not None}
        if not record.get("billing_email") and record.get("contact_email"):
            record["billing_email"] = record["contact_email"]
        record.setdefault("status", RecordStatus.ACTIVE.value)
        record["created_at"] = utc_now_iso()

        client = SupabaseClient.get_client()
        try:
            response = client.table("facilities").insert(record).execute()
        except Exception as e:
            logger.error(f"Failed to create facility: {e}")
            raise BackendError(f"Error creating facility: {e}", error=str(e))

        if not response.data:
            raise BackendError("Error creating facility", error="Insert returned no data")

        facility = response.data[0]
        logger.info(f"Created facility {facility['id']} ({facility.get('name')})")
        return facility

    @staticmethod
    def update_facility(facility_id: str | UUID, data: dict[str, Any]) -> dict[str, Any]:
        """
        Update the provided fields of a facility.

        Raises:
            EntityNotFoundError: If the facility doesn't exist
        """
        facility = FacilityService.get_facility(facility_id)
        updates = {k: v for k, v in data.items() if v is not None}
        if not updates:
            return facility

        updates["updated_at"] = utc_now_iso()
        client = SupabaseClient.get_client()
        try:
            response = (
                client.table("facilities")
                .update(updates)
                .eq("id", facility["id"])
                .execute()
            )
        except Exception as e:
            raise BackendError(f"Error updating facility: {e}", error=str(e))

        logger.info(f"Updated facility {facility['id']}: {sorted(updates)}")
        return response.data[0] if response.data else {**facility, **updates}

    @staticmethod
    def create_facility_owner(
        facility_id: str | UUID,
        email: str,
        first_name: str,
        last_name: str,
        password: str | None = None,
    ) -> dict[str, Any]:
        """
        Create the owner login of a facility.

        Steps:
        1. Facility must exist and have no active owner
        2. Create a confirmed auth user with role=facility metadata
        3. Write the profile (role facility, linked to the facility); if this
           fails the auth user is deleted again
        4. Insert the facility_users owner membership (failure only warns)

        Returns:
            Dict with owner details and the login credentials

        Raises:
            EntityNotFoundError: If the facility doesn't exist
            ConflictError: If the facility already has an active owner
            BackendError: If the account can't be created
        """
        facility = FacilityService.get_facility(facility_id)
        facility_id = facility["id"]
        email = normalize_email(email)
        client = SupabaseClient.get_client()

        owners = (
            client.table("facility_users")
            .select("id, user_id")
            .eq("facility_id", facility_id)
            .eq("is_owner", True)
            .eq("status", RecordStatus.ACTIVE.value)
            .execute()
        )
        if owners.data:
            raise ConflictError(
                "Facility already has an owner",
                details={"facility_id": facility_id, "owner_user_id": owners.data[0].get("user_id")},
            )

        password = password or generate_password(settings.GENERATED_PASSWORD_LENGTH)
        try:
            user_id = SupabaseClient.create_auth_user(email, password, metadata={
                "first_name": first_name,
                "last_name": last_name,
                "role": UserRole.FACILITY.value,
            })
        except SupabaseClientError as e:
            raise BackendError(f"Failed to create user account: {e.message}", error=str(e))

        profile = {
            "id": user_id,
            "email": email,
            "first_name": first_name,
            "last_name": last_name,
            "facility_id": facility_id,
            "role": UserRole.FACILITY.value,
            "status": RecordStatus.ACTIVE.value,
            "updated_at": utc_now_iso(),
        }
        try:
            client.table("profiles").upsert(profile).execute()
        except Exception as e:
            logger.error(f"Owner profile write failed for {email}, removing auth user: {e}")
            try:
                SupabaseClient.delete_auth_user(user_id)
            except SupabaseClientError as cleanup_error:
                logger.error(f"Could not remove auth user {user_id}: {cleanup_error}")
            raise BackendError(f"Failed to update user profile: {e}", error=str(e))

        try:
            client.table("facility_users").insert({
                "facility_id": facility_id,
                "user_id": user_id,
                "role": FacilityUserRole.SUPER_ADMIN.value,
                "is_owner": True,
                "invited_by": None,
                "status": RecordStatus.ACTIVE.value,
            }).execute()
        except Exception as e:
            # The account works without the membership row; it can be re-linked
            logger.warning(f"Owner membership for {user_id} not created: {e}")

        logger.info(f"Created owner {user_id} for facility {facility_id}")
        return {
            "owner": {
                "user_id": user_id,
                "email": email,
                "first_name": first_name,
                "last_name": last_name,
                "facility_id": facility_id,
                "facility_name": facility.get("name"),
                "role": FacilityUserRole.SUPER_ADMIN.value,
                "is_owner": True,
            },
            "credentials": {"email": email, "password": password},
        }

    # -------------------------------------------------------------------------
    # Deletion
    # -------------------------------------------------------------------------

    @staticmethod
    def _facility_trips(
        facility_id: str,
        client_ids: list[str],
        managed_client_ids: list[str],
    ) -> list[dict[str, Any]]:
        """All trips booked for a facility's clients, deduplicated by ID."""
        client = SupabaseClient.get_client()
        columns = "id, status, pickup_time, user_id, managed_client_id"
        trips: dict[str, dict[str, Any]] = {}

        queries = [("facility_id", [facility_id])]
        if client_ids:
            queries.append(("user_id", client_ids))
        if managed_client_ids:
            queries.append(("managed_client_id", managed_client_ids))

        for column, values in queries:
            response = client.table("trips").select(columns).in_(column, values).execute()
            for trip in response.data or []:
                trips[trip["id"]] = trip

        return list(trips.values())

    @staticmethod
    def delete_facility(facility_id: str | UUID) -> dict[str, Any]:
        """
        Delete a facility and everything attached to it.

        Refused while any facility client has an active or future trip, or
        an unpaid (pending/overdue) invoice.

        Returns:
            Dict with facility_id, facility_name and deletion_summary counts

        Raises:
            EntityNotFoundError: If the facility doesn't exist
            DeletionBlockedError: If trips or invoices block the deletion
            CascadeStepError: If a critical deletion step fails
        """
        facility = FacilityService.get_facility(facility_id)
        facility_id = facility["id"]
        client = SupabaseClient.get_client()

        people = (
            client.table("profiles")
            .select("id, email, role")
            .eq("facility_id", facility_id)
            .in_("role", [UserRole.CLIENT.value, UserRole.FACILITY.value])
            .execute()
        ).data or []
        client_ids = [p["id"] for p in people if p.get("role") == UserRole.CLIENT.value]
        admin_ids = [p["id"] for p in people if p.get("role") == UserRole.FACILITY.value]

        managed = (
            client.table("facility_managed_clients")
            .select("id, email")
            .eq("facility_id", facility_id)
            .execute()
        ).data or []
        managed_ids = [m["id"] for m in managed]

        # Guard: live trips
        now = utc_now()
        trips = FacilityService._facility_trips(facility_id, client_ids, managed_ids)
        blocking = [t for t in trips if is_blocking(t, now)]
        if blocking:
            upcoming = [
                t for t in blocking
                if (parse_timestamp(t.get("pickup_time")) or now) > now
            ]
            raise DeletionBlockedError(
                "Cannot delete facility with clients who have pending or upcoming trips",
                details={
                    "facility_clients": len(client_ids) + len(managed_ids),
                    "pending_trips": len([t for t in blocking if is_active(t.get("status"))]),
                    "upcoming_trips": len(upcoming),
                    "total_blocking_trips": len(blocking),
                },
            )

        # Guard: unpaid invoices
        if client_ids:
            invoices = (
                client.table("invoices")
                .select("id, status, total, user_id")
                .in_("user_id", client_ids)
                .in_("status", [s.value for s in UNPAID_INVOICE_STATUSES])
                .execute()
            ).data or []
            if invoices:
                raise DeletionBlockedError(
                    "Cannot delete facility with clients who have pending bills",
                    details={
                        "facility_clients": len(client_ids) + len(managed_ids),
                        "pending_invoices": len(invoices),
                        "total_owed": round(sum(float(i.get("total") or 0) for i in invoices), 2),
                    },
                )

        summary = run_cascade(DELETE_FACILITY_PLAN, {
            "facility_id": facility_id,
            "client_ids": client_ids,
            "managed_client_ids": managed_ids,
            "auth_user_ids": client_ids + admin_ids,
        })

        logger.info(f"Deleted facility {facility_id} ({facility.get('name')})")
        return {
            "facility_id": facility_id,
            "facility_name": facility.get("name"),
            "deletion_summary": {
                "facility_admins_deleted": summary.count("facility_admins"),
                "facility_clients_deleted": summary.count("facility_clients"),
                "managed_clients_deleted": summary.count("managed_clients"),
                "trips_deleted": summary.count("trips"),
                "invoices_deleted": summary.count("invoices"),
                "auth_users_deleted": len(summary.auth_users_deleted),
            },
            "warnings": summary.warnings,
        }

    @staticmethod
    def delete_all_facilities() -> dict[str, Any]:
        """
        Management reset: remove every facility and facility link.

        Non-critical tables (memberships, contracts, managed clients, profile
        links) report errors and continue; failing to delete the facilities
        themselves aborts.
        """
        current = SupabaseClient.count_rows("facilities")
        if current == 0:
            return {
                "message": "No facilities to delete",
                "facilities_deleted": 0,
                "remaining_facilities": 0,
                "errors": [],
            }

        summary = run_cascade(RESET_FACILITIES_PLAN)
        remaining = SupabaseClient.count_rows("facilities")

        errors = [
            {"table": outcome.table, "error": outcome.error}
            for outcome in summary.steps
            if outcome.error
        ]
        logger.info(f"Facility reset: {current} facilities deleted, {remaining} remaining")
        return {
            "message": f"Successfully deleted {current} facilities and all related data",
            "facilities_deleted": current,
            "remaining_facilities": remaining,
            "errors": errors,
        }
