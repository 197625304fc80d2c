# =============================================================================
# core/services/client_service.py - Client Business Logic
# =============================================================================
# Two kinds of client ride with us:
# - individual clients: login accounts with profiles.role = "client"
# - managed clients: rows in facility_managed_clients, booked by their
#   facility, with no login of their own
#
# Both can be listed together; each has its own deletion cascade.
# =============================================================================

import logging
from typing import Any
from uuid import UUID

from app.exceptions import BackendError, DeletionBlockedError, EntityNotFoundError
from core.cascade import CascadePlan, CascadeStep, run_cascade
from core.models.facility import UNPAID_INVOICE_STATUSES
from core.models.profile import UserRole
from core.services.facility_service import FacilityService
from core.services.user_service import UserService
from core.trip_lifecycle import is_active, is_blocking
from lib.supabase_client import SupabaseClient, is_missing_relation
from lib.utils import full_name, normalize_uuid, parse_timestamp, utc_now, utc_now_iso

logger = logging.getLogger(__name__)

INDIVIDUAL = "individual"
MANAGED = "managed"


# -----------------------------------------------------------------------------
# Cascade plans
# -----------------------------------------------------------------------------

DELETE_CLIENT_PLAN = CascadePlan(
    name="delete_client",
    steps=[
        CascadeStep("trips", "user_id", "client_id", critical=True),
        CascadeStep("invoices", "user_id", "client_id", critical=True),
        CascadeStep("facility_managed_clients", "email", "email", label="managed_client_record"),
        CascadeStep("profiles", "id", "client_id", critical=True, label="profile"),
    ],
    auth_user_key="client_id",
)

DELETE_MANAGED_CLIENT_PLAN = CascadePlan(
    name="delete_managed_client",
    steps=[
        CascadeStep("trips", "managed_client_id", "client_id"),
        CascadeStep("invoices", "email", "email"),
        CascadeStep("facility_managed_clients", "id", "client_id", critical=True,
                    label="managed_client"),
    ],
)


class ClientService:
    """
    Service for individual and facility-managed clients.
    """

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    @staticmethod
    def list_clients(facility_id: str | UUID | None = None) -> dict[str, Any]:
        """
        List individual and managed clients, tagged with client_type.

        Args:
            facility_id: Only clients belonging to this facility

        Returns:
            Dict with clients (newest first), and per-type counts
        """
        client = SupabaseClient.get_client()

        query = client.table("profiles").select("*").eq("role", UserRole.CLIENT.value)
        if facility_id:
            query = query.eq("facility_id", normalize_uuid(facility_id))
        individuals = query.order("created_at", desc=True).execute().data or []

        try:
            query = client.table("facility_managed_clients").select("*")
            if facility_id:
                query = query.eq("facility_id", normalize_uuid(facility_id))
            managed = query.order("created_at", desc=True).execute().data or []
        except Exception as e:
            if not is_missing_relation(e):
                raise
            logger.info("facility_managed_clients not available, listing individuals only")
            managed = []

        for row in individuals:
            row["client_type"] = INDIVIDUAL
        for row in managed:
            row["client_type"] = MANAGED

        clients = sorted(
            individuals + managed,
            key=lambda row: row.get("created_at") or "",
            reverse=True,
        )
        return {
            "clients": clients,
            "total": len(clients),
            "individual_count": len(individuals),
            "managed_count": len(managed),
        }

    @staticmethod
    def get_client(client_id: str | UUID) -> dict[str, Any]:
        """
        Get a client (individual first, then managed) with their trips.

        Raises:
            EntityNotFoundError: If neither kind of client matches
        """
        client_id = normalize_uuid(client_id)
        record = SupabaseClient.fetch_one("profiles", client_id, role=UserRole.CLIENT.value)
        column = "user_id"
        client_type = INDIVIDUAL

        if not record:
            record = SupabaseClient.fetch_one("facility_managed_clients", client_id)
            column = "managed_client_id"
            client_type = MANAGED

        if not record:
            raise EntityNotFoundError("client", client_id)

        trips = (
            SupabaseClient.get_client()
            .table("trips")
            .select("*")
            .eq(column, client_id)
            .order("pickup_time", desc=True)
            .execute()
        ).data or []

        return {**record, "client_type": client_type, "trips": trips, "trip_count": len(trips)}

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    @staticmethod
    def create_client(data: dict[str, Any]) -> dict[str, Any]:
        """
        Register an individual client account.

        A temporary password is generated unless one is given.

        Raises:
            EntityNotFoundError: If facility_id is given but doesn't exist
        """
        fields = dict(data)
        email = fields.pop("email")
        password = fields.pop("password", None)

        if fields.get("facility_id"):
            FacilityService.get_facility(fields["facility_id"])
            fields["facility_id"] = normalize_uuid(fields["facility_id"])

        fields["full_name"] = full_name(fields.get("first_name"), fields.get("last_name"))
        return UserService.provision_user(email, UserRole.CLIENT, fields, password=password)

    @staticmethod
    def create_managed_client(facility_id: str | UUID, data: dict[str, Any]) -> dict[str, Any]:
        """
        Add a managed client to a facility.

        Raises:
            EntityNotFoundError: If the facility doesn't exist
        """
        facility = FacilityService.get_facility(facility_id)

        record = {k: v for k, v in data.items() if v is not None}
        record.update({
            "facility_id": facility["id"],
            "created_at": utc_now_iso(),
        })

        client = SupabaseClient.get_client()
        try:
            response = client.table("facility_managed_clients").insert(record).execute()
        except Exception as e:
            logger.error(f"Failed to create managed client for facility {facility['id']}: {e}")
            raise BackendError(f"Failed to create client: {e}", error=str(e))

        managed = response.data[0] if response.data else record
        logger.info(f"Created managed client {managed.get('id')} for facility {facility['id']}")
        return {**managed, "client_type": MANAGED, "facility_name": facility.get("name")}

    # -------------------------------------------------------------------------
    # Deletion
    # -------------------------------------------------------------------------

    @staticmethod
    def delete_client(client_id: str | UUID) -> dict[str, Any]:
        """
        Delete an individual client and their trips, invoices and login.

        Refused while the client has active or future trips, or unpaid bills.

        Raises:
            EntityNotFoundError: If no client profile has this ID
            DeletionBlockedError: If trips or invoices block the deletion
            CascadeStepError: If a critical step fails
        """
        client_id = normalize_uuid(client_id)
        profile = SupabaseClient.fetch_one("profiles", client_id, role=UserRole.CLIENT.value)
        if not profile:
            raise EntityNotFoundError("client", client_id)

        client = SupabaseClient.get_client()
        now = utc_now()

        try:
            trips = (
                client.table("trips")
                .select("id, status, pickup_time")
                .eq("user_id", client_id)
                .execute()
            ).data or []
        except Exception as e:
            if not is_missing_relation(e):
                raise BackendError(f"Error checking client trips: {e}", error=str(e))
            trips = []

        blocking = [t for t in trips if is_blocking(t, now)]
        if blocking:
            raise DeletionBlockedError(
                "Cannot delete client with pending or upcoming trips",
                details={
                    "pending_trips": len([t for t in blocking if is_active(t.get("status"))]),
                    "upcoming_trips": len([
                        t for t in blocking
                        if (parse_timestamp(t.get("pickup_time")) or now) > now
                    ]),
                    "total_blocking": len(blocking),
                },
            )

        try:
            invoices = (
                client.table("invoices")
                .select("id, status, total")
                .eq("user_id", client_id)
                .in_("status", [s.value for s in UNPAID_INVOICE_STATUSES])
                .execute()
            ).data or []
        except Exception as e:
            raise BackendError("Error checking client invoices", error=str(e))

        if invoices:
            raise DeletionBlockedError(
                "Cannot delete client with pending bills",
                details={
                    "pending_invoices": len(invoices),
                    "total_owed": round(sum(float(i.get("total") or 0) for i in invoices), 2),
                },
            )

        summary = run_cascade(DELETE_CLIENT_PLAN, {
            "client_id": client_id,
            "email": profile.get("email"),
        })

        logger.info(f"Deleted client {client_id}")
        return {
            "client_id": client_id,
            "facility_cleanup_performed": bool(profile.get("facility_id")),
            "deletion_summary": summary.counts,
            "auth_user_deleted": client_id in summary.auth_users_deleted,
            "warnings": summary.warnings,
        }

    @staticmethod
    def delete_managed_client(client_id: str | UUID) -> dict[str, Any]:
        """
        Delete a facility-managed client with their trips and invoices.

        Raises:
            EntityNotFoundError: If the managed client doesn't exist
            CascadeStepError: If the record itself can't be deleted
        """
        client_id = normalize_uuid(client_id)
        managed = SupabaseClient.fetch_one("facility_managed_clients", client_id)
        if not managed:
            raise EntityNotFoundError("managed client", client_id)

        summary = run_cascade(DELETE_MANAGED_CLIENT_PLAN, {
            "client_id": client_id,
            "email": managed.get("email"),
        })

        logger.info(f"Deleted managed client {client_id}")
        return {
            "client_id": client_id,
            "client_name": full_name(managed.get("first_name"), managed.get("last_name")),
            "client_email": managed.get("email"),
            "deletion_summary": summary.counts,
            "warnings": summary.warnings,
        }
