# =============================================================================
# app/routers/admin.py - Back-Office Admin Endpoints
# =============================================================================
# Operations the admin dashboard calls directly:
# - trip dispatch: assign a driver, complete a trip, approve/reject/cancel
# - deletions with their cascades (facility, client, managed client, driver)
# - account management: create users, change email or role
# - maintenance: orphaned auth users, consistency audit, dashboard counts,
#   invoice overview
# - management resets: wipe facilities, non-staff users or trips
#
# Admin only, except trip assignment/completion and the dashboard which
# dispatchers use too.
# =============================================================================

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Body, Query

from app.dependencies import AdminDep, StaffDep
from app.exceptions import ValidationFailedError
from app.routers.tasks import submit_task
from core.models.facility import InvoiceStatus
from core.models.maintenance import OrphanCleanupRequest
from core.models.profile import EmailUpdate, RoleUpdate, UserCreate
from core.models.trip import AssignTripRequest, CompleteTripRequest, TripActionRequest
from core.services.audit_service import AuditService
from core.services.client_service import ClientService
from core.services.driver_service import DriverService
from core.services.facility_service import FacilityService
from core.services.invoice_service import InvoiceService
from core.services.maintenance_service import MaintenanceService
from core.services.trip_service import TripService
from core.services.user_service import UserService
from lib.utils import full_name

logger = logging.getLogger(__name__)

router = APIRouter()

ConfirmFlag = Annotated[bool, Query(description="Must be true to run a management reset")]


def _required(value: UUID | None, label: str) -> UUID:
    """Query IDs are optional in the signature so a missing one is a 400, not a 422."""
    if value is None:
        raise ValidationFailedError(f"{label} is required")
    return value


def _require_confirm(confirm: bool, what: str) -> None:
    if not confirm:
        raise ValidationFailedError(
            f"Deleting all {what} requires confirm=true",
            details={"confirm": False},
        )


# =============================================================================
# Trip Dispatch
# =============================================================================

@router.post("/assign-trip")
async def assign_trip(request: AssignTripRequest, staff: StaffDep):
    """
    Assign a driver to a trip.

    Fails with 400 when the trip already has a driver, when its status
    can't take one, or when the driver has another active trip within the
    conflict window.
    """
    trip = TripService.assign_driver(request.trip_id, request.driver_id, actor_id=staff.id)
    return {
        "message": "Trip assigned successfully",
        "trip_id": str(request.trip_id),
        "driver_id": str(request.driver_id),
        "assigned_trip": trip,
    }


# Same operation under the name the dispatcher UI uses
router.add_api_route("/assign-driver", assign_trip, methods=["POST"])


@router.post("/complete-trip")
async def complete_trip(request: CompleteTripRequest, staff: StaffDep):
    """Mark a trip completed; its driver becomes available again."""
    trip = TripService.complete_trip(request.trip_id, actor_id=staff.id)
    return {"message": "Trip completed successfully", "trip": trip}


@router.post("/trip-actions")
async def trip_action(request: TripActionRequest, admin: AdminDep):
    """
    Apply an action to a trip: approve, reject, cancel, start or complete.

    Rejections record the reason ("Rejected by admin" when none is given).
    """
    return TripService.apply_action(
        request.trip_id, request.action, reason=request.reason, actor_id=admin.id
    )


# =============================================================================
# Deletions
# =============================================================================

@router.delete("/delete-facility")
async def delete_facility(
    admin: AdminDep,
    facility_id: Annotated[UUID | None, Query(alias="facilityId")] = None,
):
    """
    Delete a facility with its clients, managed clients, trips and invoices.

    Refused (400) while any of its clients has a pending or upcoming trip
    or an unpaid bill.
    """
    result = FacilityService.delete_facility(_required(facility_id, "Facility ID"))
    AuditService.record(
        admin.id, "delete_facility", "facility", result["facility_id"], result["deletion_summary"]
    )
    return {
        "message": f"Facility \"{result['facility_name']}\" and all associated data deleted successfully",
        **result,
    }


@router.delete("/delete-client")
async def delete_client(
    admin: AdminDep,
    client_id: Annotated[UUID | None, Query(alias="clientId")] = None,
):
    """
    Delete an individual client with their trips, invoices and login.

    Refused (400) while the client has pending or upcoming trips or unpaid bills.
    """
    result = ClientService.delete_client(_required(client_id, "Client ID"))
    AuditService.record(admin.id, "delete_client", "client", result["client_id"], result["deletion_summary"])
    return {"message": "Client deleted successfully", **result}


@router.delete("/delete-managed-client")
async def delete_managed_client(
    admin: AdminDep,
    client_id: Annotated[UUID | None, Query(alias="clientId")] = None,
):
    """Delete a facility-managed client with their trips and invoices."""
    result = ClientService.delete_managed_client(_required(client_id, "Client ID"))
    AuditService.record(
        admin.id, "delete_managed_client", "managed_client", result["client_id"],
        result["deletion_summary"],
    )
    return {"message": f"Client {result['client_name']} deleted successfully", **result}


@router.delete("/delete-driver")
async def delete_driver(
    admin: AdminDep,
    driver_id: Annotated[UUID | None, Query(alias="driverId")] = None,
):
    """Delete a driver. Refused (400) while the driver holds active trips."""
    result = DriverService.delete_driver(_required(driver_id, "Driver ID"))
    AuditService.record(admin.id, "delete_driver", "driver", result["driver_id"], result["deletion_summary"])
    return {"message": "Driver deleted successfully", **result}


# =============================================================================
# Accounts
# =============================================================================

@router.post("/users", status_code=201)
async def create_user(request: UserCreate, admin: AdminDep):
    """
    Create an account with a role.

    An existing login with the same email is reused; it is refused if its
    profile already has another role.
    """
    fields = request.model_dump(exclude={"email", "password", "role"}, exclude_none=True)
    fields["full_name"] = full_name(request.first_name, request.last_name)
    result = UserService.provision_user(request.email, request.role, fields, password=request.password)
    AuditService.record(admin.id, "create_user", "user", result["user_id"], {"role": request.role.value})
    return {"message": f"{request.role.value.capitalize()} created successfully", **result}


@router.post("/update-email")
async def update_email(request: EmailUpdate, admin: AdminDep):
    """Change an account's login email (auth and profile)."""
    result = UserService.update_email(request.user_id, request.new_email)
    AuditService.record(admin.id, "update_email", "user", result["user_id"], result)
    return {"message": "Email updated successfully", **result}


@router.post("/update-role")
async def update_role(request: RoleUpdate, admin: AdminDep):
    """Change an account's role (profile and auth metadata)."""
    result = UserService.update_role(request.user_id, request.role)
    AuditService.record(admin.id, "update_role", "user", result["user_id"], result)
    return {"message": "Role updated successfully", **result}


# =============================================================================
# Maintenance
# =============================================================================

@router.get("/orphaned-users")
async def orphaned_users_report(admin: AdminDep):
    """Auth users without a profile, duplicate emails and profiles without a role."""
    return MaintenanceService.orphan_report()


@router.post("/cleanup-orphaned-users")
async def cleanup_orphaned_users(
    admin: AdminDep,
    request: Annotated[OrphanCleanupRequest | None, Body()] = None,
):
    """
    Delete auth users that have no profile.

    Dry run by default. Users still referenced by trips are skipped.
    With background=true the cleanup is queued and a task ID returned.
    """
    options = request or OrphanCleanupRequest()

    if options.background:
        from workers.tasks import cleanup_orphaned_users as cleanup_task
        return submit_task(cleanup_task, options.dry_run, str(admin.id), description="Orphaned user cleanup")

    result = MaintenanceService.cleanup_orphaned_users(dry_run=options.dry_run)
    if not options.dry_run:
        AuditService.record(
            admin.id, "cleanup_orphaned_users", "auth_user",
            details={"users_deleted": result["users_deleted"], "errors": len(result["errors"])},
        )
    return result


@router.get("/consistency-audit")
async def consistency_audit(
    admin: AdminDep,
    background: Annotated[bool, Query(description="Queue the audit on the worker")] = False,
):
    """Facilities without exactly one owner, trips with odd statuses or missing drivers."""
    if background:
        from workers.tasks import consistency_audit as audit_task
        return submit_task(audit_task, description="Consistency audit")
    return MaintenanceService.consistency_audit()


@router.get("/dashboard")
async def dashboard(staff: StaffDep):
    """Headline counts for the dashboard."""
    return MaintenanceService.dashboard_summary()


@router.get("/invoices")
async def list_invoices(
    admin: AdminDep,
    status: Annotated[InvoiceStatus | None, Query(description="Only invoices in this status")] = None,
):
    """All invoices with their client, newest first, plus payment totals."""
    return InvoiceService.list_invoices(status)


# =============================================================================
# Management Resets
# =============================================================================

@router.get("/facilities-management")
async def list_facilities_for_management(admin: AdminDep):
    """Every facility with counts of what a reset would remove."""
    return FacilityService.list_facilities(with_counts=True)


@router.delete("/facilities-management")
async def delete_all_facilities(admin: AdminDep, confirm: ConfirmFlag = False):
    """Delete every facility and facility link."""
    _require_confirm(confirm, "facilities")
    result = FacilityService.delete_all_facilities()
    AuditService.record(admin.id, "delete_all_facilities", "facility", details={
        "facilities_deleted": result["facilities_deleted"],
    })
    return result


@router.get("/users-management")
async def list_users_for_management(admin: AdminDep):
    """Every profile grouped into staff (kept) and others (deleted by a reset)."""
    return UserService.list_users_by_role()


@router.delete("/users-management")
async def delete_all_non_staff_users(admin: AdminDep, confirm: ConfirmFlag = False):
    """Delete every account that isn't admin or dispatcher."""
    _require_confirm(confirm, "non-staff users")
    result = UserService.delete_non_staff_users()
    AuditService.record(admin.id, "delete_non_staff_users", "user", details={
        "users_deleted": result["users_deleted"],
    })
    return result


@router.get("/trips-management")
async def list_trips_for_management(admin: AdminDep):
    """Every trip with client and facility names, and per-status counts."""
    return TripService.list_trips()


@router.delete("/trips-management")
async def delete_all_trips(admin: AdminDep, confirm: ConfirmFlag = False):
    """Delete every trip."""
    _require_confirm(confirm, "trips")
    result = TripService.delete_all_trips()
    AuditService.record(admin.id, "delete_all_trips", "trip", details={
        "trips_deleted": result["trips_deleted"],
    })
    return result
