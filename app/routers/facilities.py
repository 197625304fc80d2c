# =============================================================================
# app/routers/facilities.py - Facility Endpoints
# =============================================================================
# Facilities (care homes, clinics) book trips for the clients they manage.
# All endpoints are admin only. Deletion lives in the admin router
# (DELETE /admin/delete-facility).
# =============================================================================

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path

from app.dependencies import AdminDep
from core.models.facility import (
    FacilityCreate,
    FacilityOwnerCreate,
    FacilityUpdate,
    ManagedClientCreate,
)
from core.services.audit_service import AuditService
from core.services.client_service import ClientService
from core.services.facility_service import FacilityService

router = APIRouter()

FacilityId = Annotated[UUID, Path(description="Facility UUID")]


@router.get("")
async def list_facilities(admin: AdminDep):
    """List facilities, newest first, with counts of their linked records."""
    return FacilityService.list_facilities()


@router.post("", status_code=201)
async def create_facility(request: FacilityCreate, admin: AdminDep):
    """
    Create a facility.

    billing_email defaults to contact_email.
    """
    facility = FacilityService.create_facility(request.model_dump(exclude_none=True))
    AuditService.record(admin.id, "create_facility", "facility", facility.get("id"))
    return {"facility": facility}


@router.get("/{facility_id}")
async def get_facility(facility_id: FacilityId, admin: AdminDep):
    """Get a facility with counts of its linked records."""
    facility = FacilityService.get_facility(facility_id)
    return {"facility": facility, "counts": FacilityService.facility_counts(facility["id"])}


@router.patch("/{facility_id}")
async def update_facility(facility_id: FacilityId, request: FacilityUpdate, admin: AdminDep):
    """Update the given facility fields."""
    facility = FacilityService.update_facility(
        facility_id, request.model_dump(exclude_unset=True)
    )
    return {"facility": facility}


@router.post("/{facility_id}/owner", status_code=201)
async def create_facility_owner(
    facility_id: FacilityId,
    request: FacilityOwnerCreate,
    admin: AdminDep,
):
    """
    Create the owner login of a facility.

    A facility has at most one active owner; a second one returns 409.
    The response carries the login credentials to hand over.
    """
    result = FacilityService.create_facility_owner(
        facility_id,
        email=request.email,
        first_name=request.first_name,
        last_name=request.last_name,
        password=request.password,
    )
    AuditService.record(
        admin.id, "create_facility_owner", "facility", str(facility_id),
        {"owner_user_id": result["owner"]["user_id"]},
    )
    return {"message": "Facility owner created successfully", **result}


@router.get("/{facility_id}/clients")
async def list_facility_clients(facility_id: FacilityId, admin: AdminDep):
    """List the individual and managed clients of a facility."""
    FacilityService.get_facility(facility_id)
    return ClientService.list_clients(facility_id=facility_id)


@router.post("/{facility_id}/clients", status_code=201)
async def create_facility_client(
    facility_id: FacilityId,
    request: ManagedClientCreate,
    admin: AdminDep,
):
    """Add a managed client (no login) to a facility."""
    client = ClientService.create_managed_client(
        facility_id, request.model_dump(exclude_none=True)
    )
    return {"message": "Client created successfully", "client": client}
