# =============================================================================
# app/routers/clients.py - Client Endpoints
# =============================================================================
# Individual clients (login accounts) and facility-managed clients, listed
# together. Deletion lives in the admin router.
# =============================================================================

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query

from app.dependencies import AdminDep
from core.models.profile import ClientCreate
from core.services.audit_service import AuditService
from core.services.client_service import ClientService

router = APIRouter()


@router.get("")
async def list_clients(
    admin: AdminDep,
    facility_id: Annotated[UUID | None, Query(alias="facilityId", description="Only this facility's clients")] = None,
):
    """List individual and managed clients, each tagged with client_type."""
    return ClientService.list_clients(facility_id=facility_id)


@router.post("", status_code=201)
async def create_client(request: ClientCreate, admin: AdminDep):
    """
    Register an individual client.

    A temporary password is generated unless one is given; it is returned
    once in the response.
    """
    result = ClientService.create_client(request.model_dump(exclude_none=True))
    AuditService.record(admin.id, "create_client", "client", result["user_id"])
    return {"message": "Client created successfully", **result}


@router.get("/{client_id}")
async def get_client(
    client_id: Annotated[UUID, Path(description="Client UUID (individual or managed)")],
    admin: AdminDep,
):
    """Get a client with their trips."""
    return {"client": ClientService.get_client(client_id)}
