# =============================================================================
# app/routers/dispatchers.py - Dispatcher Endpoints
# =============================================================================
# Dispatcher accounts. All endpoints are admin only.
# =============================================================================

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path

from app.dependencies import AdminDep
from core.models.profile import DispatcherCreate, DispatcherUpdate
from core.services.audit_service import AuditService
from core.services.dispatcher_service import DispatcherService

router = APIRouter()

DispatcherId = Annotated[UUID, Path(description="Dispatcher UUID")]


@router.get("")
async def list_dispatchers(admin: AdminDep):
    """List dispatchers alphabetically."""
    dispatchers = DispatcherService.list_dispatchers()
    return {"dispatchers": dispatchers, "total": len(dispatchers)}


@router.post("", status_code=201)
async def create_dispatcher(request: DispatcherCreate, admin: AdminDep):
    """Register a dispatcher account."""
    result = DispatcherService.create_dispatcher(request.model_dump(exclude_none=True))
    AuditService.record(admin.id, "create_dispatcher", "dispatcher", result["user_id"])
    return {"message": "Dispatcher created successfully", **result}


@router.get("/{dispatcher_id}")
async def get_dispatcher(dispatcher_id: DispatcherId, admin: AdminDep):
    """Get a dispatcher."""
    return {"dispatcher": DispatcherService.get_dispatcher(dispatcher_id)}


@router.put("/{dispatcher_id}")
async def update_dispatcher(
    dispatcher_id: DispatcherId,
    request: DispatcherUpdate,
    admin: AdminDep,
):
    """Replace a dispatcher's details (names and email required)."""
    result = DispatcherService.update_dispatcher(
        dispatcher_id,
        first_name=request.first_name,
        last_name=request.last_name,
        email=request.email,
        phone_number=request.phone_number,
        password=request.password,
    )
    return {"message": "Dispatcher updated successfully", **result}


@router.delete("/{dispatcher_id}")
async def delete_dispatcher(dispatcher_id: DispatcherId, admin: AdminDep):
    """Delete a dispatcher. Refused (400) while their trips are still active."""
    result = DispatcherService.delete_dispatcher(dispatcher_id)
    AuditService.record(admin.id, "delete_dispatcher", "dispatcher", result["dispatcher_id"])
    return {"message": "Dispatcher deleted successfully", **result}
