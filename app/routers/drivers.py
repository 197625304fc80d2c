# =============================================================================
# app/routers/drivers.py - Driver Endpoints
# =============================================================================
# Driver accounts: listing (staff, for assignment), and admin-only
# creation, edits and deletion.
# =============================================================================

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query

from app.dependencies import AdminDep, StaffDep
from core.models.profile import DriverCreate, DriverStatus, DriverUpdate
from core.services.audit_service import AuditService
from core.services.driver_service import DriverService

router = APIRouter()

DriverId = Annotated[UUID, Path(description="Driver UUID")]


@router.get("")
async def list_drivers(
    staff: StaffDep,
    status: Annotated[DriverStatus | None, Query(description="Filter by availability")] = None,
):
    """List drivers alphabetically."""
    drivers = DriverService.list_drivers(status=status)
    return {"drivers": drivers, "total": len(drivers)}


@router.post("", status_code=201)
async def create_driver(request: DriverCreate, admin: AdminDep):
    """Register a driver account."""
    result = DriverService.create_driver(request.model_dump(exclude_none=True))
    AuditService.record(admin.id, "create_driver", "driver", result["user_id"])
    return {"message": "Driver created successfully", **result}


@router.get("/{driver_id}")
async def get_driver(driver_id: DriverId, staff: StaffDep):
    """Get a driver with their trips and per-status trip counts."""
    return {"driver": DriverService.get_driver(driver_id)}


@router.put("/{driver_id}")
async def update_driver(driver_id: DriverId, request: DriverUpdate, admin: AdminDep):
    """
    Update a driver.

    Email and password changes are also applied to the login; if that part
    fails the profile change stays and the response carries a warning.
    """
    result = DriverService.update_driver(driver_id, request.model_dump(exclude_unset=True))
    return {"message": "Driver updated successfully", **result}


@router.delete("/{driver_id}")
async def delete_driver(driver_id: DriverId, admin: AdminDep):
    """
    Delete a driver.

    Refused (400) while the driver holds active trips. Past trips keep
    their history with the driver cleared.
    """
    result = DriverService.delete_driver(driver_id)
    AuditService.record(admin.id, "delete_driver", "driver", result["driver_id"], result["deletion_summary"])
    return {"message": "Driver deleted successfully", **result}
