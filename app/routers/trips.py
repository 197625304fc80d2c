# =============================================================================
# app/routers/trips.py - Trip Endpoints
# =============================================================================
# Booking, pricing and day-to-day trip handling for dispatchers and admins.
# Assignment and admin actions live in the admin router
# (/admin/assign-trip, /admin/trip-actions, /admin/complete-trip).
# =============================================================================

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query

from app.auth import CurrentProfile, require_roles
from app.config import settings
from app.dependencies import AdminDep, StaffDep
from app.exceptions import AccessDeniedError
from core.models.profile import UserRole
from core.models.trip import DriverRejectionRequest, TripCreate, TripQuoteRequest, TripStatus
from core.services.trip_service import TripService
from lib.pricing import format_currency

router = APIRouter()

TripId = Annotated[UUID, Path(description="Trip UUID")]

# Drivers may report their own rejections; staff may record them on a driver's behalf
require_staff_or_driver = require_roles(*settings.staff_roles_list, UserRole.DRIVER.value)


@router.get("")
async def list_trips(
    staff: StaffDep,
    status: Annotated[TripStatus | None, Query(description="Filter by status")] = None,
):
    """
    List trips, newest first, with client and facility names.

    Includes per-status counts for the dashboard tabs.
    """
    return TripService.list_trips(status=status)


@router.post("", status_code=201)
async def create_trip(request: TripCreate, staff: StaffDep):
    """
    Book a trip for an individual or managed client.

    The price is calculated when not given. A trip booked with a driver
    starts as upcoming, otherwise pending.
    """
    trip = TripService.create_trip(request.model_dump(), actor_id=staff.id)
    return {"message": "Trip created successfully", "trip": trip}


@router.post("/quote")
async def quote_trip(request: TripQuoteRequest, staff: StaffDep):
    """Price a trip without booking it."""
    breakdown = TripService.quote(**request.model_dump())
    return {
        "breakdown": breakdown.model_dump(),
        "line_items": breakdown.line_items(),
        "total": breakdown.total,
        "formatted_total": format_currency(breakdown.total),
    }


@router.get("/{trip_id}")
async def get_trip(trip_id: TripId, staff: StaffDep):
    """Get a trip."""
    return {"trip": TripService.get_trip(trip_id)}


@router.delete("/{trip_id}")
async def delete_trip(trip_id: TripId, admin: AdminDep):
    """
    Delete a trip.

    Pending, upcoming and in-progress trips can't be deleted (400); cancel
    or complete them first.
    """
    result = TripService.delete_trip(trip_id, actor_id=admin.id)
    return {"message": "Trip deleted successfully", **result}


@router.post("/{trip_id}/unassign")
async def unassign_trip(trip_id: TripId, staff: StaffDep):
    """Take the driver off a trip; the trip goes back to pending."""
    trip = TripService.unassign_driver(trip_id, actor_id=staff.id)
    return {"message": "Driver unassigned successfully", "trip": trip}


@router.post("/{trip_id}/driver-rejection")
async def reject_trip_as_driver(
    trip_id: TripId,
    request: DriverRejectionRequest,
    caller: CurrentProfile = Depends(require_staff_or_driver),
):
    """
    Record a driver declining a trip.

    Drivers can only decline their own trips. The trip becomes rejected
    and can be assigned to someone else.
    """
    if caller.role == UserRole.DRIVER.value and caller.id != request.driver_id:
        raise AccessDeniedError(
            required=settings.staff_roles_list,
            current=caller.role,
        )
    trip = TripService.record_driver_rejection(trip_id, request.driver_id)
    return {"message": "Trip rejected", "trip": trip}
