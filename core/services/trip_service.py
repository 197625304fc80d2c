# =============================================================================
# core/services/trip_service.py - Trip Business Logic
# =============================================================================
# Booking, driver assignment and status changes for trips.
#
# Every status write goes through core.trip_lifecycle so the same rules
# apply whether a dispatcher assigns a driver, an admin approves a booking
# or a driver declines a trip.
# =============================================================================

import logging
from datetime import timedelta
from typing import Any
from uuid import UUID

from app.config import settings
from app.exceptions import (
    BackendError,
    DeletionBlockedError,
    DriverConflictError,
    EntityNotFoundError,
    TripAlreadyAssignedError,
    ValidationFailedError,
)
from core.cascade import NIL_UUID
from core.models.profile import DriverStatus, UserRole
from core.models.trip import TripAction, TripStatus, WheelchairType
from core.services.audit_service import AuditService
from core.services.driver_service import DriverService
from core.trip_lifecycle import (
    ACTIVE_STATUSES,
    can_transition,
    is_deletable,
    require_action,
    require_assignable,
    require_transition,
    stored_values,
)
from lib.pricing import CountyInfo, calculate_trip_price
from lib.supabase_client import SupabaseClient
from lib.utils import normalize_uuid, parse_timestamp, utc_now_iso

logger = logging.getLogger(__name__)

DEFAULT_REJECTION_REASON = "Rejected by admin"


def _status_label(status: Any) -> str:
    normalized = TripStatus.normalize(status)
    return normalized.value if normalized else str(status)


class TripService:
    """
    Service for trip operations.
    """

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    @staticmethod
    def get_trip(trip_id: str | UUID) -> dict[str, Any]:
        """
        Get a trip by ID.

        Raises:
            EntityNotFoundError: If the trip doesn't exist
        """
        trip = SupabaseClient.fetch_one("trips", trip_id)
        if not trip:
            raise EntityNotFoundError("trip", normalize_uuid(trip_id))
        return trip

    @staticmethod
    def list_trips(status: TripStatus | str | None = None) -> dict[str, Any]:
        """
        List trips newest first, each with its client and facility.

        Args:
            status: Only trips in this status (legacy values included)

        Returns:
            Dict with trips, total and per-status counts
        """
        client = SupabaseClient.get_client()
        query = client.table("trips").select("*")
        if status:
            query = query.in_("status", stored_values([TripStatus(status)]))
        trips = query.order("created_at", desc=True).execute().data or []

        user_ids = sorted({t["user_id"] for t in trips if t.get("user_id")})
        facility_ids = sorted({t["facility_id"] for t in trips if t.get("facility_id")})

        users: dict[str, dict] = {}
        if user_ids:
            rows = (
                client.table("profiles")
                .select("id, first_name, last_name, email")
                .in_("id", user_ids)
                .execute()
            ).data or []
            users = {row["id"]: row for row in rows}

        facilities: dict[str, dict] = {}
        if facility_ids:
            rows = (
                client.table("facilities")
                .select("id, name")
                .in_("id", facility_ids)
                .execute()
            ).data or []
            facilities = {row["id"]: row for row in rows}

        status_counts: dict[str, int] = {}
        for trip in trips:
            trip["user"] = users.get(trip.get("user_id"))
            facility = facilities.get(trip.get("facility_id"))
            trip["facility"] = {"name": facility["name"]} if facility else None
            label = _status_label(trip.get("status"))
            status_counts[label] = status_counts.get(label, 0) + 1

        return {
            "trips": trips,
            "total_trips": len(trips),
            "status_counts": status_counts,
        }

    # -------------------------------------------------------------------------
    # Booking
    # -------------------------------------------------------------------------

    @staticmethod
    def quote(
        distance: float = 0,
        is_round_trip: bool = False,
        pickup_time=None,
        wheelchair_type: WheelchairType | str | None = None,
        provide_wheelchair: bool = False,
        is_emergency: bool = False,
        is_veteran: bool = False,
        is_in_franklin_county: bool = True,
        counties_out: int = 0,
    ):
        """Price a trip without booking it."""
        if provide_wheelchair:
            wheelchair_type = WheelchairType.PROVIDED
        wheelchair = WheelchairType(wheelchair_type).value if wheelchair_type else None
        return calculate_trip_price(
            distance_miles=distance,
            is_round_trip=is_round_trip,
            pickup_time=pickup_time,
            wheelchair_type=wheelchair,
            is_emergency=is_emergency,
            is_veteran=is_veteran,
            county_info=CountyInfo(
                is_in_franklin_county=is_in_franklin_county,
                counties_out=counties_out,
            ),
        )

    @staticmethod
    def create_trip(data: dict[str, Any], actor_id: str | UUID | None = None) -> dict[str, Any]:
        """
        Book a trip for an individual or a facility-managed client.

        Args:
            data: Validated TripCreate fields
            actor_id: Profile ID of the staff member booking

        Returns:
            The created trip row

        Raises:
            ValidationFailedError: If a transport wheelchair is requested
            EntityNotFoundError: If the client or driver doesn't exist
            DriverConflictError: If the driver has an overlapping active trip
        """
        fields = dict(data)
        wheelchair = WheelchairType(fields.pop("wheelchair_type", None) or WheelchairType.NONE)
        if wheelchair == WheelchairType.TRANSPORT:
            raise ValidationFailedError(
                "Transport wheelchairs cannot be accommodated. Please request a manual or "
                "power wheelchair, or ask us to provide one.",
                details={"field": "wheelchair_type"},
            )
        if fields.pop("provide_wheelchair", False):
            wheelchair = WheelchairType.PROVIDED

        record: dict[str, Any] = {
            "pickup_address": fields["pickup_address"],
            "destination_address": fields["destination_address"],
            "pickup_time": _iso(fields["pickup_time"]),
            "return_pickup_time": _iso(fields.get("return_pickup_time")),
            "is_round_trip": bool(fields.get("is_round_trip")),
            "distance": fields.get("distance") or 0,
            "duration": fields.get("duration"),
            "wheelchair_type": wheelchair.value,
            "wheelchair_requirements": fields.get("wheelchair_requirements"),
            "additional_passengers": fields.get("additional_passengers") or 0,
            "is_emergency": bool(fields.get("is_emergency")),
            "special_requirements": fields.get("notes"),
            "created_by": normalize_uuid(actor_id) if actor_id else None,
            "created_at": utc_now_iso(),
            "updated_at": utc_now_iso(),
        }

        if fields.get("user_id"):
            profile = SupabaseClient.fetch_one(
                "profiles", fields["user_id"], role=UserRole.CLIENT.value
            )
            if not profile:
                raise EntityNotFoundError("client", normalize_uuid(fields["user_id"]))
            record["user_id"] = profile["id"]
            record["facility_id"] = profile.get("facility_id")
        else:
            managed_id = normalize_uuid(fields["managed_client_id"])
            managed = SupabaseClient.fetch_one("facility_managed_clients", managed_id)
            if not managed:
                raise EntityNotFoundError("managed client", managed_id)
            record["managed_client_id"] = managed["id"]
            record["facility_id"] = managed.get("facility_id")

        driver_id = fields.get("driver_id")
        if driver_id:
            driver = DriverService.get_driver_profile(driver_id)
            conflicts = TripService.find_conflicts(driver["id"], record["pickup_time"])
            if conflicts:
                raise DriverConflictError(driver["id"], conflicts)
            record["driver_id"] = driver["id"]
            record["status"] = TripStatus.UPCOMING.value
            record["assigned_at"] = utc_now_iso()
            record["assigned_by"] = record["created_by"]
        else:
            record["status"] = TripStatus.PENDING.value

        if fields.get("price") is not None:
            record["price"] = fields["price"]
        else:
            breakdown = TripService.quote(
                distance=record["distance"],
                is_round_trip=record["is_round_trip"],
                pickup_time=fields["pickup_time"],
                wheelchair_type=wheelchair,
                is_emergency=record["is_emergency"],
                is_veteran=bool(fields.get("is_veteran")),
                is_in_franklin_county=fields.get("is_in_franklin_county", True),
                counties_out=fields.get("counties_out") or 0,
            )
            record["price"] = breakdown.total

        try:
            response = SupabaseClient.get_client().table("trips").insert(record).execute()
        except Exception as e:
            logger.error(f"Failed to create trip: {e}")
            raise BackendError("Failed to create trip", error=str(e))

        trip = response.data[0] if response.data else record
        logger.info(f"Created trip {trip.get('id')} ({record['status']}, ${record['price']})")

        if driver_id:
            DriverService.set_status(record["driver_id"], DriverStatus.ON_TRIP)
        AuditService.record(actor_id, "create_trip", "trip", trip.get("id"))
        return trip

    # -------------------------------------------------------------------------
    # Assignment
    # -------------------------------------------------------------------------

    @staticmethod
    def find_conflicts(driver_id: str, pickup_time: Any, exclude_trip_id: str | None = None) -> list[str]:
        """
        IDs of the driver's active trips whose pickup falls within the
        conflict window starting at pickup_time.
        """
        pickup = parse_timestamp(pickup_time)
        if pickup is None:
            return []
        window_end = pickup + timedelta(hours=settings.DRIVER_CONFLICT_WINDOW_HOURS)

        rows = (
            SupabaseClient.get_client()
            .table("trips")
            .select("id, pickup_time, status")
            .eq("driver_id", driver_id)
            .in_("status", stored_values(ACTIVE_STATUSES))
            .gte("pickup_time", pickup.isoformat())
            .lt("pickup_time", window_end.isoformat())
            .execute()
        ).data or []
        return [row["id"] for row in rows if row["id"] != exclude_trip_id]

    @staticmethod
    def assign_driver(
        trip_id: str | UUID,
        driver_id: str | UUID,
        actor_id: str | UUID | None = None,
    ) -> dict[str, Any]:
        """
        Put a driver on a trip.

        Raises:
            EntityNotFoundError: If the trip or driver doesn't exist
            TripAlreadyAssignedError: If the trip already has a driver
            InvalidTransitionError: If the trip's status can't take a driver
            DriverConflictError: If the driver has an overlapping active trip
        """
        trip = TripService.get_trip(trip_id)
        if trip.get("driver_id"):
            raise TripAlreadyAssignedError(trip["id"], trip["driver_id"])

        target = require_assignable(trip.get("status"))

        driver = DriverService.get_driver_profile(driver_id)

        conflicts = TripService.find_conflicts(driver["id"], trip.get("pickup_time"), trip["id"])
        if conflicts:
            raise DriverConflictError(driver["id"], conflicts)

        now = utc_now_iso()
        updates = {
            "driver_id": driver["id"],
            "status": target.value,
            "assigned_at": now,
            "assigned_by": normalize_uuid(actor_id) if actor_id else None,
            "updated_at": now,
        }
        try:
            response = (
                SupabaseClient.get_client()
                .table("trips")
                .update(updates)
                .eq("id", trip["id"])
                .execute()
            )
        except Exception as e:
            logger.error(f"Error assigning driver {driver['id']} to trip {trip['id']}: {e}")
            raise BackendError("Failed to assign trip", error=str(e))

        DriverService.set_status(driver["id"], DriverStatus.ON_TRIP)
        AuditService.record(actor_id, "assign_trip", "trip", trip["id"], {"driver_id": driver["id"]})

        logger.info(f"Assigned driver {driver['id']} to trip {trip['id']}")
        return response.data[0] if response.data else {**trip, **updates}

    @staticmethod
    def unassign_driver(trip_id: str | UUID, actor_id: str | UUID | None = None) -> dict[str, Any]:
        """
        Take the driver off a trip.

        Upcoming and awaiting trips go back to pending; the driver becomes
        available again.

        Raises:
            EntityNotFoundError: If the trip doesn't exist
            ValidationFailedError: If the trip has no driver
        """
        trip = TripService.get_trip(trip_id)
        driver_id = trip.get("driver_id")
        if not driver_id:
            raise ValidationFailedError("Trip has no assigned driver", details={"trip_id": trip["id"]})

        updates: dict[str, Any] = {"driver_id": None, "updated_at": utc_now_iso()}
        # Trips that haven't started go back to pending; a started trip keeps its status
        if can_transition(trip.get("status"), TripStatus.PENDING):
            updates["status"] = TripStatus.PENDING.value

        response = (
            SupabaseClient.get_client()
            .table("trips")
            .update(updates)
            .eq("id", trip["id"])
            .execute()
        )

        DriverService.set_status(driver_id, DriverStatus.AVAILABLE)
        AuditService.record(actor_id, "unassign_trip", "trip", trip["id"], {"driver_id": driver_id})
        return response.data[0] if response.data else {**trip, **updates}

    @staticmethod
    def record_driver_rejection(trip_id: str | UUID, driver_id: str | UUID) -> dict[str, Any]:
        """
        A driver declines a trip offered to them.

        Raises:
            EntityNotFoundError: If the trip doesn't exist
            ValidationFailedError: If the trip isn't held by this driver
            InvalidTransitionError: If the trip isn't upcoming or awaiting acceptance
        """
        trip = TripService.get_trip(trip_id)
        driver_id = normalize_uuid(driver_id)
        if trip.get("driver_id") != driver_id:
            raise ValidationFailedError(
                "Trip is not assigned to this driver",
                details={"trip_id": trip["id"], "driver_id": driver_id},
            )

        target = require_transition(trip.get("status"), TripStatus.REJECTED)

        updates = {
            "status": target.value,
            "driver_id": None,
            "rejected_by_driver_id": driver_id,
            "updated_at": utc_now_iso(),
        }
        response = (
            SupabaseClient.get_client()
            .table("trips")
            .update(updates)
            .eq("id", trip["id"])
            .execute()
        )

        DriverService.set_status(driver_id, DriverStatus.AVAILABLE)
        logger.info(f"Driver {driver_id} rejected trip {trip['id']}")
        return response.data[0] if response.data else {**trip, **updates}

    # -------------------------------------------------------------------------
    # Status changes
    # -------------------------------------------------------------------------

    @staticmethod
    def apply_action(
        trip_id: str | UUID,
        action: TripAction | str,
        reason: str | None = None,
        actor_id: str | UUID | None = None,
    ) -> dict[str, Any]:
        """
        Apply an admin action (approve, reject, cancel, start, complete).

        Returns:
            Dict with the updated trip, a message and previous/new status

        Raises:
            EntityNotFoundError: If the trip doesn't exist
            InvalidTransitionError: If the action isn't allowed from the current status
        """
        action = TripAction(action)
        trip = TripService.get_trip(trip_id)
        previous = trip.get("status")
        target = require_action(previous, action)

        updates: dict[str, Any] = {"status": target.value, "updated_at": utc_now_iso()}
        if action in (TripAction.REJECT, TripAction.CANCEL):
            updates["cancellation_reason"] = reason or (
                DEFAULT_REJECTION_REASON if action == TripAction.REJECT else None
            )

        try:
            response = (
                SupabaseClient.get_client()
                .table("trips")
                .update(updates)
                .eq("id", trip["id"])
                .execute()
            )
        except Exception as e:
            logger.error(f"Error applying {action.value} to trip {trip['id']}: {e}")
            raise BackendError(f"Failed to {action.value} trip", error=str(e))

        if target in (TripStatus.COMPLETED, TripStatus.CANCELLED) and trip.get("driver_id"):
            DriverService.set_status(trip["driver_id"], DriverStatus.AVAILABLE)

        AuditService.record(
            actor_id, f"{action.value}_trip", "trip", trip["id"],
            {"previous_status": previous, "new_status": target.value},
        )

        past_tense = {
            TripAction.APPROVE: "approved",
            TripAction.REJECT: "rejected",
            TripAction.CANCEL: "cancelled",
            TripAction.START: "started",
            TripAction.COMPLETE: "completed",
        }[action]
        return {
            "trip": response.data[0] if response.data else {**trip, **updates},
            "message": f"Trip {past_tense} successfully",
            "previous_status": previous,
            "new_status": target.value,
        }

    @staticmethod
    def complete_trip(trip_id: str | UUID, actor_id: str | UUID | None = None) -> dict[str, Any]:
        """Mark a trip completed and free its driver."""
        trip = TripService.get_trip(trip_id)
        require_transition(trip.get("status"), TripStatus.COMPLETED)

        updates = {"status": TripStatus.COMPLETED.value, "updated_at": utc_now_iso()}
        response = (
            SupabaseClient.get_client()
            .table("trips")
            .update(updates)
            .eq("id", trip["id"])
            .execute()
        )

        if trip.get("driver_id"):
            DriverService.set_status(trip["driver_id"], DriverStatus.AVAILABLE)
        AuditService.record(actor_id, "complete_trip", "trip", trip["id"])

        return response.data[0] if response.data else {**trip, **updates}

    # -------------------------------------------------------------------------
    # Deletion
    # -------------------------------------------------------------------------

    @staticmethod
    def delete_trip(trip_id: str | UUID, actor_id: str | UUID | None = None) -> dict[str, Any]:
        """
        Delete a single trip.

        Raises:
            EntityNotFoundError: If the trip doesn't exist
            DeletionBlockedError: If the trip is pending, upcoming or in progress
        """
        trip = TripService.get_trip(trip_id)
        if not is_deletable(trip.get("status")):
            raise DeletionBlockedError(
                f"Cannot delete a trip that is {_status_label(trip.get('status'))}. "
                "Cancel or complete it first.",
                details={"trip_id": trip["id"], "status": trip.get("status")},
            )

        SupabaseClient.get_client().table("trips").delete().eq("id", trip["id"]).execute()
        AuditService.record(actor_id, "delete_trip", "trip", trip["id"])

        logger.info(f"Deleted trip {trip['id']}")
        return {"trip_id": trip["id"]}

    @staticmethod
    def delete_all_trips() -> dict[str, Any]:
        """Management reset: delete every trip."""
        current = SupabaseClient.count_rows("trips")
        try:
            (
                SupabaseClient.get_client()
                .table("trips")
                .delete()
                .neq("id", NIL_UUID)
                .execute()
            )
        except Exception as e:
            logger.error(f"Error deleting all trips: {e}")
            raise BackendError("Failed to delete trips", error=str(e))

        remaining = SupabaseClient.count_rows("trips")
        logger.info(f"Trip reset: {current} trips deleted, {remaining} remaining")
        return {
            "message": f"Successfully deleted {current} trips",
            "trips_deleted": current,
            "remaining_trips": remaining,
        }


def _iso(value: Any) -> str | None:
    if value is None:
        return None
    return value.isoformat() if hasattr(value, "isoformat") else str(value)
