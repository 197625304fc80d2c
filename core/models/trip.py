# =============================================================================
# core/models/trip.py - Trip Schemas
# =============================================================================
# These models define the API contract for trip operations:
# - TripStatus: the one status vocabulary (legacy values normalize onto it)
# - TripAction: admin actions on a trip
# - TripCreate / TripQuoteRequest: booking and pricing inputs
# - AssignTripRequest / TripActionRequest / ...: back-office commands
#
# Allowed status changes live in core/trip_lifecycle.py.
# =============================================================================

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import Field, model_validator

from .base import RequestModel


class TripStatus(str, Enum):
    """
    Trip states.

    Flow: pending -> upcoming | awaiting_driver_acceptance -> in_progress
          -> completed | cancelled | rejected

    Older rows may carry legacy values ("confirmed", "approved", ...);
    TripStatus("confirmed") resolves them to the current state.
    """
    PENDING = "pending"
    UPCOMING = "upcoming"
    AWAITING_DRIVER_ACCEPTANCE = "awaiting_driver_acceptance"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            alias = LEGACY_STATUS_ALIASES.get(value.strip().lower())
            if alias is not None:
                return cls(alias)
        return None

    @classmethod
    def normalize(cls, value: "str | TripStatus | None") -> "TripStatus | None":
        """Map a stored status (current or legacy) to TripStatus; None if unknown."""
        if value is None:
            return None
        try:
            return cls(value)
        except ValueError:
            return None


LEGACY_STATUS_ALIASES: dict[str, str] = {
    "confirmed": "upcoming",
    "approved": "upcoming",
    "approved_pending_payment": "upcoming",
    "paid_in_progress": "in_progress",
    "in_process": "in_progress",
}


class TripAction(str, Enum):
    """Back-office actions on a single trip."""
    APPROVE = "approve"
    REJECT = "reject"
    CANCEL = "cancel"
    START = "start"
    COMPLETE = "complete"


class WheelchairType(str, Enum):
    """Wheelchair options on a booking. transport chairs can't be carried."""
    NONE = "none"
    MANUAL = "manual"
    POWER = "power"
    TRANSPORT = "transport"
    PROVIDED = "provided"


# -----------------------------------------------------------------------------
# Booking
# -----------------------------------------------------------------------------

class TripCreate(RequestModel):
    """
    Schema for booking a trip from the back office.

    Exactly one of user_id (individual client) or managed_client_id
    (facility-managed client) must be given. price is computed from the
    distance and options when omitted.

    Example:
        {
            "user_id": "550e8400-e29b-41d4-a716-446655440000",
            "pickup_address": "100 Main St, Columbus, OH",
            "destination_address": "OSU Wexner Medical Center",
            "pickup_time": "2025-03-04T09:30:00",
            "distance": 8.2,
            "is_round_trip": true
        }
    """

    user_id: UUID | None = None
    managed_client_id: UUID | None = None
    pickup_address: str = Field(..., min_length=1)
    destination_address: str = Field(..., min_length=1)
    pickup_time: datetime
    return_pickup_time: datetime | None = None
    is_round_trip: bool = False
    distance: float = Field(default=0, ge=0, description="One-way miles")
    duration: float | None = Field(default=None, ge=0, description="Minutes")
    wheelchair_type: WheelchairType = WheelchairType.NONE
    provide_wheelchair: bool = False
    wheelchair_requirements: str | None = None
    additional_passengers: int = Field(default=0, ge=0, le=10)
    is_emergency: bool = False
    is_veteran: bool = False
    is_in_franklin_county: bool = True
    counties_out: int = Field(default=0, ge=0)
    notes: str | None = None
    price: float | None = Field(default=None, ge=0)
    driver_id: UUID | None = None

    @model_validator(mode="after")
    def check_one_client(self):
        if (self.user_id is None) == (self.managed_client_id is None):
            raise ValueError("Provide exactly one of user_id or managed_client_id")
        return self


class TripQuoteRequest(RequestModel):
    """Inputs for a price quote (no trip is created)."""

    distance: float = Field(default=0, ge=0, description="One-way miles")
    is_round_trip: bool = False
    pickup_time: datetime | None = None
    wheelchair_type: WheelchairType = WheelchairType.NONE
    provide_wheelchair: bool = False
    is_emergency: bool = False
    is_veteran: bool = False
    is_in_franklin_county: bool = True
    counties_out: int = Field(default=0, ge=0)


# -----------------------------------------------------------------------------
# Back-office commands
# -----------------------------------------------------------------------------

class AssignTripRequest(RequestModel):
    """Assign a driver to a trip."""

    trip_id: UUID
    driver_id: UUID


class CompleteTripRequest(RequestModel):
    """Mark a trip as completed."""

    trip_id: UUID


class TripActionRequest(RequestModel):
    """
    Apply an action to a trip.

    Example:
        {"tripId": "...", "action": "reject", "reason": "Outside service area"}
    """

    trip_id: UUID
    action: TripAction
    reason: str | None = Field(default=None, max_length=500)


class DriverRejectionRequest(RequestModel):
    """A driver declining a trip they were offered."""

    driver_id: UUID
