# =============================================================================
# core/models/ - Pydantic Data Models
# =============================================================================
# This package contains Pydantic schemas and enums:
# - base.py: shared request config (camelCase aliases, email type)
# - profile.py: roles, driver status, account request bodies
# - facility.py: facilities, owners, managed clients, invoice status
# - trip.py: trip status vocabulary, booking and back-office commands
# - maintenance.py: maintenance endpoint options
#
# These models define the "contract" between API and clients.
# =============================================================================

from .base import Email, RequestModel

# -----------------------------------------------------------------------------
# Profile Models - accounts and roles
# -----------------------------------------------------------------------------
from .profile import (
    ClientCreate,
    DispatcherCreate,
    DispatcherUpdate,
    DriverCreate,
    DriverStatus,
    DriverUpdate,
    EmailUpdate,
    ProfileResponse,
    RoleUpdate,
    STAFF_ROLES,
    UserCreate,
    UserRole,
)

# -----------------------------------------------------------------------------
# Facility Models
# -----------------------------------------------------------------------------
from .facility import (
    FacilityCreate,
    FacilityOwnerCreate,
    FacilityUpdate,
    FacilityUserRole,
    InvoiceStatus,
    ManagedClientCreate,
    ManagedClientCreateForFacility,
    RecordStatus,
    UNPAID_INVOICE_STATUSES,
)

# -----------------------------------------------------------------------------
# Trip Models
# -----------------------------------------------------------------------------
from .trip import (
    AssignTripRequest,
    CompleteTripRequest,
    DriverRejectionRequest,
    LEGACY_STATUS_ALIASES,
    TripAction,
    TripActionRequest,
    TripCreate,
    TripQuoteRequest,
    TripStatus,
    WheelchairType,
)

# -----------------------------------------------------------------------------
# Maintenance Models
# -----------------------------------------------------------------------------
from .maintenance import OrphanCleanupRequest

__all__ = [
    # Base
    "Email",
    "RequestModel",
    # Profile
    "ClientCreate",
    "DispatcherCreate",
    "DispatcherUpdate",
    "DriverCreate",
    "DriverStatus",
    "DriverUpdate",
    "EmailUpdate",
    "ProfileResponse",
    "RoleUpdate",
    "STAFF_ROLES",
    "UserCreate",
    "UserRole",
    # Facility
    "FacilityCreate",
    "FacilityOwnerCreate",
    "FacilityUpdate",
    "FacilityUserRole",
    "InvoiceStatus",
    "ManagedClientCreate",
    "ManagedClientCreateForFacility",
    "RecordStatus",
    "UNPAID_INVOICE_STATUSES",
    # Trip
    "AssignTripRequest",
    "CompleteTripRequest",
    "DriverRejectionRequest",
    "LEGACY_STATUS_ALIASES",
    "TripAction",
    "TripActionRequest",
    "TripCreate",
    "TripQuoteRequest",
    "TripStatus",
    "WheelchairType",
    # Maintenance
    "OrphanCleanupRequest",
]
