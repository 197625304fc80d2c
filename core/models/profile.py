# =============================================================================
# core/models/profile.py - User Profile Schemas
# =============================================================================
# Every account (admin, dispatcher, facility staff, client, driver) is an
# auth user plus one row in `profiles`. The `role` column decides what the
# account can do; only admin and dispatcher get into the back office.
#
# - UserRole / DriverStatus: enums for the profile columns
# - ProfileResponse: profile as returned by the API
# - UserCreate / EmailUpdate / RoleUpdate: admin user-management inputs
# - ClientCreate / DriverCreate / DriverUpdate / DispatcherCreate /
#   DispatcherUpdate: per-role account inputs
# =============================================================================

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field

from .base import Email, RequestModel


class UserRole(str, Enum):
    """
    Roles stored in profiles.role.

    - admin: full back-office access
    - dispatcher: back-office access for trip assignment
    - facility: staff account belonging to a facility
    - client: individual (self-booking) client
    - driver: driver app account
    """
    ADMIN = "admin"
    DISPATCHER = "dispatcher"
    FACILITY = "facility"
    CLIENT = "client"
    DRIVER = "driver"


STAFF_ROLES = frozenset({UserRole.ADMIN, UserRole.DISPATCHER})


class DriverStatus(str, Enum):
    """Availability of a driver (profiles.status for role=driver)."""
    AVAILABLE = "available"
    ON_TRIP = "on_trip"
    INACTIVE = "inactive"


class ProfileResponse(BaseModel):
    """
    Profile row returned to clients.

    Example:
        {
            "id": "550e8400-e29b-41d4-a716-446655440000",
            "email": "jane@example.com",
            "first_name": "Jane",
            "last_name": "Doe",
            "role": "dispatcher"
        }
    """

    id: UUID
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    full_name: str | None = None
    phone_number: str | None = None
    role: str | None = None
    status: str | None = None
    facility_id: UUID | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


# -----------------------------------------------------------------------------
# Generic user management
# -----------------------------------------------------------------------------

class UserCreate(RequestModel):
    """
    Create (or adopt) an account with a given role.

    If an auth user with the same email already exists it is reused; the
    password is then ignored.
    """

    email: Email = Field(..., description="Login email")
    password: str | None = Field(default=None, description="Initial password (generated when omitted)")
    role: UserRole = Field(..., description="Profile role")
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    phone_number: str | None = Field(default=None, max_length=30)
    facility_id: UUID | None = None


class EmailUpdate(RequestModel):
    """Change the login email of an account."""

    user_id: UUID
    new_email: Email


class RoleUpdate(RequestModel):
    """Change the role of an account."""

    user_id: UUID
    role: UserRole


# -----------------------------------------------------------------------------
# Clients
# -----------------------------------------------------------------------------

class ClientCreate(RequestModel):
    """Register an individual client (a login account with role=client)."""

    email: Email
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    phone_number: str | None = Field(default=None, max_length=30)
    address: str | None = None
    accessibility_needs: str | None = None
    medical_requirements: str | None = None
    emergency_contact: str | None = None
    is_veteran: bool = False
    facility_id: UUID | None = None
    password: str | None = None


# -----------------------------------------------------------------------------
# Drivers
# -----------------------------------------------------------------------------

class DriverCreate(RequestModel):
    """Register a driver account."""

    email: Email
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    phone_number: str | None = Field(default=None, max_length=30)
    vehicle_model: str | None = None
    vehicle_license: str | None = None
    status: DriverStatus = DriverStatus.AVAILABLE
    password: str | None = None


class DriverUpdate(RequestModel):
    """Partial update of a driver. Only provided fields change."""

    email: Email | None = None
    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    last_name: str | None = Field(default=None, min_length=1, max_length=100)
    phone_number: str | None = Field(default=None, max_length=30)
    vehicle_model: str | None = None
    vehicle_license: str | None = None
    status: DriverStatus | None = None
    password: str | None = None


# -----------------------------------------------------------------------------
# Dispatchers
# -----------------------------------------------------------------------------

class DispatcherCreate(RequestModel):
    """Register a dispatcher account."""

    email: Email
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    phone_number: str | None = Field(default=None, max_length=30)
    password: str | None = None


class DispatcherUpdate(RequestModel):
    """
    Full update of a dispatcher.

    Names and email are required. Password is optional; when given it must
    meet the minimum length (checked by the service against settings).
    """

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: Email
    phone_number: str | None = Field(default=None, max_length=30)
    password: str | None = None

