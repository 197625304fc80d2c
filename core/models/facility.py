# =============================================================================
# core/models/facility.py - Facility Schemas
# =============================================================================
# A facility (care home, clinic, hospital) books trips for the clients it
# manages. Facility staff log in through `facility_users`; clients without a
# login live in `facility_managed_clients`.
# =============================================================================

from enum import Enum
from uuid import UUID

from pydantic import Field

from .base import Email, RequestModel


class RecordStatus(str, Enum):
    """Status of facilities and facility memberships."""
    ACTIVE = "active"
    PENDING = "pending"
    INACTIVE = "inactive"


class FacilityUserRole(str, Enum):
    """
    Role of a staff member inside a facility (facility_users.role).

    The owner of a facility is its super_admin with is_owner=true.
    """
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    SCHEDULER = "scheduler"


class InvoiceStatus(str, Enum):
    """Invoice lifecycle. pending and overdue count as unpaid."""
    PENDING = "pending"
    OVERDUE = "overdue"
    PAID = "paid"
    CANCELLED = "cancelled"


UNPAID_INVOICE_STATUSES = frozenset({InvoiceStatus.PENDING, InvoiceStatus.OVERDUE})


class FacilityCreate(RequestModel):
    """
    Schema for creating a facility.

    billing_email falls back to contact_email when omitted.

    Example:
        {
            "name": "Riverside Care Home",
            "contact_email": "office@riverside.example.com",
            "phone_number": "614-555-0100",
            "facility_type": "nursing_home"
        }
    """

    name: str = Field(..., min_length=1, max_length=200)
    address: str | None = None
    phone_number: str | None = Field(default=None, max_length=30)
    contact_email: Email | None = None
    billing_email: Email | None = None
    facility_type: str | None = Field(default=None, max_length=50)
    status: RecordStatus = RecordStatus.ACTIVE


class FacilityUpdate(RequestModel):
    """Partial update of a facility. Only provided fields change."""

    name: str | None = Field(default=None, min_length=1, max_length=200)
    address: str | None = None
    phone_number: str | None = Field(default=None, max_length=30)
    contact_email: Email | None = None
    billing_email: Email | None = None
    facility_type: str | None = Field(default=None, max_length=50)
    status: RecordStatus | None = None


class FacilityOwnerCreate(RequestModel):
    """Create the owner login of a facility."""

    email: Email
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    password: str | None = Field(default=None, description="Generated when omitted")


class ManagedClientCreate(RequestModel):
    """A client managed by a facility (no login account)."""

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: Email | None = None
    phone_number: str | None = Field(default=None, max_length=30)
    address: str | None = None
    accessibility_needs: str | None = None
    medical_requirements: str | None = None
    emergency_contact: str | None = None


class ManagedClientCreateForFacility(ManagedClientCreate):
    """Managed client creation where the facility comes in the body."""

    facility_id: UUID
