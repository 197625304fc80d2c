# =============================================================================
# core/services/__init__.py - Service Layer Exports
# =============================================================================

from .audit_service import AuditService
from .user_service import UserService
from .facility_service import FacilityService
from .client_service import ClientService
from .driver_service import DriverService
from .dispatcher_service import DispatcherService
from .trip_service import TripService
from .maintenance_service import MaintenanceService
from .invoice_service import InvoiceService

__all__ = [
    "AuditService",
    "UserService",
    "FacilityService",
    "ClientService",
    "DriverService",
    "DispatcherService",
    "TripService",
    "MaintenanceService",
    "InvoiceService",
]
