# =============================================================================
# app/routers/ - API Route Definitions
# =============================================================================
# This package contains FastAPI routers organized by feature:
# - health.py: Health check endpoints (public)
# - facilities.py: Facilities, their owner and managed clients
# - clients.py: Individual and managed clients
# - drivers.py: Driver accounts
# - dispatchers.py: Dispatcher accounts
# - trips.py: Booking, quotes, unassign, driver rejections
# - admin.py: Dispatch, cascading deletes, account and maintenance operations
# - tasks.py: Background task status endpoints
#
# Each router is mounted in main.py with a URL prefix.
# =============================================================================

from . import health
from . import facilities
from . import clients
from . import drivers
from . import dispatchers
from . import trips
from . import admin
from . import tasks

__all__ = [
    "health",
    "facilities",
    "clients",
    "drivers",
    "dispatchers",
    "trips",
    "admin",
    "tasks",
]
