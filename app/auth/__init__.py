# =============================================================================
# app/auth/__init__.py - Authentication Module
# =============================================================================
# Provides JWT-based authentication using Supabase Auth, and the role gate
# every back-office route sits behind.
#
# Usage:
#   from app.auth import require_staff, CurrentProfile
#
#   @router.get("/trips")
#   async def list_trips(caller: CurrentProfile = Depends(require_staff)):
#       ...
# =============================================================================

from app.auth.dependencies import (
    get_current_profile,
    get_current_user,
    require_admin,
    require_roles,
    require_staff,
)
from app.auth.models import AuthUser, CurrentProfile

__all__ = [
    "get_current_profile",
    "get_current_user",
    "require_admin",
    "require_roles",
    "require_staff",
    "AuthUser",
    "CurrentProfile",
]
