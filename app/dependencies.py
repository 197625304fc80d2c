# =============================================================================
# app/dependencies.py - Shared Dependencies
# =============================================================================
# FastAPI dependency injection for shared resources.
# These are injected into route handlers using Depends() or as Annotated
# parameter types:
#
#   @router.delete("/drivers/{driver_id}")
#   async def delete_driver(driver_id: UUID, admin: AdminDep):
#       ...
# =============================================================================

from typing import Annotated

from fastapi import Depends

from app.auth import CurrentProfile, require_admin, require_staff
from lib.supabase_client import SupabaseClient


def get_supabase_client() -> type[SupabaseClient]:
    """
    Get Supabase client instance.

    Returns the singleton client wrapper.
    """
    return SupabaseClient


# Type aliases for dependency injection
SupabaseDep = Annotated[type[SupabaseClient], Depends(get_supabase_client)]

# Caller must be an admin
AdminDep = Annotated[CurrentProfile, Depends(require_admin)]

# Caller must be back-office staff (admin or dispatcher)
StaffDep = Annotated[CurrentProfile, Depends(require_staff)]
