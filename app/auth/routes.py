# =============================================================================
# app/auth/routes.py - Authentication Routes
# =============================================================================
# API endpoints for authentication-related operations.
#
# Note: Actual signup/login is handled by Supabase Auth client-side.
# These routes are for checking the session and role after login.
# =============================================================================

import logging
from fastapi import APIRouter, Depends

from app.auth.dependencies import get_current_profile, get_current_user
from app.auth.models import AuthUser, CurrentProfile
from app.config import settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.get("/me")
async def get_current_user_info(
    profile: CurrentProfile = Depends(get_current_profile)
) -> dict:
    """
    Get the current user's profile and whether it may use the back office.

    Raises:
        401: If not authenticated
        403: If the account has no profile
    """
    return {
        "profile": profile.model_dump(mode="json"),
        "role": profile.role,
        "is_staff": profile.role in settings.staff_roles_list,
    }


@router.get("/verify")
async def verify_token(
    user: AuthUser = Depends(get_current_user)
) -> dict:
    """
    Verify that the current token is valid.

    Useful for checking if a stored token is still valid.

    Raises:
        401: If token is invalid or expired
    """
    return {
        "valid": True,
        "user_id": str(user.id),
        "email": user.email
    }
