# =============================================================================
# app/auth/models.py - Authentication Models
# =============================================================================
# Pydantic models for authentication data.
# =============================================================================

from pydantic import BaseModel, ConfigDict
from uuid import UUID
from typing import Optional

from core.models.profile import ProfileResponse


class AuthUser(BaseModel):
    """
    Authenticated user extracted from Supabase JWT.

    This is the minimal user info available from the token itself,
    without querying the database.
    """
    model_config = ConfigDict(frozen=True)

    id: UUID
    email: Optional[str] = None


class CurrentProfile(ProfileResponse):
    """
    Profile of the caller, loaded after the token is verified.

    Route handlers use it for the role check and as the actor of audited
    operations.
    """
    model_config = ConfigDict(extra="ignore")

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class TokenPayload(BaseModel):
    """
    Decoded JWT token payload from Supabase.

    Supabase tokens include standard JWT claims plus custom claims.
    """
    sub: str  # User ID
    email: Optional[str] = None
    aud: str  # Audience (should be "authenticated")
    exp: int  # Expiration timestamp
    role: Optional[str] = None  # Postgres role ("authenticated"), not the profile role
