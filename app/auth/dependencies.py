# =============================================================================
# app/auth/dependencies.py - FastAPI Auth Dependencies
# =============================================================================
# The gate in front of every back-office route:
# 1. get_current_user: verify the Supabase session token
# 2. get_current_profile: load the caller's profiles row
# 3. require_roles(...): check profiles.role
#
# Token verification supports both:
# - ES256 (new Supabase JWT signing keys) via JWKS
# - HS256 (legacy Supabase JWT secret) as fallback
#
# Usage:
#   from app.auth import require_admin, CurrentProfile
#
#   @router.delete("/drivers/{driver_id}")
#   async def delete_driver(driver_id: UUID, admin: CurrentProfile = Depends(require_admin)):
#       ...
# =============================================================================

import logging
import time
from typing import Optional
from uuid import UUID

import httpx
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError, ExpiredSignatureError
from pydantic import ValidationError

from app.config import settings
from app.auth.models import AuthUser, CurrentProfile, TokenPayload
from app.exceptions import AccessDeniedError, AuthenticationError, ProfileNotFoundError
from lib.supabase_client import SupabaseClient

logger = logging.getLogger(__name__)

# HTTP Bearer token extractor; a missing header is reported by get_current_user
security = HTTPBearer(auto_error=False)

# Cache for JWKS keys
_jwks_cache: dict = {}
_jwks_cache_time: float = 0
JWKS_CACHE_TTL = 3600  # 1 hour


def _get_jwks_url() -> str:
    """Get the JWKS URL from Supabase URL."""
    supabase_url = settings.SUPABASE_URL.rstrip('/')
    return f"{supabase_url}/auth/v1/.well-known/jwks.json"


def _fetch_jwks() -> dict:
    """Fetch JWKS from Supabase with caching."""
    global _jwks_cache, _jwks_cache_time

    current_time = time.time()
    if _jwks_cache and (current_time - _jwks_cache_time) < JWKS_CACHE_TTL:
        return _jwks_cache

    try:
        jwks_url = _get_jwks_url()
        response = httpx.get(jwks_url, timeout=10)
        response.raise_for_status()
        _jwks_cache = response.json()
        _jwks_cache_time = current_time
        logger.debug(f"Fetched JWKS from {jwks_url}")
        return _jwks_cache
    except httpx.HTTPError as e:
        logger.warning(f"Failed to fetch JWKS: {e}")
        # Stale keys are better than none
        if _jwks_cache:
            return _jwks_cache
        return {"keys": []}


def _get_signing_key(token: str) -> tuple:
    """
    Get the appropriate signing key for a token.

    Returns:
        Tuple of (key, algorithm) to use for verification
    """
    try:
        unverified_header = jwt.get_unverified_header(token)
    except JWTError:
        return settings.SUPABASE_JWT_SECRET, "HS256"

    alg = unverified_header.get("alg", "HS256")
    kid = unverified_header.get("kid")

    if alg == "HS256":
        return settings.SUPABASE_JWT_SECRET, "HS256"

    if kid:
        for key in _fetch_jwks().get("keys", []):
            if key.get("kid") == kid:
                return key, alg

    logger.warning(f"Could not find key for alg={alg}, kid={kid}, falling back to HS256")
    return settings.SUPABASE_JWT_SECRET, "HS256"


def decode_token(token: str) -> AuthUser:
    """
    Verify a Supabase access token and return the user it belongs to.

    Raises:
        AuthenticationError: If the token is expired, badly signed or malformed
    """
    try:
        signing_key, algorithm = _get_signing_key(token)
        payload = jwt.decode(
            token,
            signing_key,
            algorithms=[algorithm],
            audience="authenticated"
        )
        claims = TokenPayload(**payload)
        user_id = UUID(claims.sub)

    except ExpiredSignatureError:
        logger.warning("JWT token has expired")
        raise AuthenticationError("Token has expired")

    except JWTError as e:
        logger.warning(f"JWT validation failed: {e}")
        raise AuthenticationError(f"Invalid token: {e}")

    except (ValidationError, ValueError):
        logger.warning("JWT token has a missing or malformed 'sub' claim")
        raise AuthenticationError("Invalid token: malformed user ID")

    logger.debug(f"Authenticated user: {user_id}")
    return AuthUser(id=user_id, email=claims.email)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> AuthUser:
    """
    Extract and validate user from Supabase JWT token.

    Returns:
        AuthUser: The authenticated user

    Raises:
        AuthenticationError: 401 if the token is missing, invalid or expired
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError()
    return decode_token(credentials.credentials)


async def get_current_profile(
    user: AuthUser = Depends(get_current_user)
) -> CurrentProfile:
    """
    Load the caller's profile.

    Raises:
        ProfileNotFoundError: 403 if the account has no profile row
    """
    profile = SupabaseClient.fetch_profile(user.id)
    if not profile:
        logger.warning(f"Authenticated user {user.id} has no profile")
        raise ProfileNotFoundError(str(user.id))
    if not profile.get("email"):
        profile["email"] = user.email
    return CurrentProfile(**profile)


def require_roles(*roles: str):
    """
    Dependency factory: allow only callers whose profile role is in `roles`.

    Usage:
        @router.get("/x", dependencies=[Depends(require_roles("admin"))])
    """
    allowed = [getattr(role, "value", role) for role in roles]

    async def check_role(profile: CurrentProfile = Depends(get_current_profile)) -> CurrentProfile:
        if profile.role not in allowed:
            logger.info(f"User {profile.id} with role {profile.role} denied (needs {allowed})")
            raise AccessDeniedError(required=allowed, current=profile.role)
        return profile

    return check_role


# Admin only
require_admin = require_roles("admin")

# Anyone allowed into the back office (admin, dispatcher by default)
require_staff = require_roles(*settings.staff_roles_list)
