# =============================================================================
# lib/supabase_client.py - Supabase Client Wrapper
# =============================================================================
# This module provides a typed wrapper for Supabase operations.
# It implements the singleton pattern to reuse a single service-role client
# and provides helpers for:
# - Fetching single rows and profiles
# - Counting rows
# - Classifying PostgREST errors (no rows, missing table)
# - Auth admin calls (create / update / delete / list users)
#
# Usage:
#   from lib.supabase_client import SupabaseClient
#   profile = SupabaseClient.fetch_profile(user_id)
# =============================================================================

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from supabase import create_client, Client

from app.config import settings

logger = logging.getLogger(__name__)

# PostgREST / Postgres error codes we branch on
NO_ROWS_CODE = "PGRST116"
MISSING_RELATION_CODES = ("42P01", "42703", "PGRST204", "PGRST205")


class SupabaseClientError(Exception):
    """
    Error during Supabase operations.

    Provides actionable error messages:
    "Errors should tell HOW to fix, not just WHAT failed."
    """

    def __init__(
        self,
        message: str,
        code: str = "SUPABASE_ERROR",
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.details = details or {}

    def __str__(self) -> str:
        result = f"[{self.code}] {self.message}"
        if self.suggestion:
            result += f" Suggestion: {self.suggestion}"
        return result


def error_code(exc: BaseException) -> str | None:
    """Extract the PostgREST/Postgres error code from an exception, if any."""
    code = getattr(exc, "code", None)
    if code:
        return str(code)
    text = str(exc)
    for known in (NO_ROWS_CODE, *MISSING_RELATION_CODES):
        if known in text:
            return known
    return None


def is_no_rows(exc: BaseException) -> bool:
    """True when a .single() query matched zero rows."""
    return error_code(exc) == NO_ROWS_CODE


def is_missing_relation(exc: BaseException) -> bool:
    """True when the table or column doesn't exist in this deployment's schema."""
    return error_code(exc) in MISSING_RELATION_CODES or "does not exist" in str(exc)


def _user_to_dict(user: Any) -> dict[str, Any]:
    """Normalize a gotrue User (object or dict) to a plain dict."""
    if isinstance(user, dict):
        source = user
        get = source.get
    else:
        def get(key, default=None):
            return getattr(user, key, default)

    def as_text(value):
        return value.isoformat() if hasattr(value, "isoformat") else value

    return {
        "id": str(get("id")),
        "email": get("email"),
        "created_at": as_text(get("created_at")),
        "last_sign_in_at": as_text(get("last_sign_in_at")),
        "user_metadata": get("user_metadata") or {},
    }


class SupabaseClient:
    """
    Typed wrapper for Supabase operations.

    Implements singleton pattern - one client instance is shared across
    the application. All methods are class methods for easy access without
    instantiation.

    Example:
        driver = SupabaseClient.fetch_one("profiles", driver_id, role="driver")
        if driver is None:
            raise EntityNotFoundError("driver", driver_id)
    """

    _instance: Client | None = None

    @classmethod
    def get_client(cls) -> Client:
        """
        Get or create the singleton Supabase client.

        Uses service_role key which bypasses Row Level Security (RLS).
        The auth admin API is only reachable with this key.

        Returns:
            Client: Supabase client instance

        Raises:
            SupabaseClientError: If client creation fails
        """
        if cls._instance is None:
            try:
                cls._instance = create_client(
                    settings.SUPABASE_URL,
                    settings.SUPABASE_SERVICE_KEY
                )
                logger.info("Supabase client initialized successfully")
            except Exception as e:
                raise SupabaseClientError(
                    message=f"Failed to create Supabase client: {e}",
                    code="CLIENT_INIT_FAILED",
                    suggestion="Check SUPABASE_URL and SUPABASE_SERVICE_KEY in your .env file"
                )
        return cls._instance

    @classmethod
    def _normalize_uuid(cls, uuid_value: str | UUID) -> str:
        """Convert UUID to string for queries."""
        return str(uuid_value) if isinstance(uuid_value, UUID) else uuid_value

    # -------------------------------------------------------------------------
    # Row Reads
    # -------------------------------------------------------------------------

    @classmethod
    def fetch_one(
        cls,
        table: str,
        row_id: str | UUID,
        columns: str = "*",
        **filters: Any,
    ) -> dict[str, Any] | None:
        """
        Fetch a single row by ID, with optional extra equality filters.

        Args:
            table: Table name
            row_id: Primary key value
            columns: PostgREST column list
            **filters: Extra `column=value` equality filters (e.g. role="driver")

        Returns:
            Row dict, or None if no row matched

        Raises:
            SupabaseClientError: If the query fails for any other reason
        """
        client = cls.get_client()
        row_id_str = cls._normalize_uuid(row_id)

        try:
            query = client.table(table).select(columns).eq("id", row_id_str)
            for column, value in filters.items():
                query = query.eq(column, value)
            response = query.single().execute()
            return response.data

        except Exception as e:
            if is_no_rows(e):
                return None
            raise SupabaseClientError(
                message=f"Failed to fetch {table} row: {e}",
                code="FETCH_ROW_FAILED",
                details={"table": table, "id": row_id_str, "filters": filters}
            )

    @classmethod
    def fetch_profile(cls, user_id: str | UUID, columns: str = "*") -> dict[str, Any] | None:
        """Fetch a user's profile row (None if missing)."""
        return cls.fetch_one("profiles", user_id, columns=columns)

    @classmethod
    def count_rows(cls, table: str, **filters: Any) -> int:
        """
        Count rows matching equality filters.

        Missing tables count as zero - optional tables like facility_contracts
        aren't present in every deployment.
        """
        client = cls.get_client()

        try:
            query = client.table(table).select("id", count="exact", head=True)
            for column, value in filters.items():
                query = query.eq(column, value)
            response = query.execute()
            return response.count or 0

        except Exception as e:
            if is_missing_relation(e):
                logger.debug(f"Table {table} not available, counting as 0")
                return 0
            raise SupabaseClientError(
                message=f"Failed to count {table}: {e}",
                code="COUNT_FAILED",
                details={"table": table, "filters": filters}
            )

    # -------------------------------------------------------------------------
    # Auth Admin
    # -------------------------------------------------------------------------

    @classmethod
    def create_auth_user(
        cls,
        email: str,
        password: str,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """
        Create a confirmed auth user and return its ID.

        Raises:
            SupabaseClientError: If the auth API rejects the user
        """
        client = cls.get_client()

        try:
            response = client.auth.admin.create_user({
                "email": email,
                "password": password,
                "email_confirm": True,
                "user_metadata": metadata or {},
            })
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to create user account: {e}",
                code="AUTH_CREATE_FAILED",
                suggestion="Check that the email isn't already registered",
                details={"email": email}
            )

        user = getattr(response, "user", None)
        if user is None:
            raise SupabaseClientError(
                message="Failed to create user - no response data",
                code="AUTH_CREATE_NO_DATA",
                details={"email": email}
            )

        user_id = str(user.id)
        logger.info(f"Created auth user {user_id} ({email})")
        return user_id

    @classmethod
    def update_auth_user(cls, user_id: str | UUID, attributes: dict[str, Any]) -> None:
        """Update email/password/metadata of an auth user."""
        client = cls.get_client()
        user_id_str = cls._normalize_uuid(user_id)

        try:
            client.auth.admin.update_user_by_id(user_id_str, attributes)
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to update auth user: {e}",
                code="AUTH_UPDATE_FAILED",
                details={"user_id": user_id_str, "fields": sorted(attributes)}
            )

    @classmethod
    def delete_auth_user(cls, user_id: str | UUID) -> None:
        """Delete an auth user."""
        client = cls.get_client()
        user_id_str = cls._normalize_uuid(user_id)

        try:
            client.auth.admin.delete_user(user_id_str)
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to delete auth user: {e}",
                code="AUTH_DELETE_FAILED",
                details={"user_id": user_id_str}
            )

    @classmethod
    def list_auth_users(cls, per_page: int = 1000) -> list[dict[str, Any]]:
        """
        List every auth user, following pagination.

        Returns:
            List of dicts with id, email, created_at, last_sign_in_at, user_metadata
        """
        client = cls.get_client()
        users: list[dict[str, Any]] = []
        page = 1

        try:
            while True:
                batch = client.auth.admin.list_users(page=page, per_page=per_page) or []
                users.extend(_user_to_dict(u) for u in batch)
                if len(batch) < per_page:
                    break
                page += 1
        except Exception as e:
            raise SupabaseClientError(
                message=f"Error fetching auth users: {e}",
                code="AUTH_LIST_FAILED",
                details={"page": page}
            )

        logger.debug(f"Fetched {len(users)} auth users")
        return users

    @classmethod
    def find_auth_user_by_email(cls, email: str) -> dict[str, Any] | None:
        """Look up an auth user by email (case-insensitive)."""
        wanted = email.strip().lower()
        for user in cls.list_auth_users():
            if (user.get("email") or "").lower() == wanted:
                return user
        return None
