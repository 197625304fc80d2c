# =============================================================================
# core/services/dispatcher_service.py - Dispatcher Business Logic
# =============================================================================
# Dispatchers are back-office accounts (profiles.role = "dispatcher") that
# assign drivers to trips. Admins create, edit and remove them.
# =============================================================================

import logging
from typing import Any
from uuid import UUID

from app.config import settings
from app.exceptions import BackendError, DeletionBlockedError, EntityNotFoundError, ValidationFailedError
from core.cascade import CascadePlan, CascadeStep, run_cascade
from core.models.profile import UserRole
from core.services.user_service import UserService
from core.trip_lifecycle import NON_DELETABLE_STATUSES, stored_values
from lib.supabase_client import SupabaseClient, SupabaseClientError, is_missing_relation
from lib.utils import full_name, normalize_email, normalize_uuid, utc_now_iso

logger = logging.getLogger(__name__)


DELETE_DISPATCHER_PLAN = CascadePlan(
    name="delete_dispatcher",
    steps=[
        CascadeStep("profiles", "id", "dispatcher_id", critical=True, label="profile",
                    filters={"role": UserRole.DISPATCHER.value}),
    ],
    auth_user_key="dispatcher_id",
)


class DispatcherService:
    """
    Service for dispatcher accounts.
    """

    @staticmethod
    def get_dispatcher(dispatcher_id: str | UUID) -> dict[str, Any]:
        """
        Get a dispatcher profile.

        Raises:
            EntityNotFoundError: If no dispatcher profile has this ID
        """
        dispatcher = SupabaseClient.fetch_one(
            "profiles", dispatcher_id, role=UserRole.DISPATCHER.value
        )
        if not dispatcher:
            raise EntityNotFoundError("dispatcher", normalize_uuid(dispatcher_id))
        return dispatcher

    @staticmethod
    def list_dispatchers() -> list[dict[str, Any]]:
        """List dispatchers alphabetically."""
        return (
            SupabaseClient.get_client()
            .table("profiles")
            .select("*")
            .eq("role", UserRole.DISPATCHER.value)
            .order("last_name")
            .execute()
        ).data or []

    @staticmethod
    def create_dispatcher(data: dict[str, Any]) -> dict[str, Any]:
        """Register a dispatcher account."""
        fields = dict(data)
        email = fields.pop("email")
        password = fields.pop("password", None)
        fields["full_name"] = full_name(fields.get("first_name"), fields.get("last_name"))
        return UserService.provision_user(email, UserRole.DISPATCHER, fields, password=password)

    @staticmethod
    def update_dispatcher(
        dispatcher_id: str | UUID,
        first_name: str,
        last_name: str,
        email: str,
        phone_number: str | None = None,
        password: str | None = None,
    ) -> dict[str, Any]:
        """
        Replace a dispatcher's details; sync email/password to auth.

        Raises:
            ValidationFailedError: If a required field is blank or the password is too short
            EntityNotFoundError: If no dispatcher profile has this ID
        """
        if not first_name or not last_name or not email:
            raise ValidationFailedError("First name, last name, and email are required")
        if password and len(password) < settings.MIN_PASSWORD_LENGTH:
            raise ValidationFailedError(
                f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters long",
                details={"field": "password"},
            )

        existing = DispatcherService.get_dispatcher(dispatcher_id)
        email = normalize_email(email)

        updates = {
            "first_name": first_name,
            "last_name": last_name,
            "full_name": full_name(first_name, last_name),
            "email": email,
            "phone_number": phone_number,
            "updated_at": utc_now_iso(),
        }
        try:
            response = (
                SupabaseClient.get_client()
                .table("profiles")
                .update(updates)
                .eq("id", existing["id"])
                .eq("role", UserRole.DISPATCHER.value)
                .execute()
            )
        except Exception as e:
            logger.error(f"Error updating dispatcher {existing['id']}: {e}")
            raise BackendError("Failed to update dispatcher", error=str(e))

        auth_changes: dict[str, Any] = {}
        if email != existing.get("email"):
            auth_changes.update({"email": email, "email_confirm": True})
        if password:
            auth_changes["password"] = password

        warnings: list[str] = []
        if auth_changes:
            try:
                SupabaseClient.update_auth_user(existing["id"], auth_changes)
            except SupabaseClientError as e:
                logger.error(f"Error updating auth user for dispatcher {existing['id']}: {e}")
                warnings.append(f"Login details not updated: {e.message}")

        return {
            "dispatcher": response.data[0] if response.data else {**existing, **updates},
            "warnings": warnings,
        }

    @staticmethod
    def delete_dispatcher(dispatcher_id: str | UUID) -> dict[str, Any]:
        """
        Delete a dispatcher account.

        Refused while trips they dispatched are still pending, upcoming or
        in progress.

        Raises:
            EntityNotFoundError: If no dispatcher profile has this ID
            DeletionBlockedError: If the dispatcher has active trips
        """
        dispatcher = DispatcherService.get_dispatcher(dispatcher_id)
        dispatcher_id = dispatcher["id"]

        try:
            active = (
                SupabaseClient.get_client()
                .table("trips")
                .select("id")
                .eq("dispatcher_id", dispatcher_id)
                .in_("status", stored_values(NON_DELETABLE_STATUSES))
                .execute()
            ).data or []
        except Exception as e:
            if not is_missing_relation(e):
                raise BackendError("Failed to check active trips", error=str(e))
            active = []

        if active:
            raise DeletionBlockedError(
                f"Cannot delete dispatcher. They have {len(active)} active trip(s). "
                "Please reassign or complete these trips first.",
                details={"active_trips": len(active)},
            )

        summary = run_cascade(DELETE_DISPATCHER_PLAN, {"dispatcher_id": dispatcher_id})

        logger.info(f"Deleted dispatcher {dispatcher_id}")
        return {
            "dispatcher_id": dispatcher_id,
            "auth_user_deleted": dispatcher_id in summary.auth_users_deleted,
            "warnings": summary.warnings,
        }
