# =============================================================================
# core/services/user_service.py - Account Provisioning
# =============================================================================
# Every login account is an auth user plus a `profiles` row. This service
# keeps the two in step:
# - provision_user: create (or adopt) an auth user and write its profile
# - update_email / update_role: change login details on both sides
# - list_users_by_role / delete_non_staff_users: user management reset
#
# Role-specific services (drivers, dispatchers, clients, facility owners)
# build on provision_user.
# =============================================================================

import logging
from typing import Any
from uuid import UUID

from app.config import settings
from app.exceptions import BackendError, EntityNotFoundError, ValidationFailedError
from core.models.profile import STAFF_ROLES, UserRole
from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.utils import generate_password, normalize_email, normalize_uuid, utc_now_iso

logger = logging.getLogger(__name__)


class UserService:
    """
    Service for account operations that span auth and profiles.
    """

    @staticmethod
    def provision_user(
        email: str,
        role: UserRole | str,
        profile_fields: dict[str, Any] | None = None,
        password: str | None = None,
    ) -> dict[str, Any]:
        """
        Create or adopt an account and write its profile.

        If an auth user already exists for the email it is reused (the
        password is ignored). An existing profile with a different role is
        refused; otherwise the profile is updated or inserted.

        If the auth user was created here and the profile write fails, the
        auth user is deleted again so no orphan is left behind.

        Args:
            email: Login email
            role: Profile role
            profile_fields: Extra profile columns (names, phone, vehicle, ...)
            password: Initial password; generated when omitted for new users

        Returns:
            Dict with user_id, profile, created (bool) and password (only
            when a new auth user was created)

        Raises:
            ValidationFailedError: If the account already has another role
            BackendError: If auth or profile writes fail
        """
        role_value = UserRole(role).value
        email = normalize_email(email)
        fields = {k: v for k, v in (profile_fields or {}).items() if v is not None}

        if password is not None and len(password) < settings.MIN_PASSWORD_LENGTH:
            raise ValidationFailedError(
                f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters",
                details={"field": "password"},
            )

        existing_auth = SupabaseClient.find_auth_user_by_email(email)
        created = existing_auth is None

        if created:
            password = password or generate_password(settings.GENERATED_PASSWORD_LENGTH)
            try:
                user_id = SupabaseClient.create_auth_user(
                    email, password, metadata={"role": role_value}
                )
            except SupabaseClientError as e:
                raise BackendError(f"Error creating user: {e.message}", error=str(e))
        else:
            user_id = existing_auth["id"]
            logger.info(f"Reusing existing auth user {user_id} for {email}")

        existing_profile = SupabaseClient.fetch_profile(user_id, columns="id, role")

        # A signup trigger may already have written a profile for a user we just created
        if existing_profile and not created and existing_profile.get("role") != role_value:
            raise ValidationFailedError(
                f"This user already has a different role ({existing_profile.get('role')}). "
                f"Cannot change to {role_value}.",
                details={"user_id": user_id, "current_role": existing_profile.get("role")},
            )

        profile = {"email": email, "role": role_value, **fields}
        client = SupabaseClient.get_client()

        try:
            if existing_profile:
                profile["updated_at"] = utc_now_iso()
                client.table("profiles").update(profile).eq("id", user_id).execute()
            else:
                profile.update({"id": user_id, "created_at": utc_now_iso()})
                client.table("profiles").insert(profile).execute()

        except Exception as e:
            logger.error(f"Profile write failed for {email}: {e}")
            if created:
                try:
                    SupabaseClient.delete_auth_user(user_id)
                    logger.info(f"Rolled back auth user {user_id} after profile failure")
                except SupabaseClientError as cleanup_error:
                    logger.error(f"Could not roll back auth user {user_id}: {cleanup_error}")
            raise BackendError("Error creating profile", error=str(e))

        profile["id"] = user_id
        logger.info(f"Provisioned {role_value} {user_id} ({email}), new auth user: {created}")

        result = {"user_id": user_id, "profile": profile, "created": created}
        if created:
            result["password"] = password
        return result

    @staticmethod
    def update_email(user_id: str | UUID, new_email: str) -> dict[str, Any]:
        """
        Change an account's login email.

        The auth user is updated first (confirmed, so no verification mail is
        needed), then the profile copy.

        Raises:
            EntityNotFoundError: If the user has no profile
            BackendError: If the auth update fails
        """
        user_id = normalize_uuid(user_id)
        new_email = normalize_email(new_email)

        profile = SupabaseClient.fetch_profile(user_id, columns="id, email, role")
        if not profile:
            raise EntityNotFoundError("user", user_id)

        try:
            SupabaseClient.update_auth_user(user_id, {"email": new_email, "email_confirm": True})
        except SupabaseClientError as e:
            raise BackendError("Failed to update email in authentication", error=str(e))

        client = SupabaseClient.get_client()
        try:
            client.table("profiles").update({
                "email": new_email,
                "updated_at": utc_now_iso(),
            }).eq("id", user_id).execute()
        except Exception as e:
            raise BackendError("Email updated in auth but failed to update profile", error=str(e))

        logger.info(f"Updated email for {user_id}: {profile.get('email')} -> {new_email}")
        return {"user_id": user_id, "old_email": profile.get("email"), "new_email": new_email}

    @staticmethod
    def update_role(user_id: str | UUID, role: UserRole | str) -> dict[str, Any]:
        """
        Change an account's role (profile and auth metadata).

        Raises:
            EntityNotFoundError: If the user has no profile
        """
        user_id = normalize_uuid(user_id)
        role_value = UserRole(role).value

        profile = SupabaseClient.fetch_profile(user_id, columns="id, email, role")
        if not profile:
            raise EntityNotFoundError("user", user_id)

        client = SupabaseClient.get_client()
        try:
            client.table("profiles").update({
                "role": role_value,
                "updated_at": utc_now_iso(),
            }).eq("id", user_id).execute()
        except Exception as e:
            raise BackendError("Error updating role", error=str(e))

        try:
            SupabaseClient.update_auth_user(user_id, {"user_metadata": {"role": role_value}})
        except SupabaseClientError as e:
            logger.warning(f"Role metadata not synced to auth for {user_id}: {e}")

        logger.info(f"Changed role of {user_id}: {profile.get('role')} -> {role_value}")
        return {"user_id": user_id, "old_role": profile.get("role"), "new_role": role_value}

    @staticmethod
    def update_role_by_email(email: str, role: UserRole | str) -> dict[str, Any]:
        """Look up an auth user by email and change its role."""
        auth_user = SupabaseClient.find_auth_user_by_email(email)
        if not auth_user:
            raise EntityNotFoundError("user", email)
        return UserService.update_role(auth_user["id"], role)

    # -------------------------------------------------------------------------
    # User management reset
    # -------------------------------------------------------------------------

    @staticmethod
    def list_users_by_role() -> dict[str, Any]:
        """
        Group every profile by role, split into keep (staff) and delete.

        Returns:
            Dict with users_to_keep, users_to_delete, role_counts, total_users
            and summary {keep, delete}
        """
        client = SupabaseClient.get_client()
        response = (
            client.table("profiles")
            .select("*")
            .order("created_at", desc=True)
            .execute()
        )
        profiles = response.data or []

        known = [r.value for r in UserRole]
        staff = {r.value for r in STAFF_ROLES}
        role_counts = {role: 0 for role in known}
        role_counts["other"] = 0

        keep, delete = [], []
        for profile in profiles:
            role = profile.get("role")
            role_counts[role if role in known else "other"] += 1
            (keep if role in staff else delete).append(profile)

        return {
            "users_to_keep": keep,
            "users_to_delete": delete,
            "total_users": len(profiles),
            "role_counts": role_counts,
            "summary": {"keep": len(keep), "delete": len(delete)},
        }

    @staticmethod
    def delete_non_staff_users() -> dict[str, Any]:
        """
        Delete every account that isn't admin or dispatcher.

        Per user: facility membership, then profile, then auth user. A
        failing user is recorded and the loop moves on.
        """
        client = SupabaseClient.get_client()
        staff = [r.value for r in STAFF_ROLES]

        response = (
            client.table("profiles")
            .select("id, email, first_name, last_name, role")
            .not_.in_("role", staff)
            .execute()
        )
        profiles = response.data or []

        deleted = 0
        errors: list[dict[str, str]] = []

        for profile in profiles:
            user_id = profile["id"]
            email = profile.get("email")
            try:
                client.table("facility_users").delete().eq("user_id", user_id).execute()
                client.table("profiles").delete().eq("id", user_id).execute()
            except Exception as e:
                logger.error(f"Profile deletion failed for {email}: {e}")
                errors.append({"email": email, "error": str(e)})
                continue

            try:
                SupabaseClient.delete_auth_user(user_id)
                deleted += 1
            except SupabaseClientError as e:
                logger.error(f"Auth deletion failed for {email}: {e}")
                errors.append({"email": email, "error": e.message})

        remaining = (
            client.table("profiles")
            .select("role")
            .in_("role", staff)
            .execute()
        )

        if profiles:
            message = f"Successfully deleted {deleted} users. {len(errors)} errors encountered."
        else:
            message = "No users to delete - only admin and dispatcher accounts remain"

        logger.info(f"User reset: deleted {deleted} users, {len(errors)} errors")
        return {
            "message": message,
            "users_deleted": deleted,
            "errors": errors,
            "remaining_admin_users": len(remaining.data or []),
        }
