#!/usr/bin/env python3
# =============================================================================
# scripts/create_admin_user.py - Bootstrap an Admin Account
# =============================================================================
# Creates the first admin login (or resets an existing one) so someone can
# sign in to the back office.
#
# Usage:
#   python scripts/create_admin_user.py admin@example.com --first-name Ops --last-name Admin
#   python scripts/create_admin_user.py admin@example.com --password 'S3cure!pass'
#
# If the login already exists its password is reset and its profile role set
# to admin. Without --password a random one is generated and printed once.
# =============================================================================

import argparse
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv
load_dotenv()

from app.config import settings
from app.exceptions import AdminApiException
from core.models.profile import UserRole
from core.services.user_service import UserService
from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.utils import full_name, generate_password, normalize_email


def create_admin(email: str, password: str, first_name: str, last_name: str) -> dict:
    """Create or reset an admin account. Returns the user ID and whether it was new."""
    email = normalize_email(email)
    existing = SupabaseClient.find_auth_user_by_email(email)

    if existing is None:
        result = UserService.provision_user(
            email,
            UserRole.ADMIN,
            {
                "first_name": first_name,
                "last_name": last_name,
                "full_name": full_name(first_name, last_name),
            },
            password=password,
        )
        return {"user_id": result["user_id"], "created": True}

    user_id = existing["id"]
    SupabaseClient.update_auth_user(user_id, {"password": password, "email_confirm": True})

    if SupabaseClient.fetch_profile(user_id, columns="id"):
        UserService.update_role(user_id, UserRole.ADMIN)
    else:
        UserService.provision_user(email, UserRole.ADMIN, {
            "first_name": first_name,
            "last_name": last_name,
            "full_name": full_name(first_name, last_name),
        })
    return {"user_id": user_id, "created": False}


def main():
    parser = argparse.ArgumentParser(description="Create or reset an admin account")
    parser.add_argument("email", help="Admin login email")
    parser.add_argument("--password", help="Password (generated when omitted)")
    parser.add_argument("--first-name", default="Admin")
    parser.add_argument("--last-name", default="User")
    args = parser.parse_args()

    password = args.password or generate_password(settings.GENERATED_PASSWORD_LENGTH)
    if len(password) < settings.MIN_PASSWORD_LENGTH:
        print(f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters")
        sys.exit(1)

    try:
        result = create_admin(args.email, password, args.first_name, args.last_name)
    except (AdminApiException, SupabaseClientError) as e:
        print(f"Error: {e}")
        sys.exit(1)

    print("=" * 60)
    print("Admin account created" if result["created"] else "Existing account reset to admin")
    print("=" * 60)
    print(f"User ID:  {result['user_id']}")
    print(f"Email:    {normalize_email(args.email)}")
    print(f"Password: {password}")


if __name__ == "__main__":
    main()
