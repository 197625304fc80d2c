#!/usr/bin/env python3
# =============================================================================
# scripts/update_user_role.py - Change an Account's Role
# =============================================================================
# Usage:
#   python scripts/update_user_role.py jane@example.com dispatcher
# =============================================================================

import argparse
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv
load_dotenv()

from app.exceptions import AdminApiException
from core.models.profile import UserRole
from core.services.user_service import UserService


def main():
    roles = [role.value for role in UserRole]

    parser = argparse.ArgumentParser(description="Change the role of an account")
    parser.add_argument("email", help="Login email of the account")
    parser.add_argument("role", choices=roles, help="New role")
    args = parser.parse_args()

    print(f"\nUpdating user {args.email} to role: {args.role}\n")
    try:
        result = UserService.update_role_by_email(args.email, args.role)
    except AdminApiException as e:
        print(f"Error: {e.message}")
        sys.exit(1)

    print(f"User {result['user_id']}: {result['old_role']} -> {result['new_role']}")


if __name__ == "__main__":
    main()
