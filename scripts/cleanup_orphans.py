#!/usr/bin/env python3
# =============================================================================
# scripts/cleanup_orphans.py - Orphaned Auth User Cleanup
# =============================================================================
# Runs the orphaned auth user cleanup in-process (no worker needed).
#
# Usage:
#   python scripts/cleanup_orphans.py            # report only
#   python scripts/cleanup_orphans.py --apply    # delete
#   python scripts/cleanup_orphans.py --audit    # also print the consistency audit
# =============================================================================

import argparse
import json
import logging
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv
load_dotenv()

from core.services.maintenance_service import MaintenanceService

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)


def main():
    parser = argparse.ArgumentParser(description="Delete auth users that have no profile")
    parser.add_argument("--apply", action="store_true", help="Delete (default is a dry run)")
    parser.add_argument("--audit", action="store_true", help="Print the consistency audit too")
    args = parser.parse_args()

    result = MaintenanceService.cleanup_orphaned_users(dry_run=not args.apply)

    print("=" * 60)
    print(result["message"])
    print("=" * 60)
    for user in result.get("orphaned_users", []):
        print(f"  {user['id']}  {user.get('email')}  (last sign-in: {user.get('last_sign_in_at')})")
    for user in result["deleted_users"]:
        print(f"  deleted  {user['id']}  {user.get('email')}")
    for error in result["errors"]:
        print(f"  skipped  {error['user_id']}  {error.get('email')}: {error['error']}")

    if args.audit:
        print()
        print(json.dumps(MaintenanceService.consistency_audit(), indent=2, default=str))


if __name__ == "__main__":
    main()
