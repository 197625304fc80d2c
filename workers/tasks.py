# =============================================================================
# workers/tasks.py - Celery Task Definitions
# =============================================================================
# Defines background tasks for maintenance jobs that are too slow for a
# request (they walk every auth user or every trip).
#
# Tasks:
# - cleanup_orphaned_users: Delete auth users that have no profile
# - consistency_audit: Report facility ownership and trip data problems
# =============================================================================

import logging
from typing import Any
from celery import shared_task, current_task

logger = logging.getLogger(__name__)


# =============================================================================
# Task State Updates
# =============================================================================

def update_progress(current: int, total: int, message: str = "Processing..."):
    """
    Update task progress for polling.

    Args:
        current: Current step number
        total: Total steps
        message: Status message
    """
    if current_task:
        current_task.update_state(
            state="PROGRESS",
            meta={
                "current": current,
                "total": total,
                "percent": int((current / total) * 100),
                "message": message,
            }
        )


# =============================================================================
# Maintenance Tasks
# =============================================================================

@shared_task(bind=True, name="workers.tasks.cleanup_orphaned_users")
def cleanup_orphaned_users(self, dry_run: bool = True, actor_id: str | None = None) -> dict[str, Any]:
    """
    Delete auth users that have no profile row.

    Args:
        dry_run: Only report what would be deleted
        actor_id: Admin who requested the cleanup (for the audit log)

    Returns:
        The cleanup result (see MaintenanceService.cleanup_orphaned_users)
    """
    from core.services.audit_service import AuditService
    from core.services.maintenance_service import MaintenanceService

    logger.info(f"Orphaned user cleanup started (dry_run={dry_run})")
    update_progress(1, 2, "Looking for orphaned users...")

    result = MaintenanceService.cleanup_orphaned_users(dry_run=dry_run)

    update_progress(2, 2, result["message"])
    if not dry_run:
        AuditService.record(
            actor_id, "cleanup_orphaned_users", "auth_user",
            details={"users_deleted": result["users_deleted"], "errors": len(result["errors"])},
        )
    return result


@shared_task(bind=True, name="workers.tasks.consistency_audit")
def consistency_audit(self) -> dict[str, Any]:
    """
    Run the data consistency audit.

    Returns:
        The audit report (see MaintenanceService.consistency_audit)
    """
    from core.services.maintenance_service import MaintenanceService

    update_progress(1, 1, "Auditing facilities and trips...")
    return MaintenanceService.consistency_audit()
