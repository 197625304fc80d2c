# =============================================================================
# core/models/maintenance.py - Maintenance Schemas
# =============================================================================
# Inputs for the admin maintenance endpoints (orphaned auth user cleanup).
# Results are returned as plain dicts built by MaintenanceService.
# =============================================================================

from pydantic import Field

from app.config import settings

from .base import RequestModel


class OrphanCleanupRequest(RequestModel):
    """
    Options for orphaned auth user cleanup.

    Example:
        {"dryRun": false, "background": true}
    """

    dry_run: bool = Field(
        default=settings.ORPHAN_CLEANUP_DRY_RUN,
        description="Report what would be deleted without deleting anything"
    )
    background: bool = Field(
        default=False,
        description="Queue the cleanup on the worker and return a task ID"
    )
