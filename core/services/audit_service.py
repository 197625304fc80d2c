# =============================================================================
# core/services/audit_service.py - Audit Trail
# =============================================================================
# Records who did what in the back office (deletions, assignments, role
# changes) into the `audit_logs` table. Writing an audit entry never blocks
# the operation being audited: failures are logged and swallowed.
# =============================================================================

import logging
from typing import Any
from uuid import UUID

from lib.supabase_client import SupabaseClient
from lib.utils import utc_now_iso

logger = logging.getLogger(__name__)


class AuditService:
    """Append-only audit log."""

    @staticmethod
    def record(
        actor_id: str | UUID | None,
        action: str,
        entity_type: str,
        entity_id: str | UUID | None = None,
        details: dict[str, Any] | None = None,
    ) -> bool:
        """
        Insert an audit entry.

        Args:
            actor_id: Profile ID of the admin/dispatcher acting (None for jobs)
            action: What happened, e.g. "delete_facility", "assign_trip"
            entity_type: Kind of record touched, e.g. "facility", "trip"
            entity_id: ID of the record touched
            details: Extra JSON context

        Returns:
            True if the entry was written, False otherwise
        """
        entry = {
            "user_id": str(actor_id) if actor_id else None,
            "action": action,
            "entity_type": entity_type,
            "entity_id": str(entity_id) if entity_id else None,
            "details": details or {},
            "created_at": utc_now_iso(),
        }

        try:
            client = SupabaseClient.get_client()
            client.table("audit_logs").insert(entry).execute()
            return True
        except Exception as e:
            # Audit logging must never block the primary flow
            logger.warning(f"Audit entry {action} on {entity_type} {entity_id} not written: {e}")
            return False
