# =============================================================================
# core/services/invoice_service.py - Invoice Overview
# =============================================================================
# Read-only view over the invoices table for the back office: every invoice
# with the client it bills, plus the paid/unpaid totals shown above the list.
# =============================================================================

import logging
from typing import Any

from core.models.facility import UNPAID_INVOICE_STATUSES, InvoiceStatus
from lib.supabase_client import SupabaseClient

logger = logging.getLogger(__name__)


def _amount(invoice: dict[str, Any]) -> float:
    # Older rows carry `amount` instead of `total`
    value = invoice.get("total")
    if value is None:
        value = invoice.get("amount")
    return float(value or 0)


class InvoiceService:
    """Service for invoice listings."""

    @staticmethod
    def list_invoices(status: InvoiceStatus | str | None = None) -> dict[str, Any]:
        """
        List invoices newest first, each with its client.

        Args:
            status: Only invoices in this status

        Returns:
            Dict with invoices and stats (counts per status, total and
            paid amounts)
        """
        client = SupabaseClient.get_client()
        query = client.table("invoices").select("*")
        if status:
            query = query.eq("status", InvoiceStatus(status).value)
        invoices = query.order("created_at", desc=True).execute().data or []

        user_ids = sorted({inv["user_id"] for inv in invoices if inv.get("user_id")})
        users: dict[str, dict] = {}
        if user_ids:
            rows = (
                client.table("profiles")
                .select("id, first_name, last_name, email")
                .in_("id", user_ids)
                .execute()
            ).data or []
            users = {row["id"]: row for row in rows}

        unpaid_values = {s.value for s in UNPAID_INVOICE_STATUSES}
        stats = {
            "total_invoices": len(invoices),
            "paid": 0,
            "unpaid": 0,
            "overdue": 0,
            "total_amount": 0.0,
            "paid_amount": 0.0,
            "unpaid_amount": 0.0,
        }
        for invoice in invoices:
            invoice["user"] = users.get(invoice.get("user_id"))
            amount = _amount(invoice)
            stats["total_amount"] += amount
            invoice_status = invoice.get("status")
            if invoice_status == InvoiceStatus.PAID.value:
                stats["paid"] += 1
                stats["paid_amount"] += amount
            elif invoice_status in unpaid_values:
                stats["unpaid"] += 1
                stats["unpaid_amount"] += amount
            if invoice_status == InvoiceStatus.OVERDUE.value:
                stats["overdue"] += 1

        for key in ("total_amount", "paid_amount", "unpaid_amount"):
            stats[key] = round(stats[key], 2)

        logger.info(f"Listed {len(invoices)} invoices (status={status or 'any'})")
        return {"invoices": invoices, "stats": stats}
