# =============================================================================
# lib/ - Standalone Utility Modules
# =============================================================================
# This package contains reusable utilities:
# - supabase_client.py: Service-role Supabase wrapper (rows, counts, auth admin)
# - pricing.py: Trip fare calculator
# - utils.py: Shared helpers (UUID/email normalization, passwords, timestamps)
#
# These modules are self-contained and can be tested in isolation.
# =============================================================================

from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.pricing import PriceBreakdown, calculate_trip_price, format_currency
from lib.utils import generate_password, normalize_email, normalize_uuid

__all__ = [
    # Supabase
    "SupabaseClient",
    "SupabaseClientError",
    # Pricing
    "PriceBreakdown",
    "calculate_trip_price",
    "format_currency",
    # Utils
    "generate_password",
    "normalize_email",
    "normalize_uuid",
]
