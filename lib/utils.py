# =============================================================================
# lib/utils.py - Shared Utilities
# =============================================================================
# Common utilities used across the application:
# - UUID / email normalization
# - Temporary password generation
# - Timestamp helpers (Supabase returns ISO-8601 strings)
# =============================================================================

import secrets
import string
from datetime import datetime, timezone
from uuid import UUID


# =============================================================================
# Identifier Utilities
# =============================================================================

def normalize_uuid(value: str | UUID) -> str:
    """
    Normalize a UUID to string format.

    Handles both string and UUID objects, ensuring consistent string output.

    Args:
        value: UUID as string or UUID object

    Returns:
        String representation of the UUID

    Example:
        trip_id = normalize_uuid(uuid_obj)  # "550e8400-..."
        trip_id = normalize_uuid("550e8400-...")  # "550e8400-..."
    """
    return str(value) if isinstance(value, UUID) else value


def normalize_email(email: str | None) -> str | None:
    """Lowercase and trim an email address (None passes through)."""
    if email is None:
        return None
    return email.strip().lower()


def full_name(first_name: str | None, last_name: str | None) -> str:
    """Join first and last name, skipping blanks."""
    return " ".join(part for part in (first_name, last_name) if part).strip()


# =============================================================================
# Passwords
# =============================================================================

PASSWORD_ALPHABET = string.ascii_letters + string.digits + "!@#$%^&*"


def generate_password(length: int = 12) -> str:
    """
    Generate a temporary password for a newly provisioned account.

    Always contains at least one lowercase letter, one uppercase letter,
    one digit and one symbol so it passes Supabase's password policy.
    """
    if length < 4:
        raise ValueError("Password length must be at least 4")

    required = [
        secrets.choice(string.ascii_lowercase),
        secrets.choice(string.ascii_uppercase),
        secrets.choice(string.digits),
        secrets.choice("!@#$%^&*"),
    ]
    rest = [secrets.choice(PASSWORD_ALPHABET) for _ in range(length - len(required))]
    chars = required + rest
    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)


# =============================================================================
# Timestamps
# =============================================================================

def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string for Supabase columns."""
    return utc_now().isoformat()


def parse_timestamp(value: str | datetime | None) -> datetime | None:
    """
    Parse a Supabase timestamp into an aware datetime.

    Naive values are assumed to be UTC. Unparseable values return None.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip().replace("Z", "+00:00")
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
