# =============================================================================
# core/trip_lifecycle.py - Trip Status Machine
# =============================================================================
# The single place that knows which status changes are legal and which
# statuses count as "active". Services call require_transition() before
# writing a new status and is_blocking() before deleting people or
# facilities that still have live trips.
#
#   pending ──────────────┬──> upcoming ───────────┬──> in_progress ──> completed
#      │                  └──> awaiting_driver ────┘        │
#      │                         acceptance                 └──> cancelled
#      └──> cancelled
#
# Taking the driver off an upcoming or awaiting trip sends it back to
# pending; the driver declining it moves it to rejected, from where it
# can be assigned again.
#
# Usage:
#   from core.trip_lifecycle import require_transition
#   new_status = require_transition(trip["status"], TripStatus.COMPLETED)
# =============================================================================

from datetime import datetime
from typing import Any

from app.exceptions import InvalidTransitionError
from core.models.trip import LEGACY_STATUS_ALIASES, TripAction, TripStatus
from lib.utils import parse_timestamp, utc_now


# =============================================================================
# Transition Table
# =============================================================================

TRANSITIONS: dict[TripStatus, frozenset[TripStatus]] = {
    TripStatus.PENDING: frozenset({
        TripStatus.UPCOMING,
        TripStatus.AWAITING_DRIVER_ACCEPTANCE,
        TripStatus.CANCELLED,
    }),
    TripStatus.UPCOMING: frozenset({
        TripStatus.PENDING,
        TripStatus.AWAITING_DRIVER_ACCEPTANCE,
        TripStatus.IN_PROGRESS,
        TripStatus.COMPLETED,
        TripStatus.REJECTED,
        TripStatus.CANCELLED,
    }),
    TripStatus.AWAITING_DRIVER_ACCEPTANCE: frozenset({
        TripStatus.PENDING,
        TripStatus.UPCOMING,
        TripStatus.IN_PROGRESS,
        TripStatus.REJECTED,
        TripStatus.CANCELLED,
    }),
    TripStatus.IN_PROGRESS: frozenset({
        TripStatus.COMPLETED,
        TripStatus.CANCELLED,
    }),
    TripStatus.REJECTED: frozenset({
        TripStatus.UPCOMING,
        TripStatus.AWAITING_DRIVER_ACCEPTANCE,
        TripStatus.CANCELLED,
    }),
    TripStatus.COMPLETED: frozenset(),
    TripStatus.CANCELLED: frozenset(),
}

# -----------------------------------------------------------------------------
# Status Groups
# -----------------------------------------------------------------------------

# Trips a driver, client or facility is still on the hook for
ACTIVE_STATUSES = frozenset({
    TripStatus.PENDING,
    TripStatus.UPCOMING,
    TripStatus.AWAITING_DRIVER_ACCEPTANCE,
    TripStatus.IN_PROGRESS,
})

# Trips a dispatcher may put a driver on
ASSIGNABLE_STATUSES = frozenset({
    TripStatus.PENDING,
    TripStatus.UPCOMING,
    TripStatus.REJECTED,
})

# Trips that can't be deleted individually
NON_DELETABLE_STATUSES = frozenset({
    TripStatus.PENDING,
    TripStatus.UPCOMING,
    TripStatus.IN_PROGRESS,
})

TERMINAL_STATUSES = frozenset(s for s, targets in TRANSITIONS.items() if not targets)

# Target status of each back-office action
ACTION_TARGETS: dict[TripAction, TripStatus] = {
    TripAction.APPROVE: TripStatus.UPCOMING,
    TripAction.REJECT: TripStatus.CANCELLED,
    TripAction.CANCEL: TripStatus.CANCELLED,
    TripAction.START: TripStatus.IN_PROGRESS,
    TripAction.COMPLETE: TripStatus.COMPLETED,
}

# approve only makes sense for a trip still waiting on review
ACTION_SOURCES: dict[TripAction, frozenset[TripStatus]] = {
    TripAction.APPROVE: frozenset({TripStatus.PENDING}),
}


def status_values(statuses) -> list[str]:
    """Sorted string values of a status group, for PostgREST in_() filters."""
    return sorted(s.value for s in statuses)


def stored_values(statuses) -> list[str]:
    """
    Status values to match in the database, including legacy aliases.

    Rows written before the vocabulary was unified may still say "confirmed"
    and must be caught by the same filters.
    """
    wanted = {s.value for s in statuses}
    legacy = {old for old, new in LEGACY_STATUS_ALIASES.items() if new in wanted}
    return sorted(wanted | legacy)


# =============================================================================
# Checks
# =============================================================================

def can_transition(current: str | TripStatus | None, target: str | TripStatus) -> bool:
    """True if a trip in `current` may move to `target`."""
    source = TripStatus.normalize(current)
    destination = TripStatus.normalize(target)
    if source is None or destination is None:
        return False
    return destination in TRANSITIONS[source]


def allowed_targets(current: str | TripStatus | None) -> list[str]:
    """Statuses reachable from `current` (empty for unknown or terminal)."""
    source = TripStatus.normalize(current)
    if source is None:
        return []
    return status_values(TRANSITIONS[source])


def require_transition(current: str | TripStatus | None, target: str | TripStatus) -> TripStatus:
    """
    Validate a status change.

    Args:
        current: Stored status (legacy values accepted)
        target: Requested status

    Returns:
        The target as a TripStatus

    Raises:
        InvalidTransitionError: If the move isn't in the transition table
    """
    if not can_transition(current, target):
        raise InvalidTransitionError(
            current=str(getattr(current, "value", current)),
            target=str(getattr(target, "value", target)),
            allowed=allowed_targets(current),
        )
    return TripStatus(target)


def require_action(current: str | TripStatus | None, action: TripAction) -> TripStatus:
    """Validate a back-office action against the current status; returns the new status."""
    target = ACTION_TARGETS[action]
    sources = ACTION_SOURCES.get(action)
    if sources is not None and TripStatus.normalize(current) not in sources:
        raise InvalidTransitionError(
            current=str(getattr(current, "value", current)),
            target=target.value,
            allowed=allowed_targets(current),
        )
    return require_transition(current, target)


def require_assignable(current: str | TripStatus | None) -> TripStatus:
    """
    Validate putting a driver on a trip; returns the status to write.

    Assignment always lands on upcoming. A trip already upcoming (approved
    but still without a driver) keeps its status.
    """
    if not is_assignable(current):
        raise InvalidTransitionError(
            current=str(getattr(current, "value", current)),
            target=TripStatus.UPCOMING.value,
            allowed=allowed_targets(current),
        )
    if TripStatus.normalize(current) is TripStatus.UPCOMING:
        return TripStatus.UPCOMING
    return require_transition(current, TripStatus.UPCOMING)


def is_active(status: str | TripStatus | None) -> bool:
    return TripStatus.normalize(status) in ACTIVE_STATUSES


def is_assignable(status: str | TripStatus | None) -> bool:
    return TripStatus.normalize(status) in ASSIGNABLE_STATUSES


def is_deletable(status: str | TripStatus | None) -> bool:
    return TripStatus.normalize(status) not in NON_DELETABLE_STATUSES


def is_blocking(trip: dict[str, Any], now: datetime | None = None) -> bool:
    """
    True if a trip should block deleting its client or facility.

    A trip blocks when it's active, or when its pickup is still in the
    future whatever its status.
    """
    if is_active(trip.get("status")):
        return True
    pickup = parse_timestamp(trip.get("pickup_time"))
    return pickup is not None and pickup > (now or utc_now())
