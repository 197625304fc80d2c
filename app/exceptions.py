# =============================================================================
# app/exceptions.py - Custom Exceptions and Handlers
# =============================================================================
# Centralized exception handling for the API.
# Every error leaves the API with the same body shape:
#   {"error": "...", "code": "...", "suggestion": "...", "details": {...}}
# =============================================================================

from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException


class AdminApiException(Exception):
    """
    Base exception for the admin API.

    All custom exceptions inherit from this class.
    Provides structured error responses with actionable suggestions.
    """

    def __init__(
        self,
        message: str,
        code: str = "ADMIN_API_ERROR",
        status_code: int = 500,
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.suggestion = suggestion
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to API response dict."""
        result = {
            "error": self.message,
            "code": self.code,
        }
        if self.suggestion:
            result["suggestion"] = self.suggestion
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Auth Exceptions
# =============================================================================

class AuthenticationError(AdminApiException):
    """Raised when the request carries no valid session."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(
            message=message,
            code="UNAUTHORIZED",
            status_code=401,
            suggestion="Sign in again and retry with a fresh access token",
        )


class AccessDeniedError(AdminApiException):
    """Raised when the caller's role is not allowed to perform an action."""

    def __init__(self, required: list[str], current: str | None):
        super().__init__(
            message="Access denied",
            code="FORBIDDEN",
            status_code=403,
            suggestion=f"This action requires one of these roles: {', '.join(required)}",
            details={"required_roles": required, "current_role": current},
        )


class ProfileNotFoundError(AdminApiException):
    """Raised when an authenticated user has no profile row."""

    def __init__(self, user_id: str):
        super().__init__(
            message="User profile not found",
            code="PROFILE_NOT_FOUND",
            status_code=403,
            suggestion="Ask an administrator to create a profile for this account",
            details={"user_id": user_id},
        )


# =============================================================================
# Entity Exceptions
# =============================================================================

class EntityNotFoundError(AdminApiException):
    """Raised when a facility, client, driver, dispatcher or trip doesn't exist."""

    def __init__(self, entity: str, entity_id: str):
        super().__init__(
            message=f"{entity.capitalize()} not found",
            code=f"{entity.upper().replace(' ', '_')}_NOT_FOUND",
            status_code=404,
            suggestion=f"Check that the {entity} ID is correct",
            details={"id": entity_id},
        )


class ValidationFailedError(AdminApiException):
    """Raised when request data passes schema validation but breaks a business rule."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            code="VALIDATION_FAILED",
            status_code=400,
            details=details,
        )


class ConflictError(AdminApiException):
    """Raised when the request would break a uniqueness rule."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            code="CONFLICT",
            status_code=409,
            details=details,
        )


class DeletionBlockedError(AdminApiException):
    """Raised when dependent records (active trips, unpaid bills) block a deletion."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            code="DELETION_BLOCKED",
            status_code=400,
            suggestion="Complete, cancel or reassign the blocking records first",
            details=details,
        )


# =============================================================================
# Trip Exceptions
# =============================================================================

class InvalidTransitionError(AdminApiException):
    """Raised when a trip can't move from its current status to the requested one."""

    def __init__(self, current: str, target: str, allowed: list[str]):
        super().__init__(
            message=f"Cannot move trip from '{current}' to '{target}'",
            code="INVALID_STATUS_TRANSITION",
            status_code=400,
            suggestion=(
                f"From '{current}' a trip can move to: {', '.join(allowed)}"
                if allowed else f"'{current}' is a final status"
            ),
            details={"current_status": current, "requested_status": target, "allowed": allowed},
        )


class TripAlreadyAssignedError(AdminApiException):
    """Raised when assigning a driver to a trip that already has one."""

    def __init__(self, trip_id: str, driver_id: str):
        super().__init__(
            message="Trip is already assigned to another driver",
            code="TRIP_ALREADY_ASSIGNED",
            status_code=400,
            suggestion="Unassign the current driver first",
            details={"trip_id": trip_id, "driver_id": driver_id},
        )


class DriverConflictError(AdminApiException):
    """Raised when the driver already holds an overlapping active trip."""

    def __init__(self, driver_id: str, conflicting_trip_ids: list[str]):
        super().__init__(
            message="Driver has conflicting trips at this time",
            code="DRIVER_CONFLICT",
            status_code=400,
            suggestion="Pick another driver or reschedule one of the trips",
            details={"driver_id": driver_id, "conflicting_trips": conflicting_trip_ids},
        )


# =============================================================================
# Backend Exceptions
# =============================================================================

class CascadeStepError(AdminApiException):
    """Raised when a critical step of a cascading delete fails."""

    def __init__(self, plan: str, step: str, error: str, completed: list[str]):
        super().__init__(
            message=f"Error deleting {step}",
            code="CASCADE_STEP_FAILED",
            status_code=500,
            suggestion="Earlier steps were applied; fix the cause and re-run the deletion",
            details={"operation": plan, "step": step, "error": error, "completed_steps": completed},
        )


class BackendError(AdminApiException):
    """Raised when a Supabase call fails outside of a cascade."""

    def __init__(self, message: str, error: str):
        super().__init__(
            message=message,
            code="BACKEND_ERROR",
            status_code=500,
            suggestion="Try again later or contact support if the issue persists",
            details={"error": error},
        )


# =============================================================================
# Exception Handlers
# =============================================================================

async def admin_api_exception_handler(
    request: Request,
    exc: AdminApiException
) -> JSONResponse:
    """
    Convert AdminApiException to JSON response.

    Returns structured error with:
    - error: Human-readable message
    - code: Machine-readable error code
    - suggestion: How to fix (if available)
    - details: Additional context
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException
) -> JSONResponse:
    """Reshape framework HTTP errors (404 routes, 405 methods) to the API error body."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail), "code": f"HTTP_{exc.status_code}"},
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError
) -> JSONResponse:
    """
    Handle Pydantic validation errors.

    Converts validation errors to user-friendly messages.
    """
    return JSONResponse(
        status_code=422,
        content={
            "error": "Validation error",
            "code": "VALIDATION_ERROR",
            "details": {"errors": [
                {"field": ".".join(str(p) for p in err.get("loc", [])), "message": err.get("msg")}
                for err in exc.errors()
            ]},
        }
    )
