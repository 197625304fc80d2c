# =============================================================================
# app/main.py - FastAPI Application Entry Point
# =============================================================================
# This is the main entry point for the NEMT Admin API.
# It configures the FastAPI application with middleware, routers, and handlers.
#
# Usage:
#   uvicorn app.main:app --reload
#   python -m app.main          (binds API_HOST:API_PORT, reloads when DEBUG)
# =============================================================================

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import settings
from app.exceptions import (
    AdminApiException,
    admin_api_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from app.routers import health, facilities, clients, drivers, dispatchers, trips, admin, tasks
from app.auth import routes as auth_routes
from lib.supabase_client import SupabaseClientError

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Logs the configuration the API runs with. The Supabase client is
    created lazily on first use.
    """
    logger.info(f"Starting NEMT Admin API in {settings.ENVIRONMENT} mode")
    logger.info(f"CORS origins: {settings.cors_origins_list}")
    logger.info(f"Back-office roles: {settings.staff_roles_list}")

    yield

    logger.info("Shutting down NEMT Admin API")


# Create FastAPI application
app = FastAPI(
    title="NEMT Admin API",
    description="""
## Back office for a non-emergency medical transportation service

Admins and dispatchers manage facilities, clients, drivers, dispatchers and
trips. Every route except health checks requires a Supabase session token
(`Authorization: Bearer <access_token>`) whose profile role is allowed.

### Roles

| Role | Access |
|------|--------|
| **admin** | Everything |
| **dispatcher** | Trip listing, booking, assignment and completion; dashboard |

### Deletions

Deleting a facility, client or driver removes or unlinks their dependent
records in a declared order. Deletions are refused while trips are still
pending or upcoming, or bills unpaid.

### Errors

Every error has the same body:

```json
{"error": "Facility not found", "code": "FACILITY_NOT_FOUND", "suggestion": "...", "details": {}}
```
""",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    openapi_tags=[
        {
            "name": "Auth",
            "description": "Session and role checks",
        },
        {
            "name": "Facilities",
            "description": "Facilities, owners and managed clients",
        },
        {
            "name": "Clients",
            "description": "Individual and facility-managed clients",
        },
        {
            "name": "Drivers",
            "description": "Driver accounts",
        },
        {
            "name": "Dispatchers",
            "description": "Dispatcher accounts",
        },
        {
            "name": "Trips",
            "description": "Booking, quotes and trip handling",
        },
        {
            "name": "Admin",
            "description": "Dispatch, cascading deletes, accounts and maintenance",
        },
        {
            "name": "Tasks",
            "description": "Track background maintenance jobs",
        },
        {
            "name": "Health",
            "description": "API health and readiness checks",
        },
    ],
)


# =============================================================================
# Middleware
# =============================================================================

# CORS middleware - allows the admin dashboard to call the API
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list if settings.is_production else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Exception Handlers
# =============================================================================

@app.exception_handler(AdminApiException)
async def handle_admin_api_exception(request: Request, exc: AdminApiException):
    """Handle custom admin API exceptions."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code} {exc.message} {exc.details}")
    return await admin_api_exception_handler(request, exc)


@app.exception_handler(StarletteHTTPException)
async def handle_http_exception(request: Request, exc: StarletteHTTPException):
    """Reshape framework HTTP errors."""
    return await http_exception_handler(request, exc)


@app.exception_handler(RequestValidationError)
async def handle_validation_exception(request: Request, exc: RequestValidationError):
    """Handle request body and query validation errors."""
    return await validation_exception_handler(request, exc)


@app.exception_handler(SupabaseClientError)
async def handle_supabase_exception(request: Request, exc: SupabaseClientError):
    """Handle Supabase failures that weren't translated by a service."""
    logger.error(f"Supabase error on {request.method} {request.url.path}: {exc}")
    content = {"error": exc.message, "code": exc.code}
    if exc.suggestion:
        content["suggestion"] = exc.suggestion
    if exc.details:
        content["details"] = exc.details
    return JSONResponse(status_code=500, content=content)


@app.exception_handler(Exception)
async def handle_general_exception(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "An unexpected error occurred",
            "code": "INTERNAL_ERROR",
        }
    )


# =============================================================================
# Routers
# =============================================================================

# Authentication endpoints (/auth/me, /auth/verify)
app.include_router(
    auth_routes.router,
    prefix="/api/v1",
)

# Health check endpoints
app.include_router(
    health.router,
    prefix="/api/v1",
    tags=["Health"]
)

app.include_router(
    facilities.router,
    prefix="/api/v1/facilities",
    tags=["Facilities"]
)

app.include_router(
    clients.router,
    prefix="/api/v1/clients",
    tags=["Clients"]
)

app.include_router(
    drivers.router,
    prefix="/api/v1/drivers",
    tags=["Drivers"]
)

app.include_router(
    dispatchers.router,
    prefix="/api/v1/dispatchers",
    tags=["Dispatchers"]
)

app.include_router(
    trips.router,
    prefix="/api/v1/trips",
    tags=["Trips"]
)

app.include_router(
    admin.router,
    prefix="/api/v1/admin",
    tags=["Admin"]
)

# Task status endpoints
app.include_router(
    tasks.router,
    prefix="/api/v1/tasks",
    tags=["Tasks"]
)


# =============================================================================
# Root Endpoint
# =============================================================================

@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint - returns API info.
    """
    return {
        "name": "NEMT Admin API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/v1/health",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.DEBUG,
    )
