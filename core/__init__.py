# =============================================================================
# core/ - Business Logic Package
# =============================================================================
# This package contains the back-office business logic:
# - models/: Pydantic schemas and enums
# - trip_lifecycle.py: trip status transition table
# - cascade.py: declared cascading-delete plans and their runner
# - services/: one service class per entity plus maintenance and audit
#
# Code in this package should NOT import FastAPI or Celery directly;
# errors are raised as app.exceptions types, which carry their HTTP status.
# =============================================================================
