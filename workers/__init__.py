# =============================================================================
# workers/ - Celery Background Task Workers
# =============================================================================
# This package contains the Celery configuration and task definitions for
# background maintenance jobs.
#
# Components:
# - celery_app.py: Celery application configuration
# - tasks.py: Task definitions (orphan cleanup, consistency audit)
# - config.py: Worker-specific settings
#
# Usage:
#   # Start worker
#   celery -A workers.celery_app worker --loglevel=info
#
#   # Or use the script
#   python scripts/start_worker.py
#
#   # Submit task (from API)
#   from workers.tasks import cleanup_orphaned_users
#   result = cleanup_orphaned_users.delay(False)
# =============================================================================

from .celery_app import celery_app
from . import tasks

__all__ = [
    "celery_app",
    "tasks",
]
