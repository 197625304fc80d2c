#!/usr/bin/env python3
# =============================================================================
# scripts/start_worker.py - Celery Worker Entry Point
# =============================================================================
# Starts a Celery worker for the maintenance queues.
#
# Usage:
#   # Start worker (development)
#   python scripts/start_worker.py
#
#   # Or use Celery CLI directly
#   celery -A workers.celery_app worker --loglevel=info -Q default,maintenance
#
# Prerequisites:
#   - Redis must be running (REDIS_URL)
#   - Environment variables must be set (.env file)
# =============================================================================

from workers.celery_app import celery_app


def main():
    """Start the Celery worker."""
    print("=" * 60)
    print("NEMT Admin Celery Worker")
    print("=" * 60)
    print()
    print("Starting worker...")
    print("Press Ctrl+C to stop")
    print()

    # Maintenance jobs are long and rare; one process per queue is plenty
    celery_app.worker_main([
        "worker",
        "--loglevel=info",
        "--concurrency=2",
        "-Q", "default,maintenance",
    ])


if __name__ == "__main__":
    main()
