# =============================================================================
# app/routers/tasks.py - Task Status Endpoints
# =============================================================================
# Provides endpoints for checking background maintenance jobs (orphaned user
# cleanup, consistency audit) queued on the Celery worker.
# =============================================================================

import logging
from typing import Annotated

from fastapi import APIRouter, Path, HTTPException
from pydantic import BaseModel

from app.dependencies import AdminDep

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Response Models
# =============================================================================

class TaskStatusResponse(BaseModel):
    """Response model for task status."""
    task_id: str
    status: str
    progress: int | None = None
    message: str | None = None
    result: dict | None = None
    error: str | None = None


class TaskSubmitResponse(BaseModel):
    """Response model for task submission."""
    task_id: str
    status: str
    message: str


# =============================================================================
# Endpoints
# =============================================================================

@router.get("/{task_id}", response_model=TaskStatusResponse)
async def get_task_status(
    task_id: Annotated[str, Path(description="Celery task ID")],
    admin: AdminDep,
):
    """
    Get the status of a background task.

    Returns the current state of the task:
    - PENDING: Task is waiting in queue
    - STARTED: Task has been picked up by a worker
    - PROGRESS: Task is running (includes progress percentage)
    - SUCCESS: Task completed successfully (includes result)
    - FAILURE: Task failed (includes error)
    """
    try:
        from workers.celery_app import celery_app

        result = celery_app.AsyncResult(task_id)

        response = TaskStatusResponse(
            task_id=task_id,
            status=result.status,
        )

        if result.status == "PROGRESS":
            info = result.info or {}
            response.progress = info.get("percent", 0)
            response.message = info.get("message", "Processing...")

        elif result.status == "SUCCESS":
            response.result = result.result
            response.progress = 100
            response.message = "Complete"

        elif result.status == "FAILURE":
            response.error = str(result.result) if result.result else "Unknown error"
            response.message = "Failed"

        elif result.status == "PENDING":
            response.progress = 0
            response.message = "Waiting in queue..."

        elif result.status == "STARTED":
            response.progress = 0
            response.message = "Starting..."

        return response

    except Exception as e:
        logger.error(f"Error getting task status: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to get task status: {e}")


@router.delete("/{task_id}")
async def cancel_task(
    task_id: Annotated[str, Path(description="Celery task ID")],
    admin: AdminDep,
):
    """
    Cancel a pending or running task.

    Only works for tasks that haven't completed yet.
    """
    try:
        from workers.celery_app import celery_app

        result = celery_app.AsyncResult(task_id)

        if result.status in ["SUCCESS", "FAILURE"]:
            return {
                "task_id": task_id,
                "message": f"Task already {result.status.lower()}, cannot cancel",
                "cancelled": False,
            }

        result.revoke(terminate=True)
        logger.info(f"Task {task_id} cancelled by {admin.id}")

        return {
            "task_id": task_id,
            "message": "Task cancelled",
            "cancelled": True,
        }

    except Exception as e:
        logger.error(f"Error cancelling task: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to cancel task: {e}")


def submit_task(task, *args, description: str) -> TaskSubmitResponse:
    """
    Queue a Celery task and describe how to poll it.

    Raises:
        HTTPException: 503 if the broker can't be reached
    """
    try:
        result = task.delay(*args)
    except Exception as e:
        logger.error(f"Error submitting {description}: {e}")
        raise HTTPException(
            status_code=503,
            detail=f"Failed to submit task. Is Redis running? Error: {e}"
        )

    return TaskSubmitResponse(
        task_id=result.id,
        status="PENDING",
        message=f"{description} submitted. Use GET /api/v1/tasks/{{task_id}} to check status.",
    )
