"""
Background tasks API endpoints.

Provides endpoints to:
- View background job status and upcoming runs
- Manually trigger a backup cycle
- List stored backup archives
"""

import asyncio
from typing import List, Optional
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from pydantic import BaseModel, Field

from billing_jobs.api.deps import verify_admin_password
from billing_jobs.schemas import BackupArtifact
from billing_jobs.services.storage import get_backup_storage
from billing_jobs.tasks import background_jobs, backup_run_lock, get_job_status

router = APIRouter(dependencies=[Depends(verify_admin_password)])


# Response schemas
class JobStatusResponse(BaseModel):
    """Status of a background job."""
    id: str
    name: str
    running: bool = Field(..., description="Whether the job's loop is alive")
    state: Optional[str] = Field(None, description="Backup loop state: idle, waiting, running, cooldown")
    cycle_in_progress: Optional[bool] = None
    next_run: Optional[str] = Field(None, description="Next scheduled run (ISO)")
    last_result: Optional[dict] = Field(None, description="Result of the last run")


class TaskTriggerResponse(BaseModel):
    """Response when triggering a task."""
    message: str
    task: str
    status: str


# Endpoints

@router.get("/scheduler/status", response_model=List[JobStatusResponse])
async def get_scheduler_status():
    """
    Get status of the backup scheduler and the trial expiry check.

    Example response:
    ```json
    [
        {
            "id": "scheduled_backup",
            "name": "Scheduled Tenant Backup",
            "running": true,
            "state": "waiting",
            "cycle_in_progress": false,
            "next_run": "2026-10-19T21:00:00",
            "last_result": null
        }
    ]
    ```
    """
    return get_job_status()


@router.post("/backup", response_model=TaskTriggerResponse, status_code=status.HTTP_202_ACCEPTED)
async def trigger_backup(background_tasks: BackgroundTasks):
    """
    Manually run one backup cycle for all Active and Trial tenants.

    The cycle shares the scheduler's run-lock, so it never overlaps a
    scheduled cycle.

    Raises:
        409: If a backup cycle is already running
    """
    if backup_run_lock.is_held:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A backup cycle is already running. Please wait for it to complete."
        )

    background_tasks.add_task(background_jobs.get_backup_scheduler().run_cycle)

    return TaskTriggerResponse(
        message="Backup cycle started",
        task="backup",
        status="started"
    )


@router.get("/backups", response_model=List[BackupArtifact])
async def list_backups():
    """List stored backup archives, newest first."""
    return await asyncio.to_thread(get_backup_storage().list_backups)
