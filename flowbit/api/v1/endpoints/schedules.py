"""
Schedule Endpoints

Cron jobs created through POST /trigger with triggerType "schedule".
"""

from fastapi import APIRouter, Depends

from flowbit.api.deps import get_scheduler
from flowbit.core.exceptions import NotFoundError
from flowbit.services.scheduler import CronScheduler

router = APIRouter()


@router.get("/schedules")
async def list_schedules(scheduler: CronScheduler = Depends(get_scheduler)):
    return {"jobs": [job.model_dump(mode="json", by_alias=True) for job in scheduler.list_jobs()]}


@router.get("/schedules/{job_id}")
async def get_schedule(job_id: str, scheduler: CronScheduler = Depends(get_scheduler)):
    job = scheduler.get_job(job_id)
    if job is None:
        raise NotFoundError(f"Cron job {job_id} not found")
    return {"job": job.model_dump(mode="json", by_alias=True)}


@router.delete("/schedules/{job_id}")
async def cancel_schedule(job_id: str, scheduler: CronScheduler = Depends(get_scheduler)):
    """Stop a job and mark it inactive."""
    if not scheduler.cancel_job(job_id):
        raise NotFoundError(f"No active cron job {job_id}")
    return {"success": True}
