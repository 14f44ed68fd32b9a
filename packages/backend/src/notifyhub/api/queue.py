"""Queue introspection — what the workers are doing.

Learn: Completed and permanently failed jobs are only kept in bounded
rings (last 100 / last 50 by default). They're here for operators, not
for correctness: a job missing from the rings just aged out.
"""

from fastapi import APIRouter, Depends, HTTPException, Query

from notifyhub.api.deps import get_pipeline
from notifyhub.queue.models import JobStatus
from notifyhub.runtime import Pipeline
from notifyhub.schemas.queue import JobRead

router = APIRouter()


@router.get("/queue/stats")
async def queue_stats(pipeline: Pipeline = Depends(get_pipeline)):
    """Queue depth, worker and realtime counters."""
    return await pipeline.stats()


@router.get("/queue/jobs", response_model=list[JobRead])
async def recent_jobs(
    status: str = Query(default="failed", pattern=r"^(completed|failed)$"),
    pipeline: Pipeline = Depends(get_pipeline),
):
    """Retained completed or permanently failed jobs, newest first."""
    jobs = await pipeline.queue.recent(JobStatus(status))
    return [job.to_dict() for job in jobs]


@router.get("/queue/jobs/{job_id}", response_model=JobRead)
async def get_job(job_id: str, pipeline: Pipeline = Depends(get_pipeline)):
    job = await pipeline.queue.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail=f"Job {job_id} not found")
    return job.to_dict()
