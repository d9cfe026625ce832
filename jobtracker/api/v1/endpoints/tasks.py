from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from jobtracker.api.deps import get_task_queue
from jobtracker.schemas.job import Job, JobAdvance, JobCreate
from jobtracker.services.task_queue import TaskQueue
from jobtracker.worker import dispatch


router = APIRouter(prefix="/tasks", tags=["tasks"])


@router.post("", response_model=Job, status_code=status.HTTP_201_CREATED)
async def create_task_endpoint(
    payload: JobCreate,
    queue: TaskQueue = Depends(get_task_queue),
) -> Job:
    job = await queue.create_task(payload.owner, payload.input)
    dispatch.enqueue_job(job)
    return job


@router.get("/{job_id}", response_model=Job)
async def get_task_endpoint(
    job_id: str,
    owner: str | None = Query(None, description="If given, the job must belong to this owner"),
    queue: TaskQueue = Depends(get_task_queue),
) -> Job:
    job = await queue.get_task(job_id)
    if owner is not None and job.owner != owner:
        raise HTTPException(status_code=403, detail="Job belongs to another owner")
    return job


@router.post("/{job_id}/advance", response_model=Job)
async def advance_task_endpoint(
    job_id: str,
    payload: JobAdvance,
    queue: TaskQueue = Depends(get_task_queue),
) -> Job:
    """Worker-facing: report progress or the final outcome of a job."""

    return await queue.advance(job_id, payload.status, output=payload.output, error=payload.error)
