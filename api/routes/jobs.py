"""Job routes for the REST API."""
from fastapi import APIRouter, HTTPException, Depends, status

from api.dependencies import get_job_queue
from api.schemas.responses import JobStatusResponse, QueueCounts, QueueStatsResponse
from jobqueue.base import JobQueue
from shared.job_types import JobName


router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.get("/stats", response_model=QueueStatsResponse)
async def get_queue_stats(job_queue: JobQueue = Depends(get_job_queue)):
    """Job counts by state for every job type."""
    queues = {}
    for job_name in JobName:
        stats = await job_queue.get_queue_stats(job_name)
        queues[job_name.value] = QueueCounts(**stats.model_dump(), depth=stats.depth)
    return QueueStatsResponse(queues=queues)


@router.get("/{job_id}", response_model=JobStatusResponse)
async def get_job_status(
    job_id: str,
    job_queue: JobQueue = Depends(get_job_queue)
):
    """Get the current state of a job, including archived ones."""
    job = await job_queue.fetch_status(job_id)

    if not job:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Job {job_id} not found"
        )

    return JobStatusResponse(
        job_id=job.id,
        name=job.name.value,
        state=job.state.value,
        data=job.data,
        output=job.output,
        error=job.error,
        retry_count=job.retry_count,
        retry_limit=job.retry_limit,
        created_at=job.created_at,
        started_at=job.started_at,
        completed_at=job.completed_at
    )
