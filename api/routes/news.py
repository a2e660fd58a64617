"""Admin routes for news collection and article generation."""
from fastapi import APIRouter, Depends, HTTPException, Query, status

from api.dependencies import get_job_queue, get_news_repository, get_scheduler
from api.schemas.responses import (
    CollectionStatusResponse,
    JobEnqueueResponse,
    TriggerResponse
)
from collector.scheduler import CollectionScheduler
from database.repositories.news_repo import NewsRepository
from jobqueue.base import JobQueue
from shared.job_types import (
    ArticleGenerationBatchJobData,
    ArticleGenerationJobData,
    FetchFromXJobData,
    JobName,
    NewsCollectionJobData
)

router = APIRouter(prefix="/admin/news", tags=["news"])

# Identical requests inside these windows are folded into the pending job
COLLECT_SINGLETON_SECONDS = 300
BATCH_SINGLETON_SECONDS = 60


def _enqueue_response(job_id, queued: str, duplicate: str) -> JobEnqueueResponse:
    if job_id is None:
        return JobEnqueueResponse(success=False, job_id=None, message=duplicate)
    return JobEnqueueResponse(success=True, job_id=job_id, message=queued)


@router.get("/collection-status", response_model=CollectionStatusResponse)
async def get_collection_status(scheduler: CollectionScheduler = Depends(get_scheduler)):
    """Status of the in-process collector and its next hourly run."""
    return scheduler.get_collection_status()


@router.post("/collect", response_model=TriggerResponse, status_code=status.HTTP_202_ACCEPTED)
async def trigger_collection(scheduler: CollectionScheduler = Depends(get_scheduler)):
    """
    Start a collection cycle in this process.

    Returns immediately; a trigger while a cycle is running reports that the
    cycle is already in progress instead of starting a second one.
    """
    result = scheduler.trigger_collection()
    return TriggerResponse(success=result.started, message=result.message)


@router.post("/collect/queue", response_model=JobEnqueueResponse, status_code=status.HTTP_202_ACCEPTED)
async def queue_collection(job_queue: JobQueue = Depends(get_job_queue)):
    """Hand a collection cycle to the worker process."""
    job_id = await job_queue.enqueue(
        JobName.NEWS_COLLECTION,
        NewsCollectionJobData(triggered_by="manual"),
        singleton_key="manual-collection",
        singleton_seconds=COLLECT_SINGLETON_SECONDS,
    )
    return _enqueue_response(
        job_id,
        queued="News collection job queued",
        duplicate="A news collection job is already queued"
    )


@router.post("/{news_id}/generate-article", response_model=JobEnqueueResponse, status_code=status.HTTP_202_ACCEPTED)
async def generate_article(
    news_id: str,
    job_queue: JobQueue = Depends(get_job_queue),
    news_repo: NewsRepository = Depends(get_news_repository)
):
    """Queue full-article generation for one news item."""
    if not await news_repo.get_news(news_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"News {news_id} not found"
        )

    job_id = await job_queue.enqueue(
        JobName.ARTICLE_GENERATION,
        ArticleGenerationJobData(news_id=news_id, triggered_by="manual"),
    )
    return JobEnqueueResponse(success=True, job_id=job_id, message=f"Article generation queued for {news_id}")


@router.post("/generate-articles", response_model=JobEnqueueResponse, status_code=status.HTTP_202_ACCEPTED)
async def generate_articles(
    limit: int = Query(10, ge=1, le=100, description="Maximum number of news items to write articles for"),
    job_queue: JobQueue = Depends(get_job_queue)
):
    """Queue article generation for news items that have no content yet."""
    job_id = await job_queue.enqueue(
        JobName.ARTICLE_GENERATION_BATCH,
        ArticleGenerationBatchJobData(limit=limit, triggered_by="manual"),
        singleton_key="manual-batch",
        singleton_seconds=BATCH_SINGLETON_SECONDS,
    )
    return _enqueue_response(
        job_id,
        queued=f"Batch article generation queued (limit {limit})",
        duplicate="A batch article generation job is already queued"
    )


@router.post("/fetch-from-x", response_model=JobEnqueueResponse, status_code=status.HTTP_202_ACCEPTED)
async def fetch_from_x(job_queue: JobQueue = Depends(get_job_queue)):
    """Queue a fetch of trending AI news from X."""
    job_id = await job_queue.enqueue(JobName.FETCH_FROM_X, FetchFromXJobData(triggered_by="manual"))
    return JobEnqueueResponse(success=True, job_id=job_id, message="Fetch from X job queued")
