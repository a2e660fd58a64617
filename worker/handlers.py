"""Job handlers for the worker process.

Two wrapper styles decide how a handler failure is treated:
``retryable`` re-raises so the queue schedules another attempt, and
``best_effort`` converts the failure into a result so a single bad item does
not use up the job type's retry budget.
"""
import functools
import logging
import time
from typing import Any, Callable, Dict

from collector.article_generator import ArticleGenerator
from collector.news_collector import NewsCollector
from collector.x_fetcher import XNewsFetcher
from jobqueue.base import JobHandler, JobQueue
from jobqueue.models import Job
from shared.job_types import (
    ArticleGenerationBatchJobData,
    ArticleGenerationBatchJobResult,
    ArticleGenerationJobResult,
    FetchFromXJobResult,
    JobName,
    NewsCollectionJobResult,
)

logger = logging.getLogger(__name__)

# Extra items picked up by the follow-up batch besides the ones just saved
BATCH_LIMIT_MARGIN = 5
BATCH_LIMIT_MAX = 100


def retryable(handler: JobHandler) -> JobHandler:
    """Let handler errors propagate so the queue retries the job."""
    @functools.wraps(handler)
    async def wrapper(job: Job) -> Any:
        try:
            return await handler(job)
        except Exception as e:
            logger.error(f"Job {job.id} ({job.name.value}) failed on attempt {job.retry_count + 1}: {e}")
            raise
    return wrapper


def best_effort(on_failure: Callable[[Job, Exception], Any]) -> Callable[[JobHandler], JobHandler]:
    """Catch handler errors and return ``on_failure(job, error)`` instead."""
    def decorator(handler: JobHandler) -> JobHandler:
        @functools.wraps(handler)
        async def wrapper(job: Job) -> Any:
            try:
                return await handler(job)
            except Exception as e:
                logger.error(f"Job {job.id} ({job.name.value}) failed: {e}")
                return on_failure(job, e)
        return wrapper
    return decorator


def _article_failure(job: Job, error: Exception) -> ArticleGenerationJobResult:
    return ArticleGenerationJobResult(news_id=job.data.news_id, success=False, error=str(error))


def _fetch_from_x_failure(job: Job, error: Exception) -> FetchFromXJobResult:
    return FetchFromXJobResult(success=False, error=str(error))


class JobHandlers:
    """Handler implementations bound to the services they drive."""

    def __init__(
        self,
        collector: NewsCollector,
        article_generator: ArticleGenerator,
        x_fetcher: XNewsFetcher,
        queue: JobQueue
    ):
        self.collector = collector
        self.article_generator = article_generator
        self.x_fetcher = x_fetcher
        self.queue = queue
        self.jobs_processed = 0

    def bindings(self) -> Dict[JobName, JobHandler]:
        """The single handler for each job type."""
        return {
            JobName.NEWS_COLLECTION: retryable(self.news_collection),
            JobName.ARTICLE_GENERATION: best_effort(_article_failure)(self.article_generation),
            JobName.ARTICLE_GENERATION_BATCH: retryable(self.article_generation_batch),
            JobName.FETCH_FROM_X: best_effort(_fetch_from_x_failure)(self.fetch_from_x),
        }

    async def news_collection(self, job: Job) -> NewsCollectionJobResult:
        started = time.monotonic()
        logger.info(
            f"Starting news collection job {job.id} "
            f"(triggered by {job.data.triggered_by} at {job.data.triggered_at})"
        )

        result = await self.collector.collect_news(raise_errors=True)
        if result is None:
            raise RuntimeError("A news collection cycle is already running in this worker")

        duration = time.monotonic() - started
        self.jobs_processed += 1
        logger.info(
            f"News collection completed in {duration:.1f}s: "
            f"collected={result.collected} saved={result.saved}"
        )

        if result.saved > 0:
            limit = min(result.saved + BATCH_LIMIT_MARGIN, BATCH_LIMIT_MAX)
            logger.info(f"Triggering batch article generation (limit {limit})")
            await self.queue.enqueue(
                JobName.ARTICLE_GENERATION_BATCH,
                ArticleGenerationBatchJobData(limit=limit, triggered_by="auto"),
            )

        return NewsCollectionJobResult(
            collected=result.collected,
            saved=result.saved,
            duration=duration,
        )

    async def article_generation(self, job: Job) -> ArticleGenerationJobResult:
        news_id = job.data.news_id
        logger.info(f"Starting article generation for news {news_id}...")

        article = await self.article_generator.generate_article_content(news_id)
        self.jobs_processed += 1
        if article is None:
            return ArticleGenerationJobResult(
                news_id=news_id,
                success=False,
                error="Generation returned no content"
            )

        logger.info(f"Article generated successfully for {news_id}")
        return ArticleGenerationJobResult(news_id=news_id, success=True)

    async def article_generation_batch(self, job: Job) -> ArticleGenerationBatchJobResult:
        limit = job.data.limit
        logger.info(f"Starting batch article generation (limit: {limit})...")

        generated = await self.article_generator.generate_missing_articles(limit)
        self.jobs_processed += 1
        logger.info(f"Batch article generation completed: {generated}/{limit}")
        return ArticleGenerationBatchJobResult(generated=generated, limit=limit)

    async def fetch_from_x(self, job: Job) -> FetchFromXJobResult:
        logger.info(f"Starting fetch from X job {job.id}...")

        result = await self.x_fetcher.fetch()
        self.jobs_processed += 1
        return FetchFromXJobResult(success=True, fetched=result.fetched, inserted=result.inserted)
