"""Request dependencies for services created in the app lifespan."""
from fastapi import Request

from collector.scheduler import CollectionScheduler
from database.repositories.news_repo import NewsRepository
from jobqueue.base import JobQueue


def get_scheduler(request: Request) -> CollectionScheduler:
    """Dependency for getting the in-process collection scheduler."""
    return request.app.state.scheduler


def get_job_queue(request: Request) -> JobQueue:
    """Dependency for getting the job queue (enqueue side only)."""
    return request.app.state.job_queue


def get_news_repository(request: Request) -> NewsRepository:
    return request.app.state.news_repo
