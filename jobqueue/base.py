"""Job queue interface used by the API (enqueue side) and the worker."""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from pydantic import BaseModel

from jobqueue.models import Job, JobModel, QueueStats
from shared.job_types import JobName

JobHandler = Callable[[Job], Awaitable[Any]]
Payload = Union[BaseModel, Dict[str, Any], None]


class JobQueue(ABC):
    """Durable, retryable task queue with per-type concurrency and cron schedules."""

    @abstractmethod
    async def enqueue(
        self,
        name: Union[JobName, str],
        payload: Payload = None,
        *,
        retry_limit: Optional[int] = None,
        retry_delay: Optional[int] = None,
        start_after: Optional[datetime] = None,
        singleton_key: Optional[str] = None,
        singleton_seconds: Optional[int] = None,
    ) -> Optional[str]:
        """Create a job and return its id, or None when a singleton job already exists."""

    @abstractmethod
    async def fetch_status(self, job_id: str) -> Optional[JobModel]:
        """Get a job record, live or archived."""

    @abstractmethod
    def register_handler(
        self,
        name: Union[JobName, str],
        handler: JobHandler,
        concurrency: Optional[int] = None
    ) -> None:
        """Bind the single handler for a job type."""

    @abstractmethod
    async def schedule(
        self,
        name: str,
        job_name: Union[JobName, str],
        cron: str,
        payload: Payload = None,
        *,
        retry_limit: Optional[int] = None,
        retry_delay: Optional[int] = None,
    ) -> datetime:
        """Register (or replace) a named cron schedule; returns its next run time."""

    @abstractmethod
    async def unschedule(self, name: str) -> bool:
        """Remove a named schedule."""

    @abstractmethod
    async def get_queue_stats(self, name: Union[JobName, str]) -> QueueStats:
        """Job counts by state for one job type."""

    @abstractmethod
    async def start(self) -> None:
        """Start processing jobs for the registered handlers."""

    @abstractmethod
    async def stop(self) -> None:
        """Stop processing, letting in-flight jobs finish when possible."""
