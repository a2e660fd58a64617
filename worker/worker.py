"""Worker process that runs jobs from the persistent queue."""
import logging
from typing import Any, Dict, Optional

from jobqueue.base import JobQueue
from shared.job_types import JobName
from shared.utils import format_datetime, get_utc_now
from worker.handlers import JobHandlers

logger = logging.getLogger(__name__)


class JobWorker:
    """Binds the job handlers to the queue and reports on their progress."""

    def __init__(self, queue: JobQueue, handlers: JobHandlers, worker_id: str = "worker-1"):
        self.queue = queue
        self.handlers = handlers
        self.worker_id = worker_id
        self.is_running = False
        self.start_time = None

    async def start(self):
        """Register every handler and start the queue."""
        if self.is_running:
            logger.warning(f"Worker {self.worker_id} is already running")
            return

        logger.info(f"Worker {self.worker_id} starting...")
        for job_name, handler in self.handlers.bindings().items():
            self.queue.register_handler(job_name, handler)
            logger.info(f"Registered handler for {job_name.value}")

        await self.queue.start()
        self.is_running = True
        self.start_time = get_utc_now()
        logger.info(f"Worker {self.worker_id} started")

    async def stop(self):
        """Stop the queue, letting in-flight jobs finish."""
        if not self.is_running:
            return
        logger.info(f"Worker {self.worker_id} stopping...")
        await self.queue.stop()
        self.is_running = False
        logger.info(f"Worker {self.worker_id} stopped")

    def get_status(self) -> Dict[str, Any]:
        uptime: Optional[float] = None
        if self.start_time is not None:
            uptime = (get_utc_now() - self.start_time).total_seconds()
        return {
            "worker_id": self.worker_id,
            "is_running": self.is_running,
            "start_time": format_datetime(self.start_time),
            "jobs_processed": self.handlers.jobs_processed,
            "uptime": uptime,
        }

    async def get_health(self) -> Dict[str, Any]:
        """Worker status plus queue depth for every job type."""
        queues = {}
        for job_name in JobName:
            stats = await self.queue.get_queue_stats(job_name)
            queues[job_name.value] = {**stats.model_dump(), "depth": stats.depth}

        return {
            "status": "healthy" if self.is_running else "stopped",
            "worker": self.get_status(),
            "queues": queues,
        }
