"""Main worker entry point."""
import asyncio
import logging
import os
import signal

import uvicorn

from collector.factory import build_article_generator, build_news_collector, build_x_fetcher
from database.connection import DatabaseConnection
from jobqueue.queue import create_job_queue
from shared.config import settings
from shared.job_types import JobName, NewsCollectionJobData
from shared.llm import GenerationClient
from worker.handlers import JobHandlers
from worker.health import create_health_app
from worker.worker import JobWorker

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

HOURLY_SCHEDULE = "hourly-news-collection"
HOURLY_CRON = "0 * * * *"


async def log_status(worker: JobWorker, interval: float):
    """Periodically log worker status."""
    while True:
        await asyncio.sleep(interval)
        status = worker.get_status()
        logger.info(
            f"Worker status: running={status['is_running']} "
            f"jobs_processed={status['jobs_processed']} uptime={status['uptime'] or 0:.0f}s"
        )


async def main():
    """Main entry point for the worker service."""
    worker_id = settings.worker_id or f"worker-{os.getpid()}"
    logger.info(f"Starting worker with ID: {worker_id}")

    db = await DatabaseConnection.init_mongo()
    redis_client = await DatabaseConnection.init_redis()

    client = GenerationClient.from_settings()
    if not client.available:
        logger.warning("OPENAI_API_KEY not set, enrichment and article generation are disabled")

    queue = create_job_queue(db, redis_client)
    handlers = JobHandlers(
        collector=build_news_collector(db, client),
        article_generator=build_article_generator(db, client),
        x_fetcher=build_x_fetcher(db),
        queue=queue,
    )
    worker = JobWorker(queue, handlers, worker_id)

    next_run = await queue.schedule(
        HOURLY_SCHEDULE,
        JobName.NEWS_COLLECTION,
        HOURLY_CRON,
        NewsCollectionJobData(triggered_by="cron"),
        retry_delay=settings.schedule_retry_delay,
    )
    logger.info(f"Hourly news collection scheduled, next run at {next_run.isoformat()}")

    health_server = uvicorn.Server(uvicorn.Config(
        create_health_app(worker),
        host=settings.worker_health_host,
        port=settings.worker_health_port,
        log_level="warning",
    ))

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    def signal_handler():
        logger.info("Received shutdown signal")
        stop_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, signal_handler)

    background = []
    try:
        await worker.start()
        health_task = asyncio.create_task(health_server.serve())
        stop_task = asyncio.create_task(stop_event.wait())
        background = [
            health_task,
            stop_task,
            asyncio.create_task(log_status(worker, settings.worker_status_log_interval)),
        ]
        logger.info(f"Worker health endpoint on port {settings.worker_health_port}")
        # The health server captures SIGINT/SIGTERM itself while it is serving
        await asyncio.wait([health_task, stop_task], return_when=asyncio.FIRST_COMPLETED)
    except Exception as e:
        logger.error(f"Worker error: {e}")
    finally:
        health_server.should_exit = True
        await worker.stop()
        logger.info(f"Generation usage: {client.get_usage_stats()}")
        for task in background:
            task.cancel()
        await asyncio.gather(*background, return_exceptions=True)
        await DatabaseConnection.close_connections()
        logger.info("Worker shutdown complete")


if __name__ == "__main__":
    asyncio.run(main())
