"""
Collection Scheduler - in-process wall-clock trigger for news collection.

Runs the collector at the top of every hour and once shortly after start,
and exposes manual-trigger and status operations for the admin API.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Set

from collector.news_collector import NewsCollector
from shared.config import settings
from shared.utils import get_utc_now, next_top_of_hour

logger = logging.getLogger(__name__)


@dataclass
class TriggerResult:
    started: bool
    message: str


class CollectionScheduler:
    """Background scheduler that drives a single NewsCollector."""

    def __init__(self, collector: NewsCollector, initial_delay: Optional[float] = None):
        self.collector = collector
        self.initial_delay = settings.initial_collection_delay if initial_delay is None else initial_delay
        self._running = False
        self._tasks: Set[asyncio.Task] = set()

    async def start(self) -> None:
        """Start the hourly loop and the one-shot startup run."""
        if self._running:
            return

        self._running = True
        self._spawn(self._run_loop())
        self._spawn(self._initial_run())
        logger.info(
            f"Collection scheduler started (hourly at :00, first run in {self.initial_delay:.0f}s)"
        )

    async def stop(self) -> None:
        """Cancel scheduled triggers and any running background cycle."""
        self._running = False
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Collection scheduler stopped")

    def trigger_collection(self) -> TriggerResult:
        """
        Start a collection cycle in the background.

        The claim happens synchronously, so a second trigger issued before the
        background task gets scheduled still sees the cycle as running.
        """
        if not self.collector.try_begin():
            return TriggerResult(started=False, message="News collection is already in progress")

        self._spawn(self.collector.run_claimed())
        return TriggerResult(
            started=True,
            message="News collection started. Poll the status endpoint for the result."
        )

    def get_collection_status(self) -> Dict[str, Any]:
        status = self.collector.get_status()
        status["next_scheduled_run"] = next_top_of_hour()
        return status

    async def _run_loop(self) -> None:
        """Sleep until each top of the hour and run a cycle."""
        while self._running:
            try:
                delay = (next_top_of_hour() - get_utc_now()).total_seconds()
                await asyncio.sleep(max(delay, 0))
                logger.info("Hourly trigger - running news collection")
                await self.collector.collect_news()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Collection scheduler error: {e}")
                await asyncio.sleep(60)

    async def _initial_run(self) -> None:
        await asyncio.sleep(self.initial_delay)
        logger.info("Running initial news collection")
        await self.collector.collect_news()

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task
