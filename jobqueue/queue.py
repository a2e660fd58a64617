"""MongoDB-backed job queue with Redis concurrency slots."""
import asyncio
import dataclasses
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple, Union

import redis.asyncio as redis
from croniter import croniter
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel, ValidationError

from database.repositories.job_repo import JobRepository
from database.repositories.schedule_repo import ScheduleRepository
from jobqueue.base import JobHandler, JobQueue, Payload
from jobqueue.limiter import RedisSlotLimiter
from jobqueue.models import Job, JobModel, QueueStats
from shared.config import settings
from shared.job_types import JOB_CONCURRENCY, JOB_PAYLOADS, JobName
from shared.utils import get_utc_now

logger = logging.getLogger(__name__)


def _to_output(value: Any) -> Any:
    """Handler return value in a form Mongo can store."""
    if isinstance(value, BaseModel):
        return value.model_dump()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    return value


class PersistentJobQueue(JobQueue):
    """
    Job records live in MongoDB and survive restarts; claims are atomic
    ``find_one_and_update`` calls. Per-type concurrency is enforced across
    processes by the slot limiter before a job is claimed.
    """

    def __init__(
        self,
        job_repo: JobRepository,
        schedule_repo: ScheduleRepository,
        limiter: RedisSlotLimiter,
        retry_limit: int = None,
        retry_delay: int = None,
        poll_interval: float = None,
        schedule_interval: float = None,
        maintenance_interval: float = None,
        expire_seconds: int = None,
        archive_after_seconds: int = None,
        delete_after_seconds: int = None,
        heartbeat_interval: float = None,
    ):
        self.job_repo = job_repo
        self.schedule_repo = schedule_repo
        self.limiter = limiter
        self.retry_limit = settings.job_retry_limit if retry_limit is None else retry_limit
        self.retry_delay = settings.job_retry_delay if retry_delay is None else retry_delay
        self.poll_interval = poll_interval or settings.job_poll_interval
        self.schedule_interval = schedule_interval or settings.schedule_check_interval
        self.maintenance_interval = maintenance_interval or settings.maintenance_interval
        self.expire_seconds = expire_seconds or settings.job_expire_seconds
        self.archive_after_seconds = archive_after_seconds or settings.archive_completed_after_seconds
        self.delete_after_seconds = delete_after_seconds or settings.delete_after_seconds
        self.heartbeat_interval = heartbeat_interval or settings.job_heartbeat_interval

        self._handlers: Dict[JobName, Tuple[JobHandler, int]] = {}
        self._tasks: List[asyncio.Task] = []
        self._service_tasks: List[asyncio.Task] = []
        self._running = False

    # Enqueue side

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
        job_name = JobName(name)
        data = self._validate_payload(job_name, payload)

        if singleton_key:
            since = None
            if singleton_seconds:
                since = get_utc_now() - timedelta(seconds=singleton_seconds)
            existing = await self.job_repo.find_singleton(job_name.value, singleton_key, since)
            if existing:
                logger.info(
                    f"Job \"{job_name.value}\" not enqueued: {existing['_id']} holds singleton key {singleton_key}"
                )
                return None

        job = await self.job_repo.create_job(
            name=job_name.value,
            data=data,
            retry_limit=self.retry_limit if retry_limit is None else retry_limit,
            retry_delay=self.retry_delay if retry_delay is None else retry_delay,
            start_after=start_after,
            singleton_key=singleton_key,
        )
        logger.info(f"Enqueued job \"{job_name.value}\" with ID: {job['_id']}")
        return job["_id"]

    async def fetch_status(self, job_id: str) -> Optional[JobModel]:
        job = await self.job_repo.get_job(job_id)
        if job is None:
            return None
        return JobModel.model_validate(job)

    async def get_queue_stats(self, name: Union[JobName, str]) -> QueueStats:
        counts = await self.job_repo.count_by_state(JobName(name).value)
        return QueueStats(**counts)

    # Schedules

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
        if not croniter.is_valid(cron):
            raise ValueError(f"Invalid cron expression: {cron!r}")

        target = JobName(job_name)
        next_run = croniter(cron, get_utc_now()).get_next(datetime)
        await self.schedule_repo.upsert_schedule(
            name=name,
            job_name=target.value,
            cron=cron,
            data=self._validate_payload(target, payload),
            options={
                "retry_limit": self.retry_limit if retry_limit is None else retry_limit,
                "retry_delay": settings.schedule_retry_delay if retry_delay is None else retry_delay,
            },
            next_run_at=next_run,
        )
        logger.info(f"Scheduled \"{target.value}\" as {name} (cron: \"{cron}\", next run {next_run.isoformat()})")
        return next_run

    async def unschedule(self, name: str) -> bool:
        removed = await self.schedule_repo.delete_schedule(name)
        if removed:
            logger.info(f"Removed schedule {name}")
        return removed

    async def fire_due_schedules(self, now: Optional[datetime] = None) -> int:
        """Enqueue one job per due schedule; returns how many fired."""
        now = now or get_utc_now()
        fired = 0
        for schedule in await self.schedule_repo.list_due(now):
            new_next = croniter(schedule["cron"], now).get_next(datetime)
            # Only the worker that advances next_run_at fires this tick
            if not await self.schedule_repo.advance(schedule["_id"], schedule["next_run_at"], new_next):
                continue

            data = dict(schedule.get("data") or {})
            if "triggered_at" in data:
                data["triggered_at"] = now.isoformat()
            options = schedule.get("options") or {}
            job_id = await self.enqueue(
                schedule["job_name"],
                data,
                retry_limit=options.get("retry_limit"),
                retry_delay=options.get("retry_delay"),
                singleton_key=schedule["_id"],
            )
            if job_id:
                fired += 1
        return fired

    # Worker side

    def register_handler(
        self,
        name: Union[JobName, str],
        handler: JobHandler,
        concurrency: Optional[int] = None
    ) -> None:
        job_name = JobName(name)
        if job_name in self._handlers:
            raise ValueError(f"A handler is already registered for {job_name.value}")
        limit = concurrency or JOB_CONCURRENCY[job_name]
        self._handlers[job_name] = (handler, limit)
        if self._running:
            self._spawn_workers(job_name, limit)

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        for job_name, (_, limit) in self._handlers.items():
            self._spawn_workers(job_name, limit)
        self._service_tasks = [
            asyncio.create_task(self._schedule_loop()),
            asyncio.create_task(self._maintenance_loop()),
        ]
        logger.info(f"Job queue started with handlers: {', '.join(n.value for n in self._handlers)}")

    async def stop(self, timeout: float = 30.0) -> None:
        if not self._running:
            return
        self._running = False

        for task in self._service_tasks:
            task.cancel()
        pending = set(self._service_tasks)
        if self._tasks:
            # Work loops exit after their current job
            _, still_running = await asyncio.wait(self._tasks, timeout=timeout)
            for task in still_running:
                task.cancel()
            pending |= still_running
        await asyncio.gather(*pending, return_exceptions=True)

        self._tasks, self._service_tasks = [], []
        logger.info("Job queue stopped")

    def _spawn_workers(self, job_name: JobName, limit: int) -> None:
        for _ in range(limit):
            self._tasks.append(asyncio.create_task(self._work_loop(job_name)))

    async def _work_loop(self, job_name: JobName) -> None:
        while self._running:
            try:
                processed = await self.work_once(job_name)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Worker loop error for {job_name.value}: {e}")
                processed = False
            if not processed:
                await asyncio.sleep(self.poll_interval)

    async def work_once(self, job_name: JobName) -> bool:
        """Claim and run at most one job of this type; True if one ran."""
        handler, limit = self._handlers[job_name]
        slot = await self.limiter.acquire(job_name.value, limit)
        if slot is None:
            return False
        try:
            job = await self.job_repo.claim_next(job_name.value, get_utc_now())
            if job is None:
                return False
            await self._execute(job, handler, slot)
            return True
        finally:
            await self.limiter.release(slot)

    async def _execute(self, job: Dict[str, Any], handler: JobHandler, slot: Any) -> None:
        job_name = JobName(job["name"])
        try:
            payload = JOB_PAYLOADS[job_name].model_validate(job.get("data") or {})
        except ValidationError as e:
            logger.error(f"Job {job['_id']} has an invalid payload, failing without retry: {e}")
            await self.job_repo.fail_job(job["_id"], f"Invalid payload: {e}")
            return

        heartbeat = asyncio.create_task(self._heartbeat(job["_id"], slot))
        try:
            output = await handler(Job(
                id=job["_id"],
                name=job_name,
                data=payload,
                retry_count=job.get("retry_count", 0),
            ))
        except Exception as e:
            await self._record_failure(job, f"{type(e).__name__}: {e}")
            return
        finally:
            heartbeat.cancel()
            await asyncio.gather(heartbeat, return_exceptions=True)

        if not await self.job_repo.complete_job(job["_id"], _to_output(output)):
            logger.warning(
                f"Job {job['_id']} ({job['name']}) finished but was no longer active; its output was not stored"
            )

    async def _heartbeat(self, job_id: str, slot: Any) -> None:
        """Keep a running job's started_at and slot lease fresh until cancelled."""
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            try:
                if not await self.job_repo.touch_job(job_id, get_utc_now()):
                    logger.warning(f"Job {job_id} is no longer active while its handler is still running")
                await self.limiter.extend(slot)
            except Exception as e:
                logger.error(f"Heartbeat failed for job {job_id}: {e}")

    async def _record_failure(
        self,
        job: Dict[str, Any],
        error: str,
        started_at: Optional[datetime] = None
    ) -> bool:
        """Retry or fail an active job; False if it was no longer in the expected state."""
        retry_count = job.get("retry_count", 0)
        if retry_count < job.get("retry_limit", 0):
            start_after = get_utc_now() + timedelta(seconds=job.get("retry_delay", 0))
            if not await self.job_repo.retry_job(job["_id"], start_after, error, started_at=started_at):
                logger.warning(f"Job {job['_id']} ({job['name']}) changed state before its failure was recorded")
                return False
            logger.warning(
                f"Job {job['_id']} ({job['name']}) failed, retry {retry_count + 1}/{job['retry_limit']} "
                f"at {start_after.isoformat()}: {error}"
            )
        else:
            if not await self.job_repo.fail_job(job["_id"], error, started_at=started_at):
                logger.warning(f"Job {job['_id']} ({job['name']}) changed state before its failure was recorded")
                return False
            logger.error(f"Job {job['_id']} ({job['name']}) failed after {retry_count + 1} attempts: {error}")
        return True

    async def _schedule_loop(self) -> None:
        while self._running:
            try:
                await self.fire_due_schedules()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Schedule loop error: {e}")
            await asyncio.sleep(self.schedule_interval)

    async def _maintenance_loop(self) -> None:
        while self._running:
            try:
                await self.run_maintenance()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Maintenance error: {e}")
            await asyncio.sleep(self.maintenance_interval)

    async def run_maintenance(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """Expire stuck active jobs, archive old terminal jobs, purge old archives."""
        now = now or get_utc_now()

        expired = 0
        for job in await self.job_repo.list_expired(now - timedelta(seconds=self.expire_seconds)):
            # Skipped if a heartbeat moved started_at since the listing
            if await self._record_failure(
                job, f"Job expired after {self.expire_seconds}s", started_at=job["started_at"]
            ):
                expired += 1

        archived = await self.job_repo.archive_completed(now - timedelta(seconds=self.archive_after_seconds))
        purged = await self.job_repo.purge_archived(now - timedelta(seconds=self.delete_after_seconds))
        if expired or archived or purged:
            logger.info(f"Maintenance: expired={expired} archived={archived} purged={purged}")
        return {"expired": expired, "archived": archived, "purged": purged}

    @staticmethod
    def _validate_payload(job_name: JobName, payload: Payload) -> Dict[str, Any]:
        model = JOB_PAYLOADS[job_name]
        if isinstance(payload, BaseModel):
            payload = payload.model_dump()
        return model.model_validate(payload or {}).model_dump()


def create_job_queue(db: AsyncIOMotorDatabase, redis_client: redis.Redis) -> PersistentJobQueue:
    """Build the queue from the shared connections and settings."""
    return PersistentJobQueue(
        job_repo=JobRepository(db),
        schedule_repo=ScheduleRepository(db),
        limiter=RedisSlotLimiter(redis_client),
    )
