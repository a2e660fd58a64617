"""Persistent job queue tests."""
import asyncio
import logging
import pytest
from datetime import timedelta
from unittest.mock import AsyncMock

from jobqueue.queue import PersistentJobQueue
from shared.job_types import (
    ArticleGenerationBatchJobData,
    ArticleGenerationJobResult,
    JobName,
    JobState,
    NewsCollectionJobData
)
from shared.utils import get_utc_now
from worker.handlers import best_effort, retryable


@pytest.fixture
def queue(job_repo, schedule_repo, limiter):
    return PersistentJobQueue(
        job_repo=job_repo,
        schedule_repo=schedule_repo,
        limiter=limiter,
        retry_limit=3,
        retry_delay=0,
        poll_interval=0.01,
        schedule_interval=0.01,
        maintenance_interval=60,
        expire_seconds=900,
        archive_after_seconds=7 * 24 * 3600,
        delete_after_seconds=14 * 24 * 3600,
    )


async def _drain(queue, job_name, rounds=10):
    """Run claim/execute steps until nothing is runnable."""
    ran = 0
    for _ in range(rounds):
        if not await queue.work_once(job_name):
            break
        ran += 1
    return ran


class TestEnqueue:
    """Tests for PersistentJobQueue.enqueue."""

    @pytest.mark.asyncio
    async def test_enqueue_creates_job(self, queue, job_repo):
        """Test a job is stored in the created state with its payload."""
        job_id = await queue.enqueue(JobName.ARTICLE_GENERATION_BATCH, ArticleGenerationBatchJobData(limit=7))

        job = job_repo.jobs[job_id]
        assert job["state"] == JobState.CREATED.value
        assert job["data"] == {"limit": 7, "triggered_by": "manual"}
        assert job["retry_limit"] == 3

    @pytest.mark.asyncio
    async def test_invalid_payload_rejected(self, queue, job_repo):
        """Test a payload that does not fit the job type is refused."""
        with pytest.raises(ValueError):
            await queue.enqueue(JobName.ARTICLE_GENERATION, {"news_id": ""})
        assert job_repo.jobs == {}

    @pytest.mark.asyncio
    async def test_unknown_job_name_rejected(self, queue):
        """Test a job name outside the fixed set is refused."""
        with pytest.raises(ValueError):
            await queue.enqueue("send-newsletter", {})

    @pytest.mark.asyncio
    async def test_singleton_key_folds_duplicates(self, queue, job_repo):
        """Test a second job with a pending singleton key is not created."""
        first = await queue.enqueue(JobName.NEWS_COLLECTION, singleton_key="manual", singleton_seconds=300)
        second = await queue.enqueue(JobName.NEWS_COLLECTION, singleton_key="manual", singleton_seconds=300)

        assert first is not None
        assert second is None
        assert len(job_repo.jobs) == 1

    @pytest.mark.asyncio
    async def test_singleton_window_covers_finished_jobs(self, queue, job_repo):
        """Test a recently finished singleton job still blocks a new one."""
        first = await queue.enqueue(JobName.NEWS_COLLECTION, singleton_key="manual", singleton_seconds=300)
        job_repo.jobs[first].update(state=JobState.COMPLETED.value, completed_at=get_utc_now())

        assert await queue.enqueue(JobName.NEWS_COLLECTION, singleton_key="manual", singleton_seconds=300) is None

        job_repo.jobs[first]["created_at"] -= timedelta(seconds=301)
        assert await queue.enqueue(JobName.NEWS_COLLECTION, singleton_key="manual", singleton_seconds=300)

    @pytest.mark.asyncio
    async def test_fetch_status_reads_archive(self, queue, job_repo):
        """Test archived jobs are still visible by id."""
        job_id = await queue.enqueue(JobName.FETCH_FROM_X)
        job_repo.archive[job_id] = job_repo.jobs.pop(job_id)

        status = await queue.fetch_status(job_id)

        assert status.id == job_id
        assert status.name == JobName.FETCH_FROM_X
        assert await queue.fetch_status("job_missing") is None


class TestExecution:
    """Tests for claiming and running jobs."""

    @pytest.mark.asyncio
    async def test_successful_job_completes_with_output(self, queue, job_repo):
        """Test handler output is stored on the completed job."""
        handler = AsyncMock(return_value=ArticleGenerationJobResult(news_id="news_1", success=True))
        queue.register_handler(JobName.ARTICLE_GENERATION, handler)
        job_id = await queue.enqueue(JobName.ARTICLE_GENERATION, {"news_id": "news_1"})

        assert await queue.work_once(JobName.ARTICLE_GENERATION) is True

        job = job_repo.jobs[job_id]
        assert job["state"] == JobState.COMPLETED.value
        assert job["output"] == {"news_id": "news_1", "success": True, "error": None}
        received = handler.await_args.args[0]
        assert received.data.news_id == "news_1"

    @pytest.mark.asyncio
    async def test_retry_bound(self, queue, job_repo):
        """Test a job that always fails runs retry_limit + 1 times, then fails."""
        calls = []

        async def always_fails(job):
            calls.append(job.retry_count)
            raise RuntimeError("feed host unreachable")

        queue.register_handler(JobName.NEWS_COLLECTION, retryable(always_fails))
        job_id = await queue.enqueue(JobName.NEWS_COLLECTION, NewsCollectionJobData(), retry_limit=2)

        assert await _drain(queue, JobName.NEWS_COLLECTION) == 3

        job = job_repo.jobs[job_id]
        assert calls == [0, 1, 2]
        assert job["state"] == JobState.FAILED.value
        assert "feed host unreachable" in job["error"]
        assert job["completed_at"] is not None

    @pytest.mark.asyncio
    async def test_retry_waits_for_delay(self, queue, job_repo):
        """Test a retried job is not claimable until its delay passes."""
        queue.register_handler(JobName.NEWS_COLLECTION, AsyncMock(side_effect=RuntimeError("boom")))
        job_id = await queue.enqueue(JobName.NEWS_COLLECTION, retry_delay=300)

        assert await queue.work_once(JobName.NEWS_COLLECTION) is True
        assert job_repo.jobs[job_id]["state"] == JobState.RETRY.value
        assert await queue.work_once(JobName.NEWS_COLLECTION) is False

    @pytest.mark.asyncio
    async def test_best_effort_failure_completes_once(self, queue, job_repo):
        """Test a best-effort handler's failure is recorded as a result without retry."""
        async def explode(job):
            raise RuntimeError("model overloaded")

        def on_failure(job, error):
            return ArticleGenerationJobResult(news_id=job.data.news_id, success=False, error=str(error))

        queue.register_handler(JobName.ARTICLE_GENERATION, best_effort(on_failure)(explode))
        job_id = await queue.enqueue(JobName.ARTICLE_GENERATION, {"news_id": "news_9"})

        assert await _drain(queue, JobName.ARTICLE_GENERATION) == 1

        job = job_repo.jobs[job_id]
        assert job["state"] == JobState.COMPLETED.value
        assert job["retry_count"] == 0
        assert job["output"]["success"] is False
        assert job["output"]["error"] == "model overloaded"

    @pytest.mark.asyncio
    async def test_invalid_stored_payload_fails_without_retry(self, queue, job_repo):
        """Test a job whose stored payload no longer validates fails immediately."""
        handler = AsyncMock()
        queue.register_handler(JobName.ARTICLE_GENERATION, handler)
        job = await job_repo.create_job(JobName.ARTICLE_GENERATION.value, {}, retry_limit=3, retry_delay=0)

        await queue.work_once(JobName.ARTICLE_GENERATION)

        assert job_repo.jobs[job["_id"]]["state"] == JobState.FAILED.value
        handler.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_concurrency_slot_blocks_claim(self, queue, job_repo, limiter):
        """Test no job is claimed while every slot of its type is held."""
        queue.register_handler(JobName.NEWS_COLLECTION, AsyncMock(return_value=None))
        job_id = await queue.enqueue(JobName.NEWS_COLLECTION)
        await limiter.acquire(JobName.NEWS_COLLECTION.value, 1)

        assert await queue.work_once(JobName.NEWS_COLLECTION) is False
        assert job_repo.jobs[job_id]["state"] == JobState.CREATED.value

    @pytest.mark.asyncio
    async def test_slot_released_after_failure(self, queue, limiter):
        """Test the concurrency slot is returned even when the handler fails."""
        queue.register_handler(JobName.NEWS_COLLECTION, AsyncMock(side_effect=RuntimeError("boom")))
        await queue.enqueue(JobName.NEWS_COLLECTION)

        await queue.work_once(JobName.NEWS_COLLECTION)

        assert limiter.held[JobName.NEWS_COLLECTION.value] == 0

    @pytest.mark.asyncio
    async def test_duplicate_handler_registration(self, queue):
        """Test a job type accepts a single handler."""
        queue.register_handler(JobName.FETCH_FROM_X, AsyncMock())
        with pytest.raises(ValueError):
            queue.register_handler(JobName.FETCH_FROM_X, AsyncMock())

    @pytest.mark.asyncio
    async def test_started_queue_processes_jobs(self, queue, job_repo):
        """Test the background loops pick up a job and stop cleanly."""
        done = asyncio.Event()

        async def handler(job):
            done.set()
            return {"ok": True}

        queue.register_handler(JobName.FETCH_FROM_X, handler)
        job_id = await queue.enqueue(JobName.FETCH_FROM_X)

        await queue.start()
        await asyncio.wait_for(done.wait(), timeout=2)
        await queue.stop(timeout=2)

        assert job_repo.jobs[job_id]["state"] == JobState.COMPLETED.value
        assert job_repo.jobs[job_id]["output"] == {"ok": True}


class TestSchedules:
    """Tests for cron schedules."""

    @pytest.mark.asyncio
    async def test_invalid_cron_rejected(self, queue):
        """Test an unparsable cron expression is refused."""
        with pytest.raises(ValueError):
            await queue.schedule("bad", JobName.NEWS_COLLECTION, "every hour")

    @pytest.mark.asyncio
    async def test_schedule_replaces_by_name(self, queue, schedule_repo):
        """Test registering the same name twice keeps one schedule."""
        await queue.schedule("hourly", JobName.NEWS_COLLECTION, "0 * * * *")
        await queue.schedule("hourly", JobName.NEWS_COLLECTION, "30 * * * *")

        assert list(schedule_repo.schedules) == ["hourly"]
        schedule = schedule_repo.schedules["hourly"]
        assert schedule["cron"] == "30 * * * *"
        assert schedule["next_run_at"].minute == 30

    @pytest.mark.asyncio
    async def test_due_schedule_fires_once(self, queue, schedule_repo, job_repo, now):
        """Test a due schedule enqueues one job and moves to the next slot."""
        await queue.schedule(
            "hourly", JobName.NEWS_COLLECTION, "0 * * * *",
            NewsCollectionJobData(triggered_by="cron"), retry_delay=300
        )
        schedule_repo.schedules["hourly"]["next_run_at"] = now - timedelta(minutes=1)

        fired = await queue.fire_due_schedules(now)
        again = await queue.fire_due_schedules(now)

        assert (fired, again) == (1, 0)
        [job] = job_repo.jobs.values()
        assert job["name"] == JobName.NEWS_COLLECTION.value
        assert job["data"]["triggered_by"] == "cron"
        assert job["retry_delay"] == 300
        assert job["singleton_key"] == "hourly"
        assert schedule_repo.schedules["hourly"]["next_run_at"] > now

    @pytest.mark.asyncio
    async def test_pending_scheduled_job_is_not_duplicated(self, queue, schedule_repo, job_repo, now):
        """Test a schedule does not pile up jobs while the previous one is pending."""
        await queue.schedule("hourly", JobName.NEWS_COLLECTION, "0 * * * *")
        schedule_repo.schedules["hourly"]["next_run_at"] = now - timedelta(hours=2)
        await queue.fire_due_schedules(now)

        schedule_repo.schedules["hourly"]["next_run_at"] = now - timedelta(minutes=1)
        assert await queue.fire_due_schedules(now) == 0
        assert len(job_repo.jobs) == 1

    @pytest.mark.asyncio
    async def test_unschedule(self, queue, schedule_repo):
        """Test a schedule can be removed by name."""
        await queue.schedule("hourly", JobName.NEWS_COLLECTION, "0 * * * *")
        assert await queue.unschedule("hourly") is True
        assert await queue.unschedule("hourly") is False
        assert schedule_repo.schedules == {}


class TestMaintenance:
    """Tests for expiry, archiving and purging."""

    @pytest.mark.asyncio
    async def test_stuck_active_job_is_retried(self, queue, job_repo, now):
        """Test an active job past the expiry window goes back for retry."""
        job_id = await queue.enqueue(JobName.NEWS_COLLECTION)
        job_repo.jobs[job_id].update(state=JobState.ACTIVE.value, started_at=now - timedelta(hours=1))

        counts = await queue.run_maintenance(now)

        assert counts["expired"] == 1
        assert job_repo.jobs[job_id]["state"] == JobState.RETRY.value
        assert "expired" in job_repo.jobs[job_id]["error"]

    @pytest.mark.asyncio
    async def test_long_running_job_is_kept_alive(self, job_repo, schedule_repo, limiter):
        """Test a handler running past the expiry window keeps its job and result."""
        queue = PersistentJobQueue(
            job_repo=job_repo,
            schedule_repo=schedule_repo,
            limiter=limiter,
            retry_delay=0,
            poll_interval=0.01,
            expire_seconds=900,
            heartbeat_interval=0.01,
        )
        started, release = asyncio.Event(), asyncio.Event()
        runs = []

        async def slow_batch(job):
            runs.append(job.id)
            started.set()
            await release.wait()
            return {"generated": 100}

        queue.register_handler(JobName.ARTICLE_GENERATION_BATCH, retryable(slow_batch))
        job_id = await queue.enqueue(JobName.ARTICLE_GENERATION_BATCH, ArticleGenerationBatchJobData(limit=100))
        running = asyncio.create_task(queue.work_once(JobName.ARTICLE_GENERATION_BATCH))
        await asyncio.wait_for(started.wait(), timeout=2)

        # Sixteen minutes into the run; the next heartbeat moves started_at forward
        job_repo.jobs[job_id]["started_at"] = get_utc_now() - timedelta(minutes=16)
        for _ in range(200):
            if job_repo.jobs[job_id]["started_at"] > get_utc_now() - timedelta(minutes=1):
                break
            await asyncio.sleep(0.01)

        counts = await queue.run_maintenance()
        assert counts["expired"] == 0
        assert job_repo.jobs[job_id]["state"] == JobState.ACTIVE.value

        release.set()
        assert await asyncio.wait_for(running, timeout=2) is True

        job = job_repo.jobs[job_id]
        assert job["state"] == JobState.COMPLETED.value
        assert job["output"] == {"generated": 100}
        assert limiter.extended[JobName.ARTICLE_GENERATION_BATCH.value] >= 1
        assert await queue.work_once(JobName.ARTICLE_GENERATION_BATCH) is False
        assert runs == [job_id]

    @pytest.mark.asyncio
    async def test_expiry_skips_job_touched_after_listing(self, queue, job_repo, now):
        """Test a heartbeat between listing and updating keeps the job active."""
        job_id = await queue.enqueue(JobName.NEWS_COLLECTION)
        job_repo.jobs[job_id].update(state=JobState.ACTIVE.value, started_at=now - timedelta(hours=1))
        listed = await job_repo.list_expired(now - timedelta(minutes=15))
        await job_repo.touch_job(job_id, now)
        job_repo.list_expired = AsyncMock(return_value=listed)

        counts = await queue.run_maintenance(now)

        assert counts["expired"] == 0
        assert job_repo.jobs[job_id]["state"] == JobState.ACTIVE.value
        assert job_repo.jobs[job_id]["retry_count"] == 0

    @pytest.mark.asyncio
    async def test_completion_of_expired_job_is_logged(self, queue, job_repo, caplog):
        """Test a result arriving after the job expired is reported, not silently dropped."""
        started, release = asyncio.Event(), asyncio.Event()

        async def stalled(job):
            started.set()
            await release.wait()
            return {"ok": True}

        queue.heartbeat_interval = 3600
        queue.register_handler(JobName.FETCH_FROM_X, stalled)
        job_id = await queue.enqueue(JobName.FETCH_FROM_X)
        running = asyncio.create_task(queue.work_once(JobName.FETCH_FROM_X))
        await asyncio.wait_for(started.wait(), timeout=2)

        counts = await queue.run_maintenance(get_utc_now() + timedelta(minutes=16))
        assert counts["expired"] == 1

        with caplog.at_level(logging.WARNING, logger="jobqueue.queue"):
            release.set()
            await asyncio.wait_for(running, timeout=2)

        assert job_repo.jobs[job_id]["state"] == JobState.RETRY.value
        assert "no longer active" in caplog.text

    @pytest.mark.asyncio
    async def test_old_jobs_archived_then_purged(self, queue, job_repo, now):
        """Test finished jobs move to the archive after 7 days and are deleted after 14."""
        recent = await queue.enqueue(JobName.FETCH_FROM_X)
        old = await queue.enqueue(JobName.FETCH_FROM_X)
        ancient = await queue.enqueue(JobName.FETCH_FROM_X)
        job_repo.jobs[recent].update(state=JobState.COMPLETED.value, completed_at=now - timedelta(days=1))
        job_repo.jobs[old].update(state=JobState.FAILED.value, completed_at=now - timedelta(days=8))
        job_repo.jobs[ancient].update(state=JobState.COMPLETED.value, completed_at=now - timedelta(days=15))

        counts = await queue.run_maintenance(now)

        assert counts == {"expired": 0, "archived": 2, "purged": 1}
        assert list(job_repo.jobs) == [recent]
        assert list(job_repo.archive) == [old]
        assert (await queue.fetch_status(old)).state == JobState.FAILED


class TestQueueStats:
    """Tests for per-type counts."""

    @pytest.mark.asyncio
    async def test_counts_by_state(self, queue, job_repo):
        """Test queue depth counts waiting and running jobs."""
        first = await queue.enqueue(JobName.ARTICLE_GENERATION, {"news_id": "a"})
        await queue.enqueue(JobName.ARTICLE_GENERATION, {"news_id": "b"})
        job_repo.jobs[first]["state"] = JobState.ACTIVE.value

        stats = await queue.get_queue_stats(JobName.ARTICLE_GENERATION)

        assert (stats.created, stats.active, stats.completed) == (1, 1, 0)
        assert stats.depth == 2
