"""Job repository for the durable job queue's Jobs collection."""
from typing import Optional, List, Dict, Any
from datetime import datetime
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import BulkWriteError
from shared.job_types import JobState, CLAIMABLE_STATES, TERMINAL_STATES
from shared.utils import generate_job_id, get_utc_now


class JobRepository:
    """Repository for Job records and their state transitions."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db.jobs
        self.archive = db.jobs_archive

    async def create_job(
        self,
        name: str,
        data: Dict[str, Any],
        retry_limit: int,
        retry_delay: int,
        start_after: Optional[datetime] = None,
        singleton_key: Optional[str] = None
    ) -> Dict[str, Any]:
        """Create a new job record in the created state."""
        now = get_utc_now()
        job = {
            "_id": generate_job_id(),
            "name": name,
            "data": data,
            "state": JobState.CREATED.value,
            "retry_count": 0,
            "retry_limit": retry_limit,
            "retry_delay": retry_delay,
            "start_after": start_after or now,
            "singleton_key": singleton_key,
            "output": None,
            "error": None,
            "created_at": now,
            "started_at": None,
            "completed_at": None,
        }
        await self.collection.insert_one(job)
        return job

    async def find_singleton(
        self,
        name: str,
        singleton_key: str,
        created_since: Optional[datetime] = None
    ) -> Optional[Dict[str, Any]]:
        """Find a live job with the same singleton key, or one created recently."""
        conditions: List[Dict[str, Any]] = [
            {"state": {"$nin": list(TERMINAL_STATES)}}
        ]
        if created_since is not None:
            conditions.append({"created_at": {"$gte": created_since}})
        return await self.collection.find_one({
            "name": name,
            "singleton_key": singleton_key,
            "$or": conditions
        })

    async def claim_next(self, name: str, now: datetime) -> Optional[Dict[str, Any]]:
        """Atomically move the oldest runnable job of a type to active."""
        return await self.collection.find_one_and_update(
            {
                "name": name,
                "state": {"$in": list(CLAIMABLE_STATES)},
                "start_after": {"$lte": now}
            },
            {"$set": {"state": JobState.ACTIVE.value, "started_at": now}},
            sort=[("created_at", 1)],
            return_document=ReturnDocument.AFTER
        )

    async def complete_job(self, job_id: str, output: Any) -> bool:
        """Mark an active job as completed."""
        result = await self.collection.update_one(
            {"_id": job_id, "state": JobState.ACTIVE.value},
            {
                "$set": {
                    "state": JobState.COMPLETED.value,
                    "output": output,
                    "completed_at": get_utc_now()
                }
            }
        )
        return result.modified_count > 0

    async def touch_job(self, job_id: str, now: datetime) -> bool:
        """Move an active job's started_at forward so it is not expired while running."""
        result = await self.collection.update_one(
            {"_id": job_id, "state": JobState.ACTIVE.value},
            {"$set": {"started_at": now}}
        )
        return result.modified_count > 0

    async def retry_job(
        self,
        job_id: str,
        start_after: datetime,
        error: str,
        started_at: Optional[datetime] = None
    ) -> bool:
        """
        Put an active job back for another attempt.

        With ``started_at`` the update only applies if the job has not been
        touched since that time.
        """
        result = await self.collection.update_one(
            self._active_query(job_id, started_at),
            {
                "$set": {
                    "state": JobState.RETRY.value,
                    "start_after": start_after,
                    "error": error
                },
                "$inc": {"retry_count": 1}
            }
        )
        return result.modified_count > 0

    async def fail_job(self, job_id: str, error: str, started_at: Optional[datetime] = None) -> bool:
        """Mark an active job as permanently failed."""
        result = await self.collection.update_one(
            self._active_query(job_id, started_at),
            {
                "$set": {
                    "state": JobState.FAILED.value,
                    "error": error,
                    "completed_at": get_utc_now()
                }
            }
        )
        return result.modified_count > 0

    async def get_job(self, job_id: str) -> Optional[Dict[str, Any]]:
        """Get a job by ID from the live or archived collection."""
        job = await self.collection.find_one({"_id": job_id})
        if job is None:
            job = await self.archive.find_one({"_id": job_id})
        return job

    async def count_by_state(self, name: str) -> Dict[str, int]:
        """Count live jobs of a type grouped by state."""
        counts = {state.value: 0 for state in JobState}
        cursor = self.collection.aggregate([
            {"$match": {"name": name}},
            {"$group": {"_id": "$state", "count": {"$sum": 1}}}
        ])
        async for row in cursor:
            counts[row["_id"]] = row["count"]
        return counts

    async def list_expired(self, started_before: datetime) -> List[Dict[str, Any]]:
        """Get active jobs that started before the cutoff."""
        cursor = self.collection.find({
            "state": JobState.ACTIVE.value,
            "started_at": {"$lt": started_before}
        })
        return await cursor.to_list(length=None)

    async def archive_completed(self, completed_before: datetime) -> int:
        """Move terminal jobs completed before the cutoff into the archive."""
        query = {
            "state": {"$in": list(TERMINAL_STATES)},
            "completed_at": {"$lt": completed_before}
        }
        jobs = await self.collection.find(query).to_list(length=None)
        if not jobs:
            return 0
        archived_at = get_utc_now()
        for job in jobs:
            job["archived_at"] = archived_at
        try:
            await self.archive.insert_many(jobs, ordered=False)
        except BulkWriteError:
            # Copies left over from an interrupted archive run
            pass
        result = await self.collection.delete_many(
            {"_id": {"$in": [job["_id"] for job in jobs]}}
        )
        return result.deleted_count

    async def purge_archived(self, completed_before: datetime) -> int:
        """Delete archived jobs completed before the cutoff."""
        result = await self.archive.delete_many({"completed_at": {"$lt": completed_before}})
        return result.deleted_count

    @staticmethod
    def _active_query(job_id: str, started_at: Optional[datetime]) -> Dict[str, Any]:
        query = {"_id": job_id, "state": JobState.ACTIVE.value}
        if started_at is not None:
            query["started_at"] = started_at
        return query
