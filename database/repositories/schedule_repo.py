"""Schedule repository for named recurring job triggers."""
from typing import List, Dict, Any
from datetime import datetime
from motor.motor_asyncio import AsyncIOMotorDatabase
from shared.utils import get_utc_now


class ScheduleRepository:
    """Repository for cron schedules, keyed by schedule name."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db.job_schedules

    async def upsert_schedule(
        self,
        name: str,
        job_name: str,
        cron: str,
        data: Dict[str, Any],
        options: Dict[str, Any],
        next_run_at: datetime
    ) -> Dict[str, Any]:
        """Create or replace the schedule registered under ``name``."""
        schedule = {
            "_id": name,
            "job_name": job_name,
            "cron": cron,
            "data": data,
            "options": options,
            "next_run_at": next_run_at,
            "updated_at": get_utc_now(),
        }
        await self.collection.replace_one({"_id": name}, schedule, upsert=True)
        return schedule

    async def delete_schedule(self, name: str) -> bool:
        """Remove a schedule by name."""
        result = await self.collection.delete_one({"_id": name})
        return result.deleted_count > 0

    async def list_due(self, now: datetime) -> List[Dict[str, Any]]:
        """Get schedules whose next run time has passed."""
        cursor = self.collection.find({"next_run_at": {"$lte": now}})
        return await cursor.to_list(length=None)

    async def advance(self, name: str, expected_next: datetime, new_next: datetime) -> bool:
        """Move ``next_run_at`` forward only if no other worker already did."""
        result = await self.collection.update_one(
            {"_id": name, "next_run_at": expected_next},
            {"$set": {"next_run_at": new_next}}
        )
        return result.modified_count > 0
