"""Cross-process concurrency slots for job types, backed by Redis locks."""
import logging
from typing import Optional

import redis.asyncio as redis
from redis.asyncio.lock import Lock
from redis.exceptions import LockError

from shared.config import settings

logger = logging.getLogger(__name__)


class RedisSlotLimiter:
    """
    Caps how many jobs of one type run at once across all worker processes.

    Each job type gets ``limit`` named locks; holding any one of them is a
    slot. Locks expire after ``lease_seconds`` so a crashed worker cannot hold
    a slot forever.
    """

    def __init__(self, redis_client: redis.Redis, lease_seconds: int = None, prefix: str = None):
        self.redis = redis_client
        self.lease_seconds = lease_seconds or settings.job_expire_seconds
        self.prefix = prefix or settings.redis_slot_prefix

    async def acquire(self, name: str, limit: int) -> Optional[Lock]:
        """Take a free slot for ``name`` without waiting; None when all are held."""
        for index in range(limit):
            lock = self.redis.lock(
                f"{self.prefix}:{name}:{index}",
                timeout=self.lease_seconds,
                blocking=False
            )
            if await lock.acquire():
                return lock
        return None

    async def release(self, lock: Lock) -> None:
        try:
            await lock.release()
        except LockError as e:
            logger.warning(f"Slot {lock.name} was no longer held on release: {e}")

    async def extend(self, lock: Lock) -> bool:
        """Reset the slot's lease to a full ``lease_seconds``; False if it was lost."""
        try:
            await lock.extend(self.lease_seconds, replace_ttl=True)
            return True
        except LockError as e:
            logger.warning(f"Slot {lock.name} could not be extended: {e}")
            return False
