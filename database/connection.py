"""Database connection setup for MongoDB and Redis."""
from typing import Optional
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
import pymongo
import redis.asyncio as redis
from shared.config import settings


class DatabaseConnection:
    """Manages MongoDB and Redis connections."""

    _mongo_client: Optional[AsyncIOMotorClient] = None
    _redis_client: Optional[redis.Redis] = None
    _db: Optional[AsyncIOMotorDatabase] = None

    @classmethod
    async def init_mongo(cls) -> AsyncIOMotorDatabase:
        """Initialize MongoDB connection."""
        if cls._mongo_client is None:
            cls._mongo_client = AsyncIOMotorClient(settings.mongo_url, tz_aware=True)
            cls._db = cls._mongo_client[settings.mongo_db_name]
            await cls._setup_indexes()
        return cls._db

    @classmethod
    async def _setup_indexes(cls):
        """Set up MongoDB indexes for the pipeline's queries."""
        if cls._db is None:
            return

        # News: (title, source_url) is the dedup key
        await cls._db.news.create_index(
            [("title", pymongo.ASCENDING), ("source_url", pymongo.ASCENDING)],
            unique=True
        )
        await cls._db.news.create_index("source_url")
        await cls._db.news.create_index("published_on")

        await cls._db.tools.create_index("slug", unique=True)

        await cls._db.translations.create_index(
            [("entity_type", 1), ("entity_id", 1), ("locale", 1), ("field_name", 1)],
            unique=True
        )

        # Jobs: claim query filters by name/state/start_after
        await cls._db.jobs.create_index(
            [("name", 1), ("state", 1), ("start_after", 1), ("created_at", 1)]
        )
        await cls._db.jobs.create_index("singleton_key", sparse=True)
        await cls._db.jobs.create_index("completed_at")
        await cls._db.jobs_archive.create_index("completed_at")

    @classmethod
    async def init_redis(cls) -> redis.Redis:
        """Initialize Redis connection."""
        if cls._redis_client is None:
            cls._redis_client = redis.from_url(
                settings.redis_url,
                decode_responses=True
            )
        return cls._redis_client

    @classmethod
    async def close_connections(cls):
        """Close all database connections."""
        if cls._mongo_client:
            cls._mongo_client.close()
            cls._mongo_client = None
            cls._db = None
        if cls._redis_client:
            await cls._redis_client.aclose()
            cls._redis_client = None

