"""News repository for the pipeline's operations on the News collection."""
import re
from datetime import datetime
from typing import Optional, List, Dict, Any
from motor.motor_asyncio import AsyncIOMotorDatabase
from shared.utils import generate_news_id, get_utc_now


class SourceType:
    """News source type constants."""
    MANUAL = "manual"
    RSS = "rss"
    SCRAPE = "scrape"
    GENERATED_TIP = "generated-tip"


class NewsRepository:
    """Repository for News reads and writes used by collection and generation."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db.news
        self.translations = db.translations

    async def find_existing(self, title: str, source_url: Optional[str]) -> Optional[Dict[str, Any]]:
        """Find a news item matching the exact title or the exact source URL."""
        conditions: List[Dict[str, Any]] = [{"title": title}]
        if source_url:
            conditions.append({"source_url": source_url})
        return await self.collection.find_one({"$or": conditions}, {"_id": 1})

    async def title_exists_ignore_case(self, title: str) -> bool:
        """Check for a news item with the same title, ignoring case."""
        pattern = f"^{re.escape(title)}$"
        count = await self.collection.count_documents(
            {"title": {"$regex": pattern, "$options": "i"}}
        )
        return count > 0

    async def insert_news(
        self,
        title: str,
        description: str,
        source_url: Optional[str],
        published_on: datetime,
        source_type: str,
        category: Optional[str] = None,
        image_url: Optional[str] = None,
        ai_generated: bool = False,
        tool_id: Optional[str] = None,
        tags: Optional[List[str]] = None,
        content: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Insert a news item as a single document write."""
        news = {
            "_id": generate_news_id(),
            "title": title,
            "description": description,
            "content": content,
            "source_url": source_url,
            "published_on": published_on,
            "created_at": get_utc_now(),
            "category": category,
            "image_url": image_url,
            "source_type": source_type,
            "ai_generated": ai_generated,
            "tool_id": tool_id,
            "tags": tags or [],
            "engagement_score": 0,
            "featured": False,
            "slug": None,
        }
        await self.collection.insert_one(news)
        return news

    async def get_news(self, news_id: str) -> Optional[Dict[str, Any]]:
        """Get a news item by ID."""
        return await self.collection.find_one({"_id": news_id})

    async def list_without_content(self, limit: int) -> List[Dict[str, Any]]:
        """Get the most recent news items whose content is still empty."""
        cursor = (
            self.collection
            .find({"$or": [{"content": None}, {"content": ""}]}, {"_id": 1, "title": 1})
            .sort("published_on", -1)
            .limit(limit)
        )
        return await cursor.to_list(length=limit)

    async def fill_content(self, news_id: str, content: str) -> bool:
        """Set the content only when it is still empty."""
        result = await self.collection.update_one(
            {"_id": news_id, "$or": [{"content": None}, {"content": ""}]},
            {"$set": {"content": content}}
        )
        return result.modified_count > 0

    async def upsert_translation(
        self,
        news_id: str,
        locale: str,
        field_name: str,
        value: str
    ) -> None:
        """Insert or replace one translated field of a news item."""
        now = get_utc_now()
        await self.translations.update_one(
            {
                "entity_type": "news",
                "entity_id": news_id,
                "locale": locale,
                "field_name": field_name,
            },
            {
                "$set": {"translated_value": value, "updated_at": now},
                "$setOnInsert": {"created_at": now},
            },
            upsert=True
        )
