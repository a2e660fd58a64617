"""Deduplication and persistence gateway for collected news."""
import logging
from datetime import datetime
from typing import Dict, Optional

from pymongo.errors import DuplicateKeyError

from collector.models import EnrichedNewsItem
from database.repositories.news_repo import NewsRepository

logger = logging.getLogger(__name__)


class NewsGateway:
    """Checks for existing news and stores new items."""

    def __init__(self, news_repo: NewsRepository):
        self.news_repo = news_repo

    async def exists(self, title: str, source_url: Optional[str]) -> bool:
        """Exact title match OR exact source URL match."""
        return await self.news_repo.find_existing(title, source_url) is not None

    async def save(
        self,
        item: EnrichedNewsItem,
        source_url: Optional[str],
        published_at: datetime,
        source_type: str,
        ai_generated: bool,
        tool_mapping: Optional[Dict[str, str]] = None,
        image_url: Optional[str] = None,
    ) -> bool:
        """
        Store the item unless it already exists.

        Returns True only when a new row was written. Duplicates and write
        failures both return False but are logged differently.
        """
        try:
            if await self.exists(item.title, source_url):
                logger.info(f"Skipping duplicate: {item.title}")
                return False

            tool_id = None
            if item.tool_slug and tool_mapping:
                tool_id = tool_mapping.get(item.tool_slug.lower())

            await self.news_repo.insert_news(
                title=item.title,
                description=item.description,
                source_url=source_url,
                published_on=published_at,
                source_type=source_type,
                category=item.category,
                image_url=image_url,
                ai_generated=ai_generated,
                tool_id=tool_id,
                tags=item.tags,
            )
        except DuplicateKeyError:
            logger.info(f"Skipping duplicate (concurrent insert): {item.title}")
            return False
        except Exception as e:
            logger.error(f"Error saving news {item.title!r}: {e}")
            return False

        logger.info(f"Saved news: {item.title}")
        return True
