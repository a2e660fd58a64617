"""News collection orchestrator: one full collection cycle per call."""
import logging
import random
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence

from collector.catalog import NEWS_SOURCES, TIP_TOOLS, FeedSource, detect_related_tool
from collector.enrichment import ContentEnricher
from collector.gateway import NewsGateway
from collector.models import CollectionResult, RawNewsItem
from collector.sources import RSSSource
from database.repositories.news_repo import SourceType
from database.repositories.tool_repo import ToolRepository
from shared.config import settings
from shared.utils import get_utc_now

logger = logging.getLogger(__name__)


class NewsCollector:
    """
    Runs collection cycles and owns the collection-in-progress state.

    One instance per process. The in-progress flag is checked and set in a
    single synchronous step (``try_begin``), so within one event loop at most
    one cycle body runs at a time.
    """

    def __init__(
        self,
        source: RSSSource,
        enricher: ContentEnricher,
        gateway: NewsGateway,
        tool_repo: ToolRepository,
        sources: Sequence[FeedSource] = NEWS_SOURCES,
        rng: Optional[random.Random] = None,
        recency_window: Optional[timedelta] = None,
        tip_base_url: Optional[str] = None,
    ):
        self.source = source
        self.enricher = enricher
        self.gateway = gateway
        self.tool_repo = tool_repo
        self.sources = tuple(sources)
        self.rng = rng or random.Random()
        self.recency_window = recency_window or timedelta(hours=settings.recency_window_hours)
        self.tip_base_url = (tip_base_url or settings.tip_base_url).rstrip("/")

        self._collecting = False
        self.last_run: Optional[datetime] = None
        self.last_result: Optional[CollectionResult] = None
        self.tool_mapping: Dict[str, str] = {}

    @property
    def is_collecting(self) -> bool:
        return self._collecting

    def try_begin(self) -> bool:
        """Claim the collector; False when a cycle is already running."""
        if self._collecting:
            return False
        self._collecting = True
        return True

    async def collect_news(self, raise_errors: bool = False) -> Optional[CollectionResult]:
        """Run one cycle unless one is already in progress (then return None)."""
        if not self.try_begin():
            logger.info("News collection already in progress, skipping")
            return None
        return await self.run_claimed(raise_errors=raise_errors)

    async def run_claimed(self, raise_errors: bool = False) -> Optional[CollectionResult]:
        """Run the cycle body for a caller that already holds the claim."""
        try:
            result = await self.run_cycle()
            self.last_result = result
            return result
        except Exception:
            logger.exception("News collection cycle failed")
            if raise_errors:
                raise
            return None
        finally:
            self.last_run = get_utc_now()
            self.tool_mapping = {}
            self._collecting = False

    async def run_cycle(self) -> CollectionResult:
        """Collection cycle body, without the in-progress guard."""
        logger.info("Starting news collection...")
        self.tool_mapping = await self._load_tool_mapping()

        raw_items: List[RawNewsItem] = []
        for feed in self.sources:
            logger.info(f"Fetching from {feed.name}...")
            items = await self.source.fetch_feed(feed.url, feed.category, source_name=feed.name)
            for item in items:
                item.category = feed.category
                item.related_tool_slug = detect_related_tool(item.title, item.description)
            raw_items.extend(items)

        collected = len(raw_items)
        logger.info(f"Collected {collected} raw items from RSS feeds")

        cutoff = get_utc_now() - self.recency_window
        recent_items = [item for item in raw_items if item.published_at > cutoff]
        logger.info(f"{len(recent_items)} items from last {self.recency_window}")

        enriched_items = await self.enricher.enrich_all(recent_items)

        saved = 0
        for enriched, raw in zip(enriched_items, recent_items):
            if await self.gateway.save(
                enriched,
                source_url=raw.source_url,
                published_at=raw.published_at,
                source_type=SourceType.RSS,
                ai_generated=self.enricher.available,
                tool_mapping=self.tool_mapping,
                image_url=raw.image_url,
            ):
                saved += 1

        if await self._save_tip():
            saved += 1

        logger.info(f"News collection complete. Collected: {collected}, Saved: {saved}")
        return CollectionResult(collected=collected, saved=saved)

    async def _save_tip(self) -> bool:
        """Generate and store one tip article for a tool from the rotation."""
        tool_slug = self.rng.choice(sorted(TIP_TOOLS))
        tip = await self.enricher.generate_tip(tool_slug)
        if tip is None:
            return False

        now = get_utc_now()
        source_url = f"{self.tip_base_url}/{tool_slug}/{int(now.timestamp() * 1000)}"
        return await self.gateway.save(
            tip,
            source_url=source_url,
            published_at=now,
            source_type=SourceType.GENERATED_TIP,
            ai_generated=self.enricher.available,
            tool_mapping=self.tool_mapping,
        )

    async def _load_tool_mapping(self) -> Dict[str, str]:
        """Build the lowercase slug/name -> tool id lookup for this cycle."""
        try:
            tools = await self.tool_repo.list_tools()
        except Exception as e:
            logger.error(f"Error loading tool mapping: {e}")
            return {}

        mapping: Dict[str, str] = {}
        for tool in tools:
            tool_id = str(tool["_id"])
            if tool.get("slug"):
                mapping[tool["slug"].lower()] = tool_id
            if tool.get("name"):
                mapping[tool["name"].lower()] = tool_id
        logger.info(f"Loaded {len(tools)} tools for mapping")
        return mapping

    def get_status(self) -> Dict[str, object]:
        return {
            "is_collecting": self._collecting,
            "last_run": self.last_run,
            "last_result": self.last_result.to_dict() if self.last_result else None,
        }
