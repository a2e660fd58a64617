"""Trending AI-tool news from X, curated through the Grok API."""
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List

from collector.gateway import NewsGateway
from collector.models import EnrichedNewsItem
from database.repositories.news_repo import NewsRepository, SourceType
from shared.config import settings
from shared.llm import GenerationClient
from shared.utils import clip, get_utc_now

logger = logging.getLogger(__name__)

_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")

CURATOR_PROMPT = """You are an AI news curator. Search X (Twitter) for the HOTTEST and most IMPORTANT AI news only.

Only include news that has high engagement, comes from verified or reputable sources, is original
content, is breaking or trending in the last 24 hours, and is about major AI tools: ChatGPT, Claude,
Gemini, Midjourney, Cursor, DALL-E, Copilot, Perplexity.

Exclude promotional content, personal opinions without news value, reposts, news older than 24 hours
and clickbait.

Return EXACTLY 5 verified, high-quality news items in JSON:
{
  "news": [
    {
      "title": "Concise factual headline (max 80 chars)",
      "description": "What happened and why it matters to AI users (2-3 sentences)",
      "source_url": "https://x.com/username/status/id",
      "importance": "high|medium",
      "category": "Product Launch|Update|Research|Business|Tutorial"
    }
  ]
}

Only return JSON, no other text."""

REQUEST_PROMPT = (
    "Find the TOP 5 most important and trending AI tool news from X/Twitter right now. "
    "Today is {today}. Focus on breaking news, major announcements, and viral AI tool updates. "
    "Exclude any spam or promotional content."
)


class XFetchError(Exception):
    """Raised when trending news cannot be fetched or parsed."""


@dataclass
class XFetchResult:
    fetched: int
    inserted: int

    @property
    def skipped(self) -> int:
        return self.fetched - self.inserted


def parse_curated_news(content: str) -> List[Dict[str, Any]]:
    """Extract the ``news`` list from a reply that may wrap JSON in prose."""
    match = _JSON_OBJECT_RE.search(content)
    if not match:
        raise XFetchError("No JSON found in response")
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise XFetchError(f"Failed to parse Grok response: {e}") from e
    news = parsed.get("news") if isinstance(parsed, dict) else None
    return [item for item in news or [] if isinstance(item, dict)]


class XNewsFetcher:
    """Asks Grok for trending items and stores the new ones."""

    def __init__(self, client: GenerationClient, gateway: NewsGateway, news_repo: NewsRepository):
        self.client = client
        self.gateway = gateway
        self.news_repo = news_repo

    @classmethod
    def from_settings(cls, gateway: NewsGateway, news_repo: NewsRepository) -> "XNewsFetcher":
        client = GenerationClient(
            api_key=settings.grok_api_key,
            model=settings.grok_model,
            base_url=settings.grok_base_url,
        )
        return cls(client, gateway, news_repo)

    async def fetch(self) -> XFetchResult:
        if not self.client.available:
            raise XFetchError("Grok API key is not configured")

        now = get_utc_now()
        try:
            content = await self.client.complete(
                REQUEST_PROMPT.format(today=now.date().isoformat()),
                system=CURATOR_PROMPT,
                max_tokens=1500,
                temperature=0.5,
            )
        except Exception as e:
            raise XFetchError(f"Grok API request failed: {e}") from e

        items = parse_curated_news(content)
        inserted = 0
        for item in items:
            title = item.get("title")
            description = item.get("description")
            if not isinstance(title, str) or not isinstance(description, str):
                continue
            title, description = clip(title.strip(), 80), description.strip()
            if not title or not description:
                continue
            if await self.news_repo.title_exists_ignore_case(title):
                logger.info(f"Skipping duplicate from X: {title}")
                continue

            news = EnrichedNewsItem(
                title=title,
                description=description,
                category=item.get("category") or "Industry News",
            )
            if await self.gateway.save(
                news,
                source_url=item.get("source_url") or None,
                published_at=now,
                source_type=SourceType.SCRAPE,
                ai_generated=True,
            ):
                inserted += 1

        logger.info(f"Fetched {len(items)} items from X, inserted {inserted}")
        return XFetchResult(fetched=len(items), inserted=inserted)
