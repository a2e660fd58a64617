"""Content enrichment: LLM classification, summarization and tip generation."""
import logging
from typing import Any, Dict, List, Optional

from collector.catalog import NEWS_CATEGORIES, TIP_TOOLS, TIPS_CATEGORY
from collector.models import EnrichedNewsItem, RawNewsItem
from shared.llm import GenerationClient
from shared.utils import clip

logger = logging.getLogger(__name__)

TITLE_LIMIT = 80
DESCRIPTION_LIMIT = 200
TIP_TITLE_LIMIT = 60
MAX_TAGS = 5

ENRICH_PROMPT = """Analyze this AI news item and provide:
1. A concise, engaging title (max 80 chars)
2. A clear summary (2-3 sentences, max 200 chars) explaining why this matters to AI tool users
3. A category from: {categories}
4. 3-5 relevant tags
5. If this is about a specific AI tool, identify it

News Title: {title}
Description: {description}

Respond in JSON format:
{{
  "title": "...",
  "description": "...",
  "category": "...",
  "tags": ["tag1", "tag2"],
  "toolSlug": "chatgpt|claude|midjourney|cursor|etc or null"
}}"""

TIP_PROMPT = """Generate a useful tip or trick for using {tool_name} that would help users get better results.
Focus on practical advice that even beginners can use.

Respond in JSON:
{{
  "title": "A catchy title for the tip (max 60 chars)",
  "description": "The tip explained clearly (2-3 sentences, max 200 chars)",
  "tags": ["tag1", "tag2", "tag3"]
}}"""


def _as_text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _as_tags(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [tag.strip() for tag in value if isinstance(tag, str) and tag.strip()][:MAX_TAGS]


class ContentEnricher:
    """Refines raw feed items through the generation capability, one call per item."""

    def __init__(self, client: GenerationClient):
        self.client = client

    @property
    def available(self) -> bool:
        return self.client.available

    @staticmethod
    def passthrough(raw: RawNewsItem) -> EnrichedNewsItem:
        """The raw item unchanged, used whenever enrichment is not possible."""
        return EnrichedNewsItem(
            title=raw.title,
            description=raw.description,
            category=raw.category,
            tags=[],
            tool_slug=raw.related_tool_slug,
        )

    async def enrich(self, raw: RawNewsItem) -> EnrichedNewsItem:
        if not self.available:
            return self.passthrough(raw)

        prompt = ENRICH_PROMPT.format(
            categories=", ".join(f'"{c}"' for c in NEWS_CATEGORIES),
            title=raw.title,
            description=raw.description,
        )
        try:
            parsed = await self.client.complete_json(prompt, max_tokens=300)
        except Exception as e:
            logger.error(f"Error enhancing news with AI ({raw.title!r}): {e}")
            return self.passthrough(raw)

        return self._merge(raw, parsed)

    async def enrich_all(self, items: List[RawNewsItem]) -> List[EnrichedNewsItem]:
        """Enrich items sequentially; output order matches input order."""
        enriched = []
        for item in items:
            enriched.append(await self.enrich(item))
        return enriched

    def _merge(self, raw: RawNewsItem, parsed: Dict[str, Any]) -> EnrichedNewsItem:
        category = _as_text(parsed.get("category"))
        if category not in NEWS_CATEGORIES:
            category = raw.category

        tool_slug = _as_text(parsed.get("toolSlug"))
        if not tool_slug or tool_slug.lower() == "null":
            tool_slug = raw.related_tool_slug

        return EnrichedNewsItem(
            title=clip(_as_text(parsed.get("title")) or raw.title, TITLE_LIMIT),
            description=clip(_as_text(parsed.get("description")) or raw.description, DESCRIPTION_LIMIT),
            category=category,
            tags=_as_tags(parsed.get("tags")),
            tool_slug=tool_slug,
        )

    async def generate_tip(self, tool_slug: str) -> Optional[EnrichedNewsItem]:
        """Generate one tips-and-tricks item for a tool in the rotation."""
        if not self.available:
            return None

        tool_name = TIP_TOOLS.get(tool_slug)
        if not tool_name:
            return None

        try:
            parsed = await self.client.complete_json(
                TIP_PROMPT.format(tool_name=tool_name), max_tokens=250
            )
        except Exception as e:
            logger.error(f"Error generating tips for {tool_name}: {e}")
            return None

        title = _as_text(parsed.get("title"))
        description = _as_text(parsed.get("description"))
        if not title or not description:
            logger.warning(f"Tip response for {tool_name} is missing title or description")
            return None

        return EnrichedNewsItem(
            title=clip(title, TIP_TITLE_LIMIT),
            description=clip(description, DESCRIPTION_LIMIT),
            category=TIPS_CATEGORY,
            tags=_as_tags(parsed.get("tags")),
            tool_slug=tool_slug,
        )
