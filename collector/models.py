"""Containers passed between the collection pipeline stages."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional


@dataclass
class RawNewsItem:
    """A normalized item read from a feed, before enrichment."""
    title: str
    description: str
    source_url: str
    source_name: str
    published_at: datetime
    category: str
    image_url: Optional[str] = None
    related_tool_slug: Optional[str] = None


@dataclass
class EnrichedNewsItem:
    """An item ready to be saved, enriched or passed through unchanged."""
    title: str
    description: str
    category: str
    tags: List[str] = field(default_factory=list)
    tool_slug: Optional[str] = None


@dataclass
class CollectionResult:
    collected: int
    saved: int

    def to_dict(self) -> Dict[str, int]:
        return {"collected": self.collected, "saved": self.saved}


@dataclass
class Translation:
    title: str = ""
    description: str = ""
    content: str = ""


@dataclass
class ArticleContent:
    """Generated English body plus per-locale translations."""
    content: str
    translations: Dict[str, Translation] = field(default_factory=dict)
