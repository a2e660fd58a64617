"""Static tables for news collection: feeds, tool keywords, tip rotation."""
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple


@dataclass(frozen=True)
class FeedSource:
    name: str
    url: str
    category: str


# Processed one at a time, in this order
NEWS_SOURCES: Tuple[FeedSource, ...] = (
    FeedSource("OpenAI Blog", "https://openai.com/blog/rss.xml", "AI Updates"),
    FeedSource("Anthropic News", "https://www.anthropic.com/news/rss.xml", "AI Updates"),
    FeedSource("Google AI Blog", "https://blog.google/technology/ai/rss/", "AI Research"),
    FeedSource(
        "MIT Technology Review AI",
        "https://www.technologyreview.com/topic/artificial-intelligence/feed",
        "AI News",
    ),
    FeedSource("VentureBeat AI", "https://venturebeat.com/category/ai/feed/", "AI Business"),
)

# Tool slug -> lowercase keywords; first matching slug wins
TOOL_KEYWORDS: Dict[str, List[str]] = {
    "chatgpt": ["chatgpt", "chat gpt", "openai gpt", "gpt-4", "gpt-5", "gpt4", "gpt5"],
    "claude": ["claude", "anthropic claude", "claude 3", "claude-3"],
    "midjourney": ["midjourney", "mid journey", "mj v6", "mj v7"],
    "cursor": ["cursor ai", "cursor ide", "cursor editor"],
    "github-copilot": ["copilot", "github copilot"],
    "dall-e": ["dall-e", "dalle", "dall e 3"],
    "canva": ["canva ai", "canva magic"],
    "perplexity": ["perplexity", "perplexity ai"],
    "gemini": ["gemini", "google gemini", "bard"],
    "notion-ai": ["notion ai", "notion"],
}

# One tip article per run, picked from this rotation
TIP_TOOLS: Dict[str, str] = {
    "chatgpt": "ChatGPT",
    "claude": "Claude",
    "midjourney": "Midjourney",
    "cursor": "Cursor",
    "dall-e": "DALL-E",
}

NEWS_CATEGORIES: Tuple[str, ...] = (
    "New Features",
    "Tips & Tricks",
    "Industry News",
    "Tutorial",
    "Product Launch",
    "AI Research",
)

TIPS_CATEGORY = "Tips & Tricks"

TRANSLATION_LOCALES: Dict[str, str] = {
    "ru": "Russian",
    "kk": "Kazakh (Қазақша)",
}


def detect_related_tool(title: str, description: str) -> Optional[str]:
    """Return the slug of the first tool whose keyword appears in the text."""
    text = f"{title} {description}".lower()
    for slug, keywords in TOOL_KEYWORDS.items():
        if any(keyword in text for keyword in keywords):
            return slug
    return None
