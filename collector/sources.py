"""RSS source adapter: feed URL in, normalized raw news items out."""
import asyncio
import calendar
import logging
from datetime import datetime, timezone
from itertools import islice
from typing import Iterator, List, Optional

import aiohttp
import feedparser
from bs4 import BeautifulSoup

from collector.models import RawNewsItem
from shared.config import settings
from shared.utils import clean_html, get_utc_now

logger = logging.getLogger(__name__)

DESCRIPTION_LIMIT = 500


class FeedFetchError(Exception):
    """Raised internally when a feed cannot be read or parsed."""


class RSSSource:
    """Fetches RSS/Atom feeds and normalizes their entries."""

    def __init__(self, timeout: int = None, max_items: int = None):
        self.timeout = timeout or settings.feed_timeout
        self.max_items = max_items or settings.max_items_per_feed
        self.headers = {
            "User-Agent": settings.feed_user_agent,
            "Accept": "application/rss+xml, application/atom+xml, application/xml;q=0.9, */*;q=0.8",
        }

    async def fetch_feed(self, url: str, category: str, source_name: Optional[str] = None) -> List[RawNewsItem]:
        """
        Fetch one feed and return up to ``max_items`` normalized items.

        Items are labelled with ``source_name``, or the URL when no name is given.

        Any failure is logged and yields an empty list.
        """
        try:
            document = await self._fetch_text(url)
            parsed = feedparser.parse(document)
            if parsed.bozo and not parsed.entries:
                raise FeedFetchError(f"Malformed feed: {parsed.get('bozo_exception')}")
            return list(islice(self.iter_feed_items(parsed, source_name or url, category), self.max_items))
        except FeedFetchError as e:
            logger.error(f"Failed to fetch RSS from {url}: {e}")
        except asyncio.TimeoutError:
            logger.error(f"Timeout after {self.timeout} seconds fetching RSS from {url}")
        except aiohttp.ClientError as e:
            logger.error(f"Network error fetching RSS from {url}: {e}")
        except Exception as e:
            logger.error(f"Error parsing RSS feed {url}: {e}")
        return []

    async def _fetch_text(self, url: str) -> str:
        async with aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.timeout),
            headers=self.headers
        ) as session:
            async with session.get(url) as response:
                if response.status >= 400:
                    raise FeedFetchError(f"HTTP Error {response.status}")
                return await response.text()

    def iter_feed_items(
        self,
        parsed: feedparser.FeedParserDict,
        source_name: str,
        category: str
    ) -> Iterator[RawNewsItem]:
        """Lazily yield normalized items; entries without title or link are skipped."""
        for entry in parsed.entries:
            title = clean_html(entry.get("title", ""))
            link = (entry.get("link") or "").strip()
            if not title or not link:
                continue

            raw_description = entry.get("summary") or entry.get("description") or ""
            if not raw_description and entry.get("content"):
                raw_description = entry.content[0].get("value", "")

            yield RawNewsItem(
                title=title,
                description=clean_html(raw_description)[:DESCRIPTION_LIMIT],
                source_url=link,
                source_name=source_name,
                published_at=self._published_at(entry),
                category=category,
                image_url=self._image_url(entry),
            )

    def _published_at(self, entry: feedparser.FeedParserDict) -> datetime:
        """Entry publication time in UTC, or now when the feed omits it."""
        for key in ("published_parsed", "updated_parsed"):
            value = entry.get(key)
            if value:
                return datetime.fromtimestamp(calendar.timegm(value), tz=timezone.utc)
        return get_utc_now()

    def _image_url(self, entry: feedparser.FeedParserDict) -> Optional[str]:
        """First image from inline HTML, media:content, or an enclosure."""
        html_parts = [entry.get("summary", "")]
        html_parts.extend(part.get("value", "") for part in entry.get("content", []))
        for html in html_parts:
            if html and "<img" in html:
                img = BeautifulSoup(html, "html.parser").find("img", src=True)
                if img:
                    return img["src"]

        for media in entry.get("media_content", []):
            if media.get("url"):
                return media["url"]

        for enclosure in entry.get("enclosures", []):
            href = enclosure.get("href") or enclosure.get("url")
            if href:
                return href

        return None
