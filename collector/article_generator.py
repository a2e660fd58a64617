"""Full-article expansion: English body plus independent translations."""
import asyncio
import logging
from typing import Any, Dict, Optional

from collector.catalog import TRANSLATION_LOCALES
from collector.models import ArticleContent, Translation
from database.repositories.news_repo import NewsRepository
from shared.config import settings
from shared.llm import GenerationClient

logger = logging.getLogger(__name__)

TRANSLATED_FIELDS = ("title", "description", "content")

ARTICLE_PROMPT = """You are a professional tech journalist. Write a full, engaging article based on this news summary.

Title: {title}
Summary: {description}
Category: {category}
{tags_line}
Write a professional news article (400-600 words) that:
1. Expands on the summary with relevant context
2. Explains why this matters to AI tool users
3. Includes practical implications or tips where relevant
4. Uses clear, accessible language
5. Has proper paragraph structure (use \\n\\n between paragraphs)

Do NOT include the title - just the article body. Start directly with the first paragraph.
Write in a professional but engaging journalistic style."""

TRANSLATION_PROMPT = """Translate this news article to {language}. Keep the professional journalistic tone.
Provide the translation in JSON format:
{{
  "title": "translated title",
  "description": "translated summary (1-2 sentences)",
  "content": "full translated article"
}}

English Title: {title}
English Summary: {description}
English Article:
{content}

Respond ONLY with valid JSON, no markdown."""


class ArticleGenerator:
    """Expands short news items into full articles with translations."""

    def __init__(
        self,
        client: GenerationClient,
        news_repo: NewsRepository,
        batch_pause: Optional[float] = None
    ):
        self.client = client
        self.news_repo = news_repo
        self.batch_pause = settings.article_batch_pause if batch_pause is None else batch_pause

    async def generate_article_content(self, news_id: str) -> Optional[ArticleContent]:
        """Generate, translate and store the body of one news item."""
        if not self.client.available:
            logger.error("OpenAI API key not configured")
            return None

        news = await self.news_repo.get_news(news_id)
        if not news:
            logger.error(f"News item {news_id} not found")
            return None

        try:
            english = await self._generate_english(news)
        except Exception as e:
            logger.error(f"Error generating article content for {news_id}: {e}")
            return None

        translations = {}
        for locale, language in TRANSLATION_LOCALES.items():
            translations[locale] = await self._translate(news, english, locale, language)

        article = ArticleContent(content=english, translations=translations)
        await self._save(news_id, article)
        return article

    async def generate_missing_articles(self, limit: int = 5) -> int:
        """Generate content for up to ``limit`` items that have none yet."""
        pending = await self.news_repo.list_without_content(limit)

        generated = 0
        for index, news in enumerate(pending):
            if index and self.batch_pause:
                await asyncio.sleep(self.batch_pause)
            if await self.generate_article_content(news["_id"]):
                generated += 1

        return generated

    async def _generate_english(self, news: Dict[str, Any]) -> str:
        tags = news.get("tags") or []
        prompt = ARTICLE_PROMPT.format(
            title=news["title"],
            description=news.get("description") or "",
            category=news.get("category") or "AI News",
            tags_line=f"Tags: {', '.join(tags)}\n" if tags else "",
        )
        content = await self.client.complete(prompt, max_tokens=1000, temperature=0.7)
        return content or news.get("description") or ""

    async def _translate(
        self,
        news: Dict[str, Any],
        english: str,
        locale: str,
        language: str
    ) -> Translation:
        """One locale; failures give an empty translation without affecting others."""
        prompt = TRANSLATION_PROMPT.format(
            language=language,
            title=news["title"],
            description=news.get("description") or "",
            content=english,
        )
        try:
            parsed = await self.client.complete_json(prompt, max_tokens=1500, temperature=0.3)
        except Exception as e:
            logger.error(f"Failed to produce {locale} translation for {news['_id']}: {e}")
            return Translation()

        return Translation(**{
            field: parsed[field].strip()
            for field in TRANSLATED_FIELDS
            if isinstance(parsed.get(field), str)
        })

    async def _save(self, news_id: str, article: ArticleContent) -> None:
        filled = await self.news_repo.fill_content(news_id, article.content)
        if not filled:
            logger.info(f"News {news_id} already has content, body left unchanged")

        for locale, translation in article.translations.items():
            for field in TRANSLATED_FIELDS:
                value = getattr(translation, field)
                if value:
                    await self.news_repo.upsert_translation(news_id, locale, field, value)

        logger.info(f"Saved article content and translations for news {news_id}")
