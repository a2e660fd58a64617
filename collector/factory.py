"""Builds the collection services from a database handle."""
from motor.motor_asyncio import AsyncIOMotorDatabase

from collector.article_generator import ArticleGenerator
from collector.enrichment import ContentEnricher
from collector.gateway import NewsGateway
from collector.news_collector import NewsCollector
from collector.sources import RSSSource
from collector.x_fetcher import XNewsFetcher
from database.repositories.news_repo import NewsRepository
from database.repositories.tool_repo import ToolRepository
from shared.llm import GenerationClient


def build_news_collector(db: AsyncIOMotorDatabase, client: GenerationClient) -> NewsCollector:
    return NewsCollector(
        source=RSSSource(),
        enricher=ContentEnricher(client),
        gateway=NewsGateway(NewsRepository(db)),
        tool_repo=ToolRepository(db),
    )


def build_article_generator(db: AsyncIOMotorDatabase, client: GenerationClient) -> ArticleGenerator:
    return ArticleGenerator(client, NewsRepository(db))


def build_x_fetcher(db: AsyncIOMotorDatabase) -> XNewsFetcher:
    news_repo = NewsRepository(db)
    return XNewsFetcher.from_settings(NewsGateway(news_repo), news_repo)
