"""Pytest configuration and fixtures."""
import pytest
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

from collector.models import RawNewsItem
from shared.utils import get_utc_now
from tests.fakes import (
    FakeJobRepository,
    FakeLimiter,
    FakeNewsRepository,
    FakeScheduleRepository,
    FakeToolRepository
)


@pytest.fixture
def now():
    """Current UTC time."""
    return get_utc_now()


@pytest.fixture
def news_repo():
    return FakeNewsRepository()


@pytest.fixture
def tool_repo():
    return FakeToolRepository([
        {"_id": "tool_1", "slug": "chatgpt", "name": "ChatGPT"},
        {"_id": "tool_2", "slug": "claude", "name": "Claude"},
    ])


@pytest.fixture
def job_repo():
    return FakeJobRepository()


@pytest.fixture
def schedule_repo():
    return FakeScheduleRepository()


@pytest.fixture
def limiter():
    return FakeLimiter()


@pytest.fixture
def make_raw_item(now):
    """Factory for raw feed items published ``age`` ago."""
    def factory(title="OpenAI ships a new model", url=None, age=timedelta(hours=1), **fields):
        return RawNewsItem(
            title=title,
            description=fields.pop("description", f"Details about {title}"),
            source_url=url or f"https://example.com/{abs(hash(title))}",
            source_name=fields.pop("source_name", "https://example.com/feed"),
            published_at=now - age,
            category=fields.pop("category", "AI News"),
            **fields
        )
    return factory



@pytest.fixture
def mock_redis_client():
    """Create mock Redis client."""
    redis = MagicMock()
    redis.aclose = AsyncMock()
    return redis
