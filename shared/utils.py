"""Shared utility functions."""
import re
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from bs4 import BeautifulSoup

_WHITESPACE_RE = re.compile(r"\s+")


def generate_job_id() -> str:
    """Generate a unique job ID."""
    return f"job_{uuid.uuid4().hex[:12]}"


def generate_news_id() -> str:
    """Generate a unique news item ID."""
    return f"news_{uuid.uuid4().hex[:12]}"


def get_utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def next_top_of_hour(now: Optional[datetime] = None) -> datetime:
    """Return the start of the next hour after ``now``."""
    now = now or get_utc_now()
    return now.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)


def format_datetime(dt: Optional[datetime]) -> Optional[str]:
    """Format datetime to ISO format string."""
    if dt is None:
        return None
    return dt.isoformat()


def clean_html(value: str) -> str:
    """Strip tags, decode entities and collapse whitespace."""
    if not value:
        return ""
    text = BeautifulSoup(value, "html.parser").get_text(separator=" ")
    return _WHITESPACE_RE.sub(" ", text).strip()


def clip(value: str, limit: int) -> str:
    """Truncate text to ``limit`` characters."""
    if len(value) <= limit:
        return value
    return value[:limit].rstrip()
