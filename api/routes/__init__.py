# Routes module
from .jobs import router as jobs_router
from .news import router as news_router

__all__ = ["jobs_router", "news_router"]
