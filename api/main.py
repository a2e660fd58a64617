"""Main FastAPI application."""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routes import jobs_router, news_router
from api.schemas import ErrorResponse
from collector.factory import build_news_collector
from collector.scheduler import CollectionScheduler
from database.connection import DatabaseConnection
from database.repositories.news_repo import NewsRepository
from jobqueue.queue import create_job_queue
from shared.config import settings
from shared.llm import GenerationClient

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    db = await DatabaseConnection.init_mongo()
    redis_client = await DatabaseConnection.init_redis()

    client = GenerationClient.from_settings()
    if not client.available:
        logger.warning("OPENAI_API_KEY not set, news will be saved without enrichment")

    scheduler = CollectionScheduler(build_news_collector(db, client))
    if settings.schedule_in_process:
        await scheduler.start()

    # The API only enqueues; handlers run in the worker process
    app.state.scheduler = scheduler
    app.state.job_queue = create_job_queue(db, redis_client)
    app.state.news_repo = NewsRepository(db)

    yield

    # Shutdown
    await scheduler.stop()
    await DatabaseConnection.close_connections()


# Create FastAPI app
app = FastAPI(
    title="AI News Pipeline",
    description="Collects, enriches and stores AI news, with background jobs for article generation",
    version="1.0.0",
    lifespan=lifespan,
    responses={500: {"model": ErrorResponse}}
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler."""
    logger.error(f"Unhandled error on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "detail": str(exc)}
    )


# Include routers
app.include_router(news_router)
app.include_router(jobs_router)


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "name": "AI News Pipeline",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_debug
    )
