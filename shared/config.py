"""Shared configuration for the API server and the background worker."""
from typing import Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # MongoDB Configuration
    mongo_url: str = "mongodb://localhost:27017"
    mongo_db_name: str = "ai_catalog"

    # Redis Configuration
    redis_url: str = "redis://localhost:6379"
    redis_slot_prefix: str = "jobqueue:slot"

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_debug: bool = False

    # Generation capability (absent key disables enrichment)
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    llm_timeout: float = 60.0

    # xAI / Grok for trending news from X
    grok_api_key: Optional[str] = None
    grok_base_url: str = "https://api.x.ai/v1"
    grok_model: str = "grok-beta"

    # News collection
    feed_timeout: int = 30
    feed_user_agent: str = "QoimaAI News Collector/1.0"
    max_items_per_feed: int = 10
    recency_window_hours: int = 24
    initial_collection_delay: float = 30.0
    schedule_in_process: bool = True
    tip_base_url: str = "https://qoima.ai/tips"
    article_batch_pause: float = 1.0

    # Job queue
    job_retry_limit: int = 3
    job_retry_delay: int = 60
    schedule_retry_delay: int = 300
    job_expire_seconds: int = 15 * 60
    job_heartbeat_interval: float = 60.0
    archive_completed_after_seconds: int = 7 * 24 * 60 * 60
    delete_after_seconds: int = 14 * 24 * 60 * 60
    job_poll_interval: float = 2.0
    schedule_check_interval: float = 30.0
    maintenance_interval: float = 300.0

    # Worker
    worker_id: Optional[str] = None
    worker_health_host: str = "0.0.0.0"
    worker_health_port: int = 8001
    worker_status_log_interval: float = 60.0

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
