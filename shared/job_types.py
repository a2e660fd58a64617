"""Job names, typed payloads and results shared by the API and the worker."""
from enum import Enum
from typing import Dict, Literal, Optional, Type

from pydantic import BaseModel, Field

from shared.utils import get_utc_now


class JobName(str, Enum):
    """Fixed set of job types handled by the worker."""
    NEWS_COLLECTION = "news-collection"
    ARTICLE_GENERATION = "article-generation"
    ARTICLE_GENERATION_BATCH = "article-generation-batch"
    FETCH_FROM_X = "fetch-from-x"


class JobState(str, Enum):
    """Job lifecycle states."""
    CREATED = "created"
    ACTIVE = "active"
    RETRY = "retry"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATES = (JobState.COMPLETED.value, JobState.FAILED.value)
CLAIMABLE_STATES = (JobState.CREATED.value, JobState.RETRY.value)

# Per-type worker concurrency
JOB_CONCURRENCY: Dict[JobName, int] = {
    JobName.NEWS_COLLECTION: 1,
    JobName.ARTICLE_GENERATION: 2,
    JobName.ARTICLE_GENERATION_BATCH: 1,
    JobName.FETCH_FROM_X: 1,
}

Trigger = Literal["cron", "manual", "auto", "scheduled"]


class NewsCollectionJobData(BaseModel):
    triggered_by: Trigger = "scheduled"
    triggered_at: str = Field(default_factory=lambda: get_utc_now().isoformat())


class ArticleGenerationJobData(BaseModel):
    news_id: str = Field(..., min_length=1)
    triggered_by: Trigger = "manual"


class ArticleGenerationBatchJobData(BaseModel):
    limit: int = Field(default=10, ge=1, le=100)
    triggered_by: Trigger = "manual"


class FetchFromXJobData(BaseModel):
    triggered_by: Trigger = "manual"


JOB_PAYLOADS: Dict[JobName, Type[BaseModel]] = {
    JobName.NEWS_COLLECTION: NewsCollectionJobData,
    JobName.ARTICLE_GENERATION: ArticleGenerationJobData,
    JobName.ARTICLE_GENERATION_BATCH: ArticleGenerationBatchJobData,
    JobName.FETCH_FROM_X: FetchFromXJobData,
}


class NewsCollectionJobResult(BaseModel):
    collected: int
    saved: int
    duration: float


class ArticleGenerationJobResult(BaseModel):
    news_id: str
    success: bool
    error: Optional[str] = None


class ArticleGenerationBatchJobResult(BaseModel):
    generated: int
    limit: int


class FetchFromXJobResult(BaseModel):
    success: bool
    fetched: int = 0
    inserted: int = 0
    error: Optional[str] = None
