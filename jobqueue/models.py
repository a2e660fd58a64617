"""Job queue record and status models."""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from shared.job_types import JobName, JobState


@dataclass
class Job:
    """What a handler receives: the job identity and its typed payload."""
    id: str
    name: JobName
    data: BaseModel
    retry_count: int = 0


class JobModel(BaseModel):
    """Job model for database representation."""
    id: str = Field(alias="_id")
    name: JobName
    state: JobState
    data: Dict[str, Any] = Field(default_factory=dict)
    output: Optional[Any] = None
    error: Optional[str] = None
    retry_count: int = 0
    retry_limit: int = 0
    start_after: Optional[datetime] = None
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        populate_by_name = True


class QueueStats(BaseModel):
    """Live job counts for one job type."""
    created: int = 0
    retry: int = 0
    active: int = 0
    completed: int = 0
    failed: int = 0

    @property
    def depth(self) -> int:
        """Jobs waiting to run or running."""
        return self.created + self.retry + self.active
