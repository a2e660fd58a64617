"""Response schemas for API endpoints."""
from typing import Any, Dict, Optional
from datetime import datetime
from pydantic import BaseModel, Field


class CollectionResultSchema(BaseModel):
    """Counts from one collection cycle."""
    collected: int = Field(..., description="Raw items read from all feeds")
    saved: int = Field(..., description="New items persisted, including the tip")


class CollectionStatusResponse(BaseModel):
    """Response schema for the in-process collection status."""
    is_collecting: bool = Field(..., description="Whether a cycle is running right now")
    last_run: Optional[datetime] = Field(None, description="When the last cycle finished")
    last_result: Optional[CollectionResultSchema] = Field(None, description="Counts from the last successful cycle")
    next_scheduled_run: datetime = Field(..., description="Next top-of-hour trigger")


class TriggerResponse(BaseModel):
    """Response schema for a manual collection trigger."""
    success: bool = Field(..., description="Whether a new cycle was started")
    message: str


class JobEnqueueResponse(BaseModel):
    """Response schema for a queued job."""
    success: bool = Field(..., description="Whether a new job was created")
    job_id: Optional[str] = Field(None, description="Job identifier, absent when an identical job is pending")
    message: str


class JobStatusResponse(BaseModel):
    """Response schema for job status."""
    job_id: str = Field(..., description="Unique job identifier")
    name: str = Field(..., description="Job type")
    state: str = Field(..., description="Current job state")
    data: Dict[str, Any] = Field(default_factory=dict, description="Job payload")
    output: Optional[Any] = Field(None, description="Handler result once completed")
    error: Optional[str] = Field(None, description="Last failure message")
    retry_count: int = Field(..., description="Failed attempts so far")
    retry_limit: int = Field(..., description="Retries allowed after the first attempt")
    created_at: datetime = Field(..., description="Job creation timestamp")
    started_at: Optional[datetime] = Field(None, description="Last claim timestamp")
    completed_at: Optional[datetime] = Field(None, description="Completion or failure timestamp")


class QueueCounts(BaseModel):
    """Job counts by state for one job type."""
    created: int = 0
    retry: int = 0
    active: int = 0
    completed: int = 0
    failed: int = 0
    depth: int = Field(0, description="Jobs waiting or running")


class QueueStatsResponse(BaseModel):
    """Response schema for queue statistics."""
    queues: Dict[str, QueueCounts] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    """Schema for error responses."""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Detailed error information")
