# Schemas module
from .responses import (
    CollectionResultSchema,
    CollectionStatusResponse,
    TriggerResponse,
    JobEnqueueResponse,
    JobStatusResponse,
    QueueCounts,
    QueueStatsResponse,
    ErrorResponse
)

__all__ = [
    "CollectionResultSchema",
    "CollectionStatusResponse",
    "TriggerResponse",
    "JobEnqueueResponse",
    "JobStatusResponse",
    "QueueCounts",
    "QueueStatsResponse",
    "ErrorResponse"
]
