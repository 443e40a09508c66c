"""Shared queue types and models."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class TaskType(str, Enum):
    """AI task types understood by the queue."""

    INTENT_RECOGNITION = "IntentRecognition"
    TRANSLATION = "Translation"
    SPEECH_RECOGNITION = "SpeechRecognition"
    SENTIMENT_ANALYSIS = "SentimentAnalysis"
    AUTO_REPLY = "AutoReply"


class TaskStatus(str, Enum):
    """Task status enum."""

    PENDING = "Pending"
    PROCESSING = "Processing"
    COMPLETED = "Completed"
    FAILED = "Failed"
    CANCELLED = "Cancelled"

    @property
    def is_terminal(self) -> bool:
        """Whether no further transition can leave this status."""
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.CANCELLED)


class TaskResult(BaseModel):
    """Result of a completed task."""

    model_config = ConfigDict(frozen=True)

    task_id: str
    task_type: TaskType
    user_id: str
    message_id: str
    result: Any = None
    confidence: float
    processing_time_ms: int = Field(ge=0)
    created_at: datetime


class QueueMetrics(BaseModel):
    """Running queue counters."""

    total_tasks: int = 0
    pending_tasks: int = 0
    processing_tasks: int = 0
    completed_tasks: int = 0
    failed_tasks: int = 0
    average_processing_time_ms: float = 0.0
    tasks_per_type: dict[str, int] = Field(default_factory=dict)

    def record_processing_time(self, processing_time_ms: int) -> None:
        """Fold a new duration into the running average.

        Must be called after ``completed_tasks`` has been incremented.
        """
        n = self.completed_tasks
        if n <= 1:
            self.average_processing_time_ms = float(processing_time_ms)
        else:
            self.average_processing_time_ms = (
                self.average_processing_time_ms * (n - 1) + processing_time_ms
            ) / n


class QueueHealth(BaseModel):
    """Concurrency utilisation snapshot."""

    model_config = ConfigDict(frozen=True)

    max_concurrent_tasks: int
    current_concurrent_tasks: int
    utilization_rate: float


class QueueStatistics(BaseModel):
    """Immutable statistics snapshot as served by the status API."""

    model_config = ConfigDict(frozen=True)

    total_tasks: int
    pending_tasks: int
    processing_tasks: int
    completed_tasks: int
    failed_tasks: int
    retry_queue_size: int
    average_processing_time_ms: float
    tasks_per_type: dict[str, int]
    queue_health: QueueHealth


class TaskReport(BaseModel):
    """Task status report for remote clients."""

    task_id: str
    status: TaskStatus
    result: Any = None
    error: str | None = None


class BatchMessage(BaseModel):
    """One message of a batch submission."""

    user_id: str
    message_id: str
    text: str
    task_types: list[TaskType]
    metadata: dict[str, Any] | None = None


class BatchSubmission(BaseModel):
    """Outcome of a batch submission."""

    submitted_tasks: list[str] = Field(default_factory=list)
    failed_tasks: list[str] = Field(default_factory=list)
    total_messages: int = 0
    success_rate: float = 0.0
