"""Task models."""

import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from ai_queue.queue.types import TaskStatus, TaskType


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class AITask(BaseModel):
    """AI task model.

    A task is owned by exactly one queue container at a time; the queue moves
    the object between containers and mutates it through the transition
    methods below.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    task_type: TaskType
    status: TaskStatus = TaskStatus.PENDING
    user_id: str
    message_id: str
    input_data: Any = None
    output_data: Any = None
    error_message: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    priority: int = Field(default=5, ge=0, le=255)
    retry_count: int = Field(default=0, ge=0)
    max_retries: int = Field(default=3, ge=0)
    metadata: dict[str, str] = Field(default_factory=dict)

    def start_processing(self, now: datetime | None = None) -> None:
        """Mark the task as claimed by a worker.

        Raises:
            ValueError: If the task already reached a terminal status
        """
        if self.status.is_terminal:
            raise ValueError(f"Task {self.id} is already {self.status.value}")
        self.status = TaskStatus.PROCESSING
        self.started_at = now or utcnow()

    def complete(self, output: Any, now: datetime | None = None) -> None:
        """Attach the output and mark the task completed."""
        self.status = TaskStatus.COMPLETED
        self.output_data = output
        self.completed_at = now or utcnow()

    def fail(self, error: str, now: datetime | None = None) -> None:
        """Mark the task terminally failed."""
        self.status = TaskStatus.FAILED
        self.error_message = error
        self.completed_at = now or utcnow()

    def can_retry(self) -> bool:
        """Whether another attempt is allowed."""
        return self.retry_count < self.max_retries

    def retry(self) -> None:
        """Reset the task for another attempt."""
        self.retry_count += 1
        self.status = TaskStatus.PENDING
        self.started_at = None
        self.completed_at = None
        self.error_message = None

    def cancel(self) -> None:
        if self.status.is_terminal:
            raise ValueError(f"Task {self.id} is already {self.status.value}")
        self.status = TaskStatus.CANCELLED
