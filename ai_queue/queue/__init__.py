"""Queue system for AI tasks."""

from ai_queue.queue.manager import TaskManager, determine_task_types
from ai_queue.queue.models import TaskQueue
from ai_queue.queue.processor import (
    BaseTaskProcessor,
    DuplicateProcessorError,
    ProcessorError,
    ProcessorNotFoundError,
    ProcessorRegistry,
)
from ai_queue.queue.task import AITask
from ai_queue.queue.types import (
    BatchMessage,
    BatchSubmission,
    QueueHealth,
    QueueMetrics,
    QueueStatistics,
    TaskReport,
    TaskResult,
    TaskStatus,
    TaskType,
)
from ai_queue.queue.worker import QueueWorker

__all__ = [
    "AITask",
    "BaseTaskProcessor",
    "BatchMessage",
    "BatchSubmission",
    "DuplicateProcessorError",
    "ProcessorError",
    "ProcessorNotFoundError",
    "ProcessorRegistry",
    "QueueHealth",
    "QueueMetrics",
    "QueueStatistics",
    "QueueWorker",
    "TaskManager",
    "TaskQueue",
    "TaskReport",
    "TaskResult",
    "TaskStatus",
    "TaskType",
    "determine_task_types",
]
