"""Task manager: the shared handle collaborators use to reach the queue."""

import asyncio
from collections.abc import Iterable
from typing import Any

import structlog

from ai_queue.core.config import Settings
from ai_queue.queue.models import TaskQueue
from ai_queue.queue.processor import ProcessorRegistry
from ai_queue.queue.task import AITask
from ai_queue.queue.types import (
    BatchMessage,
    BatchSubmission,
    QueueStatistics,
    TaskReport,
    TaskResult,
    TaskStatus,
    TaskType,
)
from ai_queue.queue.worker import QueueWorker

logger = structlog.get_logger(__name__)

# Task types run for an incoming chat message, by content type
CONTENT_TYPE_TASKS: dict[str, list[TaskType]] = {
    "text": [TaskType.INTENT_RECOGNITION, TaskType.TRANSLATION],
    "voice": [TaskType.SPEECH_RECOGNITION, TaskType.INTENT_RECOGNITION],
    "image": [],
}
DEFAULT_CONTENT_TASKS: list[TaskType] = [TaskType.INTENT_RECOGNITION]


def determine_task_types(content_type: str) -> list[TaskType]:
    """Pick the task types to run for a message content type."""
    return list(CONTENT_TYPE_TASKS.get(content_type, DEFAULT_CONTENT_TASKS))


class TaskManager:
    """Lock-guarded access to a TaskQueue plus processor wiring.

    Construct one instance at startup and pass it to every collaborator.
    Every queue call runs under a single ``asyncio.Lock`` so no two operations
    interleave.
    """

    def __init__(
        self,
        queue: TaskQueue | None = None,
        registry: ProcessorRegistry | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.queue = queue or TaskQueue(
            max_concurrent_tasks=self.settings.MAX_CONCURRENT_TASKS,
            max_completed_history=self.settings.MAX_COMPLETED_HISTORY,
            max_failed_history=self.settings.MAX_FAILED_HISTORY,
            default_confidence=self.settings.DEFAULT_CONFIDENCE,
        )
        self.registry = registry or ProcessorRegistry()
        self._lock = asyncio.Lock()
        self._worker: QueueWorker | None = None

    @classmethod
    def from_settings(
        cls, settings: Settings, registry: ProcessorRegistry | None = None
    ) -> "TaskManager":
        return cls(registry=registry, settings=settings)

    # ---- submission ----

    async def submit_task(self, task: AITask) -> str:
        """Enqueue a task.

        Args:
            task: Task to enqueue

        Returns:
            Task ID for later polling
        """
        async with self._lock:
            return self.queue.enqueue(task)

    async def create_task(
        self,
        task_type: TaskType,
        user_id: str,
        message_id: str,
        input_data: Any,
        priority: int | None = None,
        max_retries: int | None = None,
        metadata: dict[str, str] | None = None,
    ) -> str:
        """Build a task with configured defaults and enqueue it.

        Returns:
            Task ID
        """
        task = AITask(
            task_type=task_type,
            user_id=user_id,
            message_id=message_id,
            input_data=input_data,
            priority=self.settings.DEFAULT_PRIORITY if priority is None else priority,
            max_retries=(
                self.settings.DEFAULT_MAX_RETRIES if max_retries is None else max_retries
            ),
            metadata=metadata or {},
        )
        return await self.submit_task(task)

    async def submit_batch(
        self, messages: Iterable[BatchMessage], priority: int | None = None
    ) -> BatchSubmission:
        """Submit one task per (message, task type) pair.

        Args:
            messages: Messages to process
            priority: Priority for every created task

        Returns:
            Submitted task IDs, failures as ``<message_id>:<TaskType>`` and the
            success rate
        """
        messages = list(messages)
        submission = BatchSubmission(total_messages=len(messages))

        for message in messages:
            for task_type in message.task_types:
                input_data = {"text": message.text, "metadata": message.metadata}
                try:
                    task_id = await self.create_task(
                        task_type,
                        message.user_id,
                        message.message_id,
                        input_data,
                        priority=priority,
                    )
                except ValueError as e:
                    logger.error(
                        "batch_task_submit_failed",
                        message_id=message.message_id,
                        task_type=task_type.value,
                        error=str(e),
                    )
                    submission.failed_tasks.append(
                        f"{message.message_id}:{task_type.value}"
                    )
                else:
                    submission.submitted_tasks.append(task_id)

        attempted = len(submission.submitted_tasks) + len(submission.failed_tasks)
        if messages and attempted:
            submission.success_rate = len(submission.submitted_tasks) / attempted
        return submission

    async def submit_message(
        self,
        user_id: str,
        message_id: str,
        content: str,
        content_type: str,
        priority: int | None = None,
    ) -> list[str]:
        """Submit the AI tasks an incoming chat message calls for.

        Args:
            user_id: Sender
            message_id: Message ID
            content: Message text, or the audio file path for voice messages
            content_type: text, voice, image, ...
            priority: Optional priority override

        Returns:
            IDs of the submitted tasks
        """
        task_ids: list[str] = []
        for task_type in determine_task_types(content_type):
            input_data = self._message_input(task_type, content)
            task_id = await self.create_task(
                task_type, user_id, message_id, input_data, priority=priority
            )
            logger.info(
                "message_task_submitted",
                message_id=message_id,
                task_id=task_id,
                task_type=task_type.value,
            )
            task_ids.append(task_id)
        return task_ids

    def _message_input(self, task_type: TaskType, content: str) -> dict[str, Any]:
        if task_type == TaskType.TRANSLATION:
            return {
                "text": content,
                "source_language": "auto",
                "target_language": self.settings.TRANSLATION_TARGET_LANGUAGE,
            }
        if task_type == TaskType.SPEECH_RECOGNITION:
            return {"audio_file_path": content}
        return {"text": content}

    # ---- dispatch ----

    async def dequeue(self) -> AITask | None:
        """Claim the next task.

        Returns:
            A copy of the claimed task; the queue keeps the original
        """
        async with self._lock:
            task = self.queue.dequeue()
        return task.model_copy(deep=True) if task else None

    async def complete_task(self, task_id: str, output: Any) -> TaskResult | None:
        async with self._lock:
            return self.queue.complete_task(task_id, output)

    async def fail_task(
        self, task_id: str, error_message: str, *, allow_retry: bool = True
    ) -> TaskStatus | None:
        async with self._lock:
            return self.queue.fail_task(task_id, error_message, allow_retry=allow_retry)

    async def cancel_task(self, task_id: str) -> bool:
        async with self._lock:
            return self.queue.cancel_task(task_id)

    # ---- queries ----

    async def get_task_status(self, task_id: str) -> TaskStatus | None:
        async with self._lock:
            return self.queue.get_task_status(task_id)

    async def get_task_result(self, task_id: str) -> TaskResult | None:
        async with self._lock:
            return self.queue.get_task_result(task_id)

    async def get_task_report(self, task_id: str) -> TaskReport | None:
        """Status, result and error of a task as the status API reports them.

        Returns:
            Report, or None if the queue does not know the task
        """
        async with self._lock:
            status = self.queue.get_task_status(task_id)
            if status is None:
                return None
            result = self.queue.get_task_result(task_id)
            task = self.queue.get_task(task_id)

        error = task.error_message if task and status == TaskStatus.FAILED else None
        return TaskReport(
            task_id=task_id,
            status=status,
            result=result.result if result else None,
            error=error,
        )

    async def get_statistics(self) -> QueueStatistics:
        async with self._lock:
            return self.queue.get_statistics()

    async def get_tasks_by_user(self, user_id: str) -> list[AITask]:
        async with self._lock:
            return [task.model_copy(deep=True) for task in self.queue.get_tasks_by_user(user_id)]

    async def get_tasks_by_type(self, task_type: TaskType) -> list[AITask]:
        async with self._lock:
            return [
                task.model_copy(deep=True)
                for task in self.queue.get_tasks_by_type(task_type)
            ]

    async def clear_completed(self) -> int:
        async with self._lock:
            return self.queue.clear_completed()

    async def clear_failed(self) -> int:
        async with self._lock:
            return self.queue.clear_failed()

    # ---- worker ----

    @property
    def worker(self) -> QueueWorker | None:
        return self._worker

    def start_processing(self) -> QueueWorker:
        """Start a background worker bound to this manager.

        Returns:
            The running worker
        """
        if self._worker is None:
            self._worker = QueueWorker(
                self,
                poll_interval=self.settings.WORKER_POLL_INTERVAL,
                error_backoff=self.settings.WORKER_ERROR_BACKOFF,
            )
        self._worker.start()
        return self._worker

    async def stop_processing(self) -> None:
        if self._worker is not None:
            await self._worker.stop()
