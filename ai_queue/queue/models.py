"""Queue models and types."""

import heapq
from collections import OrderedDict, deque
from collections.abc import Callable, Iterator
from datetime import datetime, timedelta
from typing import Any

import structlog

from ai_queue.queue import metrics as queue_metrics
from ai_queue.queue.task import AITask, utcnow
from ai_queue.queue.types import (
    QueueHealth,
    QueueMetrics,
    QueueStatistics,
    TaskResult,
    TaskStatus,
    TaskType,
)

logger = structlog.get_logger(__name__)

# Heap entry: (priority, created_at timestamp, insertion sequence, task id)
HeapEntry = tuple[int, float, int, str]


class TaskQueue:
    """In-memory priority task queue.

    Tasks move between five containers and are never shared between them:

    - pending: priority heap ordered by (priority, created_at, insertion order)
    - processing: in-flight tasks keyed by id, capped at max_concurrent_tasks
    - retry queue: FIFO of failed tasks that still have retries left
    - completed: bounded, insertion-ordered history of results
    - failed: bounded, insertion-ordered archive of failed and cancelled tasks

    The queue is not thread-safe; callers serialize access (see TaskManager).
    """

    def __init__(
        self,
        max_concurrent_tasks: int = 10,
        max_completed_history: int = 1000,
        max_failed_history: int = 1000,
        default_confidence: float = 0.8,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize queue.

        Args:
            max_concurrent_tasks: Maximum number of in-flight tasks
            max_completed_history: Maximum number of results kept
            max_failed_history: Maximum number of failed/cancelled tasks kept
            default_confidence: Confidence attached to every result
            clock: Time source used for lifecycle timestamps

        Raises:
            ValueError: If any limit is smaller than 1
        """
        if max_concurrent_tasks < 1:
            raise ValueError("max_concurrent_tasks must be at least 1")
        if max_completed_history < 1:
            raise ValueError("max_completed_history must be at least 1")
        if max_failed_history < 1:
            raise ValueError("max_failed_history must be at least 1")

        self.max_concurrent_tasks = max_concurrent_tasks
        self.max_completed_history = max_completed_history
        self.max_failed_history = max_failed_history
        self.default_confidence = default_confidence
        self._clock = clock

        self._heap: list[HeapEntry] = []
        self._pending: dict[str, tuple[int, AITask]] = {}
        self._sequence = 0
        self._processing: dict[str, AITask] = {}
        self._retry_queue: deque[AITask] = deque()
        self._completed: OrderedDict[str, TaskResult] = OrderedDict()
        self._failed: OrderedDict[str, AITask] = OrderedDict()
        self._metrics = QueueMetrics()

    # ---- lifecycle ----

    def enqueue(self, task: AITask) -> str:
        """Add a task to the pending queue.

        Args:
            task: Task to enqueue

        Returns:
            Task ID

        Raises:
            ValueError: If a task with the same ID is already held by the queue
        """
        if self._owns(task.id):
            raise ValueError(f"Task {task.id} is already queued")

        task.status = TaskStatus.PENDING
        self._sequence += 1
        self._pending[task.id] = (self._sequence, task)
        heapq.heappush(
            self._heap,
            (task.priority, task.created_at.timestamp(), self._sequence, task.id),
        )

        task_type = task.task_type.value
        self._metrics.total_tasks += 1
        self._metrics.pending_tasks += 1
        self._metrics.tasks_per_type[task_type] = (
            self._metrics.tasks_per_type.get(task_type, 0) + 1
        )
        queue_metrics.TASKS_ENQUEUED.labels(task_type=task_type).inc()
        self._update_gauges()

        logger.debug(
            "task_enqueued",
            task_id=task.id,
            task_type=task_type,
            priority=task.priority,
            pending=len(self._pending),
        )
        return task.id

    def dequeue(self) -> AITask | None:
        """Claim the next task.

        Tasks waiting for a retry are served before fresh tasks so a steady
        stream of high-priority submissions cannot starve them.

        Returns:
            The claimed task, or None if the concurrency limit is reached or
            nothing is waiting
        """
        if len(self._processing) >= self.max_concurrent_tasks:
            return None

        if self._retry_queue:
            task = self._retry_queue.popleft()
        else:
            popped = self._pop_pending()
            if popped is None:
                return None
            task = popped
            self._metrics.pending_tasks = max(0, self._metrics.pending_tasks - 1)

        task.start_processing(self._clock())
        self._processing[task.id] = task
        self._metrics.processing_tasks += 1
        self._update_gauges()

        logger.debug(
            "task_dequeued",
            task_id=task.id,
            task_type=task.task_type.value,
            retry_count=task.retry_count,
        )
        return task

    def complete_task(self, task_id: str, output: Any) -> TaskResult | None:
        """Record a successful result for an in-flight task.

        Args:
            task_id: Task ID
            output: Output produced by the processor

        Returns:
            The stored result, or None if the task was not in flight
        """
        task = self._processing.pop(task_id, None)
        if task is None:
            logger.debug("complete_ignored_not_in_flight", task_id=task_id)
            return None

        task.complete(output, self._clock())
        completed_at = task.completed_at or self._clock()
        started_at = task.started_at or self._clock()
        processing_time_ms = max(
            0, (completed_at - started_at) // timedelta(milliseconds=1)
        )

        result = TaskResult(
            task_id=task.id,
            task_type=task.task_type,
            user_id=task.user_id,
            message_id=task.message_id,
            result=output,
            confidence=self.default_confidence,
            processing_time_ms=processing_time_ms,
            created_at=completed_at,
        )
        self._completed[task.id] = result
        evicted = self._trim(self._completed, self.max_completed_history)
        if evicted:
            queue_metrics.HISTORY_EVICTIONS.labels(store="completed").inc(evicted)

        self._metrics.processing_tasks = max(0, self._metrics.processing_tasks - 1)
        self._metrics.completed_tasks += 1
        self._metrics.record_processing_time(processing_time_ms)

        task_type = task.task_type.value
        queue_metrics.TASKS_COMPLETED.labels(task_type=task_type).inc()
        queue_metrics.PROCESSING_TIME.labels(task_type=task_type).observe(
            processing_time_ms / 1000
        )
        self._update_gauges()

        logger.debug(
            "task_completed",
            task_id=task.id,
            task_type=task_type,
            processing_time_ms=processing_time_ms,
        )
        return result

    def fail_task(
        self, task_id: str, error_message: str, *, allow_retry: bool = True
    ) -> TaskStatus | None:
        """Record a failed attempt for an in-flight task.

        Args:
            task_id: Task ID
            error_message: Error reported by the processor
            allow_retry: Set to False to fail the task regardless of retries left

        Returns:
            PENDING if the task was sent back for a retry, FAILED if it failed
            for good, None if the task was not in flight
        """
        task = self._processing.pop(task_id, None)
        if task is None:
            logger.debug("fail_ignored_not_in_flight", task_id=task_id)
            return None

        self._metrics.processing_tasks = max(0, self._metrics.processing_tasks - 1)
        task_type = task.task_type.value

        if allow_retry and task.can_retry():
            task.retry()
            self._retry_queue.append(task)
            queue_metrics.TASKS_RETRIED.labels(task_type=task_type).inc()
            self._update_gauges()
            logger.warning(
                "task_failed_will_retry",
                task_id=task.id,
                task_type=task_type,
                retry_count=task.retry_count,
                max_retries=task.max_retries,
                error=error_message,
            )
            return TaskStatus.PENDING

        task.fail(error_message, self._clock())
        self._archive_failed(task)
        self._metrics.failed_tasks += 1
        queue_metrics.TASKS_FAILED.labels(task_type=task_type).inc()
        self._update_gauges()
        logger.error(
            "task_failed",
            task_id=task.id,
            task_type=task_type,
            retry_count=task.retry_count,
            error=error_message,
        )
        return TaskStatus.FAILED

    def cancel_task(self, task_id: str) -> bool:
        """Cancel a task that has not finished yet.

        A running processor is not interrupted; its later report is ignored.

        Args:
            task_id: Task ID

        Returns:
            True if the task was found and cancelled
        """
        task = self._processing.pop(task_id, None)
        if task is not None:
            self._metrics.processing_tasks = max(
                0, self._metrics.processing_tasks - 1
            )
        else:
            task = self._remove_from_retry_queue(task_id)
            if task is None:
                entry = self._pending.pop(task_id, None)
                if entry is None:
                    return False
                # The heap entry goes stale and is skipped on pop.
                task = entry[1]
                self._metrics.pending_tasks = max(0, self._metrics.pending_tasks - 1)
                self._compact_heap()

        task.cancel()
        self._archive_failed(task)
        queue_metrics.TASKS_CANCELLED.labels(task_type=task.task_type.value).inc()
        self._update_gauges()
        logger.info("task_cancelled", task_id=task_id, task_type=task.task_type.value)
        return True

    # ---- queries ----

    def get_task_status(self, task_id: str) -> TaskStatus | None:
        """Get task status.

        Args:
            task_id: Task ID

        Returns:
            Task status if the queue still knows the task
        """
        if task_id in self._processing:
            return TaskStatus.PROCESSING
        if task_id in self._completed:
            return TaskStatus.COMPLETED
        if task_id in self._failed:
            return self._failed[task_id].status
        if any(task.id == task_id for task in self._retry_queue):
            return TaskStatus.PENDING
        if task_id in self._pending:
            return TaskStatus.PENDING
        return None

    def get_task_result(self, task_id: str) -> TaskResult | None:
        """Get the result of a completed task still held in history."""
        return self._completed.get(task_id)

    def get_task(self, task_id: str) -> AITask | None:
        """Get a task that has not completed (pending, in flight, retrying, failed)."""
        for task in self._iter_tasks():
            if task.id == task_id:
                return task
        return None

    def get_tasks_by_user(self, user_id: str) -> list[AITask]:
        """Tasks of a user that are pending, in flight, failed or retrying."""
        sources: list[list[AITask]] = [
            self._pending_in_order(),
            list(self._processing.values()),
            list(self._failed.values()),
            list(self._retry_queue),
        ]
        return [task for source in sources for task in source if task.user_id == user_id]

    def get_tasks_by_type(self, task_type: TaskType) -> list[AITask]:
        """Pending and in-flight tasks of one type."""
        sources: list[list[AITask]] = [
            self._pending_in_order(),
            list(self._processing.values()),
        ]
        return [
            task for source in sources for task in source if task.task_type == task_type
        ]

    def get_statistics(self) -> QueueStatistics:
        """Get an immutable statistics snapshot."""
        in_flight = len(self._processing)
        return QueueStatistics(
            total_tasks=self._metrics.total_tasks,
            pending_tasks=self._metrics.pending_tasks,
            processing_tasks=self._metrics.processing_tasks,
            completed_tasks=self._metrics.completed_tasks,
            failed_tasks=self._metrics.failed_tasks,
            retry_queue_size=len(self._retry_queue),
            average_processing_time_ms=self._metrics.average_processing_time_ms,
            tasks_per_type=dict(self._metrics.tasks_per_type),
            queue_health=QueueHealth(
                max_concurrent_tasks=self.max_concurrent_tasks,
                current_concurrent_tasks=in_flight,
                utilization_rate=in_flight / self.max_concurrent_tasks,
            ),
        )

    @property
    def metrics(self) -> QueueMetrics:
        """Copy of the running counters."""
        return self._metrics.model_copy(deep=True)

    # ---- administration ----

    def clear_completed(self) -> int:
        """Drop all stored results.

        Returns:
            Number of results removed
        """
        count = len(self._completed)
        self._completed.clear()
        logger.info("completed_history_cleared", count=count)
        return count

    def clear_failed(self) -> int:
        """Drop all failed and cancelled tasks.

        Returns:
            Number of tasks removed
        """
        count = len(self._failed)
        self._failed.clear()
        logger.info("failed_history_cleared", count=count)
        return count

    # ---- internals ----

    def _owns(self, task_id: str) -> bool:
        return (
            task_id in self._pending
            or task_id in self._processing
            or task_id in self._completed
            or task_id in self._failed
            or any(task.id == task_id for task in self._retry_queue)
        )

    def _pop_pending(self) -> AITask | None:
        while self._heap:
            _, _, sequence, task_id = heapq.heappop(self._heap)
            entry = self._pending.get(task_id)
            if entry is not None and entry[0] == sequence:
                del self._pending[task_id]
                self._compact_heap()
                return entry[1]
        return None

    def _compact_heap(self) -> None:
        # Rebuild once cancelled entries dominate the heap.
        if len(self._heap) > 2 * len(self._pending) + 64:
            live = {sequence for sequence, _ in self._pending.values()}
            self._heap = [entry for entry in self._heap if entry[2] in live]
            heapq.heapify(self._heap)

    def _pending_in_order(self) -> list[AITask]:
        ordered = sorted(
            self._pending.values(),
            key=lambda entry: (entry[1].priority, entry[1].created_at.timestamp(), entry[0]),
        )
        return [task for _, task in ordered]

    def _remove_from_retry_queue(self, task_id: str) -> AITask | None:
        for index, task in enumerate(self._retry_queue):
            if task.id == task_id:
                del self._retry_queue[index]
                return task
        return None

    def _archive_failed(self, task: AITask) -> None:
        self._failed[task.id] = task
        evicted = self._trim(self._failed, self.max_failed_history)
        if evicted:
            queue_metrics.HISTORY_EVICTIONS.labels(store="failed").inc(evicted)

    @staticmethod
    def _trim(store: "OrderedDict[str, Any]", limit: int) -> int:
        evicted = 0
        while len(store) > limit:
            store.popitem(last=False)
            evicted += 1
        return evicted

    def _iter_tasks(self) -> Iterator[AITask]:
        yield from self._processing.values()
        yield from self._failed.values()
        yield from self._retry_queue
        for _, task in self._pending.values():
            yield task

    def _update_gauges(self) -> None:
        queue_metrics.update_queue_gauges(
            pending=len(self._pending),
            processing=len(self._processing),
            retry_queue=len(self._retry_queue),
        )
