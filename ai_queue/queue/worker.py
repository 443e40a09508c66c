"""Queue worker implementation."""

import asyncio
import inspect
from typing import TYPE_CHECKING, Any

import structlog

from ai_queue.core.logging import get_task_logger
from ai_queue.queue.processor import ProcessorNotFoundError
from ai_queue.queue.task import AITask

if TYPE_CHECKING:
    from ai_queue.queue.manager import TaskManager

logger = structlog.get_logger(__name__)


class QueueWorker:
    """Polling dispatcher that feeds queued tasks to registered processors.

    The loop claims tasks until the queue reports nothing available, then
    sleeps ``poll_interval`` seconds. Unexpected queue errors are logged and
    followed by a longer ``error_backoff`` pause. Each claimed task runs as its
    own asyncio task, so up to ``max_concurrent_tasks`` run at once.
    """

    def __init__(
        self,
        manager: "TaskManager",
        poll_interval: float = 0.1,
        error_backoff: float = 1.0,
        worker_id: str | None = None,
    ) -> None:
        """Initialize worker.

        Args:
            manager: Task manager owning the queue and processor registry
            poll_interval: Seconds to sleep when no task is available
            error_backoff: Seconds to sleep after a queue error
            worker_id: Optional worker ID for log context
        """
        if poll_interval <= 0:
            raise ValueError("poll_interval must be greater than 0")
        if error_backoff <= 0:
            raise ValueError("error_backoff must be greater than 0")

        self.manager = manager
        self.poll_interval = poll_interval
        self.error_backoff = error_backoff
        self.worker_id = worker_id or "worker"
        self._stop_event = asyncio.Event()
        self._loop_task: asyncio.Task[None] | None = None
        self._executions: set[asyncio.Task[None]] = set()

    @property
    def is_running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    @property
    def active_executions(self) -> int:
        return len(self._executions)

    def start(self) -> None:
        """Start the dispatch loop in the background."""
        if self.is_running:
            return
        self._stop_event.clear()
        self._loop_task = asyncio.create_task(self.run())

    async def run(self) -> None:
        """Run the dispatch loop until ``stop`` is called."""
        logger.info("worker_started", worker_id=self.worker_id)
        try:
            while not self._stop_event.is_set():
                try:
                    task = await self.manager.dequeue()
                except Exception:
                    logger.exception("queue_dequeue_failed", worker_id=self.worker_id)
                    await self._sleep(self.error_backoff)
                    continue

                if task is None:
                    await self._sleep(self.poll_interval)
                    continue

                execution = asyncio.create_task(self.execute(task))
                self._executions.add(execution)
                execution.add_done_callback(self._executions.discard)
        finally:
            logger.info("worker_stopped", worker_id=self.worker_id)

    async def process_next(self) -> AITask | None:
        """Claim one task and process it to completion.

        Returns:
            The claimed task, or None if nothing was available
        """
        task = await self.manager.dequeue()
        if task is None:
            return None
        await self.execute(task)
        return task

    async def execute(self, task: AITask) -> None:
        """Run the processor for a claimed task and report the outcome.

        Args:
            task: Task returned by dequeue
        """
        task_logger = get_task_logger(
            task.id, task_type=task.task_type.value, worker_id=self.worker_id
        )
        try:
            processor = self.manager.registry.get(task.task_type)
        except ProcessorNotFoundError as e:
            task_logger.warning("unsupported_task_type")
            await self.manager.fail_task(task.id, str(e), allow_retry=False)
            return

        task_logger.debug("task_processing_started", processor=processor.name)
        try:
            output = await self._invoke(processor.process, task)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            task_logger.error("task_processing_failed", error=str(e))
            await self.manager.fail_task(task.id, str(e) or type(e).__name__)
            return

        await self.manager.complete_task(task.id, output)
        task_logger.debug("task_processing_finished")

    async def stop(self) -> None:
        """Stop the loop and wait for running executions to finish."""
        self._stop_event.set()
        if self._loop_task is not None:
            await self._loop_task
            self._loop_task = None
        if self._executions:
            await asyncio.gather(*list(self._executions), return_exceptions=True)

    async def _invoke(self, func: Any, task: AITask) -> Any:
        if inspect.iscoroutinefunction(func):
            return await func(task)
        # Blocking processors run in the default executor.
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(None, func, task)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def _sleep(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass
