"""Task processor contract and registry."""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Iterator
from typing import Any

import structlog

from ai_queue.queue.task import AITask
from ai_queue.queue.types import TaskType

logger = structlog.get_logger(__name__)


class ProcessorError(Exception):
    """Base class for processor registry errors."""


class ProcessorNotFoundError(ProcessorError):
    """Raised when no processor is registered for a task type."""

    def __init__(self, task_type: TaskType) -> None:
        super().__init__(f"No processor registered for task type {task_type.value}")
        self.task_type = task_type


class DuplicateProcessorError(ProcessorError):
    """Raised when a task type already has a processor."""

    def __init__(self, task_type: TaskType) -> None:
        super().__init__(f"Processor already registered for task type {task_type.value}")
        self.task_type = task_type


class BaseTaskProcessor(ABC):
    """Base class for task processors.

    A processor performs the actual work for one task type. ``process`` may
    return the output directly or a coroutine resolving to it; raising any
    exception marks the attempt as failed with ``str(exc)`` as the error.
    """

    @property
    @abstractmethod
    def task_type(self) -> TaskType:
        """The task type this processor handles."""

    @property
    def name(self) -> str:
        """Human readable processor name."""
        return type(self).__name__

    @abstractmethod
    def process(self, task: AITask) -> Any | Awaitable[Any]:
        """Process a task.

        Args:
            task: The in-flight task

        Returns:
            Output payload, or an awaitable resolving to it
        """
        raise NotImplementedError


class ProcessorRegistry:
    """Mapping from task type to processor."""

    def __init__(self, processors: list[BaseTaskProcessor] | None = None) -> None:
        self._processors: dict[TaskType, BaseTaskProcessor] = {}
        for processor in processors or []:
            self.register(processor)

    def register(self, processor: BaseTaskProcessor, replace: bool = False) -> None:
        """Register a processor for its task type.

        Args:
            processor: Processor to register
            replace: Whether to overwrite an existing registration

        Raises:
            DuplicateProcessorError: If the type is taken and replace is False
        """
        task_type = processor.task_type
        if task_type in self._processors and not replace:
            raise DuplicateProcessorError(task_type)
        self._processors[task_type] = processor
        logger.info(
            "processor_registered", task_type=task_type.value, processor=processor.name
        )

    def unregister(self, task_type: TaskType) -> BaseTaskProcessor | None:
        return self._processors.pop(task_type, None)

    def get(self, task_type: TaskType) -> BaseTaskProcessor:
        """Get the processor for a task type.

        Raises:
            ProcessorNotFoundError: If nothing is registered for the type
        """
        try:
            return self._processors[task_type]
        except KeyError:
            raise ProcessorNotFoundError(task_type) from None

    def supported_types(self) -> list[TaskType]:
        return list(self._processors)

    def __contains__(self, task_type: object) -> bool:
        return task_type in self._processors

    def __iter__(self) -> Iterator[BaseTaskProcessor]:
        return iter(self._processors.values())

    def __len__(self) -> int:
        return len(self._processors)
