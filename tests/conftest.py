"""Test configuration."""

import os
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

os.environ.setdefault("TESTING", "true")

from ai_queue.core.config import Settings  # noqa: E402
from ai_queue.core.logging import configure_logging  # noqa: E402
from ai_queue.queue.manager import TaskManager  # noqa: E402
from ai_queue.queue.models import TaskQueue  # noqa: E402
from ai_queue.queue.processor import BaseTaskProcessor, ProcessorRegistry  # noqa: E402
from ai_queue.queue.task import AITask  # noqa: E402
from ai_queue.queue.types import TaskType  # noqa: E402

configure_logging(Settings(), testing=True)

fixture = pytest.fixture

EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock for deterministic durations."""

    def __init__(self, start: datetime = EPOCH) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, milliseconds: int) -> None:
        self.now += timedelta(milliseconds=milliseconds)


class EchoProcessor(BaseTaskProcessor):
    """Async processor that echoes its input."""

    def __init__(self, task_type: TaskType = TaskType.INTENT_RECOGNITION) -> None:
        self._task_type = task_type
        self.calls: list[str] = []

    @property
    def task_type(self) -> TaskType:
        return self._task_type

    async def process(self, task: AITask) -> Any:
        self.calls.append(task.id)
        return {"echo": task.input_data}


class FailingProcessor(BaseTaskProcessor):
    """Sync processor that always raises."""

    def __init__(
        self, task_type: TaskType = TaskType.TRANSLATION, error: str = "model offline"
    ) -> None:
        self._task_type = task_type
        self.error = error
        self.calls = 0

    @property
    def task_type(self) -> TaskType:
        return self._task_type

    def process(self, task: AITask) -> Any:
        self.calls += 1
        raise RuntimeError(self.error)


@fixture
def clock() -> FakeClock:
    """Fake clock starting at a fixed instant."""
    return FakeClock()


@fixture
def queue(clock: FakeClock) -> TaskQueue:
    """Queue with default limits driven by the fake clock."""
    return TaskQueue(clock=clock)


@fixture
def make_task(clock: FakeClock) -> Callable[..., AITask]:
    """Factory for tasks created at the fake clock's current time."""

    def factory(
        task_type: TaskType = TaskType.INTENT_RECOGNITION,
        priority: int = 5,
        user_id: str = "user-1",
        message_id: str = "msg-1",
        **kwargs: Any,
    ) -> AITask:
        kwargs.setdefault("created_at", clock())
        return AITask(
            task_type=task_type,
            priority=priority,
            user_id=user_id,
            message_id=message_id,
            input_data=kwargs.pop("input_data", {"text": "hello"}),
            **kwargs,
        )

    return factory


@fixture
def test_settings() -> Settings:
    """Settings with fast worker timings."""
    return Settings(WORKER_POLL_INTERVAL=0.01, WORKER_ERROR_BACKOFF=0.02)


@fixture
def echo_processor() -> EchoProcessor:
    return EchoProcessor()


@fixture
def failing_processor() -> FailingProcessor:
    return FailingProcessor()


@fixture
def manager(
    test_settings: Settings,
    echo_processor: EchoProcessor,
    failing_processor: FailingProcessor,
) -> TaskManager:
    """Manager with an echo processor for intents and a failing one for translation."""
    registry = ProcessorRegistry([echo_processor, failing_processor])
    return TaskManager.from_settings(test_settings, registry=registry)
