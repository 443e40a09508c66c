"""Prometheus metrics for the task queue."""

from prometheus_client import REGISTRY, Counter, Gauge, Histogram, generate_latest

# Task lifecycle metrics
TASKS_ENQUEUED = Counter(
    "ai_queue_tasks_enqueued_total",
    "Total number of tasks enqueued",
    ["task_type"],
)

TASKS_COMPLETED = Counter(
    "ai_queue_tasks_completed_total",
    "Total number of tasks completed",
    ["task_type"],
)

TASKS_FAILED = Counter(
    "ai_queue_tasks_failed_total",
    "Total number of tasks that exhausted their retries",
    ["task_type"],
)

TASKS_RETRIED = Counter(
    "ai_queue_tasks_retried_total",
    "Total number of failed attempts sent back to the retry queue",
    ["task_type"],
)

TASKS_CANCELLED = Counter(
    "ai_queue_tasks_cancelled_total",
    "Total number of tasks cancelled",
    ["task_type"],
)

HISTORY_EVICTIONS = Counter(
    "ai_queue_history_evictions_total",
    "Total number of entries pruned from bounded history",
    ["store"],  # completed, failed
)

# Queue depth metrics
PENDING_TASKS = Gauge(
    "ai_queue_pending_tasks",
    "Number of tasks waiting in the priority queue",
)

PROCESSING_TASKS = Gauge(
    "ai_queue_processing_tasks",
    "Number of tasks currently in flight",
)

RETRY_QUEUE_SIZE = Gauge(
    "ai_queue_retry_queue_size",
    "Number of tasks waiting for another attempt",
)

PROCESSING_TIME = Histogram(
    "ai_queue_processing_seconds",
    "Time between dequeue and completion",
    ["task_type"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)


def update_queue_gauges(pending: int, processing: int, retry_queue: int) -> None:
    """Update queue depth gauges.

    Args:
        pending: Tasks in the priority queue
        processing: Tasks in flight
        retry_queue: Tasks in the retry queue
    """
    PENDING_TASKS.set(pending)
    PROCESSING_TASKS.set(processing)
    RETRY_QUEUE_SIZE.set(retry_queue)


def get_metrics() -> bytes:
    """Get current metrics in Prometheus format.

    Returns:
        Metrics exposition data
    """
    return generate_latest(REGISTRY)
