"""Logging configuration module."""

from logging import (
    CRITICAL,
    DEBUG,
    ERROR,
    INFO,
    WARNING,
    Handler,
    Logger,
    StreamHandler,
    getLogger,
)
from typing import cast

import structlog
from structlog import dev, processors, stdlib
from structlog.processors import JSONRenderer, TimeStamper, dict_tracebacks
from structlog.stdlib import BoundLogger
from structlog.types import EventDict, Processor, WrappedLogger

from ai_queue.core.config import Settings

# Define log levels
LOG_LEVELS: dict[str, int] = {
    "debug": DEBUG,
    "info": INFO,
    "warning": WARNING,
    "error": ERROR,
    "critical": CRITICAL,
}


def configure_logging(
    settings: Settings, testing: bool = False, level: str | None = None
) -> None:
    """Configure structured logging for the application.

    Args:
        settings: Settings providing the log level, renderer and service name
        testing: Whether the application is running in test mode
        level: Log level name, defaults to ``settings.LOG_LEVEL``
    """
    log_level = LOG_LEVELS.get((level or settings.LOG_LEVEL).lower(), INFO)
    json_logs = settings.JSON_LOGS and not testing

    root_logger: Logger = getLogger()
    root_logger.setLevel(log_level)

    queue_logger: Logger = getLogger("ai_queue")
    queue_logger.setLevel(log_level)

    handler: Handler = StreamHandler()
    handler.setLevel(log_level)

    shared_processors: list[Processor] = [
        stdlib.add_logger_name,
        stdlib.add_log_level,
        stdlib.PositionalArgumentsFormatter(),
        TimeStamper(fmt="%Y-%m-%d %H:%M:%S.%f"),
        add_service_metadata(settings),
        dict_tracebacks,
    ]

    structlog.configure(
        processors=[
            stdlib.filter_by_level,
            *shared_processors,
            processors.format_exc_info,
            JSONRenderer() if json_logs else processors.KeyValueRenderer(),
        ],
        context_class=dict,
        logger_factory=stdlib.LoggerFactory(),
        wrapper_class=stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = stdlib.ProcessorFormatter(
        processor=processors.JSONRenderer() if json_logs else dev.ConsoleRenderer(),
        foreign_pre_chain=shared_processors,
    )
    handler.setFormatter(formatter)

    # Clear existing handlers to prevent duplicates
    root_logger.handlers = []
    queue_logger.handlers = []

    root_logger.addHandler(handler)
    queue_logger.propagate = False
    queue_logger.addHandler(handler)


def get_logger(name: str | None = None) -> BoundLogger:
    """Get a configured logger instance.

    Args:
        name: Optional logger name

    Returns:
        A structured logger instance.
    """
    return cast(BoundLogger, structlog.get_logger(name))


def get_task_logger(task_id: str | None = None, **context: str) -> BoundLogger:
    """Get a logger bound to a task.

    Args:
        task_id: Optional task ID to bind to logger
        **context: Extra key/value pairs to bind (task_type, user_id, ...)

    Returns:
        Configured logger with task context
    """
    logger: BoundLogger = get_logger("ai_queue.task")
    if task_id:
        logger = logger.bind(task_id=task_id)
    if context:
        logger = logger.bind(**context)
    return logger


def add_service_metadata(settings: Settings) -> Processor:
    """Create processor that stamps the service name and version on entries.

    Args:
        settings: Settings providing the service name and version

    Returns:
        Processor that adds service context
    """

    def processor(
        logger: WrappedLogger,
        method_name: str,
        event_dict: EventDict,
    ) -> EventDict:
        event_dict.setdefault("service", settings.app_name)
        event_dict.setdefault("version", settings.version)
        return event_dict

    return processor
