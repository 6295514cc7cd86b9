"""
Structured logging configuration using structlog.

Both structlog loggers and standard library loggers render through the same
processor chain, so request context bound in the API middleware (request_id,
method, path) shows up on every line emitted while a request is handled.
"""

import logging
import sys
from typing import Any, List, Optional

import structlog
from structlog.types import EventDict, Processor

SERVICE_NAME = 'ml-learning-platform-consent'
SERVICE_VERSION = '1.0.0'

_HANDLER_NAME = 'structlog'


def add_service_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Tag every log entry with the service name and version.

    Args:
        logger: The logger instance
        method_name: The name of the method being called
        event_dict: The event dictionary

    Returns:
        Modified event dictionary with service context
    """
    event_dict.setdefault('service', SERVICE_NAME)
    event_dict.setdefault('version', SERVICE_VERSION)
    return event_dict


def _shared_processors() -> List[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        add_service_context,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def configure_structlog(
    log_level: str = 'INFO',
    json_logs: bool = True,
    development_mode: bool = False
) -> None:
    """
    Configure structlog and the standard library root logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: Whether to output logs in JSON format
        development_mode: Whether to use development-friendly formatting
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    if development_mode or not json_logs:
        renderer: Processor = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    shared = _shared_processors()

    structlog.configure(
        processors=[structlog.stdlib.filter_by_level]
        + shared
        + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Standard library records (uvicorn, httpx, our own logging.getLogger
    # modules) go through the same renderer.
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.set_name(_HANDLER_NAME)

    root = logging.getLogger()
    for existing in list(root.handlers):
        if existing.get_name() == _HANDLER_NAME:
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(numeric_level)


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger
    """
    if name:
        return structlog.get_logger(name)
    return structlog.get_logger()


def bind_context(**kwargs: Any) -> None:
    """
    Bind context variables for all subsequent log entries in this context.

    Args:
        **kwargs: Context variables to bind
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all context variables from the logger."""
    structlog.contextvars.clear_contextvars()
