"""
Structured logging for the search scoping service.

Development gets a colored console renderer, production gets one JSON
object per line. Configure once at startup, then log with keyword context:

    from core.logging import configure_logging, get_logger

    configure_logging(json_logs=settings.is_production)

    logger = get_logger(__name__)
    logger.info("Filter state saved", identity="search_scope_filters_abc", categories=2)
"""

import logging
import sys
from typing import Any, List, Optional

import structlog
from structlog.types import Processor


# Chatty third-party loggers kept at WARNING
_NOISY_LOGGERS = ("httpx", "httpcore", "urllib3", "uvicorn.access", "redis")


def _build_processors(json_logs: bool, include_timestamp: bool) -> List[Processor]:
    processors: List[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if include_timestamp:
        processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))

    if json_logs:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(
            colors=True,
            exception_formatter=structlog.dev.plain_traceback,
        ))
    return processors


def configure_logging(
    json_logs: bool = False,
    log_level: str = "INFO",
    include_timestamp: bool = True,
) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        json_logs: JSON lines (production) instead of console output
        log_level: Minimum level name (DEBUG, INFO, WARNING, ...)
        include_timestamp: Prefix events with an ISO timestamp
    """
    structlog.configure(
        processors=_build_processors(json_logs, include_timestamp),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    # basicConfig is a no-op once handlers exist; reconfiguring must still move the level
    logging.getLogger().setLevel(level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """Return a structured logger, typically get_logger(__name__)."""
    return structlog.get_logger(name)


# =============================================================================
# Request-scoped context
# =============================================================================

def bind_context(**kwargs: Any) -> None:
    """
    Attach key/value pairs to every log event in the current context.

    The tracing middleware binds request_id, method and path this way.
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Drop all bound context; call at the end of each request."""
    structlog.contextvars.clear_contextvars()


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


class LoggerMixin:
    """
    Gives a class a `logger` property named after the class.

        class FilterStateService(LoggerMixin):
            def save(self, key, state):
                self.logger.info("Saving filter state", key=key)
    """

    @property
    def logger(self) -> structlog.stdlib.BoundLogger:
        return get_logger(self.__class__.__name__)
