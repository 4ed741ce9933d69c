'''
Structured logging configuration for hedgesync.

Configures structlog with orjson serialization, asyncio-safe context
variable binding, and ISO 8601 UTC timestamps. Stdlib loggers used by
the core and adapters are routed through the same JSON renderer, so
fields bound with bind_context() appear on their lines too. Call
configure_logging() once at process startup.
'''

import logging
import sys
from typing import Any, TextIO

import orjson
import structlog

__all__ = ['bind_context', 'clear_context', 'configure_logging', 'get_logger']

_SHARED_PROCESSORS: list[structlog.types.Processor] = [
    structlog.contextvars.merge_contextvars,
    structlog.processors.add_log_level,
    structlog.processors.TimeStamper(fmt='iso', utc=True),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
    structlog.processors.UnicodeDecoder(),
]


def _orjson_dumps_str(*args: Any, **kwargs: Any) -> str:

    return orjson.dumps(*args, **kwargs).decode()


def configure_logging(log_level: str = 'INFO', stream: TextIO | None = None) -> None:

    '''
    Configure structlog and the root stdlib logger for JSON output.

    Args:
        log_level (str): Minimum log level, unknown names fall back to INFO
        stream (TextIO | None): Destination of stdlib log lines, defaults to stdout
    '''

    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            *_SHARED_PROCESSORS,
            structlog.processors.JSONRenderer(serializer=orjson.dumps),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.BytesLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.JSONRenderer(serializer=_orjson_dumps_str),
        ],
        foreign_pre_chain=_SHARED_PROCESSORS,
    )

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(numeric_level)


def get_logger(name: str) -> Any:

    '''
    Return a structlog logger bound to a component name.

    Args:
        name (str): Logger name, conventionally the module path

    Returns:
        Any: Bound structlog logger
    '''

    return structlog.get_logger(name)


def bind_context(**fields: Any) -> None:

    '''
    Bind fields to every log line emitted from the current context.

    Args:
        **fields (Any): Key-value pairs to attach, never secrets
    '''

    structlog.contextvars.bind_contextvars(**fields)


def clear_context() -> None:

    '''Remove all fields bound with bind_context().'''

    structlog.contextvars.clear_contextvars()
