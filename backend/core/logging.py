"""Structured logging for the document store API

structlog renders every record, including records emitted through the
stdlib `logging` module by uvicorn and pymongo. Records carry:

- the process name and version (`service`, `version`)
- the layer that emitted them (`docstore.api`, `docstore.db`, ...)
- the request scope bound by RequestLoggingMiddleware (`correlation_id`,
  `method`, `path`, `client_ip`)

Document fields that hold credentials (passwords, tokens) are redacted at
any nesting depth, so repositories may log documents as they are.
"""
import logging
import sys
from contextlib import contextmanager
from functools import cache
from typing import Iterable, Iterator
from uuid import uuid4

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

SERVICE_NAME = "docstore-crud"
SERVICE_VERSION = "1.0.0"

REDACTED = "[REDACTED]"
DEFAULT_REDACTED_KEYS = frozenset({"password", "token", "secret", "authorization", "cookie"})

# Third-party loggers kept at WARNING; their INFO output duplicates ours.
QUIET_LOGGERS = ("uvicorn.access", "pymongo", "pymongo.command", "pymongo.connection")


class KeyRedactor:
    """Processor replacing the value of credential-like keys.

    Matching is case-insensitive on the key alone; nested mappings and
    lists are walked up to `max_depth` levels.
    """

    def __init__(self, keys: Iterable[str] = DEFAULT_REDACTED_KEYS, max_depth: int = 6):
        self.keys = frozenset(key.lower() for key in keys)
        self.max_depth = max_depth

    def redact(self, value, depth: int = 0):
        if depth >= self.max_depth:
            return value
        if isinstance(value, dict):
            return {
                key: REDACTED if isinstance(key, str) and key.lower() in self.keys
                else self.redact(item, depth + 1)
                for key, item in value.items()
            }
        if isinstance(value, (list, tuple)):
            return [self.redact(item, depth + 1) for item in value]
        return value

    def __call__(self, logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        return self.redact(event_dict)


def stamp_service(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("service", SERVICE_NAME)
    event_dict.setdefault("version", SERVICE_VERSION)
    return event_dict


def build_pre_chain(redacted_keys: Iterable[str] = DEFAULT_REDACTED_KEYS) -> list[Processor]:
    """Processors shared by structlog loggers and foreign stdlib records."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        stamp_service,
        KeyRedactor(redacted_keys),
    ]


def configure_logging(
    level: str = "INFO",
    json_logs: bool = False,
    redacted_keys: Iterable[str] = DEFAULT_REDACTED_KEYS,
) -> None:
    """Route structlog and stdlib logging through one stdout handler.

    Args:
        level: minimum level name; unknown names fall back to INFO
        json_logs: one JSON object per line instead of colored console output
        redacted_keys: keys whose values never reach the output
    """
    pre_chain = build_pre_chain(redacted_keys)
    renderer: Processor = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer(colors=True, exception_formatter=structlog.dev.plain_traceback)
    )

    structlog.configure(
        processors=[
            *pre_chain,
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    ))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # uvicorn propagates to root once its own handlers are gone
    for name in ("uvicorn", "uvicorn.error"):
        logging.getLogger(name).handlers = []
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def generate_correlation_id() -> str:
    """Short random id tying together the records of one request."""
    return uuid4().hex[:8]


def bind_context(**kwargs) -> None:
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


@contextmanager
def request_scope(correlation_id: str, **fields) -> Iterator[str]:
    """Bind a request's identity to every record logged inside the block."""
    clear_context()
    bind_context(correlation_id=correlation_id, **fields)
    try:
        yield correlation_id
    finally:
        clear_context()


@cache
def layer_logger(layer: str) -> structlog.stdlib.BoundLogger:
    """Logger of one application layer, named `docstore.<layer>`."""
    return get_logger(f"docstore.{layer}")


def api_logger() -> structlog.stdlib.BoundLogger:
    """HTTP layer: middleware, routers, controllers."""
    return layer_logger("api")


def db_logger() -> structlog.stdlib.BoundLogger:
    """Connection lifecycle and collection operations."""
    return layer_logger("db")


def service_logger() -> structlog.stdlib.BoundLogger:
    return layer_logger("service")


def docs_logger() -> structlog.stdlib.BoundLogger:
    """Documentation generation and serving."""
    return layer_logger("docs")
