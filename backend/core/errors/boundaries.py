"""Error Boundary Mappers

Provides module boundary error mapping for clean error propagation.
Native driver exceptions never cross the repository boundary: they are
mapped to typed AppErrors here, and AppErrors raised inside the boundary
pass through untouched.
"""
from __future__ import annotations

import re
from functools import wraps
from typing import Any, Awaitable, Callable, Mapping, ParamSpec, TypeVar

from pymongo.errors import (
    DuplicateKeyError,
    ExecutionTimeout,
    NetworkTimeout,
    PyMongoError,
    ServerSelectionTimeoutError,
)

from core.logging import db_logger

from .builders import db_error, duplicate_key
from .types import AppError

P = ParamSpec("P")
T = TypeVar("T")

log = db_logger()

DUPLICATE_KEY_CODE = 11000
UNIQUE_INDEX_PREFIX = "idx_unique_"

_INDEX_PATTERN = re.compile(r"index:\s+(\S+)")


def extract_duplicate_field(error_message: str, details: Mapping[str, Any] | None = None) -> str:
    """Extract the offending field from a duplicate key error.

    The violated index name is matched in the native message
    ("... index: idx_unique_name dup key: { name: "Laptop" }") and the
    unique-index prefix stripped. Falls back to the keyPattern details.
    """
    if match := _INDEX_PATTERN.search(error_message or ""):
        index_name = match.group(1)
        if index_name.startswith(UNIQUE_INDEX_PREFIX):
            return index_name[len(UNIQUE_INDEX_PREFIX):]
        return index_name
    if details and isinstance(key_pattern := details.get("keyPattern"), Mapping) and key_pattern:
        return str(next(iter(key_pattern)))
    return "unknown field"


class DatabaseErrorMapper:
    """Maps driver exceptions to clean API errors.

    DuplicateKeyError becomes DuplicateError naming the field, every other
    PyMongoError becomes DatabaseError with the original cause attached.
    """

    def __init__(self, origin: str = "database", messages: Mapping[str, str] | None = None):
        self.origin = origin
        self.messages = dict(messages or {})

    def map_exception(self, exc: BaseException) -> AppError:
        if isinstance(exc, AppError):
            return exc
        if isinstance(exc, DuplicateKeyError) or (
            isinstance(exc, PyMongoError) and getattr(exc, "code", None) == DUPLICATE_KEY_CODE
        ):
            return self._map_duplicate_key(exc)
        if isinstance(exc, (ServerSelectionTimeoutError, NetworkTimeout, ExecutionTimeout)):
            return db_error("Database operation timed out", cause=exc)
        return db_error(cause=exc)

    def _map_duplicate_key(self, exc: PyMongoError) -> AppError:
        details = getattr(exc, "details", None)
        field = extract_duplicate_field(str(exc), details)
        return duplicate_key(field, message=self.messages.get(field), cause=exc)


def map_db_errors(
    fn: Callable[P, Awaitable[T]],
) -> Callable[P, Awaitable[T]]:
    """Decorator mapping driver errors at repository method boundaries.

    The bound instance must expose an `error_mapper` attribute.

    Usage:
        class MongoRepository:
            @map_db_errors
            async def read(self, entity_id: str) -> dict | None:
                ...
    """
    @wraps(fn)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
        try:
            return await fn(*args, **kwargs)
        except AppError:
            raise
        except PyMongoError as exc:
            mapper: DatabaseErrorMapper = getattr(args[0], "error_mapper", None) or DatabaseErrorMapper()
            error = mapper.map_exception(exc)
            log.error(
                "store_operation_failed",
                operation=fn.__name__,
                origin=mapper.origin,
                error_kind=error.kind.value,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise error from exc
    return wrapper
