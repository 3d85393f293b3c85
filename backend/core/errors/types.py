"""Error Taxonomy

Every failure the CRUD core can surface is an AppError carrying a kind from
a closed set, a human message, the HTTP status the kind maps to, optional
structured metadata and the UTC timestamp of the moment it was raised.

The serialized shape is the failure envelope consumed by HTTP clients:

    {"success": false,
     "error": {"type": "NOT_FOUND_ERROR", "message": "...",
               "timestamp": "2024-01-15T10:30:00+00:00", "details": {...}}}
"""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Closed set of error kinds exposed to API consumers."""
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND_ERROR = "NOT_FOUND_ERROR"
    DUPLICATE_ERROR = "DUPLICATE_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"
    SERVER_ERROR = "SERVER_ERROR"
    ROUTE_NOT_FOUND = "ROUTE_NOT_FOUND"
    CORS_ERROR = "CORS_ERROR"

    @property
    def http_status(self) -> int:
        """Map error kind to HTTP status."""
        return _HTTP_STATUS[self]


_HTTP_STATUS: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION_ERROR: 400,
    ErrorKind.NOT_FOUND_ERROR: 404,
    ErrorKind.DUPLICATE_ERROR: 409,
    ErrorKind.DATABASE_ERROR: 500,
    ErrorKind.SERVER_ERROR: 500,
    ErrorKind.ROUTE_NOT_FOUND: 404,
    ErrorKind.CORS_ERROR: 403,
}


class AppError(Exception):
    """Base application error with full context.

    All errors carry:
    - Kind from the closed taxonomy
    - Human-readable message
    - HTTP status code (derived from the kind unless overridden)
    - Structured metadata for API consumers
    - Timestamp of creation
    - Optional cause, kept server-side only
    """
    kind: ErrorKind = ErrorKind.SERVER_ERROR

    def __init__(
        self,
        message: str,
        *,
        kind: ErrorKind | None = None,
        status_code: int | None = None,
        metadata: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        if kind is not None:
            self.kind = kind
        self.message = message
        self.status_code = status_code or self.kind.http_status
        self.metadata = dict(metadata) if metadata else {}
        self.timestamp = datetime.now(timezone.utc)
        self.cause = cause

    def to_dict(self) -> dict[str, Any]:
        """Serialize error as the failure envelope."""
        error: dict[str, Any] = {
            "type": self.kind.value,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.metadata:
            error["details"] = self.metadata
        return {"success": False, "error": error}

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.message}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}(message={self.message!r}, metadata={self.metadata!r})"


class NotFoundError(AppError):
    """Referenced entity does not exist."""
    kind = ErrorKind.NOT_FOUND_ERROR

    def __init__(self, message: str, *, entity_id: str | None = None, **kwargs: Any):
        metadata = kwargs.pop("metadata", None) or {}
        if entity_id is not None:
            metadata.setdefault("requestedId", entity_id)
        super().__init__(message, metadata=metadata, **kwargs)
        self.entity_id = entity_id


class DuplicateError(AppError):
    """A unique-field collision. Names the offending field."""
    kind = ErrorKind.DUPLICATE_ERROR

    def __init__(self, message: str, *, field: str, **kwargs: Any):
        metadata = kwargs.pop("metadata", None) or {}
        metadata.setdefault("duplicateField", field)
        super().__init__(message, metadata=metadata, **kwargs)
        self.field = field


class DatabaseError(AppError):
    """Store or transport failure. The original cause never leaves the server."""
    kind = ErrorKind.DATABASE_ERROR

    def __init__(self, message: str = "A database error occurred", **kwargs: Any):
        super().__init__(message, **kwargs)


class ServerError(AppError):
    """Uncategorized failure."""
    kind = ErrorKind.SERVER_ERROR

    def __init__(self, message: str = "Internal server error occurred", **kwargs: Any):
        super().__init__(message, **kwargs)


class RouteNotFoundError(AppError):
    kind = ErrorKind.ROUTE_NOT_FOUND


class CorsError(AppError):
    kind = ErrorKind.CORS_ERROR
