"""Typed Error Handling System

Key components:
- ErrorKind: closed taxonomy of error kinds with HTTP status mapping
- AppError and subclasses: raised conditions carrying message, status,
  metadata and timestamp
- Builder functions: ergonomic error construction
- DatabaseErrorMapper: driver exceptions mapped at the repository boundary
- register_error_handlers: the centralized response formatting stage

Usage:
    from core.errors import NotFoundError, not_found

    async def read(self, entity_id: str) -> dict:
        document = await self.repository.read(entity_id)
        if document is None:
            raise not_found("Entity", entity_id)
        return document
"""
from .types import (
    ErrorKind,
    AppError,
    NotFoundError,
    DuplicateError,
    DatabaseError,
    ServerError,
    RouteNotFoundError,
    CorsError,
)

from .builders import (
    not_found,
    duplicate_key,
    db_error,
    route_not_found,
    cors_rejected,
)

from .boundaries import (
    DatabaseErrorMapper,
    extract_duplicate_field,
    map_db_errors,
)

from .handlers import (
    error_response,
    register_error_handlers,
)

__all__ = [
    # Core types
    "ErrorKind",
    "AppError",
    "NotFoundError",
    "DuplicateError",
    "DatabaseError",
    "ServerError",
    "RouteNotFoundError",
    "CorsError",
    # Builders
    "not_found",
    "duplicate_key",
    "db_error",
    "route_not_found",
    "cors_rejected",
    # Boundary Mappers
    "DatabaseErrorMapper",
    "extract_duplicate_field",
    "map_db_errors",
    # Handlers
    "error_response",
    "register_error_handlers",
]
