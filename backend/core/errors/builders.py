"""Domain-Specific Error Builders

Ergonomic constructors for typed errors. Each builder returns the error
instance so call sites read `raise not_found("Product", product_id)`.
"""
from typing import Any

from .types import (
    CorsError,
    DatabaseError,
    DuplicateError,
    NotFoundError,
    RouteNotFoundError,
)


# =============================================================================
# Lookup Errors
# =============================================================================

def not_found(
    entity: str,
    entity_id: str,
    *,
    message: str | None = None,
    **metadata: Any,
) -> NotFoundError:
    """Create not-found error echoing the requested identifier."""
    return NotFoundError(
        message or f"{entity} with ID {entity_id} not found",
        entity_id=entity_id,
        metadata=metadata,
    )


# =============================================================================
# Persistence Errors
# =============================================================================

def duplicate_key(
    field: str,
    *,
    value: Any = None,
    message: str | None = None,
    cause: BaseException | None = None,
) -> DuplicateError:
    meta = {"value": value} if value is not None else {}
    return DuplicateError(
        message or f"Duplicate value detected for field: {field}",
        field=field,
        metadata=meta,
        cause=cause,
    )


def db_error(
    message: str = "A database error occurred",
    *,
    cause: BaseException | None = None,
    **metadata: Any,
) -> DatabaseError:
    """Create database error. The message is public, the cause is not."""
    return DatabaseError(message, metadata=metadata, cause=cause)


# =============================================================================
# Transport Errors
# =============================================================================

def route_not_found(route: str, method: str) -> RouteNotFoundError:
    return RouteNotFoundError(
        "Route not found",
        metadata={"route": route, "method": method},
    )


def cors_rejected(origin: str, allowed_origins: list[str]) -> CorsError:
    return CorsError(
        "Forbidden: invalid Origin",
        metadata={
            "origin": origin,
            "cause": f"Origin '{origin}' not in allowed origins: {', '.join(allowed_origins)}",
        },
    )
