"""Validation at the HTTP Boundary

FastAPI dependencies that turn raw request input into validated payloads
before a controller sees it. They are the validated-input provider of the
CRUD core: a controller receives a cleaned dict or never runs.

Usage:
    validators = RequestValidators(PRODUCT_SCHEMA)

    @router.post("")
    async def create(body: dict = Depends(validators.create_body)):
        ...
"""
from __future__ import annotations

import json
from typing import Any, Iterable

from fastapi import Request

from .coercion import coerce_query_parameters
from .errors import ValidationError
from .schema import SchemaDefinition
from .validators import SchemaValidator, build_filter, build_full, build_partial

# Query keys that drive pagination rather than filtering
PAGINATION_KEYS = frozenset({"skip", "limit", "sortBy", "sortOrder"})


async def read_json_body(request: Request) -> Any:
    """Decode the request body, or None when it is empty."""
    raw = await request.body()
    if not raw.strip():
        return None
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValidationError.for_field(
            "body", f"Invalid JSON in request body: {e}", constraint="json"
        ) from e


class ValidatedBody:
    """FastAPI dependency for a validated JSON request body.

    Usage:
        @router.patch("/{entity_id}")
        async def update(body: dict = Depends(ValidatedBody(schema, partial=True))):
            ...
    """

    def __init__(self, schema: SchemaDefinition, *, partial: bool = False, strict: bool = True):
        self.partial = partial
        self.validator: SchemaValidator = (
            build_partial(schema, strict=strict) if partial else build_full(schema, strict=strict)
        )

    async def __call__(self, request: Request) -> dict[str, Any]:
        body = await read_json_body(request)
        if body is None:
            raise ValidationError.for_field("body", "Request body is required", constraint="required")
        if self.partial and isinstance(body, dict) and not body:
            raise ValidationError.for_field(
                "body", "Update data cannot be empty", constraint="non_empty"
            )
        return self.validator.validate(body)


class ValidatedFilter:
    """FastAPI dependency for equality filters taken from the query string.

    Pagination keys are excluded; the remaining parameters are coerced by
    their declared field type and validated partially.
    """

    def __init__(self, schema: SchemaDefinition, *, strict: bool = True,
                 reserved: Iterable[str] = PAGINATION_KEYS):
        self.schema = schema
        self.reserved = frozenset(reserved)
        self.validator = build_filter(schema, strict=strict)

    def parse(self, params: dict[str, str]) -> dict[str, Any]:
        raw = {key: value for key, value in params.items() if key not in self.reserved}
        return self.validator.validate(coerce_query_parameters(raw, self.schema))

    async def __call__(self, request: Request) -> dict[str, Any]:
        return self.parse(dict(request.query_params))


class RequestValidators:
    """The three request validators derived from one entity schema."""

    __slots__ = ("schema", "create_body", "update_body", "filter_query")

    def __init__(self, schema: SchemaDefinition, *, strict: bool = True):
        self.schema = schema
        self.create_body = ValidatedBody(schema, strict=strict)
        self.update_body = ValidatedBody(schema, partial=True, strict=strict)
        self.filter_query = ValidatedFilter(schema, strict=strict)
