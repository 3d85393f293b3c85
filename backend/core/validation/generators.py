"""Documentation Generators

Project an entity SchemaDefinition into an OpenAPI 3.0 description of its
CRUD endpoints. Generation is pure: no network or storage access, and the
same inputs always produce an equal document (examples use a fixed
timestamp).

    doc = CrudDocGenerator(DocConfig(
        title="Products API",
        resource_name="products",
        base_path="/api/v1/products",
        server_url="http://localhost:8000",
        schema=PRODUCT_SCHEMA,
        unique_fields=("name",),
    )).generate()
    doc["definition"]["paths"]["/api/v1/products/{id}"]["patch"]
"""
from __future__ import annotations

import re
from copy import deepcopy
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Sequence, assert_never

from core.errors import ErrorKind
from core.logging import docs_logger

from .schema import (
    ArrayField,
    BooleanField,
    DateField,
    EnumField,
    FieldDescriptor,
    NumberField,
    ObjectField,
    SchemaDefinition,
    StringField,
    required_fields,
)

log = docs_logger()

OPENAPI_VERSION = "3.0.0"
EXAMPLE_TIMESTAMP = "2024-01-15T10:30:00.000Z"
EXAMPLE_OBJECT_ID = "507f1f77bcf86cd799439011"
OBJECT_ID_PATTERN = "^[a-f\\d]{24}$"
EXAMPLE_STRING = "example-string"

_JSON = "application/json"

# Marks a field left out of a generated example
_OMIT = object()


# ============================================================================
# Schema projection
# ============================================================================

def descriptor_to_openapi(descriptor: FieldDescriptor) -> dict[str, Any]:
    """OpenAPI schema object for one field descriptor."""
    match descriptor:
        case StringField():
            result: dict[str, Any] = {"type": "string"}
            if descriptor.min_length is not None:
                result["minLength"] = descriptor.min_length
            if descriptor.max_length is not None:
                result["maxLength"] = descriptor.max_length
            if descriptor.pattern is not None:
                result["pattern"] = descriptor.pattern
            if descriptor.example is not None:
                result["example"] = descriptor.example
        case NumberField():
            result = {"type": "integer" if descriptor.integer else "number"}
            if descriptor.minimum is not None:
                result["minimum"] = descriptor.minimum
            if descriptor.maximum is not None:
                result["maximum"] = descriptor.maximum
        case BooleanField():
            result = {"type": "boolean"}
        case DateField():
            result = {"type": "string", "format": "date-time"}
        case EnumField():
            result = {"enum": list(descriptor.values)}
            if all(isinstance(v, str) for v in descriptor.values):
                result["type"] = "string"
            elif all(isinstance(v, bool) for v in descriptor.values):
                result["type"] = "boolean"
            elif all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in descriptor.values):
                result["type"] = "number"
        case ArrayField():
            result = {"type": "array", "items": descriptor_to_openapi(descriptor.items)}
            if descriptor.min_items is not None:
                result["minItems"] = descriptor.min_items
            if descriptor.max_items is not None:
                result["maxItems"] = descriptor.max_items
        case ObjectField():
            result = schema_to_openapi(descriptor.properties)
        case _:
            assert_never(descriptor)

    if descriptor.default is not None:
        result["default"] = _json_value(descriptor.default)
    if descriptor.doc:
        result["description"] = descriptor.doc
    return result


def schema_to_openapi(schema: SchemaDefinition) -> dict[str, Any]:
    """OpenAPI object schema for a SchemaDefinition."""
    result: dict[str, Any] = {
        "type": "object",
        "properties": {name: descriptor_to_openapi(d) for name, d in schema.items()},
    }
    if required := required_fields(schema):
        result["required"] = required
    return result


def example_value(descriptor: FieldDescriptor) -> Any:
    """Declared default or example when present, else a placeholder honouring the constraints.

    A pattern-constrained string without a declared example is left out of the
    generated example when the placeholder does not match the pattern.
    """
    if descriptor.default is not None:
        return _json_value(descriptor.default)

    match descriptor:
        case StringField():
            if descriptor.example is not None:
                return descriptor.example
            value = EXAMPLE_STRING
            if descriptor.min_length is not None and len(value) < descriptor.min_length:
                value = value + "x" * (descriptor.min_length - len(value))
            if descriptor.max_length is not None:
                value = value[: descriptor.max_length]
            if descriptor.pattern is not None and not re.search(descriptor.pattern, value):
                return _OMIT
            return value
        case NumberField():
            value = 1
            if descriptor.minimum is not None and value < descriptor.minimum:
                value = descriptor.minimum
            if descriptor.maximum is not None and value > descriptor.maximum:
                value = descriptor.maximum
            return int(value) if descriptor.integer else value
        case BooleanField():
            return True
        case DateField():
            return EXAMPLE_TIMESTAMP
        case EnumField():
            return descriptor.values[0]
        case ArrayField():
            item = example_value(descriptor.items)
            if item is _OMIT:
                return _OMIT
            return [item] * max(1, descriptor.min_items or 0)
        case ObjectField():
            return generate_example(descriptor.properties)
        case _:
            assert_never(descriptor)


def generate_example(schema: SchemaDefinition) -> dict[str, Any]:
    example = {name: example_value(descriptor) for name, descriptor in schema.items()}
    return {name: value for name, value in example.items() if value is not _OMIT}


def _json_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return deepcopy(value)


def capitalize(name: str) -> str:
    return name[:1].upper() + name[1:]


def singular(name: str) -> str:
    """Naive singular form: a trailing "s" is dropped."""
    return name[:-1] if name.endswith("s") and len(name) > 1 else name


# ============================================================================
# CRUD documentation
# ============================================================================

@dataclass(frozen=True)
class DocConfig:
    """Inputs of the documentation projection for one entity."""
    title: str
    resource_name: str
    base_path: str
    schema: SchemaDefinition
    server_url: str = "http://localhost:8000"
    description: str | None = None
    version: str = "1.0.0"
    unique_fields: Sequence[str] = field(default_factory=tuple)


def _ref(kind: str, name: str) -> dict[str, str]:
    return {"$ref": f"#/components/{kind}/{name}"}


def _json_content(schema: dict[str, Any], example: Any = None) -> dict[str, Any]:
    media: dict[str, Any] = {"schema": schema}
    if example is not None:
        media["example"] = example
    return {_JSON: media}


def _error_example(kind: ErrorKind, message: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    error: dict[str, Any] = {"type": kind.value, "message": message, "timestamp": EXAMPLE_TIMESTAMP}
    if details:
        error["details"] = details
    return {"success": False, "error": error}


def _with_data(envelope: str, data_schema: dict[str, Any]) -> dict[str, Any]:
    return {"allOf": [_ref("schemas", envelope),
                      {"type": "object", "properties": {"data": data_schema}}]}


class CrudDocGenerator:
    """Generates the OpenAPI description of one entity's CRUD endpoints."""

    def __init__(self, config: DocConfig):
        self.config = config
        self.name = capitalize(config.resource_name)
        self.singular = singular(config.resource_name)

    def generate(self) -> dict[str, Any]:
        config = self.config
        definition = {
            "openapi": OPENAPI_VERSION,
            "info": {
                "title": config.title,
                "version": config.version,
                "description": config.description or f"CRUD API for {config.resource_name}",
                "contact": {"name": "API Support"},
            },
            "servers": [{"url": config.server_url, "description": "API Server"}],
            "tags": [{"name": self.name, "description": f"{self.name} operations"}],
            "components": {
                "schemas": self.generate_schemas(),
                "responses": self.generate_responses(),
            },
            "paths": self.generate_paths(),
        }
        log.debug("docs_generated", resource=config.resource_name, paths=len(definition["paths"]))
        return {"definition": definition}

    def generate_schemas(self) -> dict[str, Any]:
        projected = schema_to_openapi(self.config.schema)
        properties = projected["properties"]
        required = projected.get("required", [])

        return {
            self.name: {
                "type": "object",
                "properties": {
                    "_id": {"type": "string", "description": "Document identifier (ObjectId)",
                            "example": EXAMPLE_OBJECT_ID},
                    **properties,
                    "createdAt": {"type": "string", "format": "date-time",
                                  "description": "Creation timestamp", "example": EXAMPLE_TIMESTAMP},
                },
                "required": ["_id", *required, "createdAt"],
            },
            f"{self.name}Create": {
                "type": "object",
                "properties": deepcopy(properties),
                "required": list(required),
                "example": generate_example(self.config.schema),
            },
            f"{self.name}Update": {
                "type": "object",
                "properties": deepcopy(properties),
                "description": "All fields are optional for updates",
                "minProperties": 1,
            },
            "Error": {
                "type": "object",
                "properties": {
                    "success": {"type": "boolean", "example": False},
                    "error": {
                        "type": "object",
                        "properties": {
                            "type": {"type": "string", "enum": [kind.value for kind in ErrorKind]},
                            "message": {"type": "string"},
                            "timestamp": {"type": "string", "format": "date-time"},
                            "details": {"type": "object"},
                        },
                        "required": ["type", "message", "timestamp"],
                    },
                },
            },
            "SuccessResponse": {
                "type": "object",
                "properties": {
                    "success": {"type": "boolean", "example": True},
                    "message": {"type": "string"},
                    "data": {"type": "object"},
                    "timestamp": {"type": "string", "format": "date-time"},
                },
            },
            "ListResponse": {
                "type": "object",
                "properties": {
                    "success": {"type": "boolean", "example": True},
                    "message": {"type": "string"},
                    "data": {"type": "array", "items": {"type": "object"}},
                    "pagination": {
                        "type": "object",
                        "properties": {
                            "total": {"type": "integer", "example": 42},
                            "skip": {"type": "integer", "example": 0},
                            "limit": {"type": "integer", "example": 20},
                            "hasNext": {"type": "boolean", "example": True},
                            "hasPrevious": {"type": "boolean", "example": False},
                            "currentPage": {"type": "integer", "example": 1},
                            "totalPages": {"type": "integer", "example": 3},
                        },
                    },
                    "timestamp": {"type": "string", "format": "date-time"},
                },
            },
        }

    def generate_responses(self) -> dict[str, Any]:
        error_schema = _ref("schemas", "Error")
        unique = list(self.config.unique_fields)
        first_field = next(iter(self.config.schema), "field")
        return {
            "ValidationError": {
                "description": "Validation error",
                "content": _json_content(error_schema, _error_example(
                    ErrorKind.VALIDATION_ERROR,
                    f"Validation failed for field: {first_field}",
                    {"field": first_field, "violations": [f"{first_field} is invalid"]},
                )),
            },
            "NotFoundError": {
                "description": "Resource not found",
                "content": _json_content(error_schema, _error_example(
                    ErrorKind.NOT_FOUND_ERROR,
                    f"Entity with ID {EXAMPLE_OBJECT_ID} not found",
                    {"requestedId": EXAMPLE_OBJECT_ID},
                )),
            },
            "DuplicateError": {
                "description": "Duplicate entry",
                "content": _json_content(error_schema, _error_example(
                    ErrorKind.DUPLICATE_ERROR,
                    f"Duplicate value for field(s): {', '.join(unique)}" if unique else "Duplicate entry",
                    {"duplicateField": unique[0]} if unique else None,
                )),
            },
            "ServerError": {
                "description": "Internal server error",
                "content": _json_content(error_schema, _error_example(
                    ErrorKind.SERVER_ERROR, "Internal server error occurred",
                )),
            },
        }

    def _id_parameter(self) -> dict[str, Any]:
        return {
            "name": "id",
            "in": "path",
            "required": True,
            "description": "Document identifier (ObjectId)",
            "schema": {"type": "string", "pattern": OBJECT_ID_PATTERN, "example": EXAMPLE_OBJECT_ID},
        }

    def generate_query_parameters(self) -> list[dict[str, Any]]:
        """Per-field equality filters followed by the pagination parameters."""
        parameters = [
            {
                "name": name,
                "in": "query",
                "description": f"Filter by {name}",
                "required": False,
                "schema": descriptor_to_openapi(descriptor),
            }
            for name, descriptor in self.config.schema.items()
            if not isinstance(descriptor, ObjectField)
        ]
        parameters.extend([
            {"name": "skip", "in": "query", "required": False, "description": "Number of documents to skip",
             "schema": {"type": "integer", "minimum": 0, "default": 0}},
            {"name": "limit", "in": "query", "required": False, "description": "Maximum documents per page",
             "schema": {"type": "integer", "minimum": 1, "default": 20}},
            {"name": "sortBy", "in": "query", "required": False, "description": "Field to sort by",
             "schema": {"type": "string", "default": "createdAt"}},
            {"name": "sortOrder", "in": "query", "required": False, "description": "Sort direction",
             "schema": {"type": "string", "enum": ["asc", "desc"], "default": "desc"}},
        ])
        return parameters

    def generate_paths(self) -> dict[str, Any]:
        name, one, many = self.name, self.singular, self.config.resource_name
        entity_ref = _ref("schemas", name)
        server_error = _ref("responses", "ServerError")
        validation_error = _ref("responses", "ValidationError")
        not_found = _ref("responses", "NotFoundError")

        return {
            self.config.base_path: {
                "get": {
                    "tags": [name],
                    "summary": f"List all {many}",
                    "description": f"Retrieve a paginated list of {many} with optional filtering",
                    "parameters": self.generate_query_parameters(),
                    "responses": {
                        "200": {
                            "description": "Successful response",
                            "content": _json_content(_with_data("ListResponse", {"type": "array", "items": entity_ref})),
                        },
                        "400": validation_error,
                        "500": server_error,
                    },
                },
                "post": {
                    "tags": [name],
                    "summary": f"Create a new {one}",
                    "description": f"Create a new {one} entity",
                    "requestBody": {
                        "required": True,
                        "content": _json_content(_ref("schemas", f"{name}Create")),
                    },
                    "responses": {
                        "201": {
                            "description": "Entity created successfully",
                            "content": _json_content(_with_data("SuccessResponse", entity_ref)),
                        },
                        "400": validation_error,
                        "409": _ref("responses", "DuplicateError"),
                        "500": server_error,
                    },
                },
            },
            f"{self.config.base_path}/{{id}}": {
                "get": {
                    "tags": [name],
                    "summary": f"Get {one} by ID",
                    "description": f"Retrieve a single {one} by its ID",
                    "parameters": [self._id_parameter()],
                    "responses": {
                        "200": {
                            "description": "Successful response",
                            "content": _json_content(_with_data("SuccessResponse", entity_ref)),
                        },
                        "400": validation_error,
                        "404": not_found,
                        "500": server_error,
                    },
                },
                "patch": {
                    "tags": [name],
                    "summary": f"Update {one}",
                    "description": f"Partially update a {one} by its ID",
                    "parameters": [self._id_parameter()],
                    "requestBody": {
                        "required": True,
                        "content": _json_content(_ref("schemas", f"{name}Update")),
                    },
                    "responses": {
                        "200": {
                            "description": "Entity updated successfully",
                            "content": _json_content(_with_data("SuccessResponse", entity_ref)),
                        },
                        "400": validation_error,
                        "404": not_found,
                        "409": _ref("responses", "DuplicateError"),
                        "500": server_error,
                    },
                },
                "delete": {
                    "tags": [name],
                    "summary": f"Delete {one}",
                    "description": f"Delete a {one} by its ID",
                    "parameters": [self._id_parameter()],
                    "responses": {
                        "200": {
                            "description": "Entity removed successfully",
                            "content": _json_content({
                                "type": "object",
                                "properties": {
                                    "success": {"type": "boolean", "example": True},
                                    "message": {"type": "string", "example": "Entity removed successfully"},
                                    "data": {"type": "object", "nullable": True},
                                    "timestamp": {"type": "string", "format": "date-time"},
                                },
                            }),
                        },
                        "400": validation_error,
                        "404": not_found,
                        "500": server_error,
                    },
                },
            },
        }


def merge_documents(
    documents: Iterable[dict[str, Any]],
    *,
    title: str,
    description: str | None = None,
    version: str = "1.0.0",
    server_url: str = "http://localhost:8000",
) -> dict[str, Any]:
    """Combine per-entity documents into one.

    Schemas, responses and paths are merged in order. Shared component
    names (Error, SuccessResponse, DuplicateError, ...) keep the last
    entity's version.
    """
    definition: dict[str, Any] = {
        "openapi": OPENAPI_VERSION,
        "info": {
            "title": title,
            "version": version,
            "description": description or title,
            "contact": {"name": "API Support"},
        },
        "servers": [{"url": server_url, "description": "API Server"}],
        "tags": [],
        "components": {"schemas": {}, "responses": {}},
        "paths": {},
    }
    for document in documents:
        part = document["definition"]
        definition["tags"].extend(t for t in part["tags"] if t not in definition["tags"])
        definition["components"]["schemas"].update(part["components"]["schemas"])
        definition["components"]["responses"].update(part["components"]["responses"])
        definition["paths"].update(part["paths"])
    return {"definition": definition}
