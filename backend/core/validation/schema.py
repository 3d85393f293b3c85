"""Declarative Entity Schemas

A SchemaDefinition is an ordered mapping from field name to a field
descriptor. Descriptors form a closed set of frozen dataclasses; every
consumer (validator builder, query coercion, documentation) dispatches over
them with an exhaustive ``match``:

    match descriptor:
        case StringField(): ...
        case NumberField(): ...
        ...
        case _:
            assert_never(descriptor)

Example:
    PRODUCT_SCHEMA: SchemaDefinition = {
        "name": StringField(min_length=2, max_length=100, doc="Product name"),
        "price": NumberField(minimum=0),
        "status": EnumField(values=("draft", "active"), default="draft", required=False),
        "tags": ArrayField(items=StringField(), required=False),
    }
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Mapping, TypeAlias


class ValidationMode(str, Enum):
    """Validation accumulation strategy."""
    FAIL_FAST = "fail_fast"
    COLLECT_ALL = "collect_all"


class FieldKind(str, Enum):
    """Tag of a field descriptor."""
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    ENUM = "enum"
    ARRAY = "array"
    OBJECT = "object"


@dataclass(frozen=True, slots=True, kw_only=True)
class StringField:
    kind: ClassVar[FieldKind] = FieldKind.STRING
    min_length: int | None = None
    max_length: int | None = None
    pattern: str | None = None
    required: bool = True
    default: str | None = None
    doc: str | None = None
    example: str | None = None

    def __post_init__(self) -> None:
        if self.min_length is not None and self.min_length < 0:
            raise ValueError("min_length must be >= 0")
        if (
            self.min_length is not None
            and self.max_length is not None
            and self.min_length > self.max_length
        ):
            raise ValueError(f"min_length {self.min_length} exceeds max_length {self.max_length}")
        if self.pattern is not None:
            re.compile(self.pattern)
        if self.default is not None and not isinstance(self.default, str):
            raise ValueError(f"String default must be a string, got {type(self.default).__name__}")
        if self.example is not None and self.pattern is not None and not re.search(self.pattern, self.example):
            raise ValueError(f"Example {self.example!r} does not match pattern {self.pattern!r}")


@dataclass(frozen=True, slots=True, kw_only=True)
class NumberField:
    kind: ClassVar[FieldKind] = FieldKind.NUMBER
    minimum: float | None = None
    maximum: float | None = None
    integer: bool = False
    required: bool = True
    default: float | None = None
    doc: str | None = None

    def __post_init__(self) -> None:
        if self.minimum is not None and self.maximum is not None and self.minimum > self.maximum:
            raise ValueError(f"minimum {self.minimum} exceeds maximum {self.maximum}")
        if self.default is not None and (
            isinstance(self.default, bool)
            or not isinstance(self.default, (int, float))
            or not math.isfinite(self.default)
        ):
            raise ValueError(f"Number default must be a finite number, got {self.default!r}")


@dataclass(frozen=True, slots=True, kw_only=True)
class BooleanField:
    kind: ClassVar[FieldKind] = FieldKind.BOOLEAN
    required: bool = True
    default: bool | None = None
    doc: str | None = None

    def __post_init__(self) -> None:
        if self.default is not None and not isinstance(self.default, bool):
            raise ValueError(f"Boolean default must be a bool, got {self.default!r}")


@dataclass(frozen=True, slots=True, kw_only=True)
class DateField:
    kind: ClassVar[FieldKind] = FieldKind.DATE
    required: bool = True
    default: datetime | None = None
    doc: str | None = None

    def __post_init__(self) -> None:
        if self.default is not None and not isinstance(self.default, datetime):
            raise ValueError(f"Date default must be a datetime, got {self.default!r}")


@dataclass(frozen=True, slots=True, kw_only=True)
class EnumField:
    """Closed value set. A declared default must be one of the values."""
    kind: ClassVar[FieldKind] = FieldKind.ENUM
    values: tuple[Any, ...]
    required: bool = True
    default: Any = None
    doc: str | None = None

    def __post_init__(self) -> None:
        if not self.values:
            raise ValueError("EnumField requires at least one value")
        # Accept lists for convenience, store as tuple
        object.__setattr__(self, "values", tuple(self.values))
        if self.default is not None and self.default not in self.values:
            raise ValueError(
                f"Enum default {self.default!r} is not one of {list(self.values)!r}"
            )


@dataclass(frozen=True, slots=True, kw_only=True)
class ArrayField:
    kind: ClassVar[FieldKind] = FieldKind.ARRAY
    items: FieldDescriptor
    min_items: int | None = None
    max_items: int | None = None
    required: bool = True
    default: list[Any] | None = None
    doc: str | None = None

    def __post_init__(self) -> None:
        if not is_field_descriptor(self.items):
            raise TypeError(f"Array items must be a field descriptor, got {type(self.items).__name__}")
        if self.default is not None and not isinstance(self.default, list):
            raise ValueError("Array default must be a list")


@dataclass(frozen=True, slots=True, kw_only=True)
class ObjectField:
    kind: ClassVar[FieldKind] = FieldKind.OBJECT
    properties: SchemaDefinition = field(default_factory=dict)
    required: bool = True
    default: dict[str, Any] | None = None
    doc: str | None = None

    def __post_init__(self) -> None:
        ensure_schema(self.properties)
        if self.default is not None and not isinstance(self.default, dict):
            raise ValueError("Object default must be a dict")


FieldDescriptor: TypeAlias = (
    StringField | NumberField | BooleanField | DateField | EnumField | ArrayField | ObjectField
)

SchemaDefinition: TypeAlias = Mapping[str, FieldDescriptor]

_DESCRIPTOR_TYPES = (StringField, NumberField, BooleanField, DateField, EnumField, ArrayField, ObjectField)

# Assigned by the repository, never accepted from clients
SYSTEM_FIELDS = frozenset({"_id", "createdAt"})


def is_field_descriptor(value: Any) -> bool:
    return isinstance(value, _DESCRIPTOR_TYPES)


def ensure_schema(schema: Any) -> SchemaDefinition:
    """Check that schema is a mapping of field names to descriptors.

    Raises:
        TypeError: on a non-mapping, a non-string key or a non-descriptor value
        ValueError: when a system field name is declared
    """
    if not isinstance(schema, Mapping):
        raise TypeError(f"Schema must be a mapping, got {type(schema).__name__}")
    for name, descriptor in schema.items():
        if not isinstance(name, str) or not name:
            raise TypeError(f"Schema field names must be non-empty strings, got {name!r}")
        if name in SYSTEM_FIELDS:
            raise ValueError(f"Field name {name!r} is reserved")
        if not is_field_descriptor(descriptor):
            raise TypeError(
                f"Field {name!r} must be a field descriptor, got {type(descriptor).__name__}"
            )
    return schema


def required_fields(schema: SchemaDefinition) -> list[str]:
    """Names of required fields in declaration order."""
    return [name for name, descriptor in schema.items() if descriptor.required]
