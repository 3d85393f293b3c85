"""Compositional Validator System

Atomic validators check one constraint each and report a ValidationResult.
SchemaValidator compiles a SchemaDefinition into the list of atomic checks
for each field and runs all of them, so a single ValidationError lists every
violated constraint of every field.

    validator = build_full(PRODUCT_SCHEMA)
    cleaned = validator.validate({"name": "Laptop", "price": 1200})

build_full   - creation: required fields enforced, defaults applied
build_partial - update: every field optional, present fields fully checked
build_filter  - list filters: partial, and array fields accept a single element
"""
from __future__ import annotations

import math
import re
from abc import ABC, abstractmethod
from copy import deepcopy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, assert_never

from .errors import ValidationContext
from .schema import (
    ArrayField,
    BooleanField,
    DateField,
    EnumField,
    FieldDescriptor,
    FieldKind,
    NumberField,
    ObjectField,
    SchemaDefinition,
    StringField,
    ValidationMode,
    ensure_schema,
)

# Marks a value that failed validation and must not reach the cleaned payload
_INVALID = object()


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Result of a validation check with context for error reporting."""
    is_valid: bool
    error_message: str | None = None
    constraint: str | None = None
    expected: Any = None
    actual: Any = None

    @classmethod
    def valid(cls) -> ValidationResult:
        return cls(is_valid=True)

    @classmethod
    def invalid(cls, message: str, *, constraint: str | None = None, expected: Any = None,
                actual: Any = None) -> ValidationResult:
        return cls(is_valid=False, error_message=message, constraint=constraint,
                   expected=expected, actual=actual)


class AtomicValidator(ABC):
    """Base class for atomic validators."""

    @abstractmethod
    def validate(self, value: Any) -> ValidationResult:
        """Validate a value. Returns ValidationResult."""

    @property
    @abstractmethod
    def constraint_name(self) -> str:
        """Constraint name reported in errors."""

    def __call__(self, value: Any) -> ValidationResult:
        return self.validate(value)


def _type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, Mapping):
        return "object"
    return type(value).__name__


def _preview(value: Any) -> Any:
    if isinstance(value, str) and len(value) > 50:
        return value[:50] + "..."
    if isinstance(value, (list, dict)):
        return _type_name(value)
    return value


# Widest integer the document store encodes
INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1


def parse_datetime(value: str) -> datetime | None:
    """Parse an ISO-8601 string. Naive values are taken as UTC."""
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ============================================================================
# Type Validator
# ============================================================================

@dataclass(frozen=True, slots=True)
class TypeCheck(AtomicValidator):
    """Validate the JSON type of a value for a field kind.

    Booleans are never numbers; null never satisfies any kind. Date fields
    accept datetimes and ISO-8601 strings.
    """
    kind: FieldKind

    @property
    def constraint_name(self) -> str:
        return f"type[{self.kind.value}]"

    def _matches(self, value: Any) -> bool:
        match self.kind:
            case FieldKind.STRING:
                return isinstance(value, str)
            case FieldKind.NUMBER:
                return isinstance(value, (int, float)) and not isinstance(value, bool)
            case FieldKind.BOOLEAN:
                return isinstance(value, bool)
            case FieldKind.DATE:
                return isinstance(value, datetime) or (
                    isinstance(value, str) and parse_datetime(value) is not None
                )
            case FieldKind.ENUM:
                return value is not None
            case FieldKind.ARRAY:
                return isinstance(value, list)
            case FieldKind.OBJECT:
                return isinstance(value, Mapping)
            case _:
                assert_never(self.kind)

    def validate(self, value: Any) -> ValidationResult:
        if self._matches(value):
            if self.kind == FieldKind.NUMBER and isinstance(value, int) and not INT64_MIN <= value <= INT64_MAX:
                return ValidationResult.invalid(
                    f"Integer {value} is outside the storable 64-bit range",
                    constraint="range[int64]",
                    expected=f"{INT64_MIN} <= value <= {INT64_MAX}",
                    actual=value,
                )
            return ValidationResult.valid()
        if self.kind == FieldKind.DATE and isinstance(value, str):
            message = "Expected ISO-8601 date-time string"
        else:
            message = f"Expected {self.kind.value}, got {_type_name(value)}"
        return ValidationResult.invalid(message, constraint=self.constraint_name,
                                        expected=self.kind.value, actual=_preview(value))


# ============================================================================
# String Validators
# ============================================================================

@dataclass(frozen=True, slots=True)
class StringLength(AtomicValidator):
    """Validate string length constraints."""
    min_length: int | None = None
    max_length: int | None = None

    @property
    def constraint_name(self) -> str:
        if self.min_length is not None and self.max_length is not None:
            return f"length[{self.min_length},{self.max_length}]"
        if self.min_length is not None:
            return f"min_length[{self.min_length}]"
        if self.max_length is not None:
            return f"max_length[{self.max_length}]"
        return "string_length"

    def validate(self, value: Any) -> ValidationResult:
        length = len(value)
        if self.min_length is not None and length < self.min_length:
            return ValidationResult.invalid(
                f"String length {length} is less than minimum {self.min_length}",
                constraint=f"min_length[{self.min_length}]",
                expected=f">= {self.min_length} characters",
                actual=_preview(value),
            )
        if self.max_length is not None and length > self.max_length:
            return ValidationResult.invalid(
                f"String length {length} exceeds maximum {self.max_length}",
                constraint=f"max_length[{self.max_length}]",
                expected=f"<= {self.max_length} characters",
                actual=_preview(value),
            )
        return ValidationResult.valid()


@dataclass(frozen=True, slots=True)
class RegexPattern(AtomicValidator):
    """Validate string against regex pattern (searched anywhere unless anchored)."""
    pattern: str
    description: str | None = None
    _compiled: re.Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_compiled", re.compile(self.pattern))

    @property
    def constraint_name(self) -> str:
        return self.description or f"pattern[{self.pattern}]"

    def validate(self, value: Any) -> ValidationResult:
        if not self._compiled.search(value):
            return ValidationResult.invalid(
                f"Value does not match pattern: {self.description or self.pattern}",
                constraint=self.constraint_name,
                expected=f"match pattern '{self.pattern}'",
                actual=_preview(value),
            )
        return ValidationResult.valid()


@dataclass(frozen=True, slots=True)
class OneOf(AtomicValidator):
    """Validate value is one of allowed options. True never matches 1."""
    options: tuple[Any, ...]

    @property
    def constraint_name(self) -> str:
        opts = [str(o) for o in self.options[:5]]
        suffix = f", ... +{len(self.options) - 5}" if len(self.options) > 5 else ""
        return f"one_of[{', '.join(opts)}{suffix}]"

    def validate(self, value: Any) -> ValidationResult:
        for option in self.options:
            if value == option and isinstance(value, bool) == isinstance(option, bool):
                return ValidationResult.valid()
        return ValidationResult.invalid(
            f"Value {value!r} is not one of: {', '.join(repr(o) for o in self.options)}",
            constraint=self.constraint_name,
            expected=list(self.options),
            actual=_preview(value),
        )


# ============================================================================
# Numeric Validators
# ============================================================================

@dataclass(frozen=True, slots=True)
class Finite(AtomicValidator):

    @property
    def constraint_name(self) -> str:
        return "finite"

    def validate(self, value: Any) -> ValidationResult:
        if not math.isfinite(value):
            return ValidationResult.invalid("Number must be finite", constraint="finite",
                                            actual=str(value))
        return ValidationResult.valid()


@dataclass(frozen=True, slots=True)
class NumericRange(AtomicValidator):
    """Validate numeric range constraints (inclusive)."""
    min_value: float | int | None = None
    max_value: float | int | None = None

    @property
    def constraint_name(self) -> str:
        parts = []
        if self.min_value is not None:
            parts.append(f">={self.min_value}")
        if self.max_value is not None:
            parts.append(f"<={self.max_value}")
        return f"range[{', '.join(parts)}]" if parts else "numeric"

    def validate(self, value: Any) -> ValidationResult:
        if self.min_value is not None and value < self.min_value:
            return ValidationResult.invalid(
                f"Value {value} must be at least {self.min_value}",
                constraint=f"minimum[{self.min_value}]",
                expected=f">= {self.min_value}",
                actual=value,
            )
        if self.max_value is not None and value > self.max_value:
            return ValidationResult.invalid(
                f"Value {value} must be at most {self.max_value}",
                constraint=f"maximum[{self.max_value}]",
                expected=f"<= {self.max_value}",
                actual=value,
            )
        return ValidationResult.valid()


@dataclass(frozen=True, slots=True)
class IntegerOnly(AtomicValidator):

    @property
    def constraint_name(self) -> str:
        return "integer"

    def validate(self, value: Any) -> ValidationResult:
        if isinstance(value, float) and value.is_integer() and not INT64_MIN <= value <= INT64_MAX:
            return ValidationResult.invalid(f"Integer {value:.0f} is outside the storable 64-bit range",
                                            constraint="range[int64]", expected="int64", actual=value)
        if isinstance(value, int) or (isinstance(value, float) and value.is_integer()):
            return ValidationResult.valid()
        return ValidationResult.invalid(f"Value {value} must be an integer",
                                        constraint="integer", expected="integer", actual=value)


# ============================================================================
# Collection Validators
# ============================================================================

@dataclass(frozen=True, slots=True)
class ListLength(AtomicValidator):
    """Validate list length constraints."""
    min_items: int | None = None
    max_items: int | None = None

    @property
    def constraint_name(self) -> str:
        return f"items[{self.min_items or 0},{self.max_items if self.max_items is not None else '*'}]"

    def validate(self, value: Any) -> ValidationResult:
        count = len(value)
        if self.min_items is not None and count < self.min_items:
            return ValidationResult.invalid(
                f"Array must contain at least {self.min_items} items, got {count}",
                constraint=f"min_items[{self.min_items}]",
                actual=count,
            )
        if self.max_items is not None and count > self.max_items:
            return ValidationResult.invalid(
                f"Array must contain at most {self.max_items} items, got {count}",
                constraint=f"max_items[{self.max_items}]",
                actual=count,
            )
        return ValidationResult.valid()


def constraint_validators(descriptor: FieldDescriptor) -> list[AtomicValidator]:
    """Atomic checks applied after a value passed its type check."""
    match descriptor:
        case StringField():
            checks: list[AtomicValidator] = []
            if descriptor.min_length is not None or descriptor.max_length is not None:
                checks.append(StringLength(descriptor.min_length, descriptor.max_length))
            if descriptor.pattern is not None:
                checks.append(RegexPattern(descriptor.pattern))
            return checks
        case NumberField():
            checks = [Finite()]
            if descriptor.integer:
                checks.append(IntegerOnly())
            if descriptor.minimum is not None or descriptor.maximum is not None:
                checks.append(NumericRange(descriptor.minimum, descriptor.maximum))
            return checks
        case EnumField():
            return [OneOf(descriptor.values)]
        case ArrayField():
            if descriptor.min_items is None and descriptor.max_items is None:
                return []
            return [ListLength(descriptor.min_items, descriptor.max_items)]
        case BooleanField() | DateField() | ObjectField():
            return []
        case _:
            assert_never(descriptor)


# ============================================================================
# Schema Validator
# ============================================================================

class SchemaValidator:
    """Validator compiled from a SchemaDefinition.

    Args:
        schema: the entity schema
        partial: every field optional; defaults are not applied
        strict: reject fields the schema does not declare
        filter_mode: array fields also accept one element (equality match on membership)
        mode: error accumulation strategy
    """

    def __init__(
        self,
        schema: SchemaDefinition,
        *,
        partial: bool = False,
        strict: bool = True,
        filter_mode: bool = False,
        mode: ValidationMode = ValidationMode.COLLECT_ALL,
    ):
        self.schema = ensure_schema(schema)
        self.partial = partial
        self.strict = strict
        self.filter_mode = filter_mode
        self.mode = mode

    def validate(self, data: Any) -> dict[str, Any]:
        """Return the cleaned payload or raise ValidationError listing every violation."""
        with ValidationContext(mode=self.mode) as ctx:
            if not isinstance(data, Mapping):
                ctx.add_error("body", f"Expected object, got {_type_name(data)}",
                              constraint="type[object]")
                cleaned: dict[str, Any] = {}
            else:
                cleaned = self._validate_object(self.schema, data, ctx, partial=self.partial)
        return cleaned

    def _validate_object(
        self,
        schema: SchemaDefinition,
        data: Mapping[str, Any],
        ctx: ValidationContext,
        *,
        partial: bool,
    ) -> dict[str, Any]:
        cleaned: dict[str, Any] = {}
        for name, descriptor in schema.items():
            if name not in data:
                if partial:
                    continue
                if descriptor.default is not None:
                    cleaned[name] = deepcopy(descriptor.default)
                elif descriptor.required:
                    ctx.add_error(name, "Field is required", constraint="required")
                continue
            value = self._validate_value(descriptor, data[name], ctx, name)
            if value is not _INVALID:
                cleaned[name] = value

        if self.strict:
            for name in data:
                if name not in schema:
                    ctx.add_error(name, f"Unknown field: {name}", constraint="unknown_field")
        return cleaned

    def _validate_value(
        self,
        descriptor: FieldDescriptor,
        value: Any,
        ctx: ValidationContext,
        segment: str | int,
    ) -> Any:
        if (
            self.filter_mode
            and isinstance(descriptor, ArrayField)
            and not isinstance(value, list)
            and value is not None
        ):
            return self._validate_value(descriptor.items, value, ctx, segment)

        if not ctx.validate(segment, value, TypeCheck(descriptor.kind)):
            return _INVALID
        results = [ctx.validate(segment, value, check) for check in constraint_validators(descriptor)]
        if not all(results):
            return _INVALID

        match descriptor:
            case StringField() | BooleanField() | EnumField():
                return value
            case NumberField():
                if descriptor.integer and isinstance(value, float):
                    return int(value)
                return value
            case DateField():
                if isinstance(value, str):
                    return parse_datetime(value)
                if value.tzinfo is None:
                    return value.replace(tzinfo=timezone.utc)
                return value
            case ArrayField():
                ctx.push_path(segment)
                try:
                    items = [self._validate_value(descriptor.items, item, ctx, index)
                             for index, item in enumerate(value)]
                finally:
                    ctx.pop_path()
                return _INVALID if any(item is _INVALID for item in items) else items
            case ObjectField():
                ctx.push_path(segment)
                before = len(ctx.errors)
                try:
                    nested = self._validate_object(descriptor.properties, value, ctx, partial=False)
                finally:
                    ctx.pop_path()
                return _INVALID if len(ctx.errors) > before else nested
            case _:
                assert_never(descriptor)


def build_full(schema: SchemaDefinition, *, strict: bool = True) -> SchemaValidator:
    """Validator for creation payloads."""
    return SchemaValidator(schema, partial=False, strict=strict)


def build_partial(schema: SchemaDefinition, *, strict: bool = True) -> SchemaValidator:
    """Validator for update payloads: any present field must satisfy its constraints."""
    return SchemaValidator(schema, partial=True, strict=strict)


def build_filter(schema: SchemaDefinition, *, strict: bool = True) -> SchemaValidator:
    """Validator for equality filters taken from a query string."""
    return SchemaValidator(schema, partial=True, strict=strict, filter_mode=True)
