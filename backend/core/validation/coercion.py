"""Query-String Coercion

Query parameters arrive as strings. Before a filter is validated, values are
coerced to the type their field declares:

- with a schema, only fields declared number, boolean or date (or arrays of
  them, or enums of non-string values) are coerced; everything else stays a
  string, so a numeric-looking SKU on a string field is never turned into a
  number
- without a schema, the literal heuristic applies: "true"/"false" become
  booleans, base-10 numbers become int/float, ISO-8601 date-times become
  datetimes

A value that cannot be coerced is left untouched so validation reports it.
The empty string is never coerced.
"""
from __future__ import annotations

import math
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, assert_never

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
)
from .validators import parse_datetime

_NUMBER_PATTERN = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")
_ISO_DATETIME_PATTERN = re.compile(
    r"^\d{4}-\d{2}-\d{2}"
    r"(?:[T ]\d{2}:\d{2}(?::\d{2}(?:\.\d{1,9})?)?(?:Z|[+-]\d{2}:?\d{2})?)?$"
)


class CoercionRule(ABC):
    """A string-to-type conversion.

    can_coerce decides feasibility; coerce assumes it returned True.
    """

    @property
    @abstractmethod
    def target_type(self) -> type:
        """Type this rule coerces to."""

    @abstractmethod
    def can_coerce(self, value: str) -> bool:
        """Check if value can be coerced to target type."""

    @abstractmethod
    def coerce(self, value: str) -> Any:
        """Coerce value to target type."""

    def apply(self, value: Any) -> Any:
        """Coerce when possible, else return value unchanged."""
        if isinstance(value, str) and value and self.can_coerce(value):
            return self.coerce(value)
        return value


@dataclass(frozen=True, slots=True)
class StringToBool(CoercionRule):
    """Coerce the exact literals "true" and "false"."""

    @property
    def target_type(self) -> type[bool]:
        return bool

    def can_coerce(self, value: str) -> bool:
        return value in ("true", "false")

    def coerce(self, value: str) -> bool:
        return value == "true"


@dataclass(frozen=True, slots=True)
class StringToNumber(CoercionRule):
    """Coerce a base-10 number. Integers stay int; fractions and exponents become float."""

    @property
    def target_type(self) -> type[float]:
        return float

    def can_coerce(self, value: str) -> bool:
        if not _NUMBER_PATTERN.match(value):
            return False
        return math.isfinite(float(value))

    def coerce(self, value: str) -> int | float:
        if any(marker in value for marker in ".eE"):
            return float(value)
        return int(value)


@dataclass(frozen=True, slots=True)
class ISO8601ToDateTime(CoercionRule):
    """Coerce an ISO-8601 date or date-time. Naive values are UTC."""

    @property
    def target_type(self) -> type[datetime]:
        return datetime

    def can_coerce(self, value: str) -> bool:
        return bool(_ISO_DATETIME_PATTERN.match(value)) and parse_datetime(value) is not None

    def coerce(self, value: str) -> datetime:
        return parse_datetime(value)


@dataclass(frozen=True, slots=True)
class StringToEnumMember(CoercionRule):
    """Map a string onto a non-string enum member by its string form."""
    values: tuple[Any, ...]

    @property
    def target_type(self) -> type[object]:
        return object

    def _find(self, value: str) -> Any:
        for option in self.values:
            if isinstance(option, str):
                continue
            rendered = str(option).lower() if isinstance(option, bool) else str(option)
            if rendered == value:
                return option
        return None

    def can_coerce(self, value: str) -> bool:
        return self._find(value) is not None

    def coerce(self, value: str) -> Any:
        return self._find(value)


BOOL_RULE = StringToBool()
NUMBER_RULE = StringToNumber()
DATETIME_RULE = ISO8601ToDateTime()

# Order matters: literal booleans, then numbers, then dates
HEURISTIC_RULES: tuple[CoercionRule, ...] = (BOOL_RULE, NUMBER_RULE, DATETIME_RULE)


def rule_for(descriptor: FieldDescriptor) -> CoercionRule | None:
    """Coercion rule for a declared field, or None to keep the string."""
    match descriptor:
        case NumberField():
            return NUMBER_RULE
        case BooleanField():
            return BOOL_RULE
        case DateField():
            return DATETIME_RULE
        case EnumField():
            if all(isinstance(option, str) for option in descriptor.values):
                return None
            return StringToEnumMember(descriptor.values)
        case ArrayField():
            # Filtering on an array field matches one element
            return rule_for(descriptor.items)
        case StringField() | ObjectField():
            return None
        case _:
            assert_never(descriptor)


def coerce_heuristic(value: Any) -> Any:
    for rule in HEURISTIC_RULES:
        coerced = rule.apply(value)
        if coerced is not value:
            return coerced
    return value


def coerce_query_parameters(
    raw: Mapping[str, Any],
    schema: SchemaDefinition | None = None,
) -> dict[str, Any]:
    """Coerce query-string values ahead of filter validation.

    Examples:
        >>> coerce_query_parameters({"price": "10", "inStock": "true", "name": "x"})
        {'price': 10, 'inStock': True, 'name': 'x'}
        >>> coerce_query_parameters({"empty": ""})
        {'empty': ''}
    """
    if schema is None:
        return {key: coerce_heuristic(value) for key, value in raw.items()}

    coerced: dict[str, Any] = {}
    for key, value in raw.items():
        descriptor = schema.get(key)
        rule = rule_for(descriptor) if descriptor is not None else None
        coerced[key] = rule.apply(value) if rule is not None else value
    return coerced
