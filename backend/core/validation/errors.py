"""Validation Error System

Structured errors with field paths, violated constraints and actual values
(redacted if sensitive). Supports both fail-fast and collect-all
accumulation; entity payloads are validated collect-all so one response
enumerates every violated constraint of every field.

Failure envelope:
{
    "success": false,
    "error": {
        "type": "VALIDATION_ERROR",
        "message": "Validation failed for field: name",
        "timestamp": "2024-01-15T10:30:00+00:00",
        "details": {
            "field": "name",
            "violations": ["String length 1 is less than minimum 2"],
            "errors": [
                {"field": "name", "constraint": "min_length[2]",
                 "message": "String length 1 is less than minimum 2", "value": "x"}
            ]
        }
    }
}
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Iterable, Sequence

from core.errors import AppError, ErrorKind

from .schema import ValidationMode

if TYPE_CHECKING:
    from .validators import AtomicValidator

SENSITIVE_FIELDS = frozenset({"password", "token", "secret"})

# Location prefixes FastAPI adds to parameter errors
_REQUEST_LOCATIONS = frozenset({"body", "query", "path", "header", "cookie"})


@dataclass(frozen=True, slots=True)
class ValidationErrorDetail:
    """Detailed validation error for a single constraint on a single field.

    - field_path: dotted path to offending field (e.g., "address.street", "tags[1]")
    - constraint: constraint violated (e.g., "type[string]", "min_length[5]")
    - actual_value: the value that failed (may be redacted)
    - message: human-readable error message
    """
    field_path: str
    constraint: str
    actual_value: Any = None
    message: str = ""

    def redact_if_sensitive(self, sensitive_fields: frozenset[str] | None = None) -> ValidationErrorDetail:
        """Redact actual value if field is sensitive."""
        if not sensitive_fields:
            return self
        path_parts = self.field_path.replace("[", ".").replace("]", "").split(".")
        if any(part in sensitive_fields for part in path_parts):
            return ValidationErrorDetail(
                field_path=self.field_path,
                constraint=self.constraint,
                actual_value="[REDACTED]",
                message=self.message,
            )
        return self

    @property
    def root_field(self) -> str:
        return self.field_path.split(".", 1)[0].split("[", 1)[0]

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API responses."""
        result = {"field": self.field_path, "constraint": self.constraint, "message": self.message}
        if self.actual_value is not None:
            result["value"] = self.actual_value
        return result

    @classmethod
    def from_pydantic_error(cls, error: dict[str, Any]) -> ValidationErrorDetail:
        """Create from a pydantic/FastAPI error dict."""
        return cls(
            field_path=cls._format_path(error.get("loc", ())),
            constraint=error.get("type", "validation_error"),
            actual_value=error.get("input"),
            message=error.get("msg", "Validation failed"),
        )

    @staticmethod
    def _format_path(loc: Sequence[str | int]) -> str:
        """Format a location tuple as a field path, dropping the request location."""
        segments = list(loc)
        if segments and segments[0] in _REQUEST_LOCATIONS:
            segments = segments[1:]
        return join_path(segments) if segments else "body"


class ValidationError(AppError):
    """Malformed or constraint-violating input.

    Carries every violated constraint. ``field`` is the first offending
    field and ``violations`` the messages of every constraint it broke;
    ``details["errors"]`` lists every violation of every field.
    """
    kind = ErrorKind.VALIDATION_ERROR

    def __init__(
        self,
        message: str | None = None,
        details: Iterable[ValidationErrorDetail] = (),
        *,
        mode: ValidationMode = ValidationMode.COLLECT_ALL,
        sensitive_fields: frozenset[str] | None = SENSITIVE_FIELDS,
        **kwargs: Any,
    ):
        self.details = [d.redact_if_sensitive(sensitive_fields) for d in details]
        self.mode = mode
        metadata = kwargs.pop("metadata", None) or {}
        if self.details:
            metadata.setdefault("field", self.field)
            metadata.setdefault("violations", self.violations)
            metadata.setdefault("errors", [d.to_dict() for d in self.details])
        super().__init__(message or self._default_message(), metadata=metadata, **kwargs)

    def _default_message(self) -> str:
        fields = self.fields
        if len(fields) == 1:
            return f"Validation failed for field: {fields[0]}"
        if fields:
            return f"Validation failed for fields: {', '.join(fields)}"
        return "Validation failed"

    @property
    def field(self) -> str | None:
        return self.details[0].field_path if self.details else None

    @property
    def violations(self) -> list[str]:
        """Messages of every constraint violated by the first offending field."""
        first = self.field
        return [d.message for d in self.details if d.field_path == first]

    @property
    def fields(self) -> list[str]:
        """Offending field paths in encounter order, without repeats."""
        return list(dict.fromkeys(d.field_path for d in self.details))

    @property
    def field_errors(self) -> dict[str, list[ValidationErrorDetail]]:
        """Group errors by field path."""
        result: dict[str, list[ValidationErrorDetail]] = {}
        for detail in self.details:
            result.setdefault(detail.field_path, []).append(detail)
        return result

    def get_errors_for_field(self, field_path: str) -> list[ValidationErrorDetail]:
        return [d for d in self.details if d.field_path == field_path]

    @classmethod
    def for_field(
        cls,
        field_path: str,
        message: str,
        *,
        constraint: str = "invalid",
        value: Any = None,
    ) -> ValidationError:
        """Single-violation error, e.g. a malformed identifier."""
        return cls(
            message,
            [ValidationErrorDetail(field_path, constraint, actual_value=value, message=message)],
        )

    @classmethod
    def from_pydantic(cls, errors: Sequence[dict[str, Any]]) -> ValidationError:
        """Create from a list of pydantic/FastAPI error dicts."""
        return cls(details=[ValidationErrorDetail.from_pydantic_error(err) for err in errors])


def join_path(segments: Iterable[str | int]) -> str:
    """("address", "lines", 0, "text") -> "address.lines[0].text"."""
    path = ""
    for segment in segments:
        if isinstance(segment, int):
            path += f"[{segment}]"
        else:
            path = f"{path}.{segment}" if path else str(segment)
    return path


class ValidationContext:
    """Collects the violations of one payload, then raises them together.

    Nested fields are addressed by pushing their name (or list index) while
    the nested value is checked. In FAIL_FAST mode only the first violation
    is kept; COLLECT_ALL keeps up to ``max_errors``.

        with ValidationContext() as ctx:
            ctx.validate("name", name, StringLength(min_length=3))
            ctx.validate("price", price, NumericRange(min_value=0))
    """

    def __init__(self, mode: ValidationMode = ValidationMode.COLLECT_ALL, max_errors: int = 100):
        self.mode = mode
        self.limit = 1 if mode == ValidationMode.FAIL_FAST else max_errors
        self._errors: list[ValidationErrorDetail] = []
        self._nesting: list[str | int] = []

    def __enter__(self) -> ValidationContext:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_type is None and self._errors:
            raise ValidationError(details=self._errors, mode=self.mode)
        return False

    def push_path(self, segment: str | int) -> None:
        self._nesting.append(segment)

    def pop_path(self) -> str | int | None:
        return self._nesting.pop() if self._nesting else None

    def path_for(self, segment: str | int | None = None) -> str:
        return join_path(self._nesting if segment is None else [*self._nesting, segment])

    def _record(self, detail: ValidationErrorDetail) -> None:
        if len(self._errors) < self.limit:
            self._errors.append(detail)

    def validate(self, field: str | int, value: Any, validator: AtomicValidator) -> bool:
        """Run one constraint on one field; False when it is violated."""
        result = validator.validate(value)
        if result.is_valid:
            return True
        self._record(ValidationErrorDetail(
            field_path=self.path_for(field),
            constraint=result.constraint or validator.constraint_name,
            actual_value=result.actual,
            message=result.error_message or "Validation failed",
        ))
        return False

    def add_error(self, field: str | int | None, message: str, *, constraint: str = "custom",
                  actual_value: Any = None) -> None:
        self._record(ValidationErrorDetail(self.path_for(field), constraint, actual_value, message))

    @property
    def has_errors(self) -> bool:
        return bool(self._errors)

    @property
    def errors(self) -> list[ValidationErrorDetail]:
        return list(self._errors)
