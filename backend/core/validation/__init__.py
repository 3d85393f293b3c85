"""Declarative Validation System

Entity schemas are the single source of truth for request validation,
query-string coercion and API documentation.

Key Features:
- Tagged field descriptors (string, number, boolean, date, enum, array, object)
- Atomic validators compiled per field, run collect-all
- Full (create), partial (update) and filter validators from one schema
- Schema-directed coercion of query-string values
- FastAPI dependencies providing validated request input
- OpenAPI 3.0 projection of an entity's CRUD endpoints

Usage:
    from core.validation import (
        StringField, NumberField, build_full, build_partial,
        coerce_query_parameters, ValidationError,
    )

    PRODUCT_SCHEMA = {
        "name": StringField(min_length=2, max_length=100),
        "price": NumberField(minimum=0),
    }

    build_full(PRODUCT_SCHEMA).validate({"name": "Laptop", "price": 1200})
    build_partial(PRODUCT_SCHEMA).validate({"price": 999})
"""

from .schema import (
    ValidationMode,
    FieldKind,
    StringField,
    NumberField,
    BooleanField,
    DateField,
    EnumField,
    ArrayField,
    ObjectField,
    FieldDescriptor,
    SchemaDefinition,
    SYSTEM_FIELDS,
    ensure_schema,
    is_field_descriptor,
    required_fields,
)

from .errors import (
    ValidationErrorDetail,
    ValidationError,
    ValidationContext,
    join_path,
)

from .validators import (
    ValidationResult,
    AtomicValidator,
    TypeCheck,
    StringLength,
    RegexPattern,
    OneOf,
    Finite,
    NumericRange,
    IntegerOnly,
    ListLength,
    SchemaValidator,
    build_full,
    build_partial,
    build_filter,
    parse_datetime,
)

from .coercion import (
    CoercionRule,
    StringToBool,
    StringToNumber,
    ISO8601ToDateTime,
    StringToEnumMember,
    coerce_query_parameters,
)

from .boundaries import (
    PAGINATION_KEYS,
    ValidatedBody,
    ValidatedFilter,
    RequestValidators,
)

from .generators import (
    DocConfig,
    CrudDocGenerator,
    descriptor_to_openapi,
    schema_to_openapi,
    generate_example,
    merge_documents,
)

__all__ = [
    # Schema
    "ValidationMode",
    "FieldKind",
    "StringField",
    "NumberField",
    "BooleanField",
    "DateField",
    "EnumField",
    "ArrayField",
    "ObjectField",
    "FieldDescriptor",
    "SchemaDefinition",
    "SYSTEM_FIELDS",
    "ensure_schema",
    "is_field_descriptor",
    "required_fields",
    # Errors
    "ValidationErrorDetail",
    "ValidationError",
    "ValidationContext",
    "join_path",
    # Validators
    "ValidationResult",
    "AtomicValidator",
    "TypeCheck",
    "StringLength",
    "RegexPattern",
    "OneOf",
    "Finite",
    "NumericRange",
    "IntegerOnly",
    "ListLength",
    "SchemaValidator",
    "build_full",
    "build_partial",
    "build_filter",
    "parse_datetime",
    # Coercion
    "CoercionRule",
    "StringToBool",
    "StringToNumber",
    "ISO8601ToDateTime",
    "StringToEnumMember",
    "coerce_query_parameters",
    # Boundaries
    "PAGINATION_KEYS",
    "ValidatedBody",
    "ValidatedFilter",
    "RequestValidators",
    # Generators
    "DocConfig",
    "CrudDocGenerator",
    "descriptor_to_openapi",
    "schema_to_openapi",
    "generate_example",
    "merge_documents",
]
