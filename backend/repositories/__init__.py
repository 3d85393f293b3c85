from .base import (
    CREATED_AT_FIELD,
    ID_FIELD,
    Document,
    PaginatedResult,
    PaginationWindow,
    Repository,
    SortDirection,
    UniqueField,
    normalize_unique_fields,
)
from .mongo import MongoRepository, parse_object_id, unique_index_name, utc_now

__all__ = [
    "CREATED_AT_FIELD",
    "ID_FIELD",
    "Document",
    "PaginatedResult",
    "PaginationWindow",
    "Repository",
    "SortDirection",
    "UniqueField",
    "normalize_unique_fields",
    "MongoRepository",
    "parse_object_id",
    "unique_index_name",
    "utc_now",
]
