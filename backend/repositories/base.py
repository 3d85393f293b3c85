"""Repository Contract and Pagination Types

The repository is generic over the entity document type and typed through a
Protocol rather than a base class: anything exposing these coroutines is a
repository.

Two negative outcomes are sentinels rather than errors:
- create returns None when a unique field is already taken
- remove returns False when nothing was deleted
read/update return None when the document does not exist.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, Iterable, Mapping, Protocol, TypeVar

from core.validation import ValidationError

T = TypeVar("T")

Document = dict[str, Any]

ID_FIELD = "_id"
CREATED_AT_FIELD = "createdAt"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"

    @property
    def as_int(self) -> int:
        """Store sort order: 1 ascending, -1 descending."""
        return 1 if self is SortDirection.ASC else -1


@dataclass(frozen=True, slots=True)
class UniqueField:
    """A field whose value must be distinct across documents.

    error_message replaces the default DuplicateError message for this field.
    """
    field_name: str
    error_message: str | None = None


def normalize_unique_fields(fields: Iterable[str | UniqueField]) -> tuple[UniqueField, ...]:
    """Accept names or UniqueField configs; keep declaration order, drop repeats."""
    result: dict[str, UniqueField] = {}
    for item in fields:
        unique = item if isinstance(item, UniqueField) else UniqueField(str(item))
        result.setdefault(unique.field_name, unique)
    return tuple(result.values())


@dataclass(frozen=True, slots=True)
class PaginationWindow:
    skip: int = 0
    limit: int = 20
    sort_field: str = CREATED_AT_FIELD
    sort_direction: SortDirection = SortDirection.DESC

    def __post_init__(self) -> None:
        if isinstance(self.skip, bool) or not isinstance(self.skip, int) or self.skip < 0:
            raise ValidationError.for_field(
                "skip", "Skip parameter must be non-negative", constraint="minimum[0]", value=self.skip
            )
        if isinstance(self.limit, bool) or not isinstance(self.limit, int) or self.limit <= 0:
            raise ValidationError.for_field(
                "limit", "Limit parameter must be positive", constraint="minimum[1]", value=self.limit
            )
        object.__setattr__(self, "sort_direction", SortDirection(self.sort_direction))


@dataclass(frozen=True, slots=True)
class PaginatedResult(Generic[T]):
    items: list[T] = field(default_factory=list)
    total: int = 0
    skip: int = 0
    limit: int = 20

    @property
    def has_next(self) -> bool:
        return self.skip + self.limit < self.total

    @property
    def has_previous(self) -> bool:
        return self.skip > 0

    @property
    def current_page(self) -> int:
        return self.skip // self.limit + 1

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit)

    def pagination(self) -> dict[str, Any]:
        """Pagination metadata for the list response envelope."""
        return {
            "total": self.total,
            "skip": self.skip,
            "limit": self.limit,
            "hasNext": self.has_next,
            "hasPrevious": self.has_previous,
            "currentPage": self.current_page,
            "totalPages": self.total_pages,
        }


class Repository(Protocol[T]):
    """CRUD over one collection of entity documents."""

    async def initialize(self) -> bool: ...

    async def create(self, data: Mapping[str, Any]) -> T | None: ...

    async def read(self, entity_id: str) -> T | None: ...

    async def update(self, entity_id: str, data: Mapping[str, Any]) -> T | None: ...

    async def remove(self, entity_id: str) -> bool: ...

    async def find(
        self,
        filter: Mapping[str, Any] | None = None,
        pagination: PaginationWindow | None = None,
    ) -> PaginatedResult[T]: ...

    async def count(self, filter: Mapping[str, Any] | None = None) -> int: ...
