"""Generic CRUD Service

Business-facing layer over a Repository. Holds no state of its own.

Error semantics:
- create returns None when a unique value is taken; it never raises for a
  duplicate. The client can resubmit with different data.
- update raises DuplicateError on a unique collision. A silently dropped
  update would leave the caller believing the change was applied.
- read/update/remove raise NotFoundError for an absent document; a caller
  holding an id expects it to exist.
Everything else raised by the repository propagates unchanged.
"""
from __future__ import annotations

from typing import Any, Generic, Mapping, TypeVar

import structlog

from core.errors import db_error, not_found
from core.logging import service_logger
from repositories import PaginatedResult, PaginationWindow, Repository

T = TypeVar("T", bound=Mapping[str, Any])


class CrudService(Generic[T]):
    """CRUD orchestration with typed not-found/duplicate semantics.

    Args:
        repository: any Repository implementation
        logger: structured logger; defaults to the service logger
        entity_name: name used in error messages
    """

    __slots__ = ("repository", "log", "entity_name")

    def __init__(
        self,
        repository: Repository[T],
        logger: structlog.stdlib.BoundLogger | None = None,
        *,
        entity_name: str = "Entity",
    ):
        self.repository = repository
        self.log = logger or service_logger()
        self.entity_name = entity_name

    async def create(self, data: Mapping[str, Any]) -> T | None:
        self.log.debug("entity_create_requested", entity=self.entity_name, fields=sorted(data))

        result = await self.repository.create(data)
        if result is None:
            self.log.warning("entity_not_created_duplicate", entity=self.entity_name)
            return None

        self.log.info(
            "entity_created",
            entity=self.entity_name,
            entity_id=str(result["_id"]),
            created_at=result["createdAt"].isoformat(),
        )
        return result

    async def read(self, entity_id: str) -> T:
        self.log.debug("entity_read_requested", entity=self.entity_name, entity_id=entity_id)

        result = await self.repository.read(entity_id)
        if result is None:
            raise not_found(self.entity_name, entity_id)

        self.log.debug("entity_retrieved", entity=self.entity_name, entity_id=entity_id)
        return result

    async def update(self, entity_id: str, data: Mapping[str, Any]) -> T:
        self.log.debug(
            "entity_update_requested", entity=self.entity_name, entity_id=entity_id, fields=sorted(data)
        )

        result = await self.repository.update(entity_id, data)
        if result is None:
            raise not_found(
                self.entity_name,
                entity_id,
                message=f"{self.entity_name} with ID {entity_id} not found for update",
            )

        self.log.info("entity_updated", entity=self.entity_name, entity_id=entity_id)
        return result

    async def remove(self, entity_id: str) -> None:
        self.log.debug("entity_remove_requested", entity=self.entity_name, entity_id=entity_id)

        await self.read(entity_id)

        if not await self.repository.remove(entity_id):
            # Deleted concurrently between the existence check and the delete
            raise db_error("Failed to remove entity - operation unsuccessful", entityId=entity_id)

        self.log.info("entity_removed", entity=self.entity_name, entity_id=entity_id)

    async def find(
        self,
        query: Mapping[str, Any] | None = None,
        pagination: PaginationWindow | None = None,
    ) -> PaginatedResult[T]:
        self.log.debug(
            "entity_find_requested",
            entity=self.entity_name,
            filter_fields=sorted(query or {}),
            skip=pagination.skip if pagination else None,
            limit=pagination.limit if pagination else None,
        )

        result = await self.repository.find(query, pagination)

        self.log.debug("entities_found", entity=self.entity_name, count=len(result.items), total=result.total)
        return result

    async def count(self, query: Mapping[str, Any] | None = None) -> int:
        return await self.repository.count(query)
