"""MongoDB Repository

CRUD over one collection with index-backed uniqueness and pagination.

Uniqueness is enforced twice. A pre-check looks up each declared unique
field before any write so create can answer "not created" cleanly; the
unique index is the final authority, and a store rejection that slips
through the check-then-write window surfaces as DuplicateError naming the
field. Driver failures never leave this module untyped: map_db_errors turns
them into DuplicateError or DatabaseError.
"""
from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

from bson import ObjectId
from pymongo import ASCENDING, ReturnDocument
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import CollectionInvalid, OperationFailure

from core.errors import DatabaseErrorMapper, duplicate_key, map_db_errors
from core.errors.boundaries import UNIQUE_INDEX_PREFIX
from core.logging import db_logger
from core.validation import SYSTEM_FIELDS, ValidationError, ValidationErrorDetail

from .base import (
    CREATED_AT_FIELD,
    ID_FIELD,
    Document,
    PaginatedResult,
    PaginationWindow,
    UniqueField,
    normalize_unique_fields,
)

log = db_logger()

# Server codes for an index that exists under the same name with other options
_INDEX_CONFLICT_CODES = frozenset({85, 86})


def utc_now() -> datetime:
    """Current UTC time at the store's millisecond precision."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def unique_index_name(field_name: str) -> str:
    return f"{UNIQUE_INDEX_PREFIX}{field_name}"


def parse_object_id(entity_id: Any) -> ObjectId:
    """Parse a 24-hex identifier. Malformed ids are a ValidationError, never not-found."""
    if isinstance(entity_id, ObjectId):
        return entity_id
    if isinstance(entity_id, str) and ObjectId.is_valid(entity_id):
        return ObjectId(entity_id)
    raise ValidationError.for_field(
        "id", f"Invalid ID format: {entity_id}", constraint="object_id", value=str(entity_id)
    )


class MongoRepository:
    """Repository over one MongoDB collection.

    Args:
        database: database handle from MongoConnection.get_database()
        collection_name: backing collection
        unique_fields: field names or UniqueField configs, in check order
        default_pagination: window used when find() gets none
    """

    def __init__(
        self,
        database: AsyncDatabase,
        collection_name: str,
        *,
        unique_fields: Iterable[str | UniqueField] = (),
        default_pagination: PaginationWindow | None = None,
    ):
        self.database = database
        self.collection_name = collection_name
        self.collection = database[collection_name]
        self.unique_fields = normalize_unique_fields(unique_fields)
        self.default_pagination = default_pagination or PaginationWindow()
        self.error_mapper = DatabaseErrorMapper(
            origin=f"repository.{collection_name}",
            messages={u.field_name: u.error_message for u in self.unique_fields if u.error_message},
        )

    @property
    def unique_field_names(self) -> list[str]:
        return [u.field_name for u in self.unique_fields]

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @map_db_errors
    async def initialize(self) -> bool:
        """Ensure the collection and its unique indexes exist.

        Returns True when the collection was created by this call. Safe to
        repeat: existing collections and indexes count as success.
        """
        existing = await self.database.list_collection_names(filter={"name": self.collection_name})
        created = self.collection_name not in existing
        if created:
            try:
                await self.database.create_collection(self.collection_name)
            except CollectionInvalid:
                # Created concurrently by another process
                created = False

        for unique in self.unique_fields:
            try:
                await self.collection.create_index(
                    [(unique.field_name, ASCENDING)],
                    unique=True,
                    name=unique_index_name(unique.field_name),
                )
            except OperationFailure as exc:
                if exc.code not in _INDEX_CONFLICT_CODES:
                    raise
                log.warning(
                    "unique_index_conflict",
                    collection=self.collection_name,
                    field=unique.field_name,
                    error=str(exc),
                )

        log.info(
            "collection_initialized",
            collection=self.collection_name,
            created=created,
            unique_fields=self.unique_field_names,
        )
        return created

    # -------------------------------------------------------------------------
    # CRUD
    # -------------------------------------------------------------------------

    @map_db_errors
    async def create(self, data: Mapping[str, Any]) -> Document | None:
        """Insert a new document.

        Returns the stored document with `_id` and `createdAt`, or None when
        a unique field value is already taken.
        """
        self._reject_system_fields(data)
        if (conflict := await self._find_conflict(data)) is not None:
            log.warning(
                "create_rejected_duplicate",
                collection=self.collection_name,
                field=conflict.field_name,
            )
            return None

        document: Document = {ID_FIELD: ObjectId(), **data, CREATED_AT_FIELD: utc_now()}
        await self.collection.insert_one(document)
        log.debug("document_inserted", collection=self.collection_name, entity_id=str(document[ID_FIELD]))
        return document

    @map_db_errors
    async def read(self, entity_id: str) -> Document | None:
        object_id = parse_object_id(entity_id)
        return await self.collection.find_one({ID_FIELD: object_id})

    @map_db_errors
    async def update(self, entity_id: str, data: Mapping[str, Any]) -> Document | None:
        """Set the given fields and return the updated document, or None when absent.

        Raises:
            ValidationError: malformed id, empty data or a system field in data
            DuplicateError: a unique value held by another document
        """
        object_id = parse_object_id(entity_id)
        if not data:
            raise ValidationError.for_field("body", "Update data cannot be empty", constraint="non_empty")
        self._reject_system_fields(data)

        if (conflict := await self._find_conflict(data, exclude_id=object_id)) is not None:
            log.warning(
                "update_rejected_duplicate",
                collection=self.collection_name,
                field=conflict.field_name,
                entity_id=str(object_id),
            )
            raise duplicate_key(
                conflict.field_name,
                value=data.get(conflict.field_name),
                message=conflict.error_message,
            )

        return await self.collection.find_one_and_update(
            {ID_FIELD: object_id},
            {"$set": dict(data)},
            return_document=ReturnDocument.AFTER,
        )

    @map_db_errors
    async def remove(self, entity_id: str) -> bool:
        object_id = parse_object_id(entity_id)
        result = await self.collection.delete_one({ID_FIELD: object_id})
        return result.deleted_count > 0

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @map_db_errors
    async def find(
        self,
        filter: Mapping[str, Any] | None = None,
        pagination: PaginationWindow | None = None,
    ) -> PaginatedResult[Document]:
        """Equality-filtered page of documents plus the total match count.

        Count and fetch run concurrently; they may observe slightly different
        points in time under concurrent writes.
        """
        window = pagination or self.default_pagination
        query = self._build_query(filter)
        direction = window.sort_direction.as_int
        sort = [(window.sort_field, direction)]
        if window.sort_field != ID_FIELD:
            sort.append((ID_FIELD, direction))

        cursor = self.collection.find(query).sort(sort).skip(window.skip).limit(window.limit)
        total, items = await asyncio.gather(
            self.collection.count_documents(query),
            cursor.to_list(length=None),
        )
        return PaginatedResult(items=items, total=total, skip=window.skip, limit=window.limit)

    @map_db_errors
    async def count(self, filter: Mapping[str, Any] | None = None) -> int:
        return await self.collection.count_documents(self._build_query(filter))

    @map_db_errors
    async def find_one(self, filter: Mapping[str, Any] | None = None) -> Document | None:
        return await self.collection.find_one(self._build_query(filter))

    async def find_by_unique_field(self, field_name: str, value: Any) -> Document | None:
        if field_name not in self.unique_field_names:
            raise ValueError(f"{field_name!r} is not a unique field of {self.collection_name}")
        return await self.find_one({field_name: value})

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _find_conflict(
        self,
        data: Mapping[str, Any],
        exclude_id: ObjectId | None = None,
    ) -> UniqueField | None:
        """First unique field (declaration order) whose value another document holds."""
        for unique in self.unique_fields:
            value = data.get(unique.field_name)
            if value is None:
                continue
            query: dict[str, Any] = {unique.field_name: value}
            if exclude_id is not None:
                query[ID_FIELD] = {"$ne": exclude_id}
            if await self.collection.find_one(query, projection={ID_FIELD: 1}) is not None:
                return unique
        return None

    def _build_query(self, filter: Mapping[str, Any] | None) -> dict[str, Any]:
        query = {key: value for key, value in (filter or {}).items() if value is not None}
        if ID_FIELD in query:
            query[ID_FIELD] = parse_object_id(query[ID_FIELD])
        return query

    @staticmethod
    def _reject_system_fields(data: Mapping[str, Any]) -> None:
        if present := sorted(SYSTEM_FIELDS.intersection(data)):
            raise ValidationError(details=[
                ValidationErrorDetail(name, "read_only", message=f"Field {name} is assigned by the system")
                for name in present
            ])
