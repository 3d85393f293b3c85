"""Shared fixtures: an in-memory stand-in for the MongoDB async API.

FakeClient/FakeDatabase/FakeCollection implement only the calls the
repository and connection make, with the same shapes and exception types
as pymongo (DuplicateKeyError, CollectionInvalid).
"""
from __future__ import annotations

from copy import deepcopy
from types import SimpleNamespace
from typing import Any, Mapping

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from pymongo import ReturnDocument
from pymongo.errors import CollectionInvalid, DuplicateKeyError

from api import ApiBuilder, EntityDefinition
from core.config import Settings
from core.database import ConnectionOptions, MongoConnection
from core.validation import (
    ArrayField,
    BooleanField,
    EnumField,
    NumberField,
    ObjectField,
    StringField,
)
from repositories import MongoRepository, UniqueField


# =============================================================================
# In-memory store
# =============================================================================

def _matches_value(stored: Any, expected: Any) -> bool:
    if isinstance(expected, Mapping) and "$ne" in expected:
        return not _matches_value(stored, expected["$ne"])
    if isinstance(stored, list) and not isinstance(expected, list):
        return expected in stored
    return stored == expected


def _matches(document: Mapping[str, Any], query: Mapping[str, Any]) -> bool:
    return all(_matches_value(document.get(key), expected) for key, expected in query.items())


class FakeCursor:
    def __init__(self, documents: list[dict[str, Any]]):
        self._documents = documents
        self._skip = 0
        self._limit = 0

    def sort(self, keys: list[tuple[str, int]]) -> FakeCursor:
        for field_name, direction in reversed(keys):
            self._documents.sort(
                key=lambda doc: (doc.get(field_name) is not None, doc.get(field_name)),
                reverse=direction < 0,
            )
        return self

    def skip(self, count: int) -> FakeCursor:
        self._skip = count
        return self

    def limit(self, count: int) -> FakeCursor:
        self._limit = count
        return self

    async def to_list(self, length: int | None = None) -> list[dict[str, Any]]:
        documents = self._documents[self._skip:]
        if self._limit:
            documents = documents[: self._limit]
        return [deepcopy(doc) for doc in documents]


class FakeCollection:
    def __init__(self, database: FakeDatabase, name: str):
        self.database = database
        self.name = name
        self.documents: list[dict[str, Any]] = []
        self.unique_indexes: dict[str, str] = {}

    def _check_unique(self, candidate: Mapping[str, Any], exclude_id: Any = None) -> None:
        for index_name, field_name in self.unique_indexes.items():
            if field_name not in candidate:
                continue
            for existing in self.documents:
                if existing["_id"] == exclude_id:
                    continue
                if existing.get(field_name) == candidate[field_name]:
                    raise DuplicateKeyError(
                        f"E11000 duplicate key error collection: {self.database.name}.{self.name} "
                        f"index: {index_name} dup key: {{ {field_name}: {candidate[field_name]!r} }}",
                        11000,
                        {"keyPattern": {field_name: 1}, "keyValue": {field_name: candidate[field_name]}},
                    )

    async def create_index(self, keys: list[tuple[str, int]], *, unique: bool = False, name: str) -> str:
        if unique:
            self.unique_indexes[name] = keys[0][0]
        return name

    async def insert_one(self, document: dict[str, Any]) -> SimpleNamespace:
        self._check_unique(document)
        self.documents.append(deepcopy(document))
        return SimpleNamespace(inserted_id=document["_id"])

    async def find_one(self, query: Mapping[str, Any], projection: Mapping[str, Any] | None = None):
        for document in self.documents:
            if _matches(document, query):
                if projection:
                    return {key: document[key] for key in projection if key in document}
                return deepcopy(document)
        return None

    def find(self, query: Mapping[str, Any]) -> FakeCursor:
        return FakeCursor([doc for doc in self.documents if _matches(doc, query)])

    async def count_documents(self, query: Mapping[str, Any]) -> int:
        return sum(1 for doc in self.documents if _matches(doc, query))

    async def find_one_and_update(
        self,
        query: Mapping[str, Any],
        update: Mapping[str, Any],
        return_document: bool = ReturnDocument.BEFORE,
    ):
        for document in self.documents:
            if _matches(document, query):
                changes = update["$set"]
                self._check_unique(changes, exclude_id=document["_id"])
                before = deepcopy(document)
                document.update(deepcopy(changes))
                return deepcopy(document) if return_document == ReturnDocument.AFTER else before
        return None

    async def delete_one(self, query: Mapping[str, Any]) -> SimpleNamespace:
        for index, document in enumerate(self.documents):
            if _matches(document, query):
                del self.documents[index]
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)


class FakeDatabase:
    def __init__(self, name: str = "testdb"):
        self.name = name
        self.collections: dict[str, FakeCollection] = {}

    def __getitem__(self, name: str) -> FakeCollection:
        if name not in self.collections:
            self.collections[name] = FakeCollection(self, name)
        return self.collections[name]

    async def list_collection_names(self, filter: Mapping[str, Any] | None = None) -> list[str]:
        names = [name for name, coll in self.collections.items() if getattr(coll, "created", False)]
        if filter and "name" in filter:
            names = [name for name in names if name == filter["name"]]
        return names

    async def create_collection(self, name: str) -> FakeCollection:
        collection = self[name]
        if getattr(collection, "created", False):
            raise CollectionInvalid(f"collection {name} already exists")
        collection.created = True
        return collection


class FakeAdmin:
    async def command(self, name: str) -> dict[str, Any]:
        return {"ok": 1.0}


class FakeClient:
    """Drop-in for AsyncMongoClient(uri, **kwargs)."""

    def __init__(self, uri: str = "mongodb://fake", **kwargs: Any):
        self.uri = uri
        self.kwargs = kwargs
        self.admin = FakeAdmin()
        self.databases: dict[str, FakeDatabase] = {}
        self.closed = False

    def __getitem__(self, name: str) -> FakeDatabase:
        if name not in self.databases:
            self.databases[name] = FakeDatabase(name)
        return self.databases[name]

    async def close(self) -> None:
        self.closed = True


# =============================================================================
# Schemas
# =============================================================================

PRODUCT_SCHEMA = {
    "name": StringField(min_length=2, max_length=100),
    "price": NumberField(minimum=0),
    "category": EnumField(values=("electronics", "books", "food")),
    "inStock": BooleanField(default=True),
    "tags": ArrayField(items=StringField(), required=False),
    "rating": NumberField(minimum=0, maximum=5, required=False),
}

USER_SCHEMA = {
    "username": StringField(min_length=3),
    "email": StringField(pattern=r"^[^@\s]+@[^@\s]+$"),
    "password": StringField(min_length=8),
    "address": ObjectField(
        properties={"street": StringField(), "city": StringField()},
        required=False,
    ),
}


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def product_schema():
    return PRODUCT_SCHEMA


@pytest.fixture
def user_schema():
    return USER_SCHEMA


@pytest.fixture
def fake_db() -> FakeDatabase:
    return FakeDatabase()


@pytest_asyncio.fixture
async def product_repository(fake_db: FakeDatabase) -> MongoRepository:
    repository = MongoRepository(fake_db, "products", unique_fields=["name"])
    await repository.initialize()
    return repository


@pytest_asyncio.fixture
async def user_repository(fake_db: FakeDatabase) -> MongoRepository:
    repository = MongoRepository(
        fake_db,
        "users",
        unique_fields=[
            UniqueField("username", "Username is already taken"),
            UniqueField("email"),
        ],
    )
    await repository.initialize()
    return repository


@pytest.fixture
def settings() -> Settings:
    return Settings(
        API_PREFIX="/api/v1",
        ALLOWED_ORIGINS=["http://localhost:3000"],
        DOCS_ENABLED=True,
        DOCS_PATH="/docs",
        DEFAULT_PAGE_SIZE=20,
        MAX_PAGE_SIZE=50,
    )


@pytest.fixture
def app(settings: Settings):
    connection = MongoConnection(ConnectionOptions(database="testdb"), client_factory=FakeClient)
    return (
        ApiBuilder(settings, connection=connection, title="Test API")
        .add_entity(EntityDefinition("products", PRODUCT_SCHEMA, unique_fields=("name",)))
        .add_entity(EntityDefinition(
            "users",
            USER_SCHEMA,
            unique_fields=(UniqueField("username"), UniqueField("email", "Email is already registered")),
        ))
        .build()
    )


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client
