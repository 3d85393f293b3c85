"""Tests for MongoRepository against the in-memory store."""

from datetime import datetime

import pytest
from bson import ObjectId
from pymongo.errors import AutoReconnect, OperationFailure

from core.errors import DatabaseError, DuplicateError
from core.validation import ValidationError
from repositories import (
    MongoRepository,
    PaginatedResult,
    PaginationWindow,
    SortDirection,
    parse_object_id,
    unique_index_name,
)

LAPTOP = {"name": "Laptop", "price": 1200, "category": "electronics", "inStock": True}


class TestInitialize:
    """Collection and unique indexes are ensured at startup."""

    @pytest.mark.asyncio
    async def test_creates_collection_and_indexes(self, fake_db) -> None:
        repository = MongoRepository(fake_db, "products", unique_fields=["name", "sku"])

        assert await repository.initialize() is True
        assert fake_db["products"].unique_indexes == {
            "idx_unique_name": "name",
            "idx_unique_sku": "sku",
        }

    @pytest.mark.asyncio
    async def test_idempotent(self, product_repository) -> None:
        assert await product_repository.initialize() is False
        assert await product_repository.initialize() is False

    @pytest.mark.asyncio
    async def test_existing_index_with_other_options_tolerated(self, fake_db, monkeypatch) -> None:
        """An index already present under the same name or key does not block startup."""
        async def conflicting_index(keys, *, unique=False, name):
            raise OperationFailure("Index already exists with different options", code=85)

        monkeypatch.setattr(fake_db["products"], "create_index", conflicting_index)
        repository = MongoRepository(fake_db, "products", unique_fields=["name"])

        assert await repository.initialize() is True

    @pytest.mark.asyncio
    async def test_other_index_failures_propagate(self, fake_db, monkeypatch) -> None:
        async def unauthorized(keys, *, unique=False, name):
            raise OperationFailure("not authorized on testdb", code=13)

        monkeypatch.setattr(fake_db["products"], "create_index", unauthorized)
        repository = MongoRepository(fake_db, "products", unique_fields=["name"])

        with pytest.raises(DatabaseError):
            await repository.initialize()

    def test_index_name(self) -> None:
        assert unique_index_name("email") == "idx_unique_email"


class TestCreate:

    @pytest.mark.asyncio
    async def test_assigns_system_fields(self, product_repository) -> None:
        created = await product_repository.create(LAPTOP)

        assert isinstance(created["_id"], ObjectId)
        assert isinstance(created["createdAt"], datetime)
        assert created["createdAt"].microsecond % 1000 == 0
        assert created["name"] == "Laptop"

    @pytest.mark.asyncio
    async def test_duplicate_returns_none(self, product_repository, fake_db) -> None:
        await product_repository.create(LAPTOP)

        assert await product_repository.create({**LAPTOP, "price": 10}) is None
        assert len(fake_db["products"].documents) == 1

    @pytest.mark.asyncio
    async def test_first_declared_unique_field_reported(self, user_repository) -> None:
        await user_repository.create({"username": "jdoe", "email": "jdoe@mail.com", "password": "x" * 8})

        conflict = await user_repository._find_conflict({"username": "jdoe", "email": "jdoe@mail.com"})
        assert conflict.field_name == "username"

    @pytest.mark.asyncio
    async def test_index_rejection_becomes_duplicate_error(self, product_repository, monkeypatch) -> None:
        """A write racing past the pre-check is still rejected by the index."""
        await product_repository.create(LAPTOP)

        async def no_conflict(data, exclude_id=None):
            return None

        monkeypatch.setattr(product_repository, "_find_conflict", no_conflict)

        with pytest.raises(DuplicateError) as exc_info:
            await product_repository.create(LAPTOP)
        assert exc_info.value.field == "name"
        assert exc_info.value.message == "Duplicate value detected for field: name"

    @pytest.mark.asyncio
    async def test_system_fields_rejected(self, product_repository) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await product_repository.create({**LAPTOP, "_id": "abc"})
        assert exc_info.value.field == "_id"


class TestReadUpdateRemove:

    @pytest.mark.asyncio
    async def test_round_trip(self, product_repository) -> None:
        created = await product_repository.create(LAPTOP)
        read = await product_repository.read(str(created["_id"]))
        assert read == created

    @pytest.mark.asyncio
    async def test_read_missing(self, product_repository) -> None:
        assert await product_repository.read(str(ObjectId())) is None

    @pytest.mark.asyncio
    async def test_malformed_id(self, product_repository) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await product_repository.read("not-an-id")
        assert exc_info.value.message == "Invalid ID format: not-an-id"
        assert exc_info.value.field == "id"

    @pytest.mark.asyncio
    async def test_partial_update(self, product_repository) -> None:
        created = await product_repository.create(LAPTOP)

        updated = await product_repository.update(str(created["_id"]), {"price": 999})

        assert updated["price"] == 999
        assert updated["name"] == "Laptop"
        assert updated["createdAt"] == created["createdAt"]

    @pytest.mark.asyncio
    async def test_update_missing(self, product_repository) -> None:
        assert await product_repository.update(str(ObjectId()), {"price": 1}) is None

    @pytest.mark.asyncio
    async def test_update_empty_data(self, product_repository) -> None:
        created = await product_repository.create(LAPTOP)
        with pytest.raises(ValidationError):
            await product_repository.update(str(created["_id"]), {})

    @pytest.mark.asyncio
    async def test_update_duplicate_raises(self, user_repository) -> None:
        await user_repository.create({"username": "jdoe", "email": "jdoe@mail.com"})
        other = await user_repository.create({"username": "asmith", "email": "asmith@mail.com"})

        with pytest.raises(DuplicateError) as exc_info:
            await user_repository.update(str(other["_id"]), {"username": "jdoe"})
        assert exc_info.value.field == "username"
        assert exc_info.value.message == "Username is already taken"

    @pytest.mark.asyncio
    async def test_update_own_unique_value(self, user_repository) -> None:
        created = await user_repository.create({"username": "jdoe", "email": "jdoe@mail.com"})
        updated = await user_repository.update(str(created["_id"]), {"username": "jdoe"})
        assert updated["username"] == "jdoe"

    @pytest.mark.asyncio
    async def test_update_rejected_by_index(self, product_repository, monkeypatch) -> None:
        """An update racing past the pre-check is still rejected by the index."""
        await product_repository.create(LAPTOP)
        other = await product_repository.create({**LAPTOP, "name": "Desktop"})

        async def no_conflict(data, exclude_id=None):
            return None

        monkeypatch.setattr(product_repository, "_find_conflict", no_conflict)

        with pytest.raises(DuplicateError) as exc_info:
            await product_repository.update(str(other["_id"]), {"name": "Laptop"})
        assert exc_info.value.field == "name"
        assert exc_info.value.message == "Duplicate value detected for field: name"

    @pytest.mark.asyncio
    async def test_update_rejected_by_index_uses_configured_message(self, user_repository, monkeypatch) -> None:
        await user_repository.create({"username": "jdoe", "email": "jdoe@mail.com"})
        other = await user_repository.create({"username": "asmith", "email": "asmith@mail.com"})

        async def no_conflict(data, exclude_id=None):
            return None

        monkeypatch.setattr(user_repository, "_find_conflict", no_conflict)

        with pytest.raises(DuplicateError) as exc_info:
            await user_repository.update(str(other["_id"]), {"username": "jdoe"})
        assert exc_info.value.field == "username"
        assert exc_info.value.message == "Username is already taken"

    @pytest.mark.asyncio
    async def test_remove(self, product_repository) -> None:
        created = await product_repository.create(LAPTOP)

        assert await product_repository.remove(str(created["_id"])) is True
        assert await product_repository.remove(str(created["_id"])) is False
        assert await product_repository.read(str(created["_id"])) is None

    def test_parse_object_id(self) -> None:
        object_id = ObjectId()
        assert parse_object_id(str(object_id)) == object_id
        assert parse_object_id(object_id) is object_id


class TestFind:

    @pytest.mark.asyncio
    async def test_equality_filter_and_total(self, product_repository) -> None:
        for index in range(5):
            await product_repository.create({
                "name": f"Item {index}",
                "price": index,
                "category": "books" if index % 2 else "food",
            })

        result = await product_repository.find({"category": "books"})

        assert result.total == 2
        assert {item["name"] for item in result.items} == {"Item 1", "Item 3"}

    @pytest.mark.asyncio
    async def test_array_membership(self, product_repository) -> None:
        await product_repository.create({"name": "Tagged", "tags": ["sale", "new"]})
        await product_repository.create({"name": "Plain", "tags": []})

        result = await product_repository.find({"tags": "sale"})
        assert [item["name"] for item in result.items] == ["Tagged"]

    @pytest.mark.asyncio
    async def test_sort_and_window(self, product_repository) -> None:
        for price in (30, 10, 20, 40):
            await product_repository.create({"name": f"P{price}", "price": price})

        window = PaginationWindow(skip=1, limit=2, sort_field="price", sort_direction=SortDirection.ASC)
        result = await product_repository.find(None, window)

        assert [item["price"] for item in result.items] == [20, 30]
        assert result.total == 4
        assert result.has_next is True
        assert result.has_previous is True

    @pytest.mark.asyncio
    async def test_default_order_newest_first(self, product_repository) -> None:
        first = await product_repository.create({"name": "First"})
        second = await product_repository.create({"name": "Second"})

        result = await product_repository.find()

        assert [item["_id"] for item in result.items] == [second["_id"], first["_id"]]

    @pytest.mark.asyncio
    async def test_count(self, product_repository) -> None:
        await product_repository.create({"name": "A", "category": "food"})
        await product_repository.create({"name": "B", "category": "food"})
        assert await product_repository.count({"category": "food"}) == 2
        assert await product_repository.count({"category": "books"}) == 0

    @pytest.mark.asyncio
    async def test_find_by_unique_field(self, product_repository) -> None:
        await product_repository.create(LAPTOP)
        found = await product_repository.find_by_unique_field("name", "Laptop")
        assert found["price"] == 1200

        with pytest.raises(ValueError):
            await product_repository.find_by_unique_field("price", 1200)


class TestPagination:
    """Pagination metadata arithmetic."""

    def test_metadata(self) -> None:
        result = PaginatedResult(items=[], total=45, skip=20, limit=10)
        assert result.pagination() == {
            "total": 45,
            "skip": 20,
            "limit": 10,
            "hasNext": True,
            "hasPrevious": True,
            "currentPage": 3,
            "totalPages": 5,
        }

    def test_empty(self) -> None:
        result = PaginatedResult(items=[], total=0, skip=0, limit=20)
        assert result.total_pages == 0
        assert result.current_page == 1
        assert not result.has_next
        assert not result.has_previous

    def test_window_bounds(self) -> None:
        with pytest.raises(ValidationError):
            PaginationWindow(skip=-1)
        with pytest.raises(ValidationError):
            PaginationWindow(limit=0)


class TestStoreFailures:

    @pytest.mark.asyncio
    async def test_driver_failure_becomes_database_error(self, product_repository, monkeypatch) -> None:
        async def broken(*args, **kwargs):
            raise AutoReconnect("connection reset")

        monkeypatch.setattr(product_repository.collection, "find_one", broken)

        with pytest.raises(DatabaseError):
            await product_repository.read(str(ObjectId()))
