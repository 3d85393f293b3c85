"""Tests for connection lifecycle."""

import pytest
from pymongo.errors import ServerSelectionTimeoutError

from core.config import Settings
from core.database import ConnectionOptions, MongoConnection
from core.errors import DatabaseError

from .conftest import FakeClient


class UnreachableClient(FakeClient):
    def __init__(self, uri: str, **kwargs):
        super().__init__(uri, **kwargs)

        async def command(name: str):
            raise ServerSelectionTimeoutError("No servers found")

        self.admin.command = command


class TestConnectionOptions:

    def test_from_settings(self) -> None:
        settings = Settings(MONGO_HOST="db", MONGO_PORT=27018, MONGO_DATABASE="shop",
                            MONGO_COMPRESSION_LEVEL=9)
        options = ConnectionOptions.from_settings(settings)

        assert options.uri == "mongodb://db:27018"
        assert options.database == "shop"
        assert options.client_kwargs()["zlibCompressionLevel"] == 9
        assert options.client_kwargs()["compressors"] == ["zlib"]

    def test_explicit_uri_wins(self) -> None:
        settings = Settings(MONGO_URI="mongodb://user@cluster/", MONGO_HOST="ignored")
        assert ConnectionOptions.from_settings(settings).uri == "mongodb://user@cluster/"

    def test_compression_level_bounds(self) -> None:
        with pytest.raises(ValueError):
            Settings(MONGO_COMPRESSION_LEVEL=10)


class TestMongoConnection:

    @pytest.mark.asyncio
    async def test_lifecycle(self) -> None:
        connection = MongoConnection(ConnectionOptions(database="shop"), client_factory=FakeClient)
        assert not connection.is_connected

        client = await connection.connect()

        assert connection.is_connected
        assert await connection.connect() is client
        assert connection.get_database().name == "shop"
        assert connection.get_database("other").name == "other"

        await connection.disconnect()
        assert client.closed
        assert not connection.is_connected

    def test_database_before_connect(self) -> None:
        connection = MongoConnection(client_factory=FakeClient)
        with pytest.raises(DatabaseError) as exc_info:
            connection.get_database()
        assert exc_info.value.message == "Database connection not established"

    @pytest.mark.asyncio
    async def test_unreachable_server(self) -> None:
        connection = MongoConnection(client_factory=UnreachableClient)

        with pytest.raises(DatabaseError) as exc_info:
            await connection.connect()

        assert exc_info.value.message == "Failed to connect to database"
        assert not connection.is_connected
