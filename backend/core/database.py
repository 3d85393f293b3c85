"""Document Store Connection

One long-lived client per process, explicitly constructed, connected at
startup, shared by every repository and closed at shutdown.

    connection = MongoConnection(ConnectionOptions.from_settings(settings))
    await connection.connect()
    repository = MongoRepository(connection.get_database(), "products", ...)
    ...
    await connection.disconnect()
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from pymongo import AsyncMongoClient
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import PyMongoError

from core.config import Settings
from core.errors import DatabaseError, db_error
from core.logging import db_logger

log = db_logger()


@dataclass(frozen=True)
class ConnectionOptions:
    uri: str = "mongodb://localhost:27017"
    database: str = "default_database"
    compressors: tuple[str, ...] = ("zlib",)
    compression_level: int = 6
    timeout_ms: int = 5000
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: Any) -> ConnectionOptions:
        values = {
            "uri": settings.mongo_uri,
            "database": settings.MONGO_DATABASE,
            "compressors": tuple(settings.MONGO_COMPRESSORS),
            "compression_level": settings.MONGO_COMPRESSION_LEVEL,
            "timeout_ms": settings.MONGO_TIMEOUT_MS,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def client_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "serverSelectionTimeoutMS": self.timeout_ms,
            "tz_aware": True,
        }
        if self.compressors:
            kwargs["compressors"] = list(self.compressors)
            if "zlib" in self.compressors:
                kwargs["zlibCompressionLevel"] = self.compression_level
        kwargs.update(self.extra)
        return kwargs


class MongoConnection:
    """Owner of the process-wide document store client.

    Args:
        options: connection options
        client_factory: builds the client from (uri, **kwargs); tests pass an in-memory fake
    """

    def __init__(
        self,
        options: ConnectionOptions | None = None,
        *,
        client_factory: Callable[..., Any] = AsyncMongoClient,
    ):
        self.options = options or ConnectionOptions()
        self._client_factory = client_factory
        self._client: Any = None

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    async def connect(self) -> Any:
        """Open the client and verify the server answers. Idempotent."""
        if self._client is not None:
            return self._client

        client = self._client_factory(self.options.uri, **self.options.client_kwargs())
        try:
            await client.admin.command("ping")
        except PyMongoError as exc:
            await client.close()
            log.error("store_connection_failed", database=self.options.database, error=str(exc))
            raise db_error("Failed to connect to database", cause=exc) from exc

        self._client = client
        log.info(
            "store_connected",
            database=self.options.database,
            compressors=list(self.options.compressors),
        )
        return client

    def get_client(self) -> Any:
        if self._client is None:
            raise DatabaseError("Database connection not established")
        return self._client

    def get_database(self, name: str | None = None) -> AsyncDatabase:
        return self.get_client()[name or self.options.database]

    async def disconnect(self) -> None:
        if self._client is None:
            return
        client, self._client = self._client, None
        await client.close()
        log.info("store_disconnected", database=self.options.database)
