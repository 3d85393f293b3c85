"""API Assembly

ApiBuilder wires declared entities into one FastAPI application:

- one MongoConnection per process, opened in the lifespan and closed at shutdown
- a repository per entity, initialised (collection + unique indexes) at startup
- CRUD routes per entity at `<API_PREFIX>/<collection>`
- centralized error handlers, request logging, slow request warnings
- CORS with a CORS_ERROR (403) answer for disallowed origins
- generated documentation at `<DOCS_PATH>` when enabled
- `/health`

Usage:
    app = (
        ApiBuilder(settings)
        .add_entity(EntityDefinition("products", PRODUCT_SCHEMA, unique_fields=("name",)))
        .build()
    )
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Sequence

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from core.config import Settings, get_settings
from core.database import ConnectionOptions, MongoConnection
from core.errors import ServerError, register_error_handlers
from core.logging import api_logger
from core.middleware import OriginCheckMiddleware, RequestLoggingMiddleware, SlowRequestMiddleware
from core.validation import (
    CrudDocGenerator,
    DocConfig,
    RequestValidators,
    SchemaDefinition,
    ensure_schema,
    merge_documents,
)
from core.validation.generators import capitalize
from repositories import MongoRepository, PaginationWindow, UniqueField, normalize_unique_fields
from services import CrudService

from .controller import CrudController
from .docs import create_docs_router
from .router import create_crud_router

log = api_logger()


@dataclass(frozen=True)
class EntityDefinition:
    """One entity exposed by the API.

    Args:
        collection: collection name, also the resource path segment
        schema: field descriptors of the entity
        unique_fields: names or UniqueField configs
        database: database name; defaults to MONGO_DATABASE
        entity_name: name used in error messages
        strict: reject undeclared fields
    """
    collection: str
    schema: SchemaDefinition
    unique_fields: Sequence[str | UniqueField] = ()
    database: str | None = None
    entity_name: str = "Entity"
    strict: bool = True
    title: str | None = None
    description: str | None = None
    version: str = "1.0.0"

    def __post_init__(self) -> None:
        ensure_schema(self.schema)
        object.__setattr__(self, "unique_fields", normalize_unique_fields(self.unique_fields))
        for unique in self.unique_fields:
            if unique.field_name not in self.schema:
                raise ValueError(
                    f"Unique field {unique.field_name!r} is not declared in the {self.collection} schema"
                )


class ApiBuilder:
    """Builds the FastAPI application for a set of entities.

    Args:
        settings: process settings; defaults to get_settings()
        connection: store connection; built from settings when omitted
        title: application and documentation title
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        connection: MongoConnection | None = None,
        title: str | None = None,
        description: str | None = None,
        version: str = "1.0.0",
    ):
        self.settings = settings or get_settings()
        self.connection = connection or MongoConnection(ConnectionOptions.from_settings(self.settings))
        self.title = title
        self.description = description
        self.version = version
        self.entities: dict[str, EntityDefinition] = {}

    def add_entity(self, entity: EntityDefinition) -> ApiBuilder:
        if entity.collection in self.entities:
            raise ValueError(f"Entity {entity.collection!r} is already registered")
        self.entities[entity.collection] = entity
        return self

    @property
    def api_title(self) -> str:
        if self.title:
            return self.title
        if len(self.entities) == 1:
            return f"{next(iter(self.entities))} API"
        return "CRUD API"

    def base_path(self, entity: EntityDefinition) -> str:
        return f"{self.settings.API_PREFIX.rstrip('/')}/{entity.collection}"

    def build_docs(self) -> dict[str, Any]:
        """Documentation for every registered entity, merged into one document."""
        server_url = f"http://localhost:{self.settings.BACKEND_PORT}"
        documents = [
            CrudDocGenerator(DocConfig(
                title=entity.title or f"{entity.collection} API",
                resource_name=entity.collection,
                base_path=self.base_path(entity),
                schema=entity.schema,
                server_url=server_url,
                description=entity.description,
                version=entity.version,
                unique_fields=tuple(u.field_name for u in entity.unique_fields),
            )).generate()
            for entity in self.entities.values()
        ]
        if len(documents) == 1:
            return documents[0]
        return merge_documents(
            documents,
            title=self.api_title,
            description=self.description,
            version=self.version,
            server_url=server_url,
        )

    def _create_controller(self, entity: EntityDefinition) -> tuple[MongoRepository, CrudController]:
        repository = MongoRepository(
            self.connection.get_database(entity.database),
            entity.collection,
            unique_fields=entity.unique_fields,
            default_pagination=PaginationWindow(limit=self.settings.DEFAULT_PAGE_SIZE),
        )
        service = CrudService(repository, entity_name=entity.entity_name)
        return repository, CrudController(service)

    def _lifespan(self) -> Callable[[FastAPI], Any]:
        @asynccontextmanager
        async def lifespan(app: FastAPI) -> AsyncIterator[None]:
            log.info("startup", entities=list(self.entities))
            await self.connection.connect()
            controllers: dict[str, CrudController] = {}
            try:
                for entity in self.entities.values():
                    repository, controller = self._create_controller(entity)
                    await repository.initialize()
                    controllers[entity.collection] = controller
            except Exception:
                await self.connection.disconnect()
                raise
            app.state.controllers = controllers

            yield

            log.info("shutdown")
            app.state.controllers = {}
            await self.connection.disconnect()

        return lifespan

    @staticmethod
    def _controller_resolver(collection: str) -> Callable[[Request], CrudController]:
        def resolve(request: Request) -> CrudController:
            controller = getattr(request.app.state, "controllers", {}).get(collection)
            if controller is None:
                raise ServerError(f"Service for {collection} is not initialized")
            return controller
        return resolve

    def build(self) -> FastAPI:
        if not self.entities:
            raise ValueError("At least one entity must be registered")
        settings = self.settings

        app = FastAPI(
            title=self.api_title,
            description=self.description or "",
            version=self.version,
            lifespan=self._lifespan(),
            docs_url=None,
            redoc_url=None,
            openapi_url=None,
        )

        register_error_handlers(app)

        # Middleware (order matters: last added = first executed)
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.ALLOWED_ORIGINS,
            allow_credentials=True,
            allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
            allow_headers=["*"],
        )
        app.add_middleware(OriginCheckMiddleware, allowed_origins=settings.ALLOWED_ORIGINS)
        app.add_middleware(SlowRequestMiddleware, slow_threshold_ms=settings.SLOW_REQUEST_MS)
        app.add_middleware(RequestLoggingMiddleware)

        for entity in self.entities.values():
            app.include_router(create_crud_router(
                self._controller_resolver(entity.collection),
                RequestValidators(entity.schema, strict=entity.strict),
                prefix=self.base_path(entity),
                tags=[capitalize(entity.collection)],
                default_limit=settings.DEFAULT_PAGE_SIZE,
                max_limit=settings.MAX_PAGE_SIZE,
            ))
            log.info("entity_mounted", collection=entity.collection, path=self.base_path(entity))

        if settings.DOCS_ENABLED:
            app.include_router(create_docs_router(
                self.build_docs(), path=settings.DOCS_PATH, title=self.api_title,
            ))

        connection = self.connection

        @app.get("/health")
        async def health_check():
            return {
                "status": "ok",
                "database": "connected" if connection.is_connected else "disconnected",
                "version": self.version,
            }

        return app
