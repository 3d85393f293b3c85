"""CRUD Router Factory

    router = create_crud_router(
        lambda: controller,
        RequestValidators(PRODUCT_SCHEMA),
        prefix="/api/v1/products",
    )
    app.include_router(router)

Routes:
    GET    {prefix}        list (equality filters + pagination)
    POST   {prefix}        create
    GET    {prefix}/{id}   read
    PATCH  {prefix}/{id}   partial update
    DELETE {prefix}/{id}   remove
"""
from __future__ import annotations

from typing import Any, Callable, Iterable

from fastapi import APIRouter, Depends, Query

from core.validation import RequestValidators, ValidationError
from repositories import CREATED_AT_FIELD, ID_FIELD, PaginationWindow, SortDirection

from .controller import CrudController


class PaginationParams:
    """FastAPI dependency producing the PaginationWindow of a list request.

    limit is capped at max_limit; sortBy must name a schema field, `_id`
    or `createdAt`.
    """

    def __init__(self, sortable_fields: Iterable[str], *, default_limit: int = 20, max_limit: int = 100):
        self.sortable_fields = frozenset(sortable_fields) | {ID_FIELD, CREATED_AT_FIELD}
        self.default_limit = default_limit
        self.max_limit = max_limit

    def __call__(
        self,
        skip: int = Query(0, description="Number of documents to skip"),
        limit: int | None = Query(None, description="Maximum documents per page"),
        sort_by: str = Query(CREATED_AT_FIELD, alias="sortBy"),
        sort_order: str = Query(SortDirection.DESC.value, alias="sortOrder"),
    ) -> PaginationWindow:
        if sort_by not in self.sortable_fields:
            raise ValidationError.for_field(
                "sortBy",
                f"Cannot sort by unknown field: {sort_by}",
                constraint=f"one_of[{', '.join(sorted(self.sortable_fields))}]",
                value=sort_by,
            )
        if sort_order not in (SortDirection.ASC.value, SortDirection.DESC.value):
            raise ValidationError.for_field(
                "sortOrder", "sortOrder must be 'asc' or 'desc'", constraint="one_of[asc, desc]", value=sort_order
            )

        effective_limit = self.default_limit if limit is None else limit
        if effective_limit > self.max_limit:
            effective_limit = self.max_limit

        return PaginationWindow(
            skip=skip,
            limit=effective_limit,
            sort_field=sort_by,
            sort_direction=SortDirection(sort_order),
        )


def create_crud_router(
    get_controller: Callable[..., CrudController],
    validators: RequestValidators,
    *,
    prefix: str,
    tags: list[str] | None = None,
    default_limit: int = 20,
    max_limit: int = 100,
) -> APIRouter:
    """Build the five CRUD routes for one entity.

    Args:
        get_controller: FastAPI dependency resolving the entity's controller
        validators: request validators derived from the entity schema
        prefix: mount path, e.g. "/api/v1/products"
    """
    router = APIRouter(prefix=prefix, tags=tags)
    pagination = PaginationParams(validators.schema, default_limit=default_limit, max_limit=max_limit)

    @router.get("")
    async def find_entities(
        filters: dict[str, Any] = Depends(validators.filter_query),
        window: PaginationWindow = Depends(pagination),
        controller: CrudController = Depends(get_controller),
    ):
        return await controller.find(filters, window)

    @router.post("", status_code=201)
    async def create_entity(
        body: dict[str, Any] = Depends(validators.create_body),
        controller: CrudController = Depends(get_controller),
    ):
        return await controller.create(body)

    @router.get("/{entity_id}")
    async def read_entity(entity_id: str, controller: CrudController = Depends(get_controller)):
        return await controller.read(entity_id)

    @router.patch("/{entity_id}")
    async def update_entity(
        entity_id: str,
        body: dict[str, Any] = Depends(validators.update_body),
        controller: CrudController = Depends(get_controller),
    ):
        return await controller.update(entity_id, body)

    @router.delete("/{entity_id}")
    async def remove_entity(entity_id: str, controller: CrudController = Depends(get_controller)):
        return await controller.remove(entity_id)

    return router
