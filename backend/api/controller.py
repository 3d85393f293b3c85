"""CRUD Controller

Maps one validated request onto one service call and shapes the success
envelope:

    {"success": true, "message": "...", "data": ..., "pagination"?: {...},
     "timestamp": "2024-01-15T10:30:00+00:00"}

Raised errors are not handled here; they reach the centralized handlers
registered by core.errors.register_error_handlers.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping

import structlog
from bson import ObjectId
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from core.logging import api_logger
from core.validation import ValidationError
from repositories import PaginationWindow
from services import CrudService


def encode(content: Any) -> Any:
    """JSON-ready content: ObjectIds as hex strings, datetimes as ISO-8601."""
    return jsonable_encoder(content, custom_encoder={ObjectId: str})


def success_envelope(
    message: str,
    data: Any = None,
    *,
    pagination: dict[str, Any] | None = None,
) -> dict[str, Any]:
    envelope: dict[str, Any] = {"success": True, "message": message, "data": data}
    if pagination is not None:
        envelope["pagination"] = pagination
    envelope["timestamp"] = datetime.now(timezone.utc).isoformat()
    return envelope


class CrudController:
    """HTTP-facing adapter over a CrudService."""

    __slots__ = ("service", "log")

    def __init__(self, service: CrudService, logger: structlog.stdlib.BoundLogger | None = None):
        self.service = service
        self.log = logger or api_logger()

    async def create(self, data: Mapping[str, Any] | None) -> JSONResponse:
        if data is None:
            raise ValidationError.for_field(
                "body", "Request body is required for entity creation", constraint="required"
            )

        created = await self.service.create(data)
        if not created:
            return JSONResponse(
                status_code=201,
                content={
                    "success": False,
                    "message": "Creation of Document for entity failed",
                    "data": None,
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                },
            )

        self.log.debug("create_succeeded", entity_id=str(created["_id"]), status=201)
        return JSONResponse(
            status_code=201,
            content=encode(success_envelope("Entity created successfully", created)),
        )

    async def read(self, entity_id: str) -> JSONResponse:
        entity = await self.service.read(entity_id)
        return JSONResponse(
            status_code=200,
            content=encode(success_envelope("Entity retrieved successfully", entity)),
        )

    async def update(self, entity_id: str, data: Mapping[str, Any] | None) -> JSONResponse:
        if not data:
            raise ValidationError.for_field(
                "body", "Request body must contain at least one field to update", constraint="non_empty"
            )

        updated = await self.service.update(entity_id, data)
        self.log.debug("update_succeeded", entity_id=entity_id, status=200)
        return JSONResponse(
            status_code=200,
            content=encode(success_envelope("Entity updated successfully", updated)),
        )

    async def remove(self, entity_id: str) -> JSONResponse:
        await self.service.remove(entity_id)
        self.log.debug("remove_succeeded", entity_id=entity_id, status=200)
        return JSONResponse(
            status_code=200,
            content=encode(success_envelope("Entity removed successfully")),
        )

    async def find(
        self,
        filters: Mapping[str, Any] | None = None,
        pagination: PaginationWindow | None = None,
    ) -> JSONResponse:
        result = await self.service.find(filters, pagination)
        self.log.debug("find_succeeded", count=len(result.items), total=result.total, status=200)
        return JSONResponse(
            status_code=200,
            content=encode(success_envelope(
                "Entities retrieved successfully",
                result.items,
                pagination=result.pagination(),
            )),
        )
