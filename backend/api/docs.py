"""Documentation Routes

Serves the generated OpenAPI document as JSON at `<path>/openapi.json` and
renders it with Swagger UI at `<path>`.
"""
from __future__ import annotations

from typing import Any, Callable

from fastapi import APIRouter
from fastapi.openapi.docs import get_swagger_ui_html
from fastapi.responses import HTMLResponse, JSONResponse

from core.logging import docs_logger

log = docs_logger()

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}

SWAGGER_UI_PARAMETERS = {
    "docExpansion": "list",
    "defaultModelsExpandDepth": 1,
    "defaultModelExpandDepth": 1,
    "filter": True,
}


def create_docs_router(
    document: dict[str, Any] | Callable[[], dict[str, Any]],
    *,
    path: str = "/docs",
    title: str = "API Docs",
) -> APIRouter:
    """Build the documentation routes.

    Args:
        document: generated document ({"definition": {...}}) or a callable returning it
        path: mount path of the Swagger UI
        title: page title
    """
    router = APIRouter(include_in_schema=False)
    path = "/" + path.strip("/")
    openapi_url = f"{path}/openapi.json"

    def resolve() -> dict[str, Any]:
        return document() if callable(document) else document

    @router.get(openapi_url)
    async def openapi_json() -> JSONResponse:
        return JSONResponse(resolve()["definition"], headers=NO_CACHE_HEADERS)

    @router.get(path)
    async def swagger_ui() -> HTMLResponse:
        return get_swagger_ui_html(
            openapi_url=openapi_url,
            title=f"{title} - API Docs",
            swagger_ui_parameters=SWAGGER_UI_PARAMETERS,
        )

    log.info("docs_mounted", path=path, openapi_url=openapi_url)
    return router
