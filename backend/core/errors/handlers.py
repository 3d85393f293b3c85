"""Exception handlers

Every failure leaves the API through error_response, which renders the
failure envelope and logs it once:

    {"success": false, "error": {"type", "message", "timestamp", "details"?}}

Sources of failures:
    AppError                  raised by validators, services, repositories
    StarletteHTTPException    unmatched path or method (ROUTE_NOT_FOUND)
    RequestValidationError    malformed query parameters (VALIDATION_ERROR)
    Exception                 anything else (SERVER_ERROR, cause kept in logs only)
"""
from __future__ import annotations

from bson import ObjectId
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.logging import api_logger

from .builders import route_not_found
from .types import AppError, ServerError

log = api_logger()


def error_response(error: AppError, request: Request | None = None, *, logged: bool = False) -> JSONResponse:
    """Failure envelope for error; logged=True when the caller already recorded it."""
    if not logged:
        level = "warning" if error.status_code < 500 else "error"
        getattr(log, level)(
            "request_error",
            error_type=error.kind.value,
            message=error.message,
            status=error.status_code,
            path=request.url.path if request else None,
            metadata=error.metadata or None,
            cause=repr(error.cause) if error.cause else None,
        )
    body = jsonable_encoder(error.to_dict(), custom_encoder={ObjectId: str})
    return JSONResponse(status_code=error.status_code, content=body)


async def handle_app_error(request: Request, exc: AppError) -> JSONResponse:
    return error_response(exc, request)


async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # 405 is reported like 404: the path/method pair is not routable
    if exc.status_code in (404, 405):
        return error_response(route_not_found(request.url.path, request.method), request)

    error = ServerError(str(exc.detail) if exc.detail else f"HTTP {exc.status_code}")
    error.status_code = exc.status_code
    return error_response(error, request)


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    from core.validation.errors import ValidationError

    return error_response(ValidationError.from_pydantic(exc.errors()), request)


async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    log.exception("unhandled_exception", error_type=type(exc).__name__, path=request.url.path)
    return error_response(ServerError(cause=exc), request, logged=True)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, handle_app_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(Exception, handle_unexpected)
