"""HTTP middleware of the document store API

RequestLoggingMiddleware    one started/completed record per request, tied by
                            X-Correlation-ID (taken from the caller or generated)
SlowRequestMiddleware       warning when a request exceeds SLOW_REQUEST_MS
OriginCheckMiddleware       CORS_ERROR (403) envelope for disallowed origins
"""
import time
from typing import Iterable

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from core.errors import cors_rejected, error_response
from core.logging import api_logger, generate_correlation_id, request_scope

CORRELATION_HEADER = "X-Correlation-ID"

log = api_logger()


def elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


def completion_level(status: int) -> str:
    """Log method for a response status: 5xx error, 4xx warning, else info."""
    if status >= 500:
        return "error"
    if status >= 400:
        return "warning"
    return "info"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Scopes the log context to one request and logs its outcome."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or generate_correlation_id()
        with request_scope(
            correlation_id,
            method=request.method,
            path=request.url.path,
            client_ip=request.client.host if request.client else "unknown",
        ):
            started = time.perf_counter()
            log.info("request_started", query=str(request.query_params) or None)
            try:
                response = await call_next(request)
            except Exception as exc:
                log.exception("request_failed", error_type=type(exc).__name__, duration_ms=elapsed_ms(started))
                raise

            response.headers[CORRELATION_HEADER] = correlation_id
            getattr(log, completion_level(response.status_code))(
                "request_completed", status=response.status_code, duration_ms=elapsed_ms(started)
            )
            return response


class SlowRequestMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, slow_threshold_ms: float = 1000):
        super().__init__(app)
        self.slow_threshold_ms = slow_threshold_ms

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        started = time.perf_counter()
        response = await call_next(request)
        duration_ms = elapsed_ms(started)
        if duration_ms > self.slow_threshold_ms:
            log.warning(
                "slow_request",
                method=request.method,
                path=request.url.path,
                duration_ms=duration_ms,
                threshold_ms=self.slow_threshold_ms,
            )
        return response


class OriginCheckMiddleware(BaseHTTPMiddleware):
    """Answers requests from disallowed origins with CORS_ERROR (403).

    Requests without an Origin header (same-origin, curl, server-to-server)
    pass through. "*" allows every origin.
    """

    def __init__(self, app, allowed_origins: Iterable[str] = ()):
        super().__init__(app)
        self.allowed_origins = [origin.rstrip("/") for origin in allowed_origins]

    def is_allowed(self, origin: str) -> bool:
        return "*" in self.allowed_origins or origin.rstrip("/") in self.allowed_origins

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        origin = request.headers.get("Origin")
        if origin and not self.is_allowed(origin):
            return error_response(cors_rejected(origin, self.allowed_origins), request)
        return await call_next(request)
