"""Tests for the error taxonomy, builders and driver error mapping."""

import pytest
from pymongo.errors import DuplicateKeyError, PyMongoError, ServerSelectionTimeoutError
from starlette.requests import Request
from structlog.testing import capture_logs

from core.errors import (
    AppError,
    DatabaseError,
    DatabaseErrorMapper,
    DuplicateError,
    ErrorKind,
    NotFoundError,
    db_error,
    duplicate_key,
    error_response,
    extract_duplicate_field,
    map_db_errors,
    not_found,
    route_not_found,
)
from core.errors.handlers import handle_unexpected
from core.validation import ValidationError


class TestErrorKinds:
    """Kinds map to fixed HTTP statuses."""

    @pytest.mark.parametrize("kind,status", [
        (ErrorKind.VALIDATION_ERROR, 400),
        (ErrorKind.NOT_FOUND_ERROR, 404),
        (ErrorKind.DUPLICATE_ERROR, 409),
        (ErrorKind.DATABASE_ERROR, 500),
        (ErrorKind.SERVER_ERROR, 500),
        (ErrorKind.ROUTE_NOT_FOUND, 404),
        (ErrorKind.CORS_ERROR, 403),
    ])
    def test_http_status(self, kind: ErrorKind, status: int) -> None:
        assert kind.http_status == status

    def test_failure_envelope(self) -> None:
        body = not_found("Product", "abc").to_dict()

        assert body["success"] is False
        assert body["error"]["type"] == "NOT_FOUND_ERROR"
        assert body["error"]["message"] == "Product with ID abc not found"
        assert body["error"]["details"] == {"requestedId": "abc"}
        assert body["error"]["timestamp"].endswith("+00:00")

    def test_details_omitted_when_empty(self) -> None:
        assert "details" not in AppError("boom").to_dict()["error"]


class TestBuilders:

    def test_duplicate_key_default_message(self) -> None:
        error = duplicate_key("email", value="a@b.c")
        assert isinstance(error, DuplicateError)
        assert error.message == "Duplicate value detected for field: email"
        assert error.metadata == {"duplicateField": "email", "value": "a@b.c"}

    def test_db_error_keeps_cause_private(self) -> None:
        cause = PyMongoError("connection refused to 10.0.0.5")
        error = db_error("Failed to connect to database", cause=cause)

        assert error.cause is cause
        assert "10.0.0.5" not in str(error.to_dict())

    def test_route_not_found(self) -> None:
        error = route_not_found("/nope", "GET")
        assert error.status_code == 404
        assert error.metadata == {"route": "/nope", "method": "GET"}


class TestDuplicateFieldExtraction:
    """The offending field is recovered from the driver's error."""

    def test_from_index_name(self) -> None:
        message = (
            'E11000 duplicate key error collection: shop.products index: idx_unique_name '
            'dup key: { name: "Laptop" }'
        )
        assert extract_duplicate_field(message) == "name"

    def test_from_foreign_index_name(self) -> None:
        assert extract_duplicate_field("E11000 duplicate key error index: sku_1 dup key") == "sku_1"

    def test_from_key_pattern(self) -> None:
        assert extract_duplicate_field("E11000", {"keyPattern": {"email": 1}}) == "email"

    def test_unknown(self) -> None:
        assert extract_duplicate_field("E11000") == "unknown field"


class TestDatabaseErrorMapper:

    def test_duplicate_key_with_configured_message(self) -> None:
        mapper = DatabaseErrorMapper(messages={"email": "Email is already registered"})
        exc = DuplicateKeyError(
            "E11000 duplicate key error collection: db.users index: idx_unique_email dup key: {}",
            11000,
            {"keyPattern": {"email": 1}},
        )

        error = mapper.map_exception(exc)

        assert isinstance(error, DuplicateError)
        assert error.field == "email"
        assert error.message == "Email is already registered"
        assert error.cause is exc

    def test_timeout(self) -> None:
        error = DatabaseErrorMapper().map_exception(ServerSelectionTimeoutError("no servers"))
        assert isinstance(error, DatabaseError)
        assert error.message == "Database operation timed out"

    def test_other_driver_errors(self) -> None:
        error = DatabaseErrorMapper().map_exception(PyMongoError("boom"))
        assert isinstance(error, DatabaseError)
        assert error.message == "A database error occurred"


class _Store:
    error_mapper = DatabaseErrorMapper(origin="test")

    @map_db_errors
    async def failing(self, exc: BaseException):
        raise exc


class TestMapDbErrors:
    """Driver exceptions never cross a decorated method untyped."""

    @pytest.mark.asyncio
    async def test_driver_error_mapped(self) -> None:
        with pytest.raises(DatabaseError) as exc_info:
            await _Store().failing(PyMongoError("boom"))
        assert isinstance(exc_info.value.__cause__, PyMongoError)

    @pytest.mark.asyncio
    async def test_app_errors_pass_through(self) -> None:
        original = NotFoundError("gone")
        with pytest.raises(NotFoundError) as exc_info:
            await _Store().failing(original)
        assert exc_info.value is original

    @pytest.mark.asyncio
    async def test_unrelated_errors_propagate(self) -> None:
        with pytest.raises(KeyError):
            await _Store().failing(KeyError("x"))


class TestValidationErrorShape:

    def test_for_field(self) -> None:
        error = ValidationError.for_field("id", "Invalid ID format: 123", constraint="object_id", value="123")

        assert error.status_code == 400
        assert error.message == "Invalid ID format: 123"
        assert error.metadata["field"] == "id"
        assert error.metadata["violations"] == ["Invalid ID format: 123"]
        assert error.metadata["errors"][0]["constraint"] == "object_id"

    def test_from_pydantic_strips_location(self) -> None:
        error = ValidationError.from_pydantic([
            {"loc": ("query", "limit"), "msg": "Input should be a valid integer",
             "type": "int_parsing", "input": "ten"},
            {"loc": ("body", "address", "street"), "msg": "Field required", "type": "missing"},
        ])

        assert error.fields == ["limit", "address.street"]
        assert error.field_errors["limit"][0].actual_value == "ten"


def _request(path: str = "/api/v1/products") -> Request:
    return Request({
        "type": "http",
        "method": "GET",
        "path": path,
        "headers": [],
        "query_string": b"",
        "scheme": "http",
        "server": ("testserver", 80),
        "root_path": "",
    })


class TestErrorResponseLogging:
    """Each failure produces one error-handler record."""

    @pytest.mark.asyncio
    async def test_unexpected_exception_logged_once(self) -> None:
        with capture_logs() as records:
            response = await handle_unexpected(_request(), RuntimeError("boom"))

        assert response.status_code == 500
        assert [record["event"] for record in records] == ["unhandled_exception"]

    def test_app_error_logged(self) -> None:
        with capture_logs() as records:
            response = error_response(not_found("Product", "abc"), _request())

        assert response.status_code == 404
        assert [(r["event"], r["log_level"]) for r in records] == [("request_error", "warning")]
