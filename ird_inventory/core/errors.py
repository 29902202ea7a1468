"""
IRD Inventory - Error Handling

Typed error taxonomy raised by the services and the FastAPI handlers that map
it to a JSON envelope. Services raise; the boundary translates once.

    InvalidArgumentError     400  missing/malformed field (checked before writes)
    NotFoundError            404  referenced Ird/Equipment/... does not exist
    ConflictError            409  unique constraint violated
    InvariantViolationError  500  post-write consistency check failed
    PersistenceError         500  storage reported an unexpected failure
    StoreUnavailableError    503  store not initialized (degraded mode)
"""

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from starlette.exceptions import HTTPException as StarletteHTTPException

from .middleware import get_request_id

logger = logging.getLogger(__name__)


# =============================================================================
# Error Codes
# =============================================================================

ERROR_INVALID_ARGUMENT = "invalid_argument"
ERROR_NOT_FOUND = "not_found"
ERROR_CONFLICT = "conflict"
ERROR_BAD_REQUEST = "bad_request"
ERROR_INVARIANT = "invariant_violation"
ERROR_PERSISTENCE = "persistence_error"
ERROR_INTERNAL = "internal_error"
ERROR_UNAVAILABLE = "store_unavailable"


# =============================================================================
# Error Response Model
# =============================================================================


class ErrorResponse(BaseModel):
    """Standardized error envelope."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    error: str  # Machine-readable error code
    message: str  # Human-readable error message
    status_code: int
    request_id: str | None = None
    detail: Any = None
    fields: list[str] | None = None


# =============================================================================
# Exceptions
# =============================================================================


class InventoryError(Exception):
    """Base exception for inventory business errors."""

    def __init__(
        self,
        message: str,
        error_code: str = ERROR_INTERNAL,
        status_code: int = 500,
        detail: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.detail = detail


class InvalidArgumentError(InventoryError):
    def __init__(self, message: str, field: str | None = None):
        super().__init__(
            message=message,
            error_code=ERROR_INVALID_ARGUMENT,
            status_code=400,
            detail={"field": field} if field else None,
        )
        self.field = field


class NotFoundError(InventoryError):
    def __init__(self, message: str = "Resource not found"):
        super().__init__(message=message, error_code=ERROR_NOT_FOUND, status_code=404)


class ConflictError(InventoryError):
    """Unique constraint violated; ``fields`` names the offending fields."""

    def __init__(
        self,
        message: str,
        fields: list[str] | None = None,
        detail: dict[str, Any] | None = None,
    ):
        super().__init__(
            message=message,
            error_code=ERROR_CONFLICT,
            status_code=409,
            detail=detail or {},
        )
        self.fields = fields or []


class InvariantViolationError(InventoryError):
    def __init__(self, message: str):
        super().__init__(message=message, error_code=ERROR_INVARIANT, status_code=500)


class PersistenceError(InventoryError):
    def __init__(self, message: str = "Storage operation failed"):
        super().__init__(message=message, error_code=ERROR_PERSISTENCE, status_code=500)


class StoreUnavailableError(InventoryError):
    def __init__(self, message: str = "Storage backend unavailable"):
        super().__init__(message=message, error_code=ERROR_UNAVAILABLE, status_code=503)


# =============================================================================
# Exception Handlers
# =============================================================================


def create_error_response(
    status_code: int,
    error: str,
    message: str,
    detail: Any = None,
    fields: list[str] | None = None,
) -> JSONResponse:
    request_id = get_request_id()
    response = ErrorResponse(
        error=error,
        message=message,
        status_code=status_code,
        request_id=request_id or None,
        detail=detail,
        fields=fields,
    )
    return JSONResponse(
        status_code=status_code,
        content=response.model_dump(mode="json", by_alias=True, exclude_none=True),
    )


async def inventory_error_handler(request: Request, exc: InventoryError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}",
            extra={"request_id": get_request_id(), "path": request.url.path},
        )
    else:
        logger.info(
            f"{exc.error_code} on {request.method} {request.url.path}: {exc.message}",
            extra={"request_id": get_request_id(), "path": request.url.path},
        )

    fields = exc.fields if isinstance(exc, ConflictError) else None
    return create_error_response(
        status_code=exc.status_code,
        error=exc.error_code,
        message=exc.message,
        detail=exc.detail,
        fields=fields,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    error_map = {
        400: ERROR_BAD_REQUEST,
        404: ERROR_NOT_FOUND,
        409: ERROR_CONFLICT,
    }
    if isinstance(exc.detail, dict):
        message = exc.detail.get("message", str(exc.detail))
    else:
        message = str(exc.detail)

    return create_error_response(
        status_code=exc.status_code,
        error=error_map.get(exc.status_code, ERROR_INTERNAL),
        message=message,
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Request shape errors are client errors (400), with field-level details."""
    details = []
    for error in exc.errors():
        loc = error.get("loc", [])
        details.append(
            {
                "field": ".".join(str(x) for x in loc) if loc else None,
                "message": error.get("msg", "Validation error"),
            }
        )

    logger.warning(
        f"Validation error on {request.url.path}: {len(details)} errors",
        extra={"request_id": get_request_id(), "path": request.url.path, "count": len(details)},
    )

    return create_error_response(
        status_code=status.HTTP_400_BAD_REQUEST,
        error=ERROR_BAD_REQUEST,
        message="Request validation failed",
        detail=details,
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all: log the traceback, return a generic 500."""
    logger.error(
        f"Unhandled exception: {type(exc).__name__}: {exc}",
        extra={
            "request_id": get_request_id(),
            "path": request.url.path,
            "method": request.method,
        },
        exc_info=True,
    )

    return create_error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        error=ERROR_INTERNAL,
        message="An unexpected error occurred. Please try again later.",
    )


def setup_error_handlers(app: FastAPI) -> None:
    """Register all error handlers with the FastAPI app."""
    app.add_exception_handler(InventoryError, inventory_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
