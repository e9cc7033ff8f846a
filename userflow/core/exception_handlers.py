"""
Exception Handlers.

FastAPI exception handlers that convert application exceptions
to standardized API responses. All exceptions are logged and
returned in the standard ErrorResponse format. A failing request
never affects other requests or the process.

Usage:
    from userflow.core.exception_handlers import register_exception_handlers

    app = FastAPI()
    register_exception_handlers(app)
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from userflow.core.exceptions import (
    ApplicationError,
    ConfigurationError,
    ConflictError,
    DatabaseError,
    ExternalServiceError,
    MessageBusError,
    NotFoundError,
    PublishBackpressureError,
    RpcTransportError,
    ValidationError,
)
from userflow.core.logging import get_logger
from userflow.schemas.base import ErrorDetail, ErrorResponse, ResponseMetadata

logger = get_logger(__name__)

# Map exception types to HTTP status codes
EXCEPTION_STATUS_MAP: dict[type[ApplicationError], int] = {
    NotFoundError: 404,
    ValidationError: 400,
    ConflictError: 409,
    ExternalServiceError: 502,
    RpcTransportError: 504,
    MessageBusError: 503,
    PublishBackpressureError: 503,
    DatabaseError: 503,
    ConfigurationError: 500,
}


def _get_request_id(request: Request) -> str | None:
    """Extract request ID from request state or headers."""
    if hasattr(request.state, "request_id"):
        return request.state.request_id
    return request.headers.get("x-request-id")


def _get_trace_id(request: Request) -> str | None:
    ctx = getattr(request.state, "causal_context", None)
    return ctx.trace_id_hex if ctx is not None else None


def _metadata(request: Request) -> ResponseMetadata:
    return ResponseMetadata(request_id=_get_request_id(request), trace_id=_get_trace_id(request))


def _status_for(exc: ApplicationError) -> int:
    """Status of the nearest mapped class in the exception's MRO."""
    for cls in type(exc).__mro__:
        if cls in EXCEPTION_STATUS_MAP:
            return EXCEPTION_STATUS_MAP[cls]
    return 500


def _error_response(request: Request, status_code: int, error: ErrorDetail) -> JSONResponse:
    response = ErrorResponse(error=error, metadata=_metadata(request))
    return JSONResponse(status_code=status_code, content=response.model_dump(mode="json"))


async def application_error_handler(
    request: Request,
    exc: ApplicationError,
) -> JSONResponse:
    """Convert an ApplicationError into its mapped status and error envelope."""
    status_code = _status_for(exc)
    log = logger.error if status_code >= 500 else logger.warning
    log(
        "Server error" if status_code >= 500 else "Client error",
        extra={
            "code": exc.code,
            "message": exc.message,
            "status": status_code,
            "path": request.url.path,
            "method": request.method,
            "request_id": _get_request_id(request),
        },
    )

    details = exc.details if isinstance(exc, ValidationError) and exc.details else None
    return _error_response(
        request, status_code, ErrorDetail(code=exc.code, message=exc.message, details=details),
    )


async def validation_error_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """
    Handle FastAPI/Pydantic request validation errors.

    Each failing field is reported under details.validation_errors with its
    dotted location, e.g. "body.name".
    """
    errors = exc.errors()
    logger.warning(
        "Request validation failed",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error_count": len(errors),
            "request_id": _get_request_id(request),
        },
    )

    details = {
        "validation_errors": [
            {
                "field": ".".join(str(loc) for loc in err.get("loc", [])),
                "message": err.get("msg", "Validation error"),
                "type": err.get("type", "unknown"),
            }
            for err in errors
        ]
    }
    return _error_response(
        request, 422,
        ErrorDetail(code="VAL_REQUEST_INVALID", message="Request validation failed", details=details),
    )


async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Log the traceback and answer 500 without internal details."""
    logger.exception(
        "Unhandled exception",
        extra={
            "path": request.url.path,
            "method": request.method,
            "exception_type": type(exc).__name__,
            "request_id": _get_request_id(request),
        },
    )
    return _error_response(
        request, 500, ErrorDetail(code="SYS_INTERNAL_ERROR", message="An unexpected error occurred"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the handlers above on app."""
    app.add_exception_handler(ApplicationError, application_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    logger.debug("Exception handlers registered")
