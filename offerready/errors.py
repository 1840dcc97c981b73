"""
errors.py
---------
Purpose:
    Typed failures surfaced by repositories and services.

Notes:
    - Every error carries a human-readable message and the HTTP status the
      API layer renders it with, as `{"error": message}`.
    - Nothing in the core retries on these; retrying is the caller's call.
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from offerready.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class AppError(Exception):
    """Base class for failures reported to API callers."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthError(AppError):
    """Missing or invalid bearer credential."""

    status_code = status.HTTP_401_UNAUTHORIZED


class ValidationError(AppError):
    """Malformed input or a store constraint rejection."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(AppError):
    """The operation targets a row that does not exist (for this user)."""

    status_code = status.HTTP_404_NOT_FOUND


class AccessError(AppError):
    """The data store rejected the operation."""

    status_code = status.HTTP_403_FORBIDDEN


class UpstreamError(AppError):
    """The billing provider answered with a non-2xx response."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: int | None = None, response_data: dict | None = None):
        super().__init__(message)
        self.upstream_status = status_code
        self.response_data = response_data or {}


def error_response(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def _app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "Request failed",
        path=request.url.path,
        method=request.method,
        error_type=type(exc).__name__,
        error=exc.message,
        status_code=exc.status_code,
    )
    return error_response(exc.message, exc.status_code)


async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = str(exc.detail)
    if exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
        message = "Method not allowed"
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": message},
        headers=getattr(exc, "headers", None),
    )


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    if location:
        message = f"Invalid {location}: {message}"
    return error_response(message, status.HTTP_400_BAD_REQUEST)


def register_error_handlers(app: FastAPI) -> None:
    """Render every failure as `{"error": message}`."""
    app.add_exception_handler(AppError, _app_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
