"""Error taxonomy and the JSON error envelope shared by every endpoint."""

import logging
import traceback
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base for errors that map to an HTTP status and a {success, error, message} body."""

    status_code = 500
    error = "Internal server error"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error: str | None = None,
    ) -> None:
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if error is not None:
            self.error = error
        super().__init__(message)


class ValidationError(AppError):
    status_code = 400
    error = "Validation error"


class AuthenticationError(AppError):
    status_code = 401
    error = "Authentication failed"


class AuthorizationError(AppError):
    status_code = 403
    error = "Forbidden"


class NotFoundError(AppError):
    status_code = 404
    error = "Not found"


class ConflictError(AppError):
    status_code = 409
    error = "Conflict"


class DatabaseConnectionError(AppError):
    status_code = 500
    error = "Database connection error"


class DatabaseOperationError(AppError):
    status_code = 500
    error = "Database operation error"


class ImportValidationError(AppError):
    """Referential-integrity failure in an uploaded workbook; raised before any mutation."""

    status_code = 400
    error = "Import validation failed"

    def __init__(self, message: str, offending_rows: int = 0) -> None:
        self.offending_rows = offending_rows
        super().__init__(message)


class BulkReplaceError(AppError):
    """Delete or insert step of a collection replace did not reach the expected count."""

    status_code = 500
    error = "Bulk replace failed"


def error_body(
    error: str,
    message: str,
    *,
    is_development: bool,
    exc: BaseException | None = None,
    **extra: Any,
) -> dict[str, Any]:
    """Build the standard error envelope; diagnostics only in development."""
    body: dict[str, Any] = {"success": False, "error": error, "message": message}
    body.update(extra)
    if is_development:
        diagnostics: dict[str, Any] = {
            "environment": "development",
            "timestamp": datetime.now(UTC).isoformat(),
        }
        if exc is not None:
            diagnostics["name"] = type(exc).__name__
            diagnostics["stack"] = "".join(
                traceback.format_exception(type(exc), exc, exc.__traceback__)
            )
        body["diagnostics"] = diagnostics
    return body


def internal_error_response(exc: BaseException, is_development: bool) -> JSONResponse:
    """500 for an unexpected exception; message scrubbed outside development."""
    message = str(exc) if is_development else "An unexpected error occurred"
    return JSONResponse(
        status_code=500,
        content=error_body(
            "Internal server error",
            message,
            is_development=is_development,
            exc=exc,
        ),
    )


def _is_development(request: Request) -> bool:
    settings = getattr(request.app.state, "settings", None)
    return bool(settings is not None and settings.is_development)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    extra: dict[str, Any] = {}
    if isinstance(exc, ImportValidationError):
        extra["offendingRows"] = exc.offending_rows
    if exc.status_code >= 500:
        logger.error("%s: %s", exc.error, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(
            exc.error,
            exc.message,
            is_development=_is_development(request),
            exc=exc if exc.status_code >= 500 else None,
            **extra,
        ),
    )


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    if location:
        message = f"{location}: {message}"
    return JSONResponse(
        status_code=400,
        content=error_body(
            ValidationError.error,
            message,
            is_development=_is_development(request),
        ),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the envelope handlers for AppError and request validation errors."""
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
