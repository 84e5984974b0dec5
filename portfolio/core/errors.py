"""Application error taxonomy and the JSON error envelope.

Every API error leaves the service as::

    {"success": false, "error": "<message>", "code": "<CODE>", "data": {...}}

Handlers convert framework, validation and database exceptions into that
shape so no API route ever falls through to a framework error page.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, NoResultFound, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import settings

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Internal server error"


class AppError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, status_code: Optional[int] = None,
                 code: Optional[str] = None, data: Any = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code
        self.data = data


class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"


class UnauthorizedError(AppError):
    status_code = 401
    code = "UNAUTHORIZED"

    def __init__(self, message: str = "Authentication required", **kwargs):
        super().__init__(message, **kwargs)


class ForbiddenError(AppError):
    status_code = 403
    code = "FORBIDDEN"

    def __init__(self, message: str = "Admin privileges required", **kwargs):
        super().__init__(message, **kwargs)


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, message: str = "Resource not found", **kwargs):
        super().__init__(message, **kwargs)


class ConflictError(AppError):
    status_code = 409
    code = "DUPLICATE_RECORD"


class RateLimitError(AppError):
    status_code = 429
    code = "RATE_LIMITED"

    def __init__(self, message: str = "Too many requests", retry_after: int = 60, **kwargs):
        super().__init__(message, **kwargs)
        self.retry_after = max(1, int(retry_after))


class DatabaseError(AppError):
    status_code = 500
    code = "DATABASE_ERROR"


class ExternalServiceError(AppError):
    status_code = 503
    code = "SERVICE_UNAVAILABLE"


def map_database_error(exc: Exception) -> AppError:
    """Translate a SQLAlchemy exception into the application taxonomy."""
    if isinstance(exc, AppError):
        return exc

    if isinstance(exc, NoResultFound):
        return NotFoundError("Record not found")

    if isinstance(exc, IntegrityError):
        orig = getattr(exc, "orig", None)
        pgcode = getattr(orig, "pgcode", None)
        text = str(orig or exc).lower()
        if pgcode == "23505" or "unique" in text or "duplicate" in text:
            return ConflictError("A record with this value already exists")
        if pgcode == "23503" or "foreign key" in text:
            return ValidationError("Related record does not exist", code="CONSTRAINT_VIOLATION")
        return ValidationError("Database constraint violated", code="CONSTRAINT_VIOLATION")

    return DatabaseError("Database operation failed")


def error_body(message: str, code: str, data: Any = None) -> Dict[str, Any]:
    body = {"success": False, "error": message, "code": code}
    if data is not None:
        body["data"] = data
    return body


def _public_message(status_code: int, message: str) -> str:
    # Server-side failure details are only shown while developing
    if status_code >= 500 and not settings.is_development:
        return GENERIC_ERROR_MESSAGE
    return message


def app_error_response(exc: AppError) -> JSONResponse:
    response = JSONResponse(
        status_code=exc.status_code,
        content=error_body(_public_message(exc.status_code, exc.message), exc.code, exc.data),
    )
    if isinstance(exc, RateLimitError):
        response.headers["Retry-After"] = str(exc.retry_after)
    if isinstance(exc, UnauthorizedError):
        response.headers["WWW-Authenticate"] = "Bearer"
    return response


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return app_error_response(exc)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report missing fields by name, everything else as a list of field errors."""
    missing = []
    invalid = {}
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        field = ".".join(location) or "body"
        if error.get("type") == "missing":
            missing.append(field)
        else:
            invalid[field] = error.get("msg", "Invalid value")

    if missing:
        message = f"Missing required fields: {', '.join(missing)}"
        data = {"missing": missing}
        if invalid:
            data["invalid"] = invalid
    else:
        message = "Invalid request data"
        data = invalid

    return JSONResponse(status_code=400, content=error_body(message, "VALIDATION_ERROR", data))


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    codes = {400: "BAD_REQUEST", 401: "UNAUTHORIZED", 403: "FORBIDDEN", 404: "NOT_FOUND",
             405: "METHOD_NOT_ALLOWED", 429: "RATE_LIMITED"}
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    response = JSONResponse(
        status_code=exc.status_code,
        content=error_body(_public_message(exc.status_code, message), codes.get(exc.status_code, "HTTP_ERROR")),
    )
    for name, value in (exc.headers or {}).items():
        response.headers[name] = value
    return response


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    mapped = map_database_error(exc)
    logger.error(f"Database error on {request.method} {request.url.path}: {exc}")
    return app_error_response(mapped)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    message = str(exc) if settings.is_development else GENERIC_ERROR_MESSAGE
    return JSONResponse(status_code=500, content=error_body(message, "INTERNAL_ERROR"))


def register_exception_handlers(app: FastAPI) -> None:
    """Install the envelope-producing handlers on ``app``."""
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
