# app/core/errors.py
"""
Application error taxonomy and the handlers that turn it into responses.

Services raise subclasses of AppError; the handlers registered in
app/main.py convert them to one of two envelopes:

    web:     {"error": "<message>", "code": "<CODE>"}
    mobile:  {"success": false, "error": "<message>", "code": "<CODE>"}

`details` (usually the raw upstream message) is only included when the
app runs in development.
"""
import logging
from enum import Enum

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.core.config import get_settings

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    # generic
    VALIDATION_ERROR = "VALIDATION_ERROR"
    AUTHENTICATION_REQUIRED = "AUTHENTICATION_REQUIRED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"
    SERVER_ERROR = "SERVER_ERROR"

    # session resolution
    MISSING_AUTH_HEADER = "MISSING_AUTH_HEADER"
    INVALID_TOKEN = "INVALID_TOKEN"
    NO_SESSION = "NO_SESSION"
    NO_CREDENTIALS = "NO_CREDENTIALS"
    PROFILE_MISSING = "PROFILE_MISSING"

    # auth flows
    MISSING_CREDENTIALS = "MISSING_CREDENTIALS"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    EMAIL_NOT_CONFIRMED = "EMAIL_NOT_CONFIRMED"
    RATE_LIMITED = "RATE_LIMITED"
    LOGIN_FAILED = "LOGIN_FAILED"
    MISSING_REFRESH_TOKEN = "MISSING_REFRESH_TOKEN"
    INVALID_REFRESH_TOKEN = "INVALID_REFRESH_TOKEN"
    REFRESH_FAILED = "REFRESH_FAILED"
    WEAK_PASSWORD = "WEAK_PASSWORD"
    EMAIL_ALREADY_EXISTS = "EMAIL_ALREADY_EXISTS"
    INVALID_EMAIL = "INVALID_EMAIL"
    ADMIN_REGISTRATION_BLOCKED = "ADMIN_REGISTRATION_BLOCKED"
    PROVIDER_UNAVAILABLE = "PROVIDER_UNAVAILABLE"
    REGISTRATION_FAILED = "REGISTRATION_FAILED"
    PASSWORD_UPDATE_ERROR = "PASSWORD_UPDATE_ERROR"

    # authorization
    INSUFFICIENT_PERMISSIONS = "INSUFFICIENT_PERMISSIONS"
    PROJECT_ACCESS_DENIED = "PROJECT_ACCESS_DENIED"
    USE_ASSIGNED_PROJECTS = "USE_ASSIGNED_PROJECTS"
    CANNOT_DELETE_SELF = "CANNOT_DELETE_SELF"

    # resources
    PROJECT_NOT_FOUND = "PROJECT_NOT_FOUND"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    FILE_NOT_FOUND = "FILE_NOT_FOUND"
    ALREADY_ASSIGNED = "ALREADY_ASSIGNED"
    INVALID_COORDINATES = "INVALID_COORDINATES"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    DOWNLOAD_URL_ERROR = "DOWNLOAD_URL_ERROR"
    FILE_DOWNLOAD_ERROR = "FILE_DOWNLOAD_ERROR"
    FILE_UPLOAD_ERROR = "FILE_UPLOAD_ERROR"


class AppError(Exception):
    """Base class for errors that are rendered as response envelopes."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code: ErrorCode = ErrorCode.SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: ErrorCode | None = None,
        *,
        details: str | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details
        if status_code is not None:
            self.status_code = status_code


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = ErrorCode.VALIDATION_ERROR


class AuthenticationError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_code = ErrorCode.AUTHENTICATION_REQUIRED


class AuthorizationError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_code = ErrorCode.FORBIDDEN


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = ErrorCode.NOT_FOUND


class ConflictError(AppError):
    # Duplicates are reported as plain bad requests to clients.
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = ErrorCode.CONFLICT


class UpstreamError(AppError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code = ErrorCode.UPSTREAM_ERROR


class InternalError(AppError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code = ErrorCode.SERVER_ERROR


# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------


def is_mobile_request(request: Request) -> bool:
    prefix = f"{get_settings().API_PREFIX}/mobile"
    return request.url.path.startswith(prefix)


def error_body(
    message: str,
    code: ErrorCode | str,
    *,
    mobile: bool,
    details: str | None = None,
) -> dict:
    body: dict = {"error": message, "code": str(getattr(code, "value", code))}
    if mobile:
        body = {"success": False, **body}
    if details and get_settings().is_development:
        body["details"] = details
    return body


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "%s %s failed: %s (%s)",
            request.method,
            request.url.path,
            exc.message,
            exc.details or "-",
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(
            exc.message,
            exc.code,
            mobile=is_mobile_request(request),
            details=exc.details,
        ),
    )


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = first.get("msg", "Invalid request")
    if field:
        message = f"{field}: {message}"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body(
            message,
            ErrorCode.VALIDATION_ERROR,
            mobile=is_mobile_request(request),
        ),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(
            "Internal server error",
            ErrorCode.SERVER_ERROR,
            mobile=is_mobile_request(request),
            details=repr(exc),
        ),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
