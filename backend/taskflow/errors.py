"""Application error type and the HTTP error translator.

Every layer raises ``AppError`` tagged with an ``ErrorKind``. Library
exceptions that reach the boundary (request validation, JWT decoding,
MongoDB unique-index violations) are classified into the same kinds, so
``build_error_response`` only has to map a closed set of kinds.
"""
import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from jose import ExpiredSignatureError, JWTError
from pydantic import ValidationError
from pymongo.errors import DuplicateKeyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from taskflow.config import Settings
from taskflow.utils.monitoring import StructuredLogger

DUPLICATE_KEY_CODE = 11000

AVAILABLE_ENDPOINTS = [
    "GET /",
    "GET /health",
    "POST /api/auth/register",
    "POST /api/auth/login",
    "GET /api/items",
    "GET /api/reminders",
    "GET /api/notifications",
]


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    INVALID_TOKEN = "invalid_token"
    TOKEN_EXPIRED = "token_expired"
    DUPLICATE_KEY = "duplicate_key"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    BAD_REQUEST = "bad_request"
    INTERNAL = "internal"


class AppError(Exception):
    """Base exception for TaskFlow API"""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        errors: Optional[List[str]] = None,
        field: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.errors = errors or []
        self.field = field
        self.cause = cause

    @classmethod
    def validation(cls, errors: List[str]) -> "AppError":
        return cls(ErrorKind.VALIDATION, "Validation failed", errors=errors)

    @classmethod
    def invalid_token(cls) -> "AppError":
        return cls(ErrorKind.INVALID_TOKEN, "Invalid token")

    @classmethod
    def token_expired(cls) -> "AppError":
        return cls(ErrorKind.TOKEN_EXPIRED, "Token has expired")

    @classmethod
    def duplicate(cls, field: str) -> "AppError":
        return cls(ErrorKind.DUPLICATE_KEY, f"{field} already exists", field=field)

    @classmethod
    def unauthorized(cls, message: str) -> "AppError":
        return cls(ErrorKind.UNAUTHORIZED, message)

    @classmethod
    def forbidden(cls, message: str) -> "AppError":
        return cls(ErrorKind.FORBIDDEN, message)

    @classmethod
    def not_found(cls, message: str) -> "AppError":
        return cls(ErrorKind.NOT_FOUND, message)

    @classmethod
    def bad_request(cls, message: str) -> "AppError":
        return cls(ErrorKind.BAD_REQUEST, message)

    @classmethod
    def internal(cls, cause: BaseException) -> "AppError":
        return cls(ErrorKind.INTERNAL, str(cause), cause=cause)


def _format_validation_errors(errors: List[Dict[str, Any]]) -> List[str]:
    messages = []
    for error in errors:
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        message = error.get("msg", "Invalid value")
        messages.append(f"{'.'.join(location)}: {message}" if location else message)
    return messages


_DUP_KEY_FIELD = re.compile(r"dup key: \{\s*:?\s*\"?([A-Za-z0-9_.]+)\"?\s*:")
_DUP_KEY_INDEX = re.compile(r"index: ([A-Za-z0-9_.]+?)_-?1")


def duplicate_key_field(exc: DuplicateKeyError) -> str:
    """Name of the field that violated a unique index"""
    details = exc.details or {}
    for key in ("keyValue", "keyPattern"):
        payload = details.get(key)
        if payload:
            return next(iter(payload))

    text = str(exc)
    for pattern in (_DUP_KEY_FIELD, _DUP_KEY_INDEX):
        match = pattern.search(text)
        if match:
            return match.group(1)
    return "value"


def classify_exception(exc: BaseException) -> AppError:
    """Map any exception onto an AppError"""
    if isinstance(exc, AppError):
        return exc
    if isinstance(exc, RequestValidationError):
        return AppError.validation(_format_validation_errors(exc.errors()))
    if isinstance(exc, ValidationError):
        return AppError.validation(_format_validation_errors(exc.errors()))
    if isinstance(exc, ExpiredSignatureError):
        return AppError.token_expired()
    if isinstance(exc, JWTError):
        return AppError.invalid_token()
    if isinstance(exc, DuplicateKeyError) or getattr(exc, "code", None) == DUPLICATE_KEY_CODE:
        return AppError.duplicate(duplicate_key_field(exc))
    return AppError.internal(exc)


def build_error_response(error: AppError, settings: Settings) -> Tuple[int, Dict[str, Any]]:
    """Status code and JSON body for an AppError"""
    kind = error.kind

    if kind == ErrorKind.VALIDATION:
        return status.HTTP_400_BAD_REQUEST, {
            "success": False,
            "message": error.message,
            "errors": error.errors or ["Invalid request"],
        }
    if kind in (ErrorKind.INVALID_TOKEN, ErrorKind.TOKEN_EXPIRED, ErrorKind.UNAUTHORIZED):
        return status.HTTP_401_UNAUTHORIZED, {"success": False, "message": error.message}
    if kind == ErrorKind.DUPLICATE_KEY:
        return status.HTTP_400_BAD_REQUEST, {
            "success": False,
            "message": error.message,
            "field": error.field,
        }
    if kind == ErrorKind.FORBIDDEN:
        return status.HTTP_403_FORBIDDEN, {"success": False, "message": error.message}
    if kind == ErrorKind.NOT_FOUND:
        return status.HTTP_404_NOT_FOUND, {"success": False, "message": error.message}
    if kind == ErrorKind.BAD_REQUEST:
        return status.HTTP_400_BAD_REQUEST, {"success": False, "message": error.message}
    if kind == ErrorKind.INTERNAL:
        return status.HTTP_500_INTERNAL_SERVER_ERROR, {
            "success": False,
            "message": "Internal server error",
            "error": "Internal server error" if settings.is_production else error.message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    raise ValueError(f"Unhandled error kind: {kind}")


def not_found_response() -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={
            "success": False,
            "message": "API endpoint not found",
            "availableEndpoints": AVAILABLE_ENDPOINTS,
        },
    )


def error_response(request: Request, exc: BaseException, settings: Settings) -> JSONResponse:
    """Classify ``exc``, log it and build the client response"""
    error = classify_exception(exc)
    status_code, body = build_error_response(error, settings)

    if error.kind == ErrorKind.INTERNAL:
        StructuredLogger.log_error(
            exc,
            context={"path": request.url.path, "method": request.method},
        )
    else:
        StructuredLogger.log_event(
            "request_error",
            error.message,
            metadata={
                "kind": error.kind.value,
                "status_code": status_code,
                "path": request.url.path,
            },
            level="WARNING",
        )
    return JSONResponse(status_code=status_code, content=body)


def register_error_handlers(app: FastAPI, settings: Settings):
    """Install the global error translator on the application"""

    def respond(request: Request, exc: BaseException) -> JSONResponse:
        return error_response(request, exc, settings)

    async def app_error_handler(request: Request, exc: Exception):
        return respond(request, exc)

    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        # Unmatched paths and unmatched methods both fall through to the catalog
        if exc.status_code in (status.HTTP_404_NOT_FOUND, status.HTTP_405_METHOD_NOT_ALLOWED):
            return not_found_response()
        if exc.status_code in (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN):
            return respond(request, AppError.unauthorized(str(exc.detail)))
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "message": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    for exc_class in (AppError, RequestValidationError, ValidationError, JWTError, DuplicateKeyError):
        app.add_exception_handler(exc_class, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, app_error_handler)
