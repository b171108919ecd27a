import logging
import traceback
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import is_production

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base error carrying the HTTP status and the envelope fields."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error = "INTERNAL_ERROR"
    default_message = "Something went wrong on our end"

    def __init__(self, message: Optional[str] = None, error: Optional[str] = None, data: Any = None):
        self.message = message or self.default_message
        if error:
            self.error = error
        self.data = data
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "VALIDATION_ERROR"
    default_message = "Validation failed"


class AuthenticationError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error = "AUTH_FAILED"
    default_message = "Authentication required"


class TokenExpiredError(AuthenticationError):
    default_message = "Token has expired"


class InvalidTokenError(AuthenticationError):
    default_message = "Invalid token"


class AuthorizationError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    error = "INSUFFICIENT_PERMISSIONS"
    default_message = "Insufficient permissions"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "NOT_FOUND"
    default_message = "Resource not found"


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    error = "CONFLICT"
    default_message = "Resource already exists"


class InsufficientRoomsError(ValidationError):
    error = "INSUFFICIENT_ROOMS"
    default_message = "Not enough rooms available"


class InvalidTransitionError(ValidationError):
    error = "INVALID_TRANSITION"
    default_message = "Invalid status transition"


class InternalError(AppError):
    pass


def error_body(message: str, error: Optional[str] = None, **extra) -> dict:
    body = {"success": False, "message": message}
    if error:
        body["error"] = error
    body.update({key: value for key, value in extra.items() if value is not None})
    return body


async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.warning("%s %s -> %s %s", request.method, request.url.path, exc.status_code, exc.error)
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, exc.error, data=exc.data))


async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"), "message": err.get("msg")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body("Validation failed", "VALIDATION_ERROR", errors=errors),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else "An error occurred"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(message, f"HTTP_{exc.status_code}"),
        headers=getattr(exc, "headers", None),
    )


async def integrity_error_handler(request: Request, exc: IntegrityError):
    # Unique violations are conflicts, other constraint failures are bad data
    if "unique" in str(exc.orig).lower():
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content=error_body("Resource already exists", "CONFLICT"),
        )
    return JSONResponse(
        status_code=422,
        content=error_body("Constraint violation", "VALIDATION_ERROR"),
    )


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    stack = None if is_production() else traceback.format_exception(type(exc), exc, exc.__traceback__)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("Something went wrong on our end", "INTERNAL_ERROR", stack=stack),
    )


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
