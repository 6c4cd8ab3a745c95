"""
Exception handlers translating failures into the ApiResponse envelope.

Token-level failures never reach the client by type: whatever went wrong with
an ephemeral or bearer token, the response says the same thing.
"""

import logging

import redis.asyncio as redis
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from ..auth.errors import (
    AuthError,
    EmailAlreadyRegistered,
    ExternalLoginFailed,
    InvalidCredentials,
    InvalidToken,
    PasswordTooLong,
    UserNotFound,
)
from .models import ApiResponse

logger = logging.getLogger(__name__)

UNEXPECTED_ERROR = "An unexpected error occurred"

# Subclass order matters: first match wins
AUTH_ERROR_STATUS = (
    (InvalidCredentials, 401),
    (ExternalLoginFailed, 401),
    (EmailAlreadyRegistered, 400),
    (InvalidToken, 400),
    (PasswordTooLong, 400),
    (UserNotFound, 404),
)


def envelope(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ApiResponse.fail(message).model_dump(),
    )


def format_validation_errors(exc: RequestValidationError) -> str:
    """Render pydantic errors as 'field: message' pairs."""
    parts = []
    for error in exc.errors():
        location = [str(item) for item in error.get("loc", ()) if item != "body"]
        field = ".".join(location) or "request"
        message = str(error.get("msg", "invalid value"))
        # pydantic prefixes messages raised from validators
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        parts.append(f"{field}: {message}")
    return ", ".join(parts)


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the envelope-producing handlers to an application."""

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        message = format_validation_errors(exc)
        logger.info(f"Validation failed for {request.url.path}: {message}")
        return envelope(400, message)

    @app.exception_handler(HTTPException)
    async def http_error_handler(request: Request, exc: HTTPException):
        return envelope(exc.status_code, str(exc.detail))

    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError):
        for error_type, status_code in AUTH_ERROR_STATUS:
            if isinstance(exc, error_type):
                return envelope(status_code, str(exc) or InvalidToken().args[0])

        # Raw token failures are not meant to escape the services
        logger.warning(f"Unmapped {type(exc).__name__} on {request.url.path}")
        return envelope(400, InvalidToken().args[0])

    @app.exception_handler(redis.ConnectionError)
    async def redis_error_handler(request: Request, exc: redis.ConnectionError):
        logger.error(f"Redis connection error: {exc}")
        return envelope(503, "Storage unavailable")

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return envelope(500, UNEXPECTED_ERROR)
