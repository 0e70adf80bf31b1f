"""Application error taxonomy and the FastAPI handlers that render it."""
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "internal_error"
    default_message = "Internal server error"
    headers = None

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    """A required field is missing or malformed."""

    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "validation_error"
    default_message = "Invalid request"


class UnauthorizedError(AppError):
    """The bearer token is missing, invalid or expired."""

    status_code = status.HTTP_401_UNAUTHORIZED
    error_code = "unauthorized"
    default_message = "Could not validate credentials"
    headers = {"WWW-Authenticate": "Bearer"}


class NotFoundError(AppError):
    """A referenced session, quiz, guide or component does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    error_code = "not_found"
    default_message = "Not found"


class EmptySourceError(AppError):
    """The operation needs prior data that is not there yet."""

    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "empty_source"
    default_message = "Nothing to work from"


class GenerationError(AppError):
    """The generation backend errored, timed out or returned unusable output."""

    error_code = "generation_failed"
    default_message = "Generation failed"


class PersistenceError(AppError):
    error_code = "persistence_failed"
    default_message = "Failed to save data"


class InternalError(AppError):
    pass


def _error_response(status_code: int, error_code: str, message: str, headers: dict = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"detail": message, "error": error_code},
        headers=headers,
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return _error_response(exc.status_code, exc.error_code, exc.message, exc.headers)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Malformed bodies and path params are client errors, reported like missing fields
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        location = ".".join(str(part) for part in errors[0].get("loc", ()) if part != "body")
        message = f"Invalid value for {location}" if location else message
    return _error_response(status.HTTP_400_BAD_REQUEST, ValidationError.error_code, message)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        InternalError.error_code,
        InternalError.default_message,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the error handlers to the application."""
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
