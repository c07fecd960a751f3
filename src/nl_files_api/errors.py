"""Exception types and the FastAPI handlers that turn them into `{"error": ...}` responses."""

import logging
import traceback

import pydantic
from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class FilesApiError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(FilesApiError):
    """Bad input shape: empty prompt, unsafe filename, upload limits."""

    status_code = status.HTTP_400_BAD_REQUEST


class InvalidCommand(ValidationError):
    """A resolved command has an unknown verb or is missing required args."""


class MalformedResolution(FilesApiError):
    """The language model replied with something that is not a usable command."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFound(FilesApiError):
    status_code = status.HTTP_404_NOT_FOUND


class ResolutionUnavailable(FilesApiError):
    """The completion API call itself failed."""

    def __init__(self, message: str, reason: str = "upstream_error"):
        super().__init__(message)
        self.reason = reason


class BackendUnavailable(FilesApiError):
    """The storage medium could not be enumerated or read."""


class WriteError(FilesApiError):
    """The storage medium rejected a write or delete."""


class UploadTooLarge(ValidationError):
    status_code = status.HTTP_413_CONTENT_TOO_LARGE


async def handle_files_api_errors(request: Request, exc: FilesApiError) -> JSONResponse:
    """Serialize a domain error into the uniform error envelope."""
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def handle_http_exceptions(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"error": "Route not found", "path": request.url.path},
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def handle_request_validation_errors(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies and parameters are a client error, not a 422."""
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "; ".join(messages) or "Invalid request"},
    )


async def handle_pydantic_validation_errors(request: Request, exc: pydantic.ValidationError) -> JSONResponse:
    """A response model failed to validate: that is our bug, not the caller's."""
    logger.error("Response validation failed for %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error"},
    )


async def handle_broad_exceptions(request: Request, call_next):
    """Catch anything the specific handlers did not and return a 500."""
    try:
        return await call_next(request)
    except Exception as err:
        logger.error("Unhandled error on %s %s: %s", request.method, request.url.path, err)
        logger.debug(traceback.format_exc())
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error"},
        )
