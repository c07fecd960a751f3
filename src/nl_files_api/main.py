import logging
import time
from textwrap import dedent
from typing import Optional

import pydantic
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.routing import APIRoute
from starlette.exceptions import HTTPException as StarletteHTTPException

from nl_files_api import __version__
from nl_files_api.adapters.storage import BaseStorage, StorageFactory
from nl_files_api.errors import (
    FilesApiError,
    handle_broad_exceptions,
    handle_files_api_errors,
    handle_http_exceptions,
    handle_pydantic_validation_errors,
    handle_request_validation_errors,
)
from nl_files_api.resolver import CommandResolver
from nl_files_api.routers.files import router as files_router
from nl_files_api.routers.health import router as health_router
from nl_files_api.settings import Settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once; later calls only adjust the level."""
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger().setLevel(level)


def create_app(
    settings: Optional[Settings] = None,
    storage: Optional[BaseStorage] = None,
    resolver: Optional[CommandResolver] = None,
) -> FastAPI:
    """
    Create a FastAPI application.

    The storage backend is chosen here, once, from `settings` unless one is
    passed in. `storage` and `resolver` exist so tests can inject isolated
    instances.
    """
    settings = settings or Settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Files API",
        summary="Manage files with natural-language commands",
        version=__version__,
        description=dedent(
            """\
        Upload, list and read files, or describe what you want in plain words:

        | Prompt | Becomes |
        | --- | --- |
        | `create a file called notes.txt` | `create notes.txt` |
        | `write hello into notes.txt` | `edit notes.txt "hello"` |
        | `remove notes.txt` | `delete notes.txt` |
        """
        ),
        docs_url="/docs",
        generate_unique_id_function=custom_generate_unique_id,
    )

    # CORS is open to every origin; it is not used for access control
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials="*" not in settings.cors_allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.storage = storage or StorageFactory.get_storage(settings)
    app.state.resolver = resolver or CommandResolver.from_settings(settings)
    app.state.started_at = time.monotonic()
    logger.info(
        "%s starting in %s mode with %s storage",
        settings.app_name,
        settings.deployment_mode,
        app.state.storage.backend_name,
    )

    app.include_router(files_router, tags=["files"])
    app.include_router(health_router, tags=["system"])

    app.add_exception_handler(FilesApiError, handle_files_api_errors)
    app.add_exception_handler(StarletteHTTPException, handle_http_exceptions)
    app.add_exception_handler(RequestValidationError, handle_request_validation_errors)
    app.add_exception_handler(
        exc_class_or_status_code=pydantic.ValidationError,
        handler=handle_pydantic_validation_errors,
    )
    app.middleware("http")(handle_broad_exceptions)
    app.middleware("http")(log_requests)

    return app


async def log_requests(request: Request, call_next):
    origin = request.headers.get("origin")
    client = request.client.host if request.client else None
    logger.info("%s %s (client=%s, origin=%s)", request.method, request.url.path, client, origin)
    return await call_next(request)


def custom_generate_unique_id(route: APIRoute):
    """
    Generate prettier `operationId`s in the OpenAPI schema.

    These become the function names in generated client SDKs.
    """
    return f"{route.tags[0]}-{route.name}"


if __name__ == "__main__":
    import uvicorn

    settings = Settings()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)
