import time
from datetime import datetime, timezone

from fastapi import APIRouter, Request

from nl_files_api import __version__
from nl_files_api.schemas import ApiDescription, HealthResponse

router = APIRouter()

ENDPOINTS = {
    "upload": "POST /upload",
    "files": "GET /files",
    "read": "GET /files/:filename",
    "delete": "DELETE /files/:filename",
    "command": "POST /command",
    "health": "GET /health",
}


@router.get("/", response_model=ApiDescription)
async def describe_api() -> ApiDescription:
    """Name, version and endpoint listing of this API."""
    return ApiDescription(message="File Management API Server", version=__version__, endpoints=ENDPOINTS)


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """
    Liveness check.

    Reports which storage backend the process was started with. It does not
    probe the backend or the completion API.
    """
    return HealthResponse(
        status="OK",
        timestamp=datetime.now(timezone.utc),
        uptime=round(time.monotonic() - request.app.state.started_at, 3),
        storage=request.app.state.storage.backend_name,
    )
