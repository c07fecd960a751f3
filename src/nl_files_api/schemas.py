####################################
# --- Request/response schemas --- #
####################################

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

SUPPORTED_VERBS = ("create", "edit", "delete")


class Command(BaseModel):
    """A `{command, args}` pair resolved from a natural-language prompt."""
    command: str = Field(description="One of create, edit, delete.")
    args: List[str] = Field(
        min_length=1,
        description="Target file name, optionally followed by the content to write.",
    )

    model_config = ConfigDict(
        json_schema_extra={"example": {"command": "create", "args": ["notes.txt", "hello"]}}
    )


class CommandRequest(BaseModel):
    """Request body for `POST /command`."""
    prompt: str = Field(
        description="Free-text instruction.",
        json_schema_extra={"example": "create a file called notes.txt"},
    )


class MessageResponse(BaseModel):
    """Response model for `POST /command` and `DELETE /files/:filename`."""
    message: str


class FileMetadata(BaseModel):
    """One entry of `GET /files`."""
    name: str = Field(json_schema_extra={"example": "notes.txt"})
    path: Optional[str] = Field(None, description="Backend-specific location of the file.")
    is_directory: bool = Field(False, alias="isDirectory")
    size: int = Field(description="The size of the file in bytes.")
    birthtime: datetime = Field(description="When the file was created.")
    mtime: datetime = Field(description="When the file content last changed.")
    mimetype: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class UploadedFile(BaseModel):
    name: str
    size: int
    mimetype: Optional[str] = None


class UploadResponse(BaseModel):
    """Response model for `POST /upload`."""
    message: str
    files: List[UploadedFile]
    count: int = Field(description="Number of files stored.")
    failed: List[str] = Field(default_factory=list, description="Names of files that could not be stored.")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "message": "2 file(s) uploaded successfully",
                "files": [
                    {"name": "a.txt", "size": 12, "mimetype": "text/plain"},
                    {"name": "b.md", "size": 40, "mimetype": "text/markdown"},
                ],
                "count": 2,
                "failed": [],
            }
        }
    )


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    uptime: float = Field(description="Seconds since the app was created.")
    storage: str


class ApiDescription(BaseModel):
    message: str
    version: str
    endpoints: Dict[str, str]
