import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Response, UploadFile, status
from starlette.concurrency import run_in_threadpool

from nl_files_api.adapters.storage import BaseStorage
from nl_files_api.dependencies import get_app_settings, get_dispatcher, get_resolver, get_storage
from nl_files_api.dispatcher import CommandDispatcher
from nl_files_api.errors import FilesApiError, UploadTooLarge, ValidationError, WriteError
from nl_files_api.resolver import CommandResolver
from nl_files_api.schemas import (
    CommandRequest,
    FileMetadata,
    MessageResponse,
    UploadedFile,
    UploadResponse,
)
from nl_files_api.settings import Settings
from nl_files_api.validation import validate_filename, validate_prompt

logger = logging.getLogger(__name__)

router = APIRouter()

FILE_NOT_FOUND_RESPONSE = {"description": "No file with that name.", "content": {"application/json": {"example": {"error": "File a.txt not found"}}}}
INVALID_FILENAME_RESPONSE = {"description": "Empty filename or one containing `..`, `/` or `\\`."}


@router.post(
    "/upload",
    response_model=UploadResponse,
    responses={
        status.HTTP_400_BAD_REQUEST: {"description": "No files, more files than allowed, or no valid filenames."},
        status.HTTP_413_CONTENT_TOO_LARGE: {"description": "A file exceeds the per-file size limit."},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"description": "None of the files could be stored."},
    },
)
async def upload_files(
    files: Optional[List[UploadFile]] = File(None, description="One or more files."),
    settings: Settings = Depends(get_app_settings),
    storage: BaseStorage = Depends(get_storage),
) -> UploadResponse:
    """
    Upload files into the namespace.

    Each file is stored independently: a file that fails validation or fails
    to persist is skipped and reported in `failed`, and the rest of the batch
    is still stored.
    """
    if not files:
        raise ValidationError("No files uploaded")
    if len(files) > settings.max_upload_files:
        raise ValidationError(f"Too many files: at most {settings.max_upload_files} per upload")

    # Read everything first so a size violation rejects the whole request before any write.
    payloads = []
    for upload in files:
        content = await upload.read()
        if len(content) > settings.max_upload_file_size:
            raise UploadTooLarge(f"File too large: {upload.filename} exceeds {settings.max_upload_file_size} bytes")
        payloads.append((upload.filename or "", content, upload.content_type))

    stored: List[UploadedFile] = []
    failed: List[str] = []
    rejected: List[str] = []
    for filename, content, mimetype in payloads:
        try:
            validate_filename(filename)
            await run_in_threadpool(storage.add_uploaded, filename, content, mimetype)
        except ValidationError as err:
            logger.warning("Rejected upload %r: %s", filename, err.message)
            rejected.append(filename)
            failed.append(filename)
            continue
        except Exception as err:
            logger.error("Failed to store upload %r: %s", filename, err)
            failed.append(filename)
            continue
        stored.append(UploadedFile(name=filename, size=len(content), mimetype=mimetype))

    if not stored and len(rejected) == len(failed):
        raise ValidationError(f"No valid files uploaded: {', '.join(rejected)}")
    if not stored:
        raise WriteError("Failed to store any of the uploaded files")

    logger.info("Upload stored %d file(s), %d failed", len(stored), len(failed))
    return UploadResponse(
        message=f"{len(stored)} file(s) uploaded successfully",
        files=stored,
        count=len(stored),
        failed=failed,
    )


@router.get("/files", response_model=List[FileMetadata])
def list_files(storage: BaseStorage = Depends(get_storage)) -> List[FileMetadata]:
    """List every entry in the namespace, metadata only."""
    return [
        FileMetadata(
            name=entry.name,
            path=entry.path,
            is_directory=entry.is_directory,
            size=entry.size,
            birthtime=entry.created_at,
            mtime=entry.modified_at,
            mimetype=entry.mimetype,
        )
        for entry in storage.list()
    ]


@router.get(
    "/files/{filename:path}",
    responses={
        status.HTTP_200_OK: {
            "description": "The raw file content.",
            "content": {"text/plain": {"schema": {"type": "string"}}},
        },
        status.HTTP_400_BAD_REQUEST: INVALID_FILENAME_RESPONSE,
        status.HTTP_404_NOT_FOUND: FILE_NOT_FOUND_RESPONSE,
    },
)
def read_file(filename: str, storage: BaseStorage = Depends(get_storage)) -> Response:
    """Return a file's content."""
    validate_filename(filename)
    return Response(content=storage.read(filename), media_type="text/plain")


@router.delete(
    "/files/{filename:path}",
    response_model=MessageResponse,
    responses={
        status.HTTP_400_BAD_REQUEST: INVALID_FILENAME_RESPONSE,
        status.HTTP_404_NOT_FOUND: FILE_NOT_FOUND_RESPONSE,
    },
)
def delete_file(filename: str, storage: BaseStorage = Depends(get_storage)) -> MessageResponse:
    validate_filename(filename)
    storage.delete(filename)
    return MessageResponse(message=f"File {filename} deleted.")


@router.post(
    "/command",
    response_model=MessageResponse,
    responses={
        status.HTTP_400_BAD_REQUEST: {"description": "Empty prompt, unusable model reply, or invalid command."},
        status.HTTP_404_NOT_FOUND: {"description": "The command targets a file that does not exist."},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"description": "Storage or language model failure."},
    },
)
def run_command(
    body: CommandRequest,
    storage: BaseStorage = Depends(get_storage),
    resolver: CommandResolver = Depends(get_resolver),
    dispatcher: CommandDispatcher = Depends(get_dispatcher),
) -> MessageResponse:
    """Translate a natural-language prompt into create/edit/delete and run it."""
    prompt = validate_prompt(body.prompt)
    try:
        command = resolver.resolve(prompt, storage.names())
        result = dispatcher.dispatch(command)
    except FilesApiError as err:
        logger.warning("Command %r failed: %s", prompt, err.message)
        raise
    return MessageResponse(message=result.message)
