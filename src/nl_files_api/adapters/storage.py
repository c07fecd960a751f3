"""
Storage backends for the flat file namespace.

Exactly one backend is active per process. `StorageFactory.get_storage` makes
that choice once, from settings, when the app is created; request handlers and
the command dispatcher only ever see the `BaseStorage` interface.
"""

import contextlib
import logging
import os
import tempfile
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from nl_files_api.errors import BackendUnavailable, NotFound, ValidationError, WriteError
from nl_files_api.s3.delete_objects import delete_s3_object
from nl_files_api.s3.read_objects import (
    fetch_s3_object,
    fetch_s3_object_metadata,
    is_missing_object_error,
    iter_s3_objects_metadata,
    object_exists_in_s3,
)
from nl_files_api.s3.write_objects import upload_s3_object
from nl_files_api.settings import Settings

if TYPE_CHECKING:
    from mypy_boto3_s3 import S3Client

logger = logging.getLogger(__name__)

TEXT_CONTENT_TYPE = "text/plain"
RESERVED_NAME_PREFIX = ".nlfs-"
TEMP_FILE_PREFIX = f"{RESERVED_NAME_PREFIX}tmp-"
CREATED_AT_DIR_NAME = f"{RESERVED_NAME_PREFIX}created"
CREATED_AT_METADATA_KEY = "created-at"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_created_at(metadata: Dict[str, str], fallback: datetime) -> datetime:
    """Read the `created-at` object metadata; objects written by other tools fall back to `fallback`."""
    value = metadata.get(CREATED_AT_METADATA_KEY)
    if not value:
        return fallback
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        logger.warning("Ignoring malformed %s metadata: %r", CREATED_AT_METADATA_KEY, value)
        return fallback


@dataclass
class FileEntry:
    """Metadata for one name in the namespace. Content is never loaded here."""
    name: str
    size: int
    created_at: datetime
    modified_at: datetime
    is_directory: bool = False
    mimetype: Optional[str] = None
    path: Optional[str] = None


class BaseStorage:
    """Base class for storage backends (to be extended by specific implementations)"""

    backend_name = "base"

    def list(self) -> List[FileEntry]:
        raise NotImplementedError

    def read(self, name: str) -> bytes:
        raise NotImplementedError

    def create(self, name: str, content: bytes = b"") -> None:
        """Write `name`, replacing any existing content."""
        raise NotImplementedError

    def update(self, name: str, content: bytes) -> None:
        """Replace the content of an existing `name`; raise `NotFound` otherwise."""
        raise NotImplementedError

    def delete(self, name: str) -> None:
        raise NotImplementedError

    def add_uploaded(self, name: str, content: bytes, mimetype: Optional[str] = None) -> None:
        """Store an uploaded file unconditionally."""
        raise NotImplementedError

    def names(self) -> List[str]:
        """Snapshot of the current namespace, used as context for command resolution."""
        return [entry.name for entry in self.list()]


def _current_umask() -> int:
    umask = os.umask(0)
    os.umask(umask)
    return umask


def _platform_created_at_ns(stats: os.stat_result) -> int:
    return getattr(stats, "st_birthtime_ns", stats.st_ctime_ns)


class LocalStorage(BaseStorage):
    """
    Stores files in a single directory on local disk.

    Names starting with `.nlfs-` are reserved for the backend's own
    bookkeeping inside that directory: temporary files for atomic writes, and
    a `.nlfs-created/` directory holding one empty marker per file whose mtime
    is the file's creation time. Atomic writes replace the inode, so the
    platform's birth/change time cannot be used for that once a file has
    been edited.
    """

    backend_name = "filesystem"

    def __init__(self, uploads_dir: str):
        self.uploads_dir = Path(uploads_dir).resolve()
        self.created_dir = self.uploads_dir / CREATED_AT_DIR_NAME
        self.created_dir.mkdir(parents=True, exist_ok=True)
        # mkstemp creates 0600 files; stored files get the usual umask-derived mode
        self.file_mode = 0o666 & ~_current_umask()
        logger.info("LocalStorage initialized at: %s", self.uploads_dir)

    def _path(self, name: str) -> Path:
        path = (self.uploads_dir / name).resolve()
        if path.parent != self.uploads_dir:
            raise ValidationError("Invalid filename")
        if path.name.startswith(RESERVED_NAME_PREFIX):
            raise ValidationError(f"Invalid filename: names starting with {RESERVED_NAME_PREFIX} are reserved")
        return path

    def _write(self, path: Path, content: bytes) -> None:
        # Readers see either the previous file or the new one, never a partial write.
        fd, tmp_path = tempfile.mkstemp(dir=self.uploads_dir, prefix=TEMP_FILE_PREFIX)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(content)
            os.chmod(tmp_path, self.file_mode)
            os.replace(tmp_path, path)
        except OSError as err:
            with contextlib.suppress(FileNotFoundError):
                os.unlink(tmp_path)
            raise WriteError(f"Unable to write file {path.name}: {err.strerror or err}") from err

    def _mark_created(self, name: str, timestamp_ns: Optional[int] = None) -> None:
        marker = self.created_dir / name
        try:
            marker.touch()
            if timestamp_ns is not None:
                os.utime(marker, ns=(timestamp_ns, timestamp_ns))
        except OSError as err:
            logger.warning("Could not record creation time of %s: %s", name, err)

    def _created_at(self, name: str, stats: os.stat_result) -> datetime:
        try:
            created_ns = (self.created_dir / name).stat().st_mtime_ns
        except FileNotFoundError:
            # placed in the directory by something other than this backend
            created_ns = _platform_created_at_ns(stats)
        return datetime.fromtimestamp(created_ns / 1e9, tz=timezone.utc)

    def list(self) -> List[FileEntry]:
        try:
            entries = []
            with os.scandir(self.uploads_dir) as it:
                for dir_entry in it:
                    if dir_entry.name.startswith(RESERVED_NAME_PREFIX):
                        continue
                    try:
                        stats = dir_entry.stat()
                    except FileNotFoundError:
                        # removed between scandir and stat
                        continue
                    entries.append(
                        FileEntry(
                            name=dir_entry.name,
                            path=dir_entry.path,
                            is_directory=dir_entry.is_dir(),
                            size=stats.st_size,
                            created_at=self._created_at(dir_entry.name, stats),
                            modified_at=datetime.fromtimestamp(stats.st_mtime, tz=timezone.utc),
                        )
                    )
        except OSError as err:
            raise BackendUnavailable(f"Unable to scan directory: {err.strerror or err}") from err
        return sorted(entries, key=lambda entry: entry.name)

    def read(self, name: str) -> bytes:
        path = self._path(name)
        try:
            return path.read_bytes()
        except (FileNotFoundError, IsADirectoryError) as err:
            raise NotFound(f"File {name} not found") from err
        except OSError as err:
            raise BackendUnavailable(f"Unable to read file {name}: {err.strerror or err}") from err

    def create(self, name: str, content: bytes = b"") -> None:
        self._write(self._path(name), content)
        self._mark_created(name)
        logger.info("Created %s (%d bytes)", name, len(content))

    def update(self, name: str, content: bytes) -> None:
        path = self._path(name)
        try:
            stats = path.stat()
        except FileNotFoundError as err:
            raise NotFound(f"File {name} not found") from err
        if not path.is_file():
            raise NotFound(f"File {name} not found")
        if not (self.created_dir / name).exists():
            self._mark_created(name, _platform_created_at_ns(stats))
        self._write(path, content)
        logger.info("Updated %s (%d bytes)", name, len(content))

    def delete(self, name: str) -> None:
        path = self._path(name)
        try:
            path.unlink()
        except FileNotFoundError as err:
            raise NotFound(f"File {name} not found") from err
        except OSError as err:
            raise WriteError(f"Unable to delete file {name}: {err.strerror or err}") from err
        with contextlib.suppress(FileNotFoundError):
            (self.created_dir / name).unlink()
        logger.info("Deleted %s", name)

    def add_uploaded(self, name: str, content: bytes, mimetype: Optional[str] = None) -> None:
        self._write(self._path(name), content)
        self._mark_created(name)
        logger.info("Stored upload %s (%d bytes, %s)", name, len(content), mimetype)


@dataclass
class StoredFile:
    content: bytes
    created_at: datetime
    modified_at: datetime
    mimetype: Optional[str] = None


class InMemoryFileStore:
    """
    Process-local map of name -> StoredFile.

    Owned by whoever builds the app, so tests can create isolated instances.
    Records are replaced whole under a lock; there is no per-name ordering
    beyond that, so concurrent writers to one name are last-writer-wins.
    """

    def __init__(self):
        self._files: Dict[str, StoredFile] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._files)

    def __contains__(self, name: str) -> bool:
        return name in self._files

    def get(self, name: str) -> Optional[StoredFile]:
        return self._files.get(name)

    def put(self, name: str, record: StoredFile) -> None:
        with self._lock:
            self._files[name] = record

    def replace_content(self, name: str, content: bytes) -> bool:
        """Swap in new content for an existing name, keeping its creation time."""
        with self._lock:
            existing = self._files.get(name)
            if existing is None:
                return False
            self._files[name] = replace(existing, content=content, modified_at=_now())
            return True

    def pop(self, name: str) -> Optional[StoredFile]:
        with self._lock:
            return self._files.pop(name, None)

    def snapshot(self) -> Dict[str, StoredFile]:
        with self._lock:
            return dict(self._files)

    def clear(self) -> None:
        with self._lock:
            self._files.clear()


class MemoryStorage(BaseStorage):
    """Keeps files in an `InMemoryFileStore`; contents are lost when the process exits."""

    backend_name = "memory"

    def __init__(self, store: Optional[InMemoryFileStore] = None):
        self.store = store if store is not None else InMemoryFileStore()

    def list(self) -> List[FileEntry]:
        return [
            FileEntry(
                name=name,
                path=f"/uploads/{name}",
                size=len(record.content),
                created_at=record.created_at,
                modified_at=record.modified_at,
                mimetype=record.mimetype,
            )
            for name, record in sorted(self.store.snapshot().items())
        ]

    def read(self, name: str) -> bytes:
        record = self.store.get(name)
        if record is None:
            raise NotFound(f"File {name} not found")
        return record.content

    def create(self, name: str, content: bytes = b"") -> None:
        now = _now()
        self.store.put(name, StoredFile(content=content, created_at=now, modified_at=now, mimetype=TEXT_CONTENT_TYPE))
        logger.info("Created %s (%d bytes)", name, len(content))

    def update(self, name: str, content: bytes) -> None:
        if not self.store.replace_content(name, content):
            raise NotFound(f"File {name} not found")
        logger.info("Updated %s (%d bytes)", name, len(content))

    def delete(self, name: str) -> None:
        if self.store.pop(name) is None:
            raise NotFound(f"File {name} not found")
        logger.info("Deleted %s", name)

    def add_uploaded(self, name: str, content: bytes, mimetype: Optional[str] = None) -> None:
        now = _now()
        self.store.put(name, StoredFile(content=content, created_at=now, modified_at=now, mimetype=mimetype))
        logger.info("Stored upload %s (%d bytes, %s)", name, len(content), mimetype)


class S3Storage(BaseStorage):
    """Stores each file as an object at the root of one S3 bucket."""

    backend_name = "s3"

    def __init__(self, bucket_name: str, s3_client: Optional["S3Client"] = None):
        self.bucket_name = bucket_name
        self.s3_client = s3_client or boto3.client("s3")
        logger.info("S3Storage using bucket: %s", bucket_name)

    def _put(self, name: str, content: bytes, content_type: Optional[str], created_at: str) -> None:
        try:
            upload_s3_object(
                bucket_name=self.bucket_name,
                object_key=name,
                file_content=content,
                content_type=content_type,
                metadata={CREATED_AT_METADATA_KEY: created_at},
                s3_client=self.s3_client,
            )
        except (ClientError, BotoCoreError) as err:
            raise WriteError(f"Unable to write file {name}: {err}") from err

    def _entry(self, item: Dict) -> Optional[FileEntry]:
        """
        Build a listing entry, reading `created-at` and the content type from the object's headers.

        Returns None when the object disappeared between the listing and the HEAD.
        """
        key = item["Key"]
        try:
            head = fetch_s3_object_metadata(self.bucket_name, object_key=key, s3_client=self.s3_client)
        except ClientError as err:
            if is_missing_object_error(err):
                return None
            raise
        return FileEntry(
            name=key,
            path=f"s3://{self.bucket_name}/{key}",
            is_directory=key.endswith("/"),
            size=item["Size"],
            created_at=_parse_created_at(head.get("Metadata", {}), fallback=item["LastModified"]),
            modified_at=item["LastModified"],
            mimetype=head.get("ContentType"),
        )

    def list(self) -> List[FileEntry]:
        try:
            entries = (
                self._entry(item)
                for item in iter_s3_objects_metadata(self.bucket_name, s3_client=self.s3_client)
            )
            return [entry for entry in entries if entry is not None]
        except (ClientError, BotoCoreError) as err:
            raise BackendUnavailable(f"Unable to list bucket {self.bucket_name}: {err}") from err

    def read(self, name: str) -> bytes:
        try:
            response = fetch_s3_object(self.bucket_name, object_key=name, s3_client=self.s3_client)
            return response["Body"].read()
        except ClientError as err:
            if is_missing_object_error(err):
                raise NotFound(f"File {name} not found") from err
            raise BackendUnavailable(f"Unable to read file {name}: {err}") from err
        except BotoCoreError as err:
            raise BackendUnavailable(f"Unable to read file {name}: {err}") from err

    def create(self, name: str, content: bytes = b"") -> None:
        self._put(name, content, TEXT_CONTENT_TYPE, _now().isoformat())
        logger.info("Created %s (%d bytes)", name, len(content))

    def update(self, name: str, content: bytes) -> None:
        try:
            head = fetch_s3_object_metadata(self.bucket_name, object_key=name, s3_client=self.s3_client)
        except ClientError as err:
            if is_missing_object_error(err):
                raise NotFound(f"File {name} not found") from err
            raise BackendUnavailable(f"Unable to read file {name}: {err}") from err
        except BotoCoreError as err:
            raise BackendUnavailable(f"Unable to read file {name}: {err}") from err
        created_at = _parse_created_at(head.get("Metadata", {}), fallback=head["LastModified"]).isoformat()
        self._put(name, content, head.get("ContentType") or TEXT_CONTENT_TYPE, created_at)
        logger.info("Updated %s (%d bytes)", name, len(content))

    def delete(self, name: str) -> None:
        try:
            if not object_exists_in_s3(self.bucket_name, object_key=name, s3_client=self.s3_client):
                raise NotFound(f"File {name} not found")
            delete_s3_object(self.bucket_name, object_key=name, s3_client=self.s3_client)
        except (ClientError, BotoCoreError) as err:
            raise WriteError(f"Unable to delete file {name}: {err}") from err
        logger.info("Deleted %s", name)

    def add_uploaded(self, name: str, content: bytes, mimetype: Optional[str] = None) -> None:
        self._put(name, content, mimetype, _now().isoformat())
        logger.info("Stored upload %s (%d bytes, %s)", name, len(content), mimetype)


class StorageFactory:
    """Factory to initialize the correct storage backend based on settings"""

    @staticmethod
    def get_storage(settings: Settings) -> BaseStorage:
        storage_builders = {
            "filesystem": lambda: LocalStorage(settings.uploads_dir),
            "memory": lambda: MemoryStorage(InMemoryFileStore()),
            "s3": lambda: S3Storage(settings.s3_bucket_name, s3_client=_s3_client_from_settings(settings)),
        }

        backend = settings.storage_backend
        if backend not in storage_builders:
            raise ValueError(
                f"Invalid storage backend: {backend}. "
                f"Choose from {list(storage_builders.keys())}"
            )

        logger.info(f"Creating {backend} storage for mode: {settings.deployment_mode}")
        return storage_builders[backend]()


def _s3_client_from_settings(settings: Settings) -> "S3Client":
    return boto3.client(
        "s3",
        endpoint_url=settings.aws_endpoint_url,
        aws_access_key_id=settings.aws_access_key_id,
        aws_secret_access_key=settings.aws_secret_access_key,
        region_name=settings.aws_region,
    )
