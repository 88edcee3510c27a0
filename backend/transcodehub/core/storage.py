"""Object storage supporting multiple backends.

Supports: local filesystem, S3, MinIO, and other S3-compatible storage.
Backends are synchronous; ``StorageService`` moves every call onto the
default thread pool so request handlers never block the event loop.
"""

import asyncio
import logging
import mimetypes
import shutil
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import partial
from pathlib import Path
from typing import Any, BinaryIO, Callable, Optional, TypeVar

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from transcodehub.core.exceptions import NotFoundError, StorageError, ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

VIDEO_CONTENT_TYPES = {
    ".mp4": "video/mp4",
    ".webm": "video/webm",
    ".avi": "video/x-msvideo",
    ".mov": "video/quicktime",
    ".mkv": "video/x-matroska",
}


def guess_content_type(key: str, fallback: Optional[str] = None) -> str:
    """Guess a MIME type for an object key, preferring an explicit value."""
    if fallback:
        return fallback
    ext = Path(key).suffix.lower()
    if ext in VIDEO_CONTENT_TYPES:
        return VIDEO_CONTENT_TYPES[ext]
    guessed, _ = mimetypes.guess_type(key)
    return guessed or "application/octet-stream"


def validate_object_name(name: Any, field: str = "filename") -> str:
    """Reject names that are missing or could leave the owner's prefix.

    Raises:
        ValidationError: If the name is empty or contains path components
    """
    if not isinstance(name, str) or not name.strip():
        raise ValidationError(f"{field} is required")
    if "/" in name or "\\" in name or name in (".", ".."):
        raise ValidationError(f"Invalid {field}: {name}")
    return name


@dataclass(frozen=True)
class StoredObject:
    """One entry of a prefix listing."""
    key: str
    size: Optional[int] = None
    last_modified: Optional[datetime] = None


@dataclass
class StorageConfig:
    """Storage configuration."""
    backend: str  # local, s3, minio
    bucket: str = ""
    region: str = ""
    access_key: str = ""
    secret_key: str = ""
    endpoint_url: Optional[str] = None
    use_ssl: bool = True
    local_path: str = "./storage"


class StorageBackend(ABC):
    """Abstract base class for storage backends."""

    @abstractmethod
    def upload(
        self,
        file_path: str,
        key: str,
        content_type: Optional[str] = None,
        metadata: Optional[dict[str, str]] = None,
    ) -> StoredObject:
        """Upload a local file to storage."""

    @abstractmethod
    def upload_fileobj(
        self,
        fileobj: BinaryIO,
        key: str,
        content_type: Optional[str] = None,
        metadata: Optional[dict[str, str]] = None,
    ) -> StoredObject:
        """Upload a file object to storage."""

    @abstractmethod
    def download(self, key: str, destination: str) -> None:
        """Download an object to a local path.

        Raises:
            NotFoundError: If the object does not exist
        """

    @abstractmethod
    def exists(self, key: str) -> bool:
        """Check if an object exists."""

    @abstractmethod
    def get_url(self, key: str, expires_in: int = 3600) -> str:
        """Get a time-limited retrieval URL for an object."""

    @abstractmethod
    def get_upload_url(self, key: str, content_type: str, expires_in: int = 3600) -> str:
        """Get a time-limited URL the client can PUT the object body to."""

    @abstractmethod
    def list_objects(self, prefix: str = "") -> list[StoredObject]:
        """List every object whose key starts with ``prefix``."""


class LocalStorage(StorageBackend):
    """Local filesystem storage backend."""

    def __init__(self, config: StorageConfig):
        self.base_path = Path(config.local_path).resolve()

    def _get_full_path(self, key: str) -> Path:
        path = (self.base_path / key).resolve()
        try:
            path.relative_to(self.base_path)
        except ValueError:
            raise StorageError(f"Key escapes storage root: {key}")
        return path

    def _describe(self, key: str, path: Path) -> StoredObject:
        stat = path.stat()
        return StoredObject(
            key=key,
            size=stat.st_size,
            last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        )

    def upload(
        self,
        file_path: str,
        key: str,
        content_type: Optional[str] = None,
        metadata: Optional[dict[str, str]] = None,
    ) -> StoredObject:
        dest_path = self._get_full_path(key)
        try:
            dest_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(file_path, dest_path)
            return self._describe(key, dest_path)
        except OSError as e:
            raise StorageError(f"Failed to store {key}", detail=str(e)) from e

    def upload_fileobj(
        self,
        fileobj: BinaryIO,
        key: str,
        content_type: Optional[str] = None,
        metadata: Optional[dict[str, str]] = None,
    ) -> StoredObject:
        dest_path = self._get_full_path(key)
        try:
            dest_path.parent.mkdir(parents=True, exist_ok=True)
            with open(dest_path, "wb") as f:
                shutil.copyfileobj(fileobj, f)
            return self._describe(key, dest_path)
        except OSError as e:
            raise StorageError(f"Failed to store {key}", detail=str(e)) from e

    def download(self, key: str, destination: str) -> None:
        src_path = self._get_full_path(key)
        if not src_path.is_file():
            raise NotFoundError(f"Object not found: {key}")
        try:
            shutil.copyfile(src_path, destination)
        except OSError as e:
            raise StorageError(f"Failed to read {key}", detail=str(e)) from e

    def exists(self, key: str) -> bool:
        return self._get_full_path(key).is_file()

    def get_url(self, key: str, expires_in: int = 3600) -> str:
        return self._get_full_path(key).as_uri()

    def get_upload_url(self, key: str, content_type: str, expires_in: int = 3600) -> str:
        # No signing service locally; the URL names the path the object will occupy
        return self._get_full_path(key).as_uri()

    def list_objects(self, prefix: str = "") -> list[StoredObject]:
        # Only walk the deepest directory the prefix pins down
        directory = prefix.rsplit("/", 1)[0] if "/" in prefix else ""
        search_path = self._get_full_path(directory) if directory else self.base_path
        if not search_path.is_dir():
            return []

        objects = []
        for path in sorted(search_path.rglob("*")):
            if not path.is_file():
                continue
            key = path.relative_to(self.base_path).as_posix()
            if key.startswith(prefix):
                objects.append(self._describe(key, path))
        return objects


class S3Storage(StorageBackend):
    """S3/MinIO compatible storage backend."""

    def __init__(self, config: StorageConfig, client=None):
        self.config = config
        self._client = client

    def _get_client(self):
        """Get or create S3 client."""
        if self._client is None:
            client_kwargs = {
                "service_name": "s3",
                "region_name": self.config.region or "us-east-1",
            }
            if self.config.access_key and self.config.secret_key:
                client_kwargs["aws_access_key_id"] = self.config.access_key
                client_kwargs["aws_secret_access_key"] = self.config.secret_key

            # For MinIO or other S3-compatible storage
            if self.config.endpoint_url:
                client_kwargs["endpoint_url"] = self.config.endpoint_url
                client_kwargs["config"] = BotoConfig(
                    signature_version="s3v4",
                    s3={"addressing_style": "path"},
                )
                if not self.config.use_ssl:
                    client_kwargs["use_ssl"] = False

            self._client = boto3.client(**client_kwargs)

        return self._client

    def _put(self, key: str, body, content_type: Optional[str], metadata, size: Optional[int]) -> StoredObject:
        kwargs = {
            "Bucket": self.config.bucket,
            "Key": key,
            "Body": body,
            "ContentType": guess_content_type(key, content_type),
        }
        if metadata:
            kwargs["Metadata"] = {str(k).lower(): str(v) for k, v in metadata.items() if v is not None}
        try:
            self._get_client().put_object(**kwargs)
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Failed to store {key}", detail=str(e)) from e
        logger.info("Stored object", extra={"key": key, "size": size})
        return StoredObject(key=key, size=size, last_modified=datetime.now(timezone.utc))

    def upload(
        self,
        file_path: str,
        key: str,
        content_type: Optional[str] = None,
        metadata: Optional[dict[str, str]] = None,
    ) -> StoredObject:
        size = Path(file_path).stat().st_size
        with open(file_path, "rb") as f:
            return self._put(key, f, content_type, metadata, size)

    def upload_fileobj(
        self,
        fileobj: BinaryIO,
        key: str,
        content_type: Optional[str] = None,
        metadata: Optional[dict[str, str]] = None,
    ) -> StoredObject:
        fileobj.seek(0, 2)
        size = fileobj.tell()
        fileobj.seek(0)
        return self._put(key, fileobj, content_type, metadata, size)

    def download(self, key: str, destination: str) -> None:
        try:
            self._get_client().download_file(self.config.bucket, key, destination)
        except ClientError as e:
            if _is_missing(e):
                raise NotFoundError(f"Object not found: {key}") from e
            raise StorageError(f"Failed to read {key}", detail=str(e)) from e
        except BotoCoreError as e:
            raise StorageError(f"Failed to read {key}", detail=str(e)) from e

    def exists(self, key: str) -> bool:
        try:
            self._get_client().head_object(Bucket=self.config.bucket, Key=key)
            return True
        except ClientError as e:
            if _is_missing(e):
                return False
            raise StorageError(f"Failed to stat {key}", detail=str(e)) from e
        except BotoCoreError as e:
            raise StorageError(f"Failed to stat {key}", detail=str(e)) from e

    def get_url(self, key: str, expires_in: int = 3600) -> str:
        try:
            return self._get_client().generate_presigned_url(
                "get_object",
                Params={"Bucket": self.config.bucket, "Key": key},
                ExpiresIn=expires_in,
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Failed to presign {key}", detail=str(e)) from e

    def get_upload_url(self, key: str, content_type: str, expires_in: int = 3600) -> str:
        try:
            return self._get_client().generate_presigned_url(
                "put_object",
                Params={"Bucket": self.config.bucket, "Key": key, "ContentType": content_type},
                ExpiresIn=expires_in,
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Failed to presign upload for {key}", detail=str(e)) from e

    def list_objects(self, prefix: str = "") -> list[StoredObject]:
        objects = []
        try:
            paginator = self._get_client().get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.config.bucket, Prefix=prefix):
                for obj in page.get("Contents", []):
                    key = obj.get("Key")
                    if not key or key.endswith("/"):
                        continue
                    objects.append(StoredObject(
                        key=key,
                        size=obj.get("Size"),
                        last_modified=obj.get("LastModified"),
                    ))
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Failed to list {prefix}", detail=str(e)) from e
        return objects


def _is_missing(error: ClientError) -> bool:
    code = str(error.response.get("Error", {}).get("Code", ""))
    return code in ("404", "NoSuchKey", "NotFound")


def create_storage_backend(config: StorageConfig) -> StorageBackend:
    """Create the storage backend selected by configuration."""
    backend_type = config.backend.lower()

    if backend_type == "local":
        return LocalStorage(config)
    elif backend_type in ("s3", "minio", "aws"):
        return S3Storage(config)
    else:
        raise ValueError(f"Unsupported storage backend: {backend_type}")


def storage_config_from_settings(settings) -> StorageConfig:
    """Build a StorageConfig from application settings."""
    return StorageConfig(
        backend=settings.STORAGE_BACKEND,
        bucket=settings.STORAGE_BUCKET,
        region=settings.STORAGE_REGION,
        access_key=settings.STORAGE_ACCESS_KEY,
        secret_key=settings.STORAGE_SECRET_KEY,
        endpoint_url=settings.STORAGE_ENDPOINT_URL,
        use_ssl=settings.STORAGE_USE_SSL,
        local_path=settings.LOCAL_STORAGE_PATH,
    )


class StorageService:
    """Async-compatible storage service wrapper."""

    def __init__(self, backend: StorageBackend):
        self.backend = backend

    async def _run(self, func: Callable[..., T], *args, **kwargs) -> T:
        # Blocking backend call, executed in the default thread pool
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args, **kwargs))

    async def upload_file(
        self,
        file_path: str,
        key: str,
        content_type: Optional[str] = None,
        metadata: Optional[dict[str, str]] = None,
    ) -> StoredObject:
        return await self._run(self.backend.upload, file_path, key, content_type, metadata)

    async def upload_fileobj(
        self,
        fileobj: BinaryIO,
        key: str,
        content_type: Optional[str] = None,
        metadata: Optional[dict[str, str]] = None,
    ) -> StoredObject:
        return await self._run(self.backend.upload_fileobj, fileobj, key, content_type, metadata)

    async def download_file(self, key: str, destination: str) -> None:
        await self._run(self.backend.download, key, destination)

    async def exists(self, key: str) -> bool:
        return await self._run(self.backend.exists, key)

    async def get_url(self, key: str, expires_in: int = 3600) -> str:
        return await self._run(self.backend.get_url, key, expires_in)

    async def get_upload_url(self, key: str, content_type: str, expires_in: int = 3600) -> str:
        return await self._run(self.backend.get_upload_url, key, content_type, expires_in)

    async def list_objects(self, prefix: str = "") -> list[StoredObject]:
        return await self._run(self.backend.list_objects, prefix)
