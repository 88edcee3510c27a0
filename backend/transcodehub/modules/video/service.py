"""Upload and download handling for original assets and variants."""

import logging
import re
import tempfile
import time
from typing import Any, Optional, Protocol

from transcodehub.core.exceptions import NotFoundError, SizeLimitExceededError, ValidationError
from transcodehub.core.metrics import UPLOADS_TOTAL
from transcodehub.core.storage import StorageService, guess_content_type, validate_object_name
from transcodehub.modules.auth.scope import AccessScope, ensure_owner_access, is_key_safe
from transcodehub.modules.catalog.reconcile import PROCESSED, UPLOADS
from transcodehub.modules.catalog.repository import AssetRepository

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024  # 1MB
# Boundaries and part headers around the file in a multipart body
MULTIPART_OVERHEAD_BYTES = 64 * 1024

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]+")

DOWNLOAD_AREAS = (UPLOADS, PROCESSED)


class AsyncReadable(Protocol):
    async def read(self, size: int = -1) -> bytes:
        ...


def sanitize_filename(name: Optional[str]) -> str:
    """Replace runs of characters outside ``[A-Za-z0-9_.-]`` with ``_``.

    Raises:
        ValidationError: If nothing usable is left
    """
    if not name:
        raise ValidationError("Uploaded file has no name")
    safe = _UNSAFE_CHARS.sub("_", name)
    if safe.strip("._") == "":
        raise ValidationError(f"Invalid file name: {name}")
    return safe


def stored_upload_name(name: Optional[str], now_ms: Optional[int] = None) -> str:
    """Name an upload is stored under: ``{epoch_ms}_{sanitized}``."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{now_ms}_{sanitize_filename(name)}"


class VideoService:
    """Stores uploads and issues time-limited download URLs."""

    def __init__(
        self,
        storage: StorageService,
        assets: AssetRepository,
        max_upload_bytes: int,
        spool_bytes: int = 16 * 1024 * 1024,
        url_expires_in: int = 3600,
    ):
        self.storage = storage
        self.assets = assets
        self.max_upload_bytes = max_upload_bytes
        self.spool_bytes = spool_bytes
        self.url_expires_in = url_expires_in

    def check_declared_size(self, content_length: Optional[str]) -> None:
        """Reject a request whose declared body cannot fit under the limit.

        Runs before the multipart body is parsed. Bodies without a usable
        Content-Length are still checked chunk by chunk in ``store_upload``.

        Raises:
            SizeLimitExceededError: If the declared length is over the limit
        """
        if not content_length or not content_length.isdigit():
            return
        if int(content_length) > self.max_upload_bytes + MULTIPART_OVERHEAD_BYTES:
            UPLOADS_TOTAL.labels(status="rejected").inc()
            raise SizeLimitExceededError(self.max_upload_bytes)

    async def store_upload(
        self,
        scope: AccessScope,
        filename: Optional[str],
        source: AsyncReadable,
        content_type: Optional[str] = None,
    ) -> dict[str, Any]:
        """Store an uploaded original and create its asset record.

        The body is spooled locally first so an oversized upload is rejected
        before anything reaches the object store.

        Args:
            scope: Caller scope; the upload goes into its own namespace
            filename: Client supplied file name
            source: Upload stream
            content_type: Client supplied MIME type

        Returns:
            Response payload describing the stored object

        Raises:
            ValidationError: If the file has no usable name
            SizeLimitExceededError: If the body is larger than the limit
        """
        stored_name = stored_upload_name(filename)
        owner = scope.owner_id
        key = f"{UPLOADS}/{owner}/{stored_name}"

        with tempfile.SpooledTemporaryFile(max_size=self.spool_bytes) as spool:
            size = 0
            while True:
                chunk = await source.read(CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > self.max_upload_bytes:
                    UPLOADS_TOTAL.labels(status="rejected").inc()
                    logger.info(
                        "Upload over size limit",
                        extra={"owner_id": owner, "limit": self.max_upload_bytes},
                    )
                    raise SizeLimitExceededError(self.max_upload_bytes)
                spool.write(chunk)

            spool.seek(0)
            resolved_type = guess_content_type(stored_name, content_type)
            await self.storage.upload_fileobj(
                spool,
                key,
                content_type=resolved_type,
                metadata={"owner": owner},
            )

        await self.assets.create_asset(owner, stored_name)
        UPLOADS_TOTAL.labels(status="stored").inc()

        logger.info(
            "Upload stored",
            extra={"owner_id": owner, "key": key, "size": size},
        )

        return {
            "owner": owner,
            "filename": stored_name,
            "key": key,
            "size": size,
            "contentType": resolved_type,
        }

    async def create_upload_url(
        self,
        scope: AccessScope,
        filename: Optional[str],
        content_type: Optional[str] = None,
    ) -> dict[str, Any]:
        """Issue a presigned URL for uploading an original straight to storage.

        The object is named exactly like a proxied upload. No asset record is
        written here; the first transcode of the object creates it.

        Raises:
            ValidationError: If the file has no usable name
        """
        stored_name = stored_upload_name(filename)
        key = f"{UPLOADS}/{scope.owner_id}/{stored_name}"
        resolved_type = guess_content_type(stored_name, content_type)

        url = await self.storage.get_upload_url(key, resolved_type, expires_in=self.url_expires_in)
        logger.info("Upload URL issued", extra={"owner_id": scope.owner_id, "key": key})

        return {
            "url": url,
            "key": key,
            "filename": stored_name,
            "contentType": resolved_type,
            "expiresIn": self.url_expires_in,
        }

    async def get_download_url(
        self,
        scope: AccessScope,
        area: str,
        name: str,
        owner: Optional[str] = None,
    ) -> dict[str, Any]:
        """Issue a presigned URL for an upload or a variant.

        Raises:
            ValidationError: Unknown area or unsafe name
            AccessDeniedError: A non-admin asked for another owner's object
            NotFoundError: The object does not exist
        """
        if area not in DOWNLOAD_AREAS:
            raise ValidationError(f"Invalid type: {area}")
        validate_object_name(name, "name")

        target_owner = ensure_owner_access(scope, owner)
        if not is_key_safe(target_owner):
            raise ValidationError(f"Invalid owner: {target_owner}")

        key = f"{area}/{target_owner}/{name}"
        if not await self.storage.exists(key):
            raise NotFoundError(f"Object not found: {name}")

        url = await self.storage.get_url(key, expires_in=self.url_expires_in)
        return {"url": url, "key": key, "expiresIn": self.url_expires_in}
