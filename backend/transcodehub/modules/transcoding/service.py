"""Service layer for transcoding operations.

One request runs one encode to completion:

resolve profile -> check the upload exists -> fetch it to a scratch
directory -> run the encoder -> persist the variant -> append it to the
asset record. The variant is persisted before the catalog append, so a
crash in between leaves an orphaned object that the processed listing
still reconciles by name.
"""

import asyncio
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Any

from transcodehub.core.exceptions import EncodeError, NotFoundError
from transcodehub.core.metrics import TRANSCODE_DURATION_SECONDS, TRANSCODE_JOBS_TOTAL
from transcodehub.core.storage import StorageService, guess_content_type, validate_object_name
from transcodehub.modules.auth.scope import AccessScope
from transcodehub.modules.catalog.repository import AssetRepository
from transcodehub.modules.transcoding.ffmpeg import Transcoder
from transcodehub.modules.transcoding.profiles import ResolvedProfile, resolve, variant_name
from transcodehub.modules.transcoding.schemas import ProfileResponse, TranscodeRequest

logger = logging.getLogger(__name__)


class TranscodingService:
    """Service for running transcodes of stored uploads."""

    def __init__(
        self,
        storage: StorageService,
        assets: AssetRepository,
        transcoder: Transcoder,
        work_dir: str,
        record_failures: bool = False,
    ):
        """Initialize service.

        Args:
            storage: Object storage for uploads and variants
            assets: Asset record repository
            transcoder: Encoder implementation
            work_dir: Parent directory for per-request scratch space
            record_failures: Keep failed attempts on the asset record
        """
        self.storage = storage
        self.assets = assets
        self.transcoder = transcoder
        self.work_dir = Path(work_dir)
        self.record_failures = record_failures

    async def _encode(self, input_path: str, resolved: ResolvedProfile, output_dir: str) -> str:
        loop = asyncio.get_running_loop()
        start = time.perf_counter()
        fmt = resolved.profile.format.value
        try:
            output_path = await loop.run_in_executor(
                None, self.transcoder.execute, input_path, resolved.profile, output_dir
            )
        except EncodeError:
            TRANSCODE_JOBS_TOTAL.labels(format=fmt, status="failed").inc()
            raise
        finally:
            TRANSCODE_DURATION_SECONDS.labels(format=fmt).observe(time.perf_counter() - start)
        TRANSCODE_JOBS_TOTAL.labels(format=fmt, status="completed").inc()
        return output_path

    async def transcode(self, scope: AccessScope, request: TranscodeRequest) -> dict[str, Any]:
        """Transcode one of the caller's uploads.

        Args:
            scope: Caller scope; the upload is looked up in its own namespace
            request: Filename and raw profile fields

        Returns:
            Response payload describing the stored variant

        Raises:
            ValidationError: Missing or unsafe filename
            UnsupportedFormatError: Unknown container format, before any I/O
            NotFoundError: The upload does not exist
            EncodeError: The encoder failed
        """
        filename = validate_object_name(request.filename)
        resolved = resolve(request.profile_params())

        owner = scope.owner_id
        input_key = f"uploads/{owner}/{filename}"
        output_name = variant_name(filename, resolved.profile)
        output_key = f"processed/{owner}/{output_name}"

        if not await self.storage.exists(input_key):
            raise NotFoundError(f"Upload not found: {filename}")

        self.work_dir.mkdir(parents=True, exist_ok=True)
        with tempfile.TemporaryDirectory(prefix="transcode-", dir=self.work_dir) as scratch:
            input_dir = os.path.join(scratch, "input")
            output_dir = os.path.join(scratch, "output")
            os.makedirs(input_dir)
            os.makedirs(output_dir)

            input_path = os.path.join(input_dir, filename)
            await self.storage.download_file(input_key, input_path)

            try:
                output_path = await self._encode(input_path, resolved, output_dir)
            except EncodeError as e:
                logger.warning(
                    "Transcode failed",
                    extra={"owner_id": owner, "asset_filename": filename, "variant": output_name, "error": e.message},
                )
                if self.record_failures:
                    await self.assets.record_failure(owner, filename, output_name, e.detail or e.message)
                raise

            content_type = guess_content_type(output_name)
            await self.storage.upload_file(
                output_path,
                output_key,
                content_type=content_type,
                metadata={"owner": owner, "original": filename},
            )

        await self.assets.record_variant(owner, filename, output_name)

        logger.info(
            "Transcode completed",
            extra={"owner_id": owner, "asset_filename": filename, "variant": output_name, "tag": resolved.tag},
        )

        return {
            "owner": owner,
            "original": filename,
            "output": output_name,
            "tag": resolved.tag,
            "key": output_key,
            "profile": ProfileResponse.from_profile(resolved.profile),
            "contentType": content_type,
        }
