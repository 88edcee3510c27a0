"""Service composition.

Shared clients are built once per process and handed to request handlers
through ``app.state.container``.
"""

from dataclasses import dataclass
from typing import Callable, Optional

from transcodehub.core.cache import ListingCache
from transcodehub.core.config import Settings
from transcodehub.core.metadata import MetadataStore, create_metadata_store
from transcodehub.core.storage import (
    StorageBackend,
    StorageService,
    create_storage_backend,
    storage_config_from_settings,
)
from transcodehub.modules.auth.claims import ClaimsVerifier, verifier_from_settings
from transcodehub.modules.catalog.repository import AssetRepository
from transcodehub.modules.catalog.service import CatalogService
from transcodehub.modules.transcoding.ffmpeg import FFmpegTranscoder, Transcoder
from transcodehub.modules.transcoding.service import TranscodingService
from transcodehub.modules.video.service import VideoService


@dataclass
class ServiceContainer:
    settings: Settings
    storage: StorageService
    metadata: MetadataStore
    assets: AssetRepository
    cache: ListingCache
    verifier: ClaimsVerifier
    transcoder: Transcoder
    catalog: CatalogService
    transcoding: TranscodingService
    videos: VideoService


def build_container(
    settings: Settings,
    *,
    storage_backend: Optional[StorageBackend] = None,
    metadata_store: Optional[MetadataStore] = None,
    transcoder: Optional[Transcoder] = None,
    verifier: Optional[ClaimsVerifier] = None,
    clock: Optional[Callable[[], float]] = None,
) -> ServiceContainer:
    """Wire every service from settings.

    Keyword arguments replace the configured collaborator, which is how
    tests run the app without FFmpeg or a real bucket.
    """
    backend = storage_backend or create_storage_backend(storage_config_from_settings(settings))
    storage = StorageService(backend)
    metadata = metadata_store or create_metadata_store(settings)
    assets = AssetRepository(metadata)
    cache = ListingCache(ttl_seconds=settings.LISTING_CACHE_TTL_SECONDS, clock=clock)
    verifier = verifier or verifier_from_settings(settings)
    transcoder = transcoder or FFmpegTranscoder(ffmpeg_path=settings.FFMPEG_PATH)

    return ServiceContainer(
        settings=settings,
        storage=storage,
        metadata=metadata,
        assets=assets,
        cache=cache,
        verifier=verifier,
        transcoder=transcoder,
        catalog=CatalogService(storage, assets, cache),
        transcoding=TranscodingService(
            storage,
            assets,
            transcoder,
            work_dir=settings.TRANSCODE_WORK_DIR,
            record_failures=settings.RECORD_TRANSCODE_FAILURES,
        ),
        videos=VideoService(
            storage,
            assets,
            max_upload_bytes=settings.MAX_UPLOAD_SIZE_BYTES,
            spool_bytes=settings.UPLOAD_SPOOL_BYTES,
            url_expires_in=settings.PRESIGNED_URL_EXPIRES_SECONDS,
        ),
    )
