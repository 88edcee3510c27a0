"""TranscodeHub Backend Application.

Multi-tenant media backend: accepts uploads, derives transcoded variants
under encode profiles and catalogs which variant came from which upload.

Modules:
    - core: Configuration, logging, metrics, storage, metadata, listing cache
    - modules.auth: Bearer token verification and owner/admin scope
    - modules.transcoding: Encode profiles and the FFmpeg executor
    - modules.catalog: Asset records and provenance reconciliation
    - modules.video: Uploads and download links
"""

__version__ = "0.1.0"
