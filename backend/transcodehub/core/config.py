"""Application configuration settings.

All configuration values are loaded from environment variables (.env file).
Development defaults are provided so the service boots locally; production
deployments are expected to override the secrets and backends.
"""

from typing import Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    PROJECT_NAME: str = "TranscodeHub API"
    VERSION: str = "0.1.0"
    API_PREFIX: str = ""
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    # Identity - bearer tokens are verified against every secret in order.
    # The first secret is the current one, the rest are legacy keys kept
    # valid during rotation.
    JWT_SECRETS: list[str] = ["dev-secret-change-me"]
    JWT_ALGORITHMS: list[str] = ["HS256"]
    JWT_ISSUER: Optional[str] = None
    JWT_AUDIENCE: Optional[str] = None

    # Claim names consumed by the access scope guard
    OWNER_CLAIM: str = "cognito:username"
    GROUP_CLAIMS: list[str] = ["cognito:groups", "groups", "roles"]
    ADMIN_GROUP: str = "admin"

    # Storage Configuration
    # STORAGE_BACKEND: local, s3, minio
    STORAGE_BACKEND: str = "local"

    # Local Storage (when STORAGE_BACKEND=local)
    LOCAL_STORAGE_PATH: str = "./storage"

    # S3/MinIO/Compatible Storage (when STORAGE_BACKEND=s3 or minio)
    STORAGE_BUCKET: str = ""
    STORAGE_REGION: str = ""
    STORAGE_ACCESS_KEY: str = ""
    STORAGE_SECRET_KEY: str = ""
    STORAGE_ENDPOINT_URL: Optional[str] = None  # Required for MinIO
    STORAGE_USE_SSL: bool = True
    PRESIGNED_URL_EXPIRES_SECONDS: int = 3600

    # Metadata Configuration
    # METADATA_BACKEND: memory, file, redis, dynamodb
    METADATA_BACKEND: str = "file"
    METADATA_FILE_PATH: str = "./data/catalog.json"
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_KEY_PREFIX: str = "transcodehub:asset:"
    DYNAMODB_TABLE: str = "transcodehub-assets"
    DYNAMODB_REGION: str = ""

    # Listing cache
    LISTING_CACHE_TTL_SECONDS: float = 30.0

    # Uploads
    MAX_UPLOAD_SIZE_BYTES: int = 500 * 1024 * 1024
    UPLOAD_SPOOL_BYTES: int = 16 * 1024 * 1024

    # Transcoding
    FFMPEG_PATH: str = "ffmpeg"
    TRANSCODE_WORK_DIR: str = "./data"
    RECORD_TRANSCODE_FAILURES: bool = False

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
