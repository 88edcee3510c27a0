"""Error taxonomy shared by every module.

Collaborator failures are classified into these types and propagate
unchanged to the request boundary, where ``main`` renders them.
"""

from typing import Optional


class TranscodeHubError(Exception):
    """Base exception for service errors."""

    code = "internal_error"
    status_code = 500

    def __init__(self, message: str, *, detail: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail


class ValidationError(TranscodeHubError):
    """Raised when a required field is missing or invalid."""

    code = "validation_error"
    status_code = 400


class UnsupportedFormatError(ValidationError):
    """Raised when the requested container format is not supported."""

    code = "unsupported_format"

    def __init__(self, fmt: object):
        super().__init__(f"Unsupported format: {fmt}")
        self.format = fmt


class NotFoundError(TranscodeHubError):
    """Raised when a referenced object does not exist in storage."""

    code = "not_found"
    status_code = 404


class SizeLimitExceededError(TranscodeHubError):
    """Raised when an upload exceeds the configured maximum size."""

    code = "file_too_large"
    status_code = 413

    def __init__(self, limit: int):
        super().__init__(f"File too large: limit is {limit} bytes")
        self.limit = limit


class ClientAbortedError(TranscodeHubError):
    """Raised when the client drops the connection mid-upload."""

    code = "client_aborted"
    status_code = 499


class EncodeError(TranscodeHubError):
    """Raised when the external encoder fails.

    ``detail`` carries the encoder diagnostic (usually the stderr tail).
    """

    code = "encode_failed"
    status_code = 500


class StorageError(TranscodeHubError):
    """Raised when the object store is unreachable or errors."""

    code = "storage_failure"
    status_code = 502


class MetadataError(TranscodeHubError):
    """Raised when the metadata store is unreachable or errors."""

    code = "metadata_failure"
    status_code = 502


class AuthenticationError(TranscodeHubError):
    """Raised when the bearer credential is missing or invalid."""

    code = "unauthorized"
    status_code = 401


class AccessDeniedError(TranscodeHubError):
    """Raised when a caller touches another owner's namespace."""

    code = "access_denied"
    status_code = 403
