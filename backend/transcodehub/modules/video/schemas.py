"""Pydantic schemas for upload, upload URL and download payloads."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class UploadResponse(BaseModel):
    """Schema for a stored upload."""
    model_config = ConfigDict(populate_by_name=True)

    owner: str
    filename: str
    key: str
    size: int
    content_type: str = Field(..., alias="contentType")


class DownloadResponse(BaseModel):
    """Schema for a presigned download link."""
    model_config = ConfigDict(populate_by_name=True)

    url: str
    key: str
    expires_in: int = Field(..., alias="expiresIn")


class UploadUrlRequest(BaseModel):
    """Schema for requesting a direct-to-storage upload URL."""
    model_config = ConfigDict(populate_by_name=True)

    filename: Optional[str] = Field(None, description="Client side file name")
    content_type: Optional[str] = Field(None, alias="contentType")


class UploadUrlResponse(BaseModel):
    """Schema for a presigned upload link."""
    model_config = ConfigDict(populate_by_name=True)

    url: str
    key: str
    filename: str
    content_type: str = Field(..., alias="contentType")
    expires_in: int = Field(..., alias="expiresIn")
