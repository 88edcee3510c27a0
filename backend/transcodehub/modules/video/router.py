"""Upload and download API router."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from starlette.datastructures import UploadFile
from starlette.requests import ClientDisconnect

from transcodehub.core.container import ServiceContainer
from transcodehub.core.exceptions import ClientAbortedError, ValidationError
from transcodehub.modules.auth.dependencies import get_container, get_scope
from transcodehub.modules.auth.scope import AccessScope
from transcodehub.modules.video.schemas import (
    DownloadResponse,
    UploadResponse,
    UploadUrlRequest,
    UploadUrlResponse,
)

router = APIRouter(tags=["videos"])

UPLOAD_FIELDS = ("video", "file")


@router.post("/upload", response_model=UploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_video(
    request: Request,
    scope: AccessScope = Depends(get_scope),
    container: ServiceContainer = Depends(get_container),
):
    """Upload a video file as multipart field ``video`` or ``file``."""
    container.videos.check_declared_size(request.headers.get("content-length"))

    try:
        form = await request.form()
    except ClientDisconnect as e:
        raise ClientAbortedError("Client disconnected during upload") from e

    try:
        upload = next(
            (form.get(field) for field in UPLOAD_FIELDS if isinstance(form.get(field), UploadFile)),
            None,
        )
        if upload is None:
            raise ValidationError("No file uploaded: expected form field 'video' or 'file'")

        return await container.videos.store_upload(
            scope,
            upload.filename,
            upload,
            content_type=upload.content_type,
        )
    finally:
        await form.close()


@router.post("/upload-url", response_model=UploadUrlResponse)
async def create_upload_url(
    data: UploadUrlRequest,
    scope: AccessScope = Depends(get_scope),
    container: ServiceContainer = Depends(get_container),
):
    """Get a time-limited URL to PUT an original directly into storage."""
    return await container.videos.create_upload_url(scope, data.filename, data.content_type)


@router.get("/download/{type}/{name}", response_model=DownloadResponse)
async def download_video(
    type: str,
    name: str,
    owner: Optional[str] = Query(None, description="Owner namespace, admins only"),
    scope: AccessScope = Depends(get_scope),
    container: ServiceContainer = Depends(get_container),
):
    """Get a time-limited URL for an upload or a processed variant."""
    return await container.videos.get_download_url(scope, type, name, owner=owner)
