"""Transcoding API router."""

from fastapi import APIRouter, Depends

from transcodehub.core.container import ServiceContainer
from transcodehub.modules.auth.dependencies import get_container, get_scope
from transcodehub.modules.auth.scope import AccessScope
from transcodehub.modules.transcoding.schemas import TranscodeRequest, TranscodeResponse

router = APIRouter(tags=["transcoding"])


@router.post("/transcode", response_model=TranscodeResponse)
async def transcode(
    data: TranscodeRequest,
    scope: AccessScope = Depends(get_scope),
    container: ServiceContainer = Depends(get_container),
):
    """Transcode one of the caller's uploads and store the variant.

    Blocks until the encoder finishes. Re-running the same profile
    overwrites the same variant.
    """
    return await container.transcoding.transcode(scope, data)
