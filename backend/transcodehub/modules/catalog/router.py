"""Listing API router."""

from fastapi import APIRouter, Depends

from transcodehub.core.container import ServiceContainer
from transcodehub.modules.auth.dependencies import get_container, get_scope
from transcodehub.modules.auth.scope import AccessScope
from transcodehub.modules.catalog.schemas import ProcessedListResponse, UploadListResponse

router = APIRouter(tags=["catalog"])


@router.get("/uploads", response_model=UploadListResponse)
async def list_uploads(
    scope: AccessScope = Depends(get_scope),
    container: ServiceContainer = Depends(get_container),
):
    """List originals visible to the caller.

    Admins see every owner; everyone else sees their own uploads.
    """
    items, cached = await container.catalog.list_uploads(scope)
    return {"items": items, "cached": cached}


@router.get("/processed", response_model=ProcessedListResponse)
async def list_processed(
    scope: AccessScope = Depends(get_scope),
    container: ServiceContainer = Depends(get_container),
):
    """List variants visible to the caller with their originals."""
    items, cached = await container.catalog.list_processed(scope)
    return {"items": items, "cached": cached}
