"""Pydantic schemas for listing responses."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from transcodehub.modules.catalog.reconcile import Provenance


class UploadItem(BaseModel):
    """One stored original."""
    model_config = ConfigDict(populate_by_name=True)

    name: str
    owner: str
    size: Optional[int] = None
    last_modified: Optional[str] = Field(None, alias="lastModified")


class ProcessedItem(UploadItem):
    """One variant with its reconciled original."""
    original: str
    tag: str
    provenance: Provenance


class UploadListResponse(BaseModel):
    items: list[UploadItem]
    cached: bool


class ProcessedListResponse(BaseModel):
    items: list[ProcessedItem]
    cached: bool
