"""Service layer for scoped upload and processed listings."""

import logging
from typing import Any

from transcodehub.core.cache import ListingCache
from transcodehub.core.storage import StorageService, StoredObject
from transcodehub.modules.auth.scope import AccessScope
from transcodehub.modules.catalog.reconcile import (
    PROCESSED,
    UPLOADS,
    reconcile_listing,
    split_object_key,
)
from transcodehub.modules.catalog.repository import AssetRepository

logger = logging.getLogger(__name__)


def _upload_item(obj: StoredObject) -> dict[str, Any]:
    ref = split_object_key(obj.key)
    return {
        "name": ref.name,
        "owner": ref.owner,
        "size": obj.size,
        "lastModified": obj.last_modified.isoformat() if obj.last_modified else None,
    }


def _is_area_object(obj: StoredObject, area: str) -> bool:
    ref = split_object_key(obj.key)
    return ref is not None and ref.area == area


class CatalogService:
    """Builds listings for a scope, served through the listing cache."""

    def __init__(self, storage: StorageService, assets: AssetRepository, cache: ListingCache):
        self.storage = storage
        self.assets = assets
        self.cache = cache

    async def _list_area(self, scope: AccessScope, area: str) -> list[StoredObject]:
        objects = await self.storage.list_objects(scope.prefix_for(area))
        return [obj for obj in objects if _is_area_object(obj, area)]

    async def list_uploads(self, scope: AccessScope) -> tuple[list[dict[str, Any]], bool]:
        """List originals visible to the scope.

        Returns:
            (items, cached) where cached tells whether the cache answered
        """
        fetched = False

        async def fetch() -> list[dict[str, Any]]:
            nonlocal fetched
            fetched = True
            objects = await self._list_area(scope, UPLOADS)
            return [_upload_item(obj) for obj in objects]

        items = await self.cache.get_or_fetch(f"{UPLOADS}:{scope.cache_key}", fetch)
        return items, not fetched

    async def list_processed(self, scope: AccessScope) -> tuple[list[dict[str, Any]], bool]:
        """List variants visible to the scope with their reconciled originals.

        Returns:
            (items, cached) where cached tells whether the cache answered
        """
        fetched = False

        async def fetch() -> list[dict[str, Any]]:
            nonlocal fetched
            fetched = True
            variants = await self._list_area(scope, PROCESSED)
            uploads = await self._list_area(scope, UPLOADS)

            refs = [split_object_key(obj.key) for obj in uploads]
            links = await self.assets.variant_links((ref.owner, ref.name) for ref in refs)

            reconciled = reconcile_listing(variants, uploads, links)
            logger.debug(
                "Processed listing reconciled",
                extra={"scope": scope.cache_key, "variants": len(reconciled), "uploads": len(uploads)},
            )
            return [entry.to_dict() for entry in reconciled]

        items = await self.cache.get_or_fetch(f"{PROCESSED}:{scope.cache_key}", fetch)
        return items, not fetched
