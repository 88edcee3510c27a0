"""Repository for asset records.

Variant appends are read-modify-write against the metadata store. Appends to
the same asset are serialized by a per-asset lock inside this process only;
two processes racing on one asset can still lose an append.
"""

import asyncio
import logging
import weakref
from typing import Iterable, Optional

from transcodehub.core.metadata import MetadataStore, record_key
from transcodehub.modules.catalog.models import AssetRecord, TranscodeFailure, utc_now_iso

logger = logging.getLogger(__name__)


class AssetRepository:
    """Repository for AssetRecord operations."""

    def __init__(self, store: MetadataStore):
        self.store = store
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, owner_id: str, filename: str) -> asyncio.Lock:
        key = record_key(owner_id, filename)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    async def get_asset(self, owner_id: str, filename: str) -> Optional[AssetRecord]:
        """Get an asset record by (owner, filename)."""
        record = await self.store.get(owner_id, filename)
        return AssetRecord.from_record(record) if record is not None else None

    async def create_asset(
        self,
        owner_id: str,
        filename: str,
        uploaded_at: Optional[str] = None,
    ) -> AssetRecord:
        """Create the record for a freshly uploaded asset.

        Args:
            owner_id: Uploading owner
            filename: Stored upload name
            uploaded_at: ISO-8601 timestamp, defaults to now

        Returns:
            Created AssetRecord
        """
        asset = AssetRecord(
            owner_id=owner_id,
            filename=filename,
            uploaded_at=uploaded_at or utc_now_iso(),
        )
        await self.store.put(asset.to_record())
        return asset

    async def record_variant(self, owner_id: str, filename: str, variant_name: str) -> AssetRecord:
        """Append a variant to an asset, creating the record if it is missing.

        Appending a name that is already listed leaves the list unchanged;
        ``lastTranscodedAt`` is refreshed either way.

        Args:
            owner_id: Asset owner
            filename: Stored upload name of the asset
            variant_name: Name of the persisted variant

        Returns:
            Updated AssetRecord
        """
        async with self._lock_for(owner_id, filename):
            asset = await self.get_asset(owner_id, filename)
            if asset is None:
                logger.info(
                    "Asset record missing, creating it",
                    extra={"owner_id": owner_id, "asset_filename": filename},
                )
                asset = AssetRecord(owner_id=owner_id, filename=filename)

            asset.add_variant(variant_name)
            asset.last_transcoded_at = utc_now_iso()
            await self.store.put(asset.to_record())
            return asset

    async def record_failure(
        self,
        owner_id: str,
        filename: str,
        variant_name: str,
        error: str,
    ) -> AssetRecord:
        """Append a failed attempt to an asset's failure log."""
        async with self._lock_for(owner_id, filename):
            asset = await self.get_asset(owner_id, filename)
            if asset is None:
                asset = AssetRecord(owner_id=owner_id, filename=filename)

            asset.failures.append(TranscodeFailure(variant=variant_name, error=error, at=utc_now_iso()))
            await self.store.put(asset.to_record())
            return asset

    async def variant_links(self, assets: Iterable[tuple[str, str]]) -> dict[tuple[str, str], str]:
        """Collect explicit variant -> original links for a set of assets.

        Several uploads with the same original name share variant names, and
        a later transcode overwrites the earlier object. The asset transcoded
        most recently therefore owns the link.

        Args:
            assets: (owner, stored upload name) pairs

        Returns:
            (owner, variant name) -> upload filename
        """
        assets = list(assets)
        records = await asyncio.gather(
            *(self.get_asset(owner_id, filename) for owner_id, filename in assets)
        )

        links: dict[tuple[str, str], str] = {}
        linked_at: dict[tuple[str, str], str] = {}
        for asset in records:
            if asset is None:
                continue
            transcoded_at = asset.last_transcoded_at or ""
            for variant in asset.processed:
                key = (asset.owner_id, variant)
                if key not in links or transcoded_at > linked_at[key]:
                    links[key] = asset.filename
                    linked_at[key] = transcoded_at
        return links
