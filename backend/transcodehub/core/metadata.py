"""Key-value metadata store for asset records.

One interface, several backends selected by ``METADATA_BACKEND``:
in-memory (tests, single process), a local JSON ledger file, Redis, and
DynamoDB. Records are plain JSON-compatible dicts addressed by
(owner_id, filename).
"""

import asyncio
import copy
import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from functools import partial
from pathlib import Path
from typing import Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from redis.exceptions import RedisError

from transcodehub.core.exceptions import MetadataError
from transcodehub.core.redis import create_redis_client

logger = logging.getLogger(__name__)

Record = dict[str, Any]


def record_key(owner_id: str, filename: str) -> str:
    """Flat key used by the key-value backends."""
    return f"{owner_id}/{filename}"


class MetadataStore(ABC):
    """Abstract base class for metadata backends."""

    @abstractmethod
    async def get(self, owner_id: str, filename: str) -> Optional[Record]:
        """Return the record for (owner_id, filename) or None."""

    @abstractmethod
    async def put(self, record: Record) -> None:
        """Write a whole record, replacing any previous version.

        The record must carry ``ownerId`` and ``filename``.
        """


class InMemoryMetadataStore(MetadataStore):
    """Process-local store, used for tests and single-node development."""

    def __init__(self):
        self._records: dict[str, Record] = {}

    async def get(self, owner_id: str, filename: str) -> Optional[Record]:
        record = self._records.get(record_key(owner_id, filename))
        return copy.deepcopy(record) if record is not None else None

    async def put(self, record: Record) -> None:
        self._records[record_key(record["ownerId"], record["filename"])] = copy.deepcopy(record)


class FileMetadataStore(MetadataStore):
    """JSON ledger file on local disk.

    The whole ledger is rewritten atomically (temp file + rename) on each put.
    """

    def __init__(self, path: str):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _load(self) -> dict[str, Record]:
        if not self.path.exists():
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _get_sync(self, owner_id: str, filename: str) -> Optional[Record]:
        with self._lock:
            try:
                return self._load().get(record_key(owner_id, filename))
            except (OSError, ValueError) as e:
                raise MetadataError("Failed to read metadata ledger", detail=str(e)) from e

    def _put_sync(self, record: Record) -> None:
        with self._lock:
            try:
                ledger = self._load()
                ledger[record_key(record["ownerId"], record["filename"])] = record
                self.path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
                try:
                    with os.fdopen(fd, "w", encoding="utf-8") as f:
                        json.dump(ledger, f, indent=2, default=str)
                    os.replace(tmp_path, self.path)
                except BaseException:
                    os.unlink(tmp_path)
                    raise
            except (OSError, ValueError) as e:
                raise MetadataError("Failed to write metadata ledger", detail=str(e)) from e

    async def get(self, owner_id: str, filename: str) -> Optional[Record]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._get_sync, owner_id, filename)

    async def put(self, record: Record) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._put_sync, record)


class RedisMetadataStore(MetadataStore):
    """Redis-backed store; one JSON string per record."""

    def __init__(self, client, key_prefix: str = "transcodehub:asset:"):
        self.client = client
        self.key_prefix = key_prefix

    def _key(self, owner_id: str, filename: str) -> str:
        return f"{self.key_prefix}{record_key(owner_id, filename)}"

    async def get(self, owner_id: str, filename: str) -> Optional[Record]:
        try:
            raw = await self.client.get(self._key(owner_id, filename))
        except RedisError as e:
            raise MetadataError("Failed to read asset record", detail=str(e)) from e
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError as e:
            raise MetadataError("Corrupt asset record", detail=str(e)) from e

    async def put(self, record: Record) -> None:
        try:
            await self.client.set(
                self._key(record["ownerId"], record["filename"]),
                json.dumps(record, default=str),
            )
        except RedisError as e:
            raise MetadataError("Failed to write asset record", detail=str(e)) from e


class DynamoMetadataStore(MetadataStore):
    """DynamoDB table keyed by (ownerId, filename)."""

    def __init__(self, table_name: str, region: str = "", table=None):
        self.table_name = table_name
        self.region = region
        self._table = table

    def _get_table(self):
        if self._table is None:
            resource = boto3.resource("dynamodb", region_name=self.region or None)
            self._table = resource.Table(self.table_name)
        return self._table

    def _get_sync(self, owner_id: str, filename: str) -> Optional[Record]:
        try:
            response = self._get_table().get_item(
                Key={"ownerId": owner_id, "filename": filename},
            )
        except (BotoCoreError, ClientError) as e:
            raise MetadataError("Failed to read asset record", detail=str(e)) from e
        return response.get("Item")

    def _put_sync(self, record: Record) -> None:
        try:
            self._get_table().put_item(Item=record)
        except (BotoCoreError, ClientError) as e:
            raise MetadataError("Failed to write asset record", detail=str(e)) from e

    async def get(self, owner_id: str, filename: str) -> Optional[Record]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(self._get_sync, owner_id, filename))

    async def put(self, record: Record) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, partial(self._put_sync, record))


def create_metadata_store(settings) -> MetadataStore:
    """Create the metadata backend selected by configuration."""
    backend_type = settings.METADATA_BACKEND.lower()

    if backend_type == "memory":
        return InMemoryMetadataStore()
    elif backend_type == "file":
        return FileMetadataStore(settings.METADATA_FILE_PATH)
    elif backend_type == "redis":
        return RedisMetadataStore(
            create_redis_client(settings.REDIS_URL),
            key_prefix=settings.REDIS_KEY_PREFIX,
        )
    elif backend_type == "dynamodb":
        return DynamoMetadataStore(settings.DYNAMODB_TABLE, region=settings.DYNAMODB_REGION)
    else:
        raise ValueError(f"Unsupported metadata backend: {backend_type}")
