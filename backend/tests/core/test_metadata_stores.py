"""Tests for the metadata store backends."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from transcodehub.core.config import Settings
from transcodehub.core.exceptions import MetadataError
from transcodehub.core.metadata import (
    DynamoMetadataStore,
    FileMetadataStore,
    InMemoryMetadataStore,
    RedisMetadataStore,
    create_metadata_store,
)


RECORD = {"ownerId": "alice", "filename": "clip.mp4", "processed": ["clip_medium.mp4"]}


class TestInMemoryStore:
    @pytest.mark.asyncio
    async def test_returns_copies(self) -> None:
        store = InMemoryMetadataStore()
        await store.put(RECORD)

        record = await store.get("alice", "clip.mp4")
        record["processed"].append("mutated")

        assert (await store.get("alice", "clip.mp4"))["processed"] == ["clip_medium.mp4"]
        assert await store.get("bob", "clip.mp4") is None


class TestFileStore:
    @pytest.mark.asyncio
    async def test_persists_across_instances(self, tmp_path) -> None:
        path = tmp_path / "ledger" / "catalog.json"
        await FileMetadataStore(str(path)).put(RECORD)

        assert await FileMetadataStore(str(path)).get("alice", "clip.mp4") == RECORD
        assert json.loads(path.read_text())["alice/clip.mp4"] == RECORD

    @pytest.mark.asyncio
    async def test_corrupt_ledger_raises(self, tmp_path) -> None:
        path = tmp_path / "catalog.json"
        path.write_text("{not json")

        with pytest.raises(MetadataError):
            await FileMetadataStore(str(path)).get("alice", "clip.mp4")

    @pytest.mark.asyncio
    async def test_failed_write_leaves_no_temp_file(self, tmp_path) -> None:
        path = tmp_path / "catalog.json"
        store = FileMetadataStore(str(path))
        await store.put(RECORD)

        with patch("transcodehub.core.metadata.json.dump", side_effect=OSError("disk full")):
            with pytest.raises(MetadataError):
                await store.put({**RECORD, "filename": "other.mp4"})

        assert sorted(p.name for p in tmp_path.iterdir()) == ["catalog.json"]
        assert await store.get("alice", "other.mp4") is None


class TestRedisStore:
    @pytest.mark.asyncio
    async def test_round_trip(self) -> None:
        client = MagicMock()
        client.set = AsyncMock()
        client.get = AsyncMock(return_value=json.dumps(RECORD))
        store = RedisMetadataStore(client, key_prefix="t:")

        await store.put(RECORD)

        client.set.assert_awaited_once_with("t:alice/clip.mp4", json.dumps(RECORD, default=str))
        assert await store.get("alice", "clip.mp4") == RECORD

    @pytest.mark.asyncio
    async def test_connection_errors_become_metadata_errors(self) -> None:
        client = MagicMock()
        client.get = AsyncMock(side_effect=RedisConnectionError("refused"))

        with pytest.raises(MetadataError):
            await RedisMetadataStore(client).get("alice", "clip.mp4")


class TestDynamoStore:
    @pytest.mark.asyncio
    async def test_uses_composite_key(self) -> None:
        table = MagicMock()
        table.get_item.return_value = {"Item": RECORD}
        store = DynamoMetadataStore("assets", table=table)

        assert await store.get("alice", "clip.mp4") == RECORD
        table.get_item.assert_called_once_with(Key={"ownerId": "alice", "filename": "clip.mp4"})

        await store.put(RECORD)
        table.put_item.assert_called_once_with(Item=RECORD)

    @pytest.mark.asyncio
    async def test_missing_item(self) -> None:
        table = MagicMock()
        table.get_item.return_value = {}

        assert await DynamoMetadataStore("assets", table=table).get("alice", "none.mp4") is None


class TestFactory:
    @pytest.mark.parametrize(
        "backend,expected",
        [("memory", InMemoryMetadataStore), ("file", FileMetadataStore), ("dynamodb", DynamoMetadataStore)],
    )
    def test_selects_backend(self, backend: str, expected) -> None:
        assert isinstance(create_metadata_store(Settings(METADATA_BACKEND=backend)), expected)

    def test_unknown_backend(self) -> None:
        with pytest.raises(ValueError):
            create_metadata_store(Settings(METADATA_BACKEND="sqlite"))
