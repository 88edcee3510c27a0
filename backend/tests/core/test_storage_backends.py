"""Tests for the local and S3 storage backends."""

import io
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from transcodehub.core.exceptions import NotFoundError, StorageError, ValidationError
from transcodehub.core.storage import (
    LocalStorage,
    S3Storage,
    StorageConfig,
    StorageService,
    create_storage_backend,
    guess_content_type,
    validate_object_name,
)


@pytest.fixture
def local(tmp_path) -> LocalStorage:
    return LocalStorage(StorageConfig(backend="local", local_path=str(tmp_path / "root")))


def client_error(code: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, "HeadObject")


class TestLocalStorage:
    def test_upload_list_download(self, local, tmp_path) -> None:
        local.upload_fileobj(io.BytesIO(b"a"), "uploads/alice/1_clip.mp4")
        local.upload_fileobj(io.BytesIO(b"bb"), "uploads/bob/2_talk.mp4")
        local.upload_fileobj(io.BytesIO(b"ccc"), "processed/alice/clip_medium.mp4")

        assert [o.key for o in local.list_objects("uploads/")] == [
            "uploads/alice/1_clip.mp4",
            "uploads/bob/2_talk.mp4",
        ]
        [alice] = local.list_objects("uploads/alice/")
        assert alice.size == 1
        assert alice.last_modified.tzinfo is not None

        destination = tmp_path / "copy.mp4"
        local.download("processed/alice/clip_medium.mp4", str(destination))
        assert destination.read_bytes() == b"ccc"

    def test_owner_prefix_does_not_leak_similar_names(self, local) -> None:
        local.upload_fileobj(io.BytesIO(b"a"), "uploads/al/clip.mp4")
        local.upload_fileobj(io.BytesIO(b"a"), "uploads/alice/clip.mp4")

        assert [o.key for o in local.list_objects("uploads/al/")] == ["uploads/al/clip.mp4"]

    def test_missing_prefix_lists_nothing(self, local) -> None:
        assert local.list_objects("processed/nobody/") == []

    def test_download_missing_raises_not_found(self, local, tmp_path) -> None:
        with pytest.raises(NotFoundError):
            local.download("uploads/alice/none.mp4", str(tmp_path / "x"))

    def test_keys_cannot_escape_root(self, local) -> None:
        with pytest.raises(StorageError):
            local.exists("uploads/../../etc/passwd")

    def test_exists_and_url(self, local) -> None:
        local.upload_fileobj(io.BytesIO(b"a"), "uploads/alice/clip.mp4")

        assert local.exists("uploads/alice/clip.mp4") is True
        assert local.exists("uploads/alice/other.mp4") is False
        assert local.get_url("uploads/alice/clip.mp4").startswith("file://")


class TestS3Storage:
    def make(self, client) -> S3Storage:
        return S3Storage(StorageConfig(backend="s3", bucket="media"), client=client)

    def test_put_sets_content_type_and_metadata(self, tmp_path) -> None:
        client = MagicMock()
        source = tmp_path / "clip_medium.webm"
        source.write_bytes(b"abc")

        stored = self.make(client).upload(str(source), "processed/alice/clip_medium.webm", metadata={"Owner": "alice"})

        kwargs = client.put_object.call_args.kwargs
        assert kwargs["Bucket"] == "media"
        assert kwargs["ContentType"] == "video/webm"
        assert kwargs["Metadata"] == {"owner": "alice"}
        assert stored.size == 3

    def test_exists_maps_missing_codes(self) -> None:
        client = MagicMock()
        client.head_object.side_effect = client_error("404")

        assert self.make(client).exists("uploads/alice/none.mp4") is False

    def test_exists_propagates_other_errors(self) -> None:
        client = MagicMock()
        client.head_object.side_effect = client_error("AccessDenied")

        with pytest.raises(StorageError):
            self.make(client).exists("uploads/alice/clip.mp4")

    def test_download_missing_raises_not_found(self) -> None:
        client = MagicMock()
        client.download_file.side_effect = client_error("NoSuchKey")

        with pytest.raises(NotFoundError):
            self.make(client).download("uploads/alice/none.mp4", "/tmp/none")

    def test_list_skips_folder_markers(self) -> None:
        client = MagicMock()
        client.get_paginator.return_value.paginate.return_value = [
            {"Contents": [{"Key": "uploads/alice/"}, {"Key": "uploads/alice/clip.mp4", "Size": 5}]},
            {},
        ]

        objects = self.make(client).list_objects("uploads/alice/")

        assert [(o.key, o.size) for o in objects] == [("uploads/alice/clip.mp4", 5)]

    def test_presign_upload_signs_put_with_content_type(self) -> None:
        client = MagicMock()
        client.generate_presigned_url.return_value = "https://signed-put"

        url = self.make(client).get_upload_url("uploads/alice/1_clip.mp4", "video/mp4", expires_in=3600)

        assert url == "https://signed-put"
        args, kwargs = client.generate_presigned_url.call_args
        assert args == ("put_object",)
        assert kwargs["Params"] == {"Bucket": "media", "Key": "uploads/alice/1_clip.mp4", "ContentType": "video/mp4"}
        assert kwargs["ExpiresIn"] == 3600

    def test_presign_upload_failure(self) -> None:
        client = MagicMock()
        client.generate_presigned_url.side_effect = client_error("AccessDenied")

        with pytest.raises(StorageError):
            self.make(client).get_upload_url("uploads/alice/1_clip.mp4", "video/mp4")

    def test_presign(self) -> None:
        client = MagicMock()
        client.generate_presigned_url.return_value = "https://signed"

        assert self.make(client).get_url("uploads/alice/clip.mp4", expires_in=60) == "https://signed"
        assert client.generate_presigned_url.call_args.kwargs["ExpiresIn"] == 60


class TestHelpers:
    @pytest.mark.parametrize(
        "key,expected",
        [
            ("a.mp4", "video/mp4"),
            ("a.WEBM", "video/webm"),
            ("a.avi", "video/x-msvideo"),
            ("a.mov", "video/quicktime"),
            ("a.mkv", "video/x-matroska"),
            ("a.unknownext", "application/octet-stream"),
        ],
    )
    def test_guess_content_type(self, key: str, expected: str) -> None:
        assert guess_content_type(key) == expected

    def test_explicit_content_type_wins(self) -> None:
        assert guess_content_type("a.mp4", "video/custom") == "video/custom"

    @pytest.mark.parametrize("name", [None, "", "  ", "a/b.mp4", "a\\b.mp4", ".", ".."])
    def test_invalid_object_names(self, name) -> None:
        with pytest.raises(ValidationError):
            validate_object_name(name)

    def test_unknown_backend(self) -> None:
        with pytest.raises(ValueError):
            create_storage_backend(StorageConfig(backend="ftp"))

    @pytest.mark.asyncio
    async def test_service_runs_backend_calls(self, local) -> None:
        service = StorageService(local)

        await service.upload_fileobj(io.BytesIO(b"a"), "uploads/alice/clip.mp4")

        assert await service.exists("uploads/alice/clip.mp4") is True
        assert [o.key for o in await service.list_objects("uploads/")] == ["uploads/alice/clip.mp4"]
