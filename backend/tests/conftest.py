"""Shared fixtures: an app wired to local storage, an in-memory catalog and
a stub encoder."""

import os
from typing import Any, Callable

os.environ.setdefault("METADATA_BACKEND", "memory")
os.environ.setdefault("LOG_JSON", "false")
os.environ.setdefault("JWT_SECRETS", '["test-secret"]')

import pytest
from fastapi.testclient import TestClient

from transcodehub.core.config import Settings
from transcodehub.core.container import ServiceContainer, build_container
from transcodehub.core.metadata import InMemoryMetadataStore
from transcodehub.core.storage import LocalStorage, StorageConfig
from transcodehub.main import create_app
from support import FakeClock, StubTranscoder, TEST_SECRET, auth_headers


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        JWT_SECRETS=[TEST_SECRET],
        METADATA_BACKEND="memory",
        STORAGE_BACKEND="local",
        LOCAL_STORAGE_PATH=str(tmp_path / "storage"),
        TRANSCODE_WORK_DIR=str(tmp_path / "work"),
        LOG_JSON=False,
        MAX_UPLOAD_SIZE_BYTES=1024,
    )


@pytest.fixture
def stub_transcoder() -> StubTranscoder:
    return StubTranscoder()


@pytest.fixture
def container(test_settings, stub_transcoder, clock) -> ServiceContainer:
    return build_container(
        test_settings,
        storage_backend=LocalStorage(StorageConfig(backend="local", local_path=test_settings.LOCAL_STORAGE_PATH)),
        metadata_store=InMemoryMetadataStore(),
        transcoder=stub_transcoder,
        clock=clock,
    )


@pytest.fixture
def client(test_settings, container) -> TestClient:
    app = create_app(settings=test_settings, container=container)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def upload(client) -> Callable[..., dict[str, Any]]:
    """Upload bytes as ``owner`` and return the response body."""

    def _upload(owner: str, name: str = "clip.mp4", data: bytes = b"fake-video-bytes", field: str = "video"):
        response = client.post(
            "/upload",
            files={field: (name, data, "video/mp4")},
            headers=auth_headers(owner),
        )
        assert response.status_code == 201, response.text
        return response.json()

    return _upload
