from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from linkpreview.core.config import Settings
from linkpreview.main import app
from linkpreview.repositories.metadata.file_store import FileMetadataStore
from linkpreview.workers.fetcher import HttpMetadataSource


@pytest.fixture
def store(tmp_path):
    """File store rooted in a per-test temporary directory."""
    return FileMetadataStore(tmp_path / "_links")


@pytest.fixture
def source():
    """Metadata source double; set ``source.fetch.return_value`` per test."""
    return AsyncMock(spec=HttpMetadataSource)


@pytest.fixture
def mock_fetch():
    """Patch the HTTP source used by the app so no real traffic happens."""
    with patch.object(HttpMetadataSource, "fetch", new_callable=AsyncMock) as fetch:
        yield fetch


@pytest.fixture
def client(tmp_path, mock_fetch):
    """TestClient whose lifespan caches into a temporary directory."""
    test_settings = Settings(cache_backend="file", cache_dir=tmp_path / "_links")
    with patch("linkpreview.main.settings", test_settings):
        with TestClient(app) as c:
            yield c
