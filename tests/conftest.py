from pathlib import Path
from unittest.mock import MagicMock

import platformdirs
import pytest
import requests

from release_mirror.mirror import (
    Asset,
    CacheStore,
    DownloadService,
    Release,
    VersionState,
)

_NETWORK_BLOCK_MSG = (
    "Network access is blocked during tests. Mock requests.* or Session.request."
)


def _block_network(*_args, **_kwargs):
    """
    Prevent network calls in tests by raising a RuntimeError.

    Raises:
        RuntimeError: with `_NETWORK_BLOCK_MSG` indicating that network access is blocked during tests.
    """
    raise RuntimeError(_NETWORK_BLOCK_MSG)


def pytest_configure(config):
    """Register the markers used across the test suite."""
    config.addinivalue_line("markers", "unit: fast isolated unit tests")
    config.addinivalue_line(
        "markers", "core_downloads: cache and download engine tests"
    )


@pytest.fixture(autouse=True)
def _isolate_test_environment(tmp_path_factory, monkeypatch):
    """
    Point platformdirs and CONFIG_PATH at a temporary layout so no test touches user directories.
    """
    base = tmp_path_factory.mktemp("release-mirror")
    log_dir = base / "log"
    cache_dir = base / "cache"
    for path in (log_dir, cache_dir):
        path.mkdir(parents=True, exist_ok=True)

    monkeypatch.delenv("CONFIG_PATH", raising=False)
    monkeypatch.setattr(
        platformdirs, "user_log_dir", lambda *_args, **_kwargs: str(log_dir)
    )
    monkeypatch.setattr(
        platformdirs, "user_cache_dir", lambda *_args, **_kwargs: str(cache_dir)
    )


def pytest_runtest_setup():
    """
    Prevent real network requests during tests by replacing HTTP entry points with blocking callables.
    """
    requests.get = _block_network
    requests.post = _block_network
    requests.put = _block_network
    requests.delete = _block_network
    requests.head = _block_network
    requests.patch = _block_network
    requests.options = _block_network
    requests.Session.request = _block_network



@pytest.fixture
def sample_release_data():
    """Fixture providing a sample GitHub latest-release payload."""
    return {
        "tag_name": "v1.2.0",
        "name": "Release 1.2.0",
        "body": "## Release Notes\n\n- Faster sync",
        "published_at": "2024-05-01T12:00:00Z",
        "assets": [
            {
                "name": "app-linux-amd64.tar.gz",
                "size": 11,
                "browser_download_url": "https://example.com/v1.2.0/app-linux-amd64.tar.gz",
            },
            {
                "name": "app-windows-amd64.zip",
                "size": 5,
                "browser_download_url": "https://example.com/v1.2.0/app-windows-amd64.zip",
            },
        ],
    }


@pytest.fixture
def sample_release():
    """Fixture providing a sample Release object for testing."""
    return Release(
        tag_name="v1.2.0",
        body="## Release Notes\n\n- Faster sync",
        published_at="2024-05-01T12:00:00Z",
        name="Release 1.2.0",
        assets=(
            Asset(
                name="app-linux-amd64.tar.gz",
                size=11,
                download_url="https://example.com/v1.2.0/app-linux-amd64.tar.gz",
            ),
            Asset(
                name="app-windows-amd64.zip",
                size=5,
                download_url="https://example.com/v1.2.0/app-windows-amd64.zip",
            ),
        ),
    )


@pytest.fixture
def release_source(sample_release):
    """A mock release source that returns `sample_release`."""
    source = MagicMock()
    source.fetch_latest_release.return_value = sample_release
    return source


@pytest.fixture
def version_state(release_source):
    return VersionState(release_source)


@pytest.fixture
def cache_root(tmp_path) -> Path:
    return tmp_path / "github_cache"


@pytest.fixture
def download_session():
    """A mock Session handed out by the cache store's session factory."""
    return MagicMock()


@pytest.fixture
def cache_store(cache_root, download_session):
    return CacheStore(cache_root, session_factory=lambda: download_session)


@pytest.fixture
def download_service(version_state, cache_store):
    return DownloadService(version_state, cache_store, token="secret-token")
