"""
release-mirror engine

This package holds the components that keep a local mirror of the latest
GitHub release:

- interfaces: Release/Asset descriptors and result records
- github_source: latest-release API client
- version: in-memory holder of the current release
- cache: on-disk asset cache with atomic downloads
- coordinator: refresh-then-sync worker and periodic timer
- webhook: release webhook validation and de-duplication
- download_service: serves assets from the cache, fetching on a miss
- domains: domains.json lookup from a second repository
"""

from .cache import CacheStore
from .coordinator import RefreshCoordinator
from .domains import DomainsClient, DomainsError
from .download_service import DownloadService
from .github_source import GithubReleaseSource
from .interfaces import (
    Asset,
    AssetStatus,
    AssetSyncResult,
    RefreshResult,
    Release,
    SyncReport,
)
from .version import VersionState
from .webhook import DedupWindow, WebhookIngester, WebhookOutcome, WebhookStatus

__all__ = [
    # Data structures
    "Asset",
    "Release",
    "AssetStatus",
    "AssetSyncResult",
    "SyncReport",
    "RefreshResult",
    # Components
    "GithubReleaseSource",
    "VersionState",
    "CacheStore",
    "RefreshCoordinator",
    "DedupWindow",
    "WebhookIngester",
    "WebhookOutcome",
    "WebhookStatus",
    "DownloadService",
    "DomainsClient",
    "DomainsError",
]
