"""
Core data structures for the release mirror.

This module defines the release descriptor shared by every component and the
result records produced by cache synchronisation and refresh runs.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional, Tuple

if TYPE_CHECKING:
    from release_mirror.exceptions import FetchError


@dataclass(frozen=True)
class Asset:
    """Represents a downloadable asset from a release."""

    name: str
    """The filename of the asset, unique within its release"""

    size: int
    """Declared file size in bytes"""

    download_url: str
    """Direct URL to download the asset"""


@dataclass(frozen=True)
class Release:
    """
    The authoritative upstream state for one release.

    Instances are built wholesale from a single API response and never mutated;
    a newer fetch produces a new Release that replaces the old one.
    """

    tag_name: str
    """The release tag/version identifier (e.g., 'v2.7.8')"""

    body: str = ""
    """Release notes/markdown content"""

    published_at: str = ""
    """ISO 8601 timestamp when the release was published (informational)"""

    name: str = ""
    """Human readable release title"""

    assets: Tuple[Asset, ...] = ()
    """Downloadable assets in upstream order"""

    def find_asset(self, asset_name: str) -> Optional[Asset]:
        """Return the asset called `asset_name`, or None when the release has no such asset."""
        for asset in self.assets:
            if asset.name == asset_name:
                return asset
        return None


class AssetStatus(str, Enum):
    """Outcome of ensuring a single asset during a batch sync."""

    CACHED = "cached"
    DOWNLOADED = "downloaded"
    FAILED = "failed"


@dataclass
class AssetSyncResult:
    """Result of syncing one asset."""

    name: str
    status: AssetStatus
    path: Optional[Path] = None
    error_message: Optional[str] = None


@dataclass
class SyncReport:
    """Per-asset outcome of syncing one release into the cache."""

    tag_name: str
    results: List[AssetSyncResult] = field(default_factory=list)

    def _names(self, status: AssetStatus) -> List[str]:
        return [r.name for r in self.results if r.status is status]

    @property
    def cached(self) -> List[str]:
        return self._names(AssetStatus.CACHED)

    @property
    def downloaded(self) -> List[str]:
        return self._names(AssetStatus.DOWNLOADED)

    @property
    def failed(self) -> List[str]:
        return self._names(AssetStatus.FAILED)

    @property
    def ok(self) -> bool:
        """True when no asset failed."""
        return not self.failed


@dataclass
class RefreshResult:
    """Outcome of one refresh-then-sync run of the coordinator."""

    reason: str
    release: Optional[Release] = None
    error: Optional["FetchError"] = None
    report: Optional[SyncReport] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.release is not None
