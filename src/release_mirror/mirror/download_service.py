"""
Download Service for the release mirror

Resolves a requested (tag, asset) to a local file: a valid cache entry is
served directly, otherwise the asset is fetched into the cache on demand, but
only for the release currently tracked by the version state.
"""

from pathlib import Path
from typing import Optional

from release_mirror.exceptions import NotFoundError
from release_mirror.log_utils import logger

from .cache import CacheStore
from .files import validate_path_component
from .version import VersionState


class DownloadService:
    def __init__(
        self,
        version_state: VersionState,
        cache_store: CacheStore,
        token: Optional[str] = None,
    ):
        self.version_state = version_state
        self.cache_store = cache_store
        self.token = token

    def resolve(self, tag: str, asset_name: str) -> Path:
        """
        Return the cached file for `(tag, asset_name)`, downloading it on a miss.

        When the tag is the current release, a cached file must also match the
        declared size; for other tags an existing committed file is served as is.

        Returns:
            Path: Path of a committed cache file.

        Raises:
            PathValidationError: When either component is empty or unsafe.
            NotFoundError: When the tag is not the current release or the asset is not part of it.
            DownloadFailedError: When the on-demand download fails.
        """
        validate_path_component(tag, "tag")
        validate_path_component(asset_name, "asset")

        release = self.version_state.current()
        asset = None
        if release is not None and release.tag_name == tag:
            asset = release.find_asset(asset_name)

        expected_size = asset.size if asset is not None else None
        if self.cache_store.is_cached(tag, asset_name, expected_size):
            return self.cache_store.path_for(tag, asset_name)

        if release is None or release.tag_name != tag:
            raise NotFoundError("Version not found", details=tag)
        if asset is None:
            raise NotFoundError("File not found", details=asset_name)

        logger.info(f"Cache miss for {tag}/{asset_name}; downloading on demand")
        return self.cache_store.ensure(
            tag, asset.name, asset.size, asset.download_url, self.token
        )
