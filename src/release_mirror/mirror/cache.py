"""
Cache Store for the release mirror

Maps (release tag, asset name) to a file under the cache root and downloads
assets on a miss. Every download is streamed into a `.tmp` sibling and promoted
with an atomic rename, so a committed path is always a complete copy. Concurrent
misses for the same asset may download twice; the rename keeps the result intact.
"""

import os
import time
from pathlib import Path
from typing import BinaryIO, Callable, Optional, Union

import requests  # type: ignore[import-untyped]

from release_mirror.constants import (
    DOWNLOAD_CHUNK_SIZE,
    DOWNLOAD_CONNECT_TIMEOUT,
    DOWNLOAD_READ_TIMEOUT,
)
from release_mirror.exceptions import DownloadFailedError, PathValidationError
from release_mirror.log_utils import logger
from release_mirror.utils import build_auth_headers, create_retry_session

from .files import atomic_write_stream, is_within_base, validate_path_component
from .interfaces import AssetStatus, AssetSyncResult, Release, SyncReport

Pathish = Union[str, Path]


class _SizeMismatch(Exception):
    def __init__(self, expected: int, actual: int):
        super().__init__(f"expected {expected} bytes, received {actual}")
        self.expected = expected
        self.actual = actual


def _format_size(size_bytes: int) -> str:
    if size_bytes >= 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.1f} MB"
    return f"{size_bytes} bytes"


class CacheStore:
    """
    On-disk cache laid out as `{cache_root}/{tag}/{asset_name}`.

    Entries are never updated in place and never deleted by the store.
    """

    def __init__(
        self,
        cache_root: Pathish,
        session_factory: Optional[Callable[[], requests.Session]] = None,
        chunk_size: int = DOWNLOAD_CHUNK_SIZE,
        timeout: tuple = (DOWNLOAD_CONNECT_TIMEOUT, DOWNLOAD_READ_TIMEOUT),
    ):
        """
        Initialize the cache store.

        Parameters:
            cache_root (Pathish): Root directory of the cache; created on demand.
            session_factory (Optional[Callable[[], requests.Session]]): Builds the HTTP session used per download.
            chunk_size (int): Size of the fixed streaming buffer.
            timeout (tuple): `(connect, read)` timeout in seconds for asset downloads.
        """
        self.cache_root = Path(cache_root).absolute()
        self.session_factory = session_factory or create_retry_session
        self.chunk_size = chunk_size
        self.timeout = timeout

    def ensure_root(self) -> Path:
        """Create the cache root directory if needed and return it."""
        self.cache_root.mkdir(parents=True, exist_ok=True)
        return self.cache_root

    def path_for(self, tag: str, asset_name: str) -> Path:
        """
        Return the deterministic cache path of an asset.

        Raises:
            PathValidationError: When `tag` or `asset_name` is empty or unsafe.
        """
        validate_path_component(tag, "tag")
        validate_path_component(asset_name, "asset")
        path = self.cache_root / tag / asset_name
        if not is_within_base(self.cache_root, path):
            raise PathValidationError(
                "Illegal path", field="asset", value=f"{tag}/{asset_name}"
            )
        return path

    def is_cached(self, tag: str, asset_name: str, size: Optional[int] = None) -> bool:
        """
        Check whether a committed copy of the asset exists.

        When `size` is given, the file must also have exactly that many bytes.
        """
        path = self.path_for(tag, asset_name)
        try:
            if not path.is_file():
                return False
            return size is None or path.stat().st_size == size
        except OSError as e:
            logger.debug(f"Could not stat cached file {path}: {e}")
            return False

    def ensure(
        self,
        tag: str,
        asset_name: str,
        size: int,
        download_url: str,
        token: Optional[str] = None,
    ) -> Path:
        """
        Return the path of a valid cached copy, downloading it first if absent or size-mismatched.

        Parameters:
            tag (str): Release tag.
            asset_name (str): Asset file name.
            size (int): Declared size in bytes; the committed file always has this length.
            download_url (str): Source URL of the asset.
            token (Optional[str]): Access token sent as `Authorization: token <token>`.

        Returns:
            Path: The committed cache path.

        Raises:
            PathValidationError: When `tag` or `asset_name` is unsafe.
            DownloadFailedError: When the download fails for any reason.
        """
        path = self.path_for(tag, asset_name)
        if self.is_cached(tag, asset_name, size):
            return path
        self._download(download_url, path, size, token)
        return path

    def sync_all(self, release: Release, token: Optional[str] = None) -> SyncReport:
        """
        Ensure every asset of `release` is cached.

        Failures are logged and recorded per asset; they never abort the batch.

        Returns:
            SyncReport: Which assets were already cached, downloaded, or failed.
        """
        report = SyncReport(tag_name=release.tag_name)
        logger.info(
            f"Syncing release {release.tag_name} ({len(release.assets)} assets)"
        )

        for asset in release.assets:
            try:
                path = self.path_for(release.tag_name, asset.name)
                if self.is_cached(release.tag_name, asset.name, asset.size):
                    logger.info(f"  [skip] {asset.name} (already cached)")
                    report.results.append(
                        AssetSyncResult(asset.name, AssetStatus.CACHED, path)
                    )
                    continue

                logger.info(f"  [download] {asset.name} ({_format_size(asset.size)})")
                self.ensure(
                    release.tag_name,
                    asset.name,
                    asset.size,
                    asset.download_url,
                    token,
                )
                logger.info(f"  [done] {asset.name}")
                report.results.append(
                    AssetSyncResult(asset.name, AssetStatus.DOWNLOADED, path)
                )
            except (DownloadFailedError, PathValidationError) as exc:
                logger.error(f"  [failed] {asset.name}: {exc}")
                report.results.append(
                    AssetSyncResult(
                        asset.name, AssetStatus.FAILED, error_message=str(exc)
                    )
                )
            except Exception as exc:  # noqa: BLE001 - Catch-all for unexpected errors
                logger.error(f"  [failed] {asset.name}: {exc}", exc_info=True)
                report.results.append(
                    AssetSyncResult(
                        asset.name, AssetStatus.FAILED, error_message=str(exc)
                    )
                )

        logger.info(
            f"Release {release.tag_name} sync complete: "
            f"{len(report.downloaded)} downloaded, {len(report.cached)} cached, "
            f"{len(report.failed)} failed"
        )
        return report

    def _download(
        self, url: str, path: Path, size: int, token: Optional[str]
    ) -> None:
        """
        Stream `url` into `path` through an atomic temp file.

        Raises:
            DownloadFailedError: On network errors, non-200 status, write errors,
                or a body whose length differs from `size`.
        """
        start_time = time.time()
        session = self.session_factory()
        response = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            logger.debug(f"Attempting to download {url} to {path}")
            response = session.get(
                url,
                headers=build_auth_headers(token),
                stream=True,
                timeout=self.timeout,
            )
            logger.debug(
                f"Received HTTP response status code: {response.status_code} for URL: {url}"
            )
            if response.status_code != 200:
                raise DownloadFailedError(
                    f"Download failed: HTTP {response.status_code}",
                    url=url,
                    path=str(path),
                )

            def _write_body(temp_f: BinaryIO) -> int:
                downloaded_bytes = 0
                for chunk in response.iter_content(chunk_size=self.chunk_size):
                    if chunk:
                        temp_f.write(chunk)
                        downloaded_bytes += len(chunk)
                if downloaded_bytes != size:
                    raise _SizeMismatch(size, downloaded_bytes)
                return downloaded_bytes

            downloaded = atomic_write_stream(path, _write_body)
        except DownloadFailedError:
            raise
        except _SizeMismatch as e:
            raise DownloadFailedError(
                "Downloaded size does not match the declared size",
                url=url,
                path=str(path),
                details=str(e),
            ) from e
        except requests.RequestException as e:
            raise DownloadFailedError(
                "Network error during download", url=url, path=str(path), details=str(e)
            ) from e
        except OSError as e:
            raise DownloadFailedError(
                "File I/O error during download",
                url=url,
                path=str(path),
                details=str(e),
            ) from e
        finally:
            if response is not None:
                try:
                    response.close()
                except Exception as e:  # noqa: BLE001
                    logger.debug(f"Error closing HTTP response for {url}: {e}")
            session.close()

        logger.debug(
            "Download elapsed time: %.2fs for %s", time.time() - start_time, url
        )
        logger.debug(f"Downloaded: {os.path.basename(path)} ({_format_size(downloaded)})")
