"""
GitHub Release Source

This module fetches the latest release descriptor of one repository from the
GitHub REST API. It is a pure request/response client: it keeps no state
between calls and reports every failure as a FetchError.
"""

import json
from typing import Any, Dict, List, Optional

import requests  # type: ignore[import-untyped]

from release_mirror.constants import METADATA_REQUEST_TIMEOUT
from release_mirror.exceptions import FetchError
from release_mirror.log_utils import logger
from release_mirror.utils import make_github_api_request

from .interfaces import Asset, Release


class GithubReleaseSource:
    """
    Client for the `releases/latest` endpoint of a GitHub repository.

    Usage:
        source = GithubReleaseSource(
            api_url="https://api.github.com/repos/owner/repo/releases/latest",
            token=config.release.token,
        )
        release = source.fetch_latest_release()
    """

    def __init__(
        self,
        api_url: str,
        token: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: float = METADATA_REQUEST_TIMEOUT,
    ):
        """
        Initialize the release source.

        Parameters:
            api_url (str): Full URL of the latest-release endpoint.
            token (Optional[str]): Access token for private repositories or higher rate limits.
            session (Optional[requests.Session]): Session to reuse; a retrying session is created per call when omitted.
            timeout (float): Request timeout in seconds.
        """
        self.api_url = api_url
        self.token = token
        self.session = session
        self.timeout = timeout

    def fetch_latest_release(self) -> Release:
        """
        Fetch and parse the latest release descriptor.

        Returns:
            Release: The freshly constructed release descriptor.

        Raises:
            FetchError: On transport failure, a non-200 status, or a malformed body.
        """
        try:
            response = make_github_api_request(
                self.api_url,
                token=self.token,
                session=self.session,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise FetchError(
                "Network error fetching latest release",
                url=self.api_url,
                details=str(exc),
            ) from exc

        if response.status_code != 200:
            raise FetchError(
                f"GitHub API error: {response.status_code}",
                url=self.api_url,
                status_code=response.status_code,
                details=(response.text or "")[:200] or None,
            )

        try:
            release_data = response.json()
        except (ValueError, json.JSONDecodeError) as exc:
            raise FetchError(
                "Malformed release response",
                url=self.api_url,
                status_code=response.status_code,
                details=str(exc),
            ) from exc

        return create_release_from_github_data(release_data, source_url=self.api_url)


def create_asset_from_github_data(
    asset_data: Any, tag_name: str = ""
) -> Optional[Asset]:
    """
    Create an Asset from one entry of a GitHub release `assets` array.

    Returns:
        Optional[Asset]: The asset, or None (with a warning logged) when the name,
            size or download URL is missing or invalid.
    """
    if not isinstance(asset_data, dict):
        logger.warning("Skipping malformed asset for release %s", tag_name)
        return None

    asset_name = asset_data.get("name")
    if not isinstance(asset_name, str) or not asset_name.strip():
        logger.warning("Skipping asset with invalid name for release %s", tag_name)
        return None

    raw_size = asset_data.get("size")
    try:
        asset_size = int(raw_size)
    except (TypeError, ValueError):
        logger.warning(
            "Skipping asset %s with invalid size for release %s",
            asset_name,
            tag_name,
        )
        return None
    if asset_size < 0:
        logger.warning(
            "Skipping asset %s with negative size for release %s",
            asset_name,
            tag_name,
        )
        return None

    download_url = asset_data.get("browser_download_url")
    if not isinstance(download_url, str) or not download_url.strip():
        logger.warning(
            "Skipping asset %s without download URL for release %s",
            asset_name,
            tag_name,
        )
        return None

    return Asset(name=asset_name, size=asset_size, download_url=download_url)


def create_release_from_github_data(
    release_data: Any, source_url: Optional[str] = None
) -> Release:
    """
    Create a Release from GitHub API release data.

    Invalid individual assets are skipped; a release with no assets is valid.
    Later assets repeating an earlier name are dropped so names stay unique.

    Parameters:
        release_data (Any): Decoded JSON body of the latest-release endpoint.
        source_url (Optional[str]): URL the data came from, used in error reports.

    Returns:
        Release: The parsed release descriptor.

    Raises:
        FetchError: When the body is not an object, has no usable `tag_name`,
            or its `assets` field is not a list.
    """
    if not isinstance(release_data, dict):
        raise FetchError(
            "Malformed release response",
            url=source_url,
            details=f"expected object, got {type(release_data).__name__}",
        )

    tag_name = release_data.get("tag_name")
    if not isinstance(tag_name, str) or not tag_name.strip():
        raise FetchError(
            "Malformed release response", url=source_url, details="missing tag_name"
        )

    assets_data = release_data.get("assets") or []
    if not isinstance(assets_data, list):
        raise FetchError(
            "Malformed release response",
            url=source_url,
            details=f"invalid assets field for release {tag_name}",
        )

    assets: List[Asset] = []
    seen: Dict[str, Asset] = {}
    for asset_data in assets_data:
        asset = create_asset_from_github_data(asset_data, tag_name)
        if asset is None:
            continue
        if asset.name in seen:
            logger.warning(
                "Skipping duplicate asset %s for release %s", asset.name, tag_name
            )
            continue
        seen[asset.name] = asset
        assets.append(asset)

    return Release(
        tag_name=tag_name,
        body=release_data.get("body") or "",
        published_at=release_data.get("published_at") or "",
        name=release_data.get("name") or "",
        assets=tuple(assets),
    )
