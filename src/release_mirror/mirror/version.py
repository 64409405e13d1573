"""
Version State for the release mirror.

Holds the most recently fetched release descriptor for the whole process.
Readers get either the previous or the new descriptor, never a mix; the lock
is held only for the reference swap, never across the network call.
"""

import threading
from datetime import datetime, timezone
from typing import Optional, Protocol

from release_mirror.exceptions import FetchError
from release_mirror.log_utils import logger

from .interfaces import Release


class ReleaseSource(Protocol):
    def fetch_latest_release(self) -> Release: ...


class VersionState:
    """
    Process-wide holder of the current Release.

    `current()` returns None until the first successful `refresh()`, which keeps
    "nothing fetched yet" distinct from "a release with no assets".
    """

    def __init__(self, source: ReleaseSource):
        self.source = source
        self._lock = threading.Lock()
        self._current: Optional[Release] = None
        self._updated_at: Optional[datetime] = None

    def current(self) -> Optional[Release]:
        """Return the held release, or None if no refresh has succeeded yet."""
        with self._lock:
            return self._current

    @property
    def updated_at(self) -> Optional[datetime]:
        """UTC time of the last successful replace, or None."""
        with self._lock:
            return self._updated_at

    def replace(self, release: Release) -> Optional[Release]:
        """
        Swap in `release` as the current descriptor.

        Returns:
            Optional[Release]: The descriptor that was replaced.
        """
        with self._lock:
            previous = self._current
            self._current = release
            self._updated_at = datetime.now(timezone.utc)
        return previous

    def refresh(self) -> Release:
        """
        Fetch the latest release and make it current.

        The fetch runs without holding the lock. On failure the held descriptor
        is left untouched.

        Returns:
            Release: The newly fetched descriptor.

        Raises:
            FetchError: When the release source fails.
        """
        try:
            release = self.source.fetch_latest_release()
        except FetchError as exc:
            logger.warning(f"Failed to refresh release information: {exc}")
            raise

        previous = self.replace(release)
        if previous is None or previous.tag_name != release.tag_name:
            logger.info(f"Release information updated: {release.tag_name}")
        else:
            logger.debug(f"Release information refreshed: {release.tag_name}")
        return release
