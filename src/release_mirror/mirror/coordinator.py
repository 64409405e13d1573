"""
Refresh Coordinator for the release mirror

Runs "refresh the version state, then sync the cache" on a single long-lived
worker thread. Triggers (startup, the periodic timer, accepted webhooks) submit
work and return immediately with a Future; a trigger that arrives while another
run is still queued shares that queued run instead of adding a new one.
"""

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional

from release_mirror.constants import DEFAULT_REFRESH_INTERVAL_SECONDS
from release_mirror.exceptions import FetchError
from release_mirror.log_utils import logger

from .cache import CacheStore
from .interfaces import RefreshResult
from .version import VersionState


class RefreshCoordinator:
    """
    Coordinates refresh-then-sync runs coming from several triggers.

    At most one run executes and at most one waits at any time. A run that
    overlaps an earlier one is harmless: already cached assets are skipped by
    the cache store's size check.
    """

    def __init__(
        self,
        version_state: VersionState,
        cache_store: CacheStore,
        token: Optional[str] = None,
        interval: float = DEFAULT_REFRESH_INTERVAL_SECONDS,
    ):
        self.version_state = version_state
        self.cache_store = cache_store
        self.token = token
        self.interval = interval
        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="release-mirror-refresh"
        )
        self._pending_lock = threading.Lock()
        self._pending: Optional[Future] = None
        self._stop_event = threading.Event()
        self._timer_thread: Optional[threading.Thread] = None

    def trigger(self, reason: str) -> Optional["Future[RefreshResult]"]:
        """
        Submit a refresh-then-sync run without waiting for it.

        Parameters:
            reason (str): Short label for logs ("startup", "timer", "webhook v1.2.0").

        Returns:
            Optional[Future[RefreshResult]]: Completes when the run (or the queued run
                this trigger was folded into) finishes. The future never raises; errors
                are reported on the result. None once the coordinator is stopped.
        """
        with self._pending_lock:
            if self._stop_event.is_set():
                logger.debug(f"Coordinator stopped; ignoring trigger '{reason}'")
                return None
            pending = self._pending
            if pending is not None and not (pending.running() or pending.done()):
                logger.debug(f"Refresh already queued; folding trigger '{reason}'")
                return pending
            future = self._executor.submit(self._run, reason)
            self._pending = future
            return future

    def run_once(self, reason: str) -> RefreshResult:
        """Run a refresh-then-sync synchronously on the calling thread."""
        return self._run(reason, from_queue=False)

    def _run(self, reason: str, from_queue: bool = True) -> RefreshResult:
        if from_queue:
            with self._pending_lock:
                # This run has started; later triggers need a fresh slot.
                self._pending = None

        result = RefreshResult(reason=reason)
        logger.debug(f"Refresh started ({reason})")
        try:
            release = self.version_state.refresh()
        except FetchError as exc:
            result.error = exc
            return result
        except Exception as exc:  # noqa: BLE001 - Catch-all for unexpected errors
            logger.error(f"Unexpected error refreshing release ({reason}): {exc}", exc_info=True)
            result.error = FetchError("Unexpected refresh failure", details=str(exc))
            return result

        result.release = release
        try:
            result.report = self.cache_store.sync_all(release, self.token)
        except Exception as exc:  # noqa: BLE001
            logger.error(f"Cache sync failed for {release.tag_name} ({reason}): {exc}", exc_info=True)
        return result

    def start(self, run_initial: bool = True) -> Optional["Future[RefreshResult]"]:
        """
        Start the periodic timer and, optionally, the startup run.

        Returns:
            Optional[Future[RefreshResult]]: The startup run's future when `run_initial` is set.
        """
        initial = self.trigger("startup") if run_initial else None
        if self._timer_thread is None and not self._stop_event.is_set():
            self._timer_thread = threading.Thread(
                target=self._timer_loop, name="release-mirror-timer", daemon=True
            )
            self._timer_thread.start()
            logger.info(f"Automatic refresh every {self.interval:g}s")
        return initial

    def _timer_loop(self) -> None:
        while not self._stop_event.wait(self.interval):
            self.trigger("timer")

    def stop(self, wait: bool = True) -> None:
        """Stop the timer and shut down the worker. Runs already in progress are not interrupted."""
        with self._pending_lock:
            self._stop_event.set()
        if self._timer_thread is not None:
            self._timer_thread.join(timeout=5)
            self._timer_thread = None
        self._executor.shutdown(wait=wait)
