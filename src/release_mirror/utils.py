# src/release_mirror/utils.py
import importlib.metadata
import threading
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry  # type: ignore

from release_mirror.constants import (
    APP_NAME,
    DEFAULT_BACKOFF_FACTOR,
    DEFAULT_CONNECT_RETRIES,
    GITHUB_ACCEPT_HEADER,
    GITHUB_API_VERSION,
    METADATA_REQUEST_TIMEOUT,
    RETRY_STATUS_FORCELIST,
)
from release_mirror.log_utils import logger

# Cache for the version string to avoid repeated metadata lookups
_APP_VERSION_CACHE: Optional[str] = None
_app_version_lock = threading.Lock()


def get_app_version() -> str:
    """
    Return the installed release-mirror version, or `unknown` when it cannot be determined.
    """
    global _APP_VERSION_CACHE

    with _app_version_lock:
        if _APP_VERSION_CACHE is None:
            try:
                _APP_VERSION_CACHE = importlib.metadata.version(APP_NAME)
            except importlib.metadata.PackageNotFoundError:
                _APP_VERSION_CACHE = "unknown"
        return _APP_VERSION_CACHE


def get_user_agent() -> str:
    """
    Get the User-Agent string used for HTTP requests.

    Returns:
        The string `release-mirror/{version}`.
    """
    return f"{APP_NAME}/{get_app_version()}"


def build_auth_headers(token: Optional[str], scheme: str = "token") -> Dict[str, str]:
    """
    Build the Authorization header for a GitHub token.

    Parameters:
        token (Optional[str]): Access token; surrounding whitespace is ignored. Empty means no header.
        scheme (str): Authorization scheme, `token` for release access or `Bearer` for the contents API.

    Returns:
        Dict[str, str]: `{"Authorization": "<scheme> <token>"}` or an empty dict.
    """
    candidate = (token or "").strip()
    if not candidate:
        return {}
    return {"Authorization": f"{scheme} {candidate}"}


def create_retry_session(retries: int = DEFAULT_CONNECT_RETRIES) -> requests.Session:
    """
    Create a requests Session that retries idempotent requests on transient failures.

    Connect/read errors and 408/429/5xx responses to GET and HEAD are retried with
    exponential backoff; the final response is returned as-is so callers decide how
    to treat its status.
    """
    retry_strategy: Retry = Retry(
        total=retries,
        connect=retries,
        read=retries,
        status=retries,
        backoff_factor=DEFAULT_BACKOFF_FACTOR,
        status_forcelist=list(RETRY_STATUS_FORCELIST),
        allowed_methods=frozenset({"GET", "HEAD"}),
        raise_on_status=False,
        respect_retry_after_header=True,
    )
    adapter = HTTPAdapter(max_retries=retry_strategy)
    session = requests.Session()
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.headers["User-Agent"] = get_user_agent()
    return session


def make_github_api_request(
    url: str,
    token: Optional[str] = None,
    session: Optional[requests.Session] = None,
    params: Optional[Dict[str, Any]] = None,
    timeout: Optional[float] = None,
    auth_scheme: str = "token",
) -> requests.Response:
    """
    Perform a GitHub API GET request with optional token authentication.

    The response is returned regardless of status; callers decide whether a
    non-200 response is a failure.

    Parameters:
        url (str): GitHub API URL to request.
        token (Optional[str]): Access token added as an Authorization header when non-empty.
        session (Optional[requests.Session]): Session to use; a retrying session is created and closed when omitted.
        params (Optional[Dict[str, Any]]): Query parameters to include in the request.
        timeout (Optional[float]): Request timeout in seconds; defaults to METADATA_REQUEST_TIMEOUT.
        auth_scheme (str): Authorization scheme passed to build_auth_headers.

    Returns:
        requests.Response: The HTTP response returned by GitHub.

    Raises:
        requests.RequestException: For network or transport errors.
    """
    headers = {
        "Accept": GITHUB_ACCEPT_HEADER,
        "X-GitHub-Api-Version": GITHUB_API_VERSION,
        "User-Agent": get_user_agent(),
    }
    auth_headers = build_auth_headers(token, auth_scheme)
    if auth_headers:
        headers.update(auth_headers)
        logger.debug("Using GitHub token for API authentication")
    else:
        logger.debug("No GitHub token configured - using unauthenticated API requests")

    owns_session = session is None
    active_session = session if session is not None else create_retry_session()
    try:
        logger.debug(f"Making GitHub API request: {url}")
        return active_session.get(
            url,
            headers=headers,
            params=params,
            timeout=timeout or METADATA_REQUEST_TIMEOUT,
        )
    finally:
        if owns_session:
            active_session.close()
