"""
Domains lookup

Reads `domains.json` from a (usually private) GitHub repository through the
contents API and returns the decoded document.
"""

import base64
import binascii
import json
from typing import Any, Optional

import requests  # type: ignore[import-untyped]

from release_mirror.constants import (
    DOMAINS_FILE_NAME,
    GITHUB_API_BASE,
    GITHUB_CONTENTS_PATH,
)
from release_mirror.exceptions import ReleaseMirrorError
from release_mirror.log_utils import logger
from release_mirror.utils import make_github_api_request


class DomainsError(ReleaseMirrorError):
    """
    Exception raised when the domains document cannot be served.

    Attributes:
        status_code: The HTTP status code to answer with.
    """

    def __init__(
        self, message: str, status_code: int = 500, details: Optional[str] = None
    ) -> None:
        super().__init__(message, details)
        self.status_code = status_code


class DomainsClient:
    def __init__(
        self,
        repo: str,
        token: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ):
        self.repo = repo
        self.token = token
        self.session = session

    @property
    def contents_url(self) -> str:
        return f"{GITHUB_API_BASE}/{self.repo}/{GITHUB_CONTENTS_PATH}/{DOMAINS_FILE_NAME}"

    def fetch(self) -> Any:
        """
        Fetch and decode `domains.json`.

        Returns:
            Any: The decoded JSON document.

        Raises:
            DomainsError: 500 when unconfigured or undecodable, 502 when GitHub is
                unreachable, or GitHub's own status for a non-200 answer.
        """
        if not self.repo:
            raise DomainsError("Domains repository is not configured")

        try:
            response = make_github_api_request(
                self.contents_url,
                token=self.token,
                session=self.session,
                auth_scheme="Bearer",
            )
        except requests.RequestException as e:
            logger.warning(f"Could not reach GitHub for {self.contents_url}: {e}")
            raise DomainsError("Could not connect to GitHub", status_code=502) from e

        if response.status_code != 200:
            raise DomainsError(
                f"GitHub returned an error: {response.text}",
                status_code=response.status_code,
            )

        try:
            content = response.json().get("content", "")
            # GitHub wraps base64 content at 60 columns
            raw = base64.b64decode(content.replace("\n", ""), validate=True)
            return json.loads(raw)
        except (ValueError, AttributeError, binascii.Error) as e:
            raise DomainsError("Failed to decode domains content", details=str(e)) from e
