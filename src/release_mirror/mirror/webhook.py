"""
Notification Ingester for GitHub release webhooks

A delivery passes a fixed sequence of gates: method, signature, event type,
payload parse, action, de-duplication, then dispatch. Rejections raise a
WebhookError carrying the HTTP status; short-circuits that are not errors
("ignored", "skipped") return an outcome like a successful delivery does.
"""

import hashlib
import hmac
import json
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional

from release_mirror.constants import (
    WEBHOOK_DEDUP_WINDOW_SECONDS,
    WEBHOOK_EVENT_HEADER,
    WEBHOOK_PUBLISHED_ACTION,
    WEBHOOK_RELEASE_EVENT,
    WEBHOOK_SIGNATURE_HEADER,
    WEBHOOK_SIGNATURE_PREFIX,
)
from release_mirror.exceptions import (
    BadRequestError,
    MethodNotAllowedError,
    UnauthorizedError,
)
from release_mirror.log_utils import logger


class WebhookStatus(str, Enum):
    OK = "ok"
    IGNORED = "ignored"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class WebhookOutcome:
    """Result of a delivery that was not rejected."""

    status: WebhookStatus
    version: Optional[str] = None
    reason: Optional[str] = None
    future: Optional[Future] = field(default=None, compare=False, repr=False)
    """Completion signal of the dispatched refresh, for callers that want to wait"""

    def to_dict(self) -> Dict[str, str]:
        data = {"status": self.status.value}
        if self.version:
            data["version"] = self.version
        if self.reason:
            data["reason"] = self.reason
        return data


class DedupWindow:
    """
    Remembers the last accepted release tag and when it was accepted.

    A repeat of the same tag within `window_seconds` is a duplicate; a different
    tag, or the same tag after the window, is accepted and recorded.
    """

    def __init__(
        self,
        window_seconds: float = WEBHOOK_DEDUP_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.window_seconds = window_seconds
        self.clock = clock
        self._lock = threading.Lock()
        self._last_tag: Optional[str] = None
        self._last_accepted_at: Optional[float] = None

    @property
    def last_tag(self) -> Optional[str]:
        with self._lock:
            return self._last_tag

    @property
    def last_accepted_at(self) -> Optional[float]:
        with self._lock:
            return self._last_accepted_at

    def check_and_record(self, tag: str) -> bool:
        """
        Accept `tag` unless it repeats the last accepted tag inside the window.

        Returns:
            bool: `True` if accepted (and recorded), `False` if it is a duplicate.
        """
        with self._lock:
            now = self.clock()
            if (
                tag == self._last_tag
                and self._last_accepted_at is not None
                and now - self._last_accepted_at < self.window_seconds
            ):
                return False
            self._last_tag = tag
            self._last_accepted_at = now
            return True

    def seconds_since_last(self) -> Optional[float]:
        with self._lock:
            if self._last_accepted_at is None:
                return None
            return self.clock() - self._last_accepted_at


def compute_signature(body: bytes, secret: str) -> str:
    """Return the `sha256=<hex>` HMAC-SHA256 signature of `body` keyed by `secret`."""
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return f"{WEBHOOK_SIGNATURE_PREFIX}{digest}"


def verify_signature(body: bytes, signature: Optional[str], secret: str) -> bool:
    """
    Check a `sha256=<hex>` signature header against `body` in constant time.

    Returns False for a missing header or one without the `sha256=` prefix.
    """
    if not signature or not signature.startswith(WEBHOOK_SIGNATURE_PREFIX):
        return False
    expected = compute_signature(body, secret)
    return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))


def _get_header(headers: Mapping[str, str], name: str) -> Optional[str]:
    value = headers.get(name)
    if value is not None:
        return value
    lowered = name.lower()
    for key, candidate in headers.items():
        if key.lower() == lowered:
            return candidate
    return None


def _parse_payload(body: bytes) -> Dict[str, Any]:
    try:
        payload = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise BadRequestError("Failed to parse payload", details=str(e)) from e
    if not isinstance(payload, dict):
        raise BadRequestError("Failed to parse payload", details="expected object")
    return payload


def _release_tag(payload: Mapping[str, Any]) -> str:
    release = payload.get("release")
    tag = release.get("tag_name") if isinstance(release, dict) else None
    if not isinstance(tag, str) or not tag.strip():
        raise BadRequestError("Failed to parse payload", details="missing release tag")
    return tag


class WebhookIngester:
    """
    Validates, filters and de-duplicates release webhooks, then dispatches a refresh.

    Parameters:
        dispatch (Callable[[str], Optional[Future]]): Starts a refresh for the given
            reason without blocking; usually RefreshCoordinator.trigger.
        secret (str): Shared webhook secret. Empty disables signature checks.
        dedup (Optional[DedupWindow]): Window used to suppress repeated deliveries.
    """

    def __init__(
        self,
        dispatch: Callable[[str], Optional[Future]],
        secret: str = "",
        dedup: Optional[DedupWindow] = None,
    ):
        self.dispatch = dispatch
        self.secret = secret
        self.dedup = dedup if dedup is not None else DedupWindow()

    def handle(
        self, method: str, headers: Mapping[str, str], body: bytes
    ) -> WebhookOutcome:
        """
        Run one delivery through the gates.

        Returns:
            WebhookOutcome: `ok` with the accepted tag, `ignored` with a reason, or
                `skipped` for a duplicate.

        Raises:
            MethodNotAllowedError: For anything but POST.
            UnauthorizedError: When a secret is configured and the signature does not match.
            BadRequestError: When the body is not a JSON object carrying a release tag.
        """
        if method.upper() != "POST":
            raise MethodNotAllowedError("Only POST is supported")

        if self.secret:
            signature = _get_header(headers, WEBHOOK_SIGNATURE_HEADER)
            if not verify_signature(body, signature, self.secret):
                logger.warning("Rejected webhook delivery: signature verification failed")
                raise UnauthorizedError("Signature verification failed")

        event = _get_header(headers, WEBHOOK_EVENT_HEADER)
        if event != WEBHOOK_RELEASE_EVENT:
            return WebhookOutcome(WebhookStatus.IGNORED, reason="not a release event")

        payload = _parse_payload(body)
        action = payload.get("action")
        if action != WEBHOOK_PUBLISHED_ACTION:
            return WebhookOutcome(
                WebhookStatus.IGNORED, reason=f"action is {action or ''}"
            )

        tag = _release_tag(payload)
        if not self.dedup.check_and_record(tag):
            elapsed = self.dedup.seconds_since_last() or 0.0
            logger.info(
                f"Skipping duplicate webhook: {tag} (already handled {elapsed:.0f}s ago)"
            )
            return WebhookOutcome(
                WebhookStatus.SKIPPED, version=tag, reason="duplicate request"
            )

        logger.info(f"Received release webhook: {tag}")
        future = self.dispatch(f"webhook {tag}")
        return WebhookOutcome(WebhookStatus.OK, version=tag, future=future)
