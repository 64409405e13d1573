"""
Tests for webhook signature checks, filtering, de-duplication and dispatch.
"""

import hashlib
import hmac
import json
from unittest.mock import MagicMock

import pytest

from release_mirror.exceptions import (
    BadRequestError,
    MethodNotAllowedError,
    UnauthorizedError,
)
from release_mirror.mirror.webhook import (
    DedupWindow,
    WebhookIngester,
    WebhookStatus,
    compute_signature,
    verify_signature,
)

pytestmark = pytest.mark.unit

SECRET = "s"
BODY = b'{"action":"published","release":{"tag_name":"v1.0.0"}}'
RELEASE_HEADERS = {"X-GitHub-Event": "release"}


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def _signed_headers(body=BODY, secret=SECRET, event="release"):
    digest = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return {"X-GitHub-Event": event, "X-Hub-Signature-256": f"sha256={digest}"}


def _payload(action="published", tag="v1.0.0"):
    return json.dumps({"action": action, "release": {"tag_name": tag}}).encode()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def dispatch():
    return MagicMock(return_value=None)


@pytest.fixture
def ingester(dispatch, clock):
    return WebhookIngester(dispatch, secret="", dedup=DedupWindow(60, clock=clock))


class TestSignatures:
    def test_compute_matches_hmac(self):
        expected = hmac.new(b"s", BODY, hashlib.sha256).hexdigest()
        assert compute_signature(BODY, SECRET) == f"sha256={expected}"

    def test_verify_accepts_valid(self):
        assert verify_signature(BODY, compute_signature(BODY, SECRET), SECRET)

    @pytest.mark.parametrize(
        "signature",
        [None, "", "sha1=abc", compute_signature(BODY, "other-secret")],
    )
    def test_verify_rejects_invalid(self, signature):
        assert not verify_signature(BODY, signature, SECRET)

    def test_tampered_body_rejected(self):
        signature = compute_signature(BODY, SECRET)
        tampered = BODY.replace(b"v1.0.0", b"v9.9.9")
        assert not verify_signature(tampered, signature, SECRET)


class TestDedupWindow:
    def test_first_delivery_accepted(self, clock):
        window = DedupWindow(60, clock=clock)
        assert window.check_and_record("v1")
        assert window.last_tag == "v1"
        assert window.last_accepted_at == 1000.0

    def test_repeat_inside_window_is_duplicate(self, clock):
        window = DedupWindow(60, clock=clock)
        window.check_and_record("v1")
        clock.now += 30
        assert not window.check_and_record("v1")
        assert window.last_accepted_at == 1000.0
        assert window.seconds_since_last() == 30

    def test_repeat_after_window_accepted(self, clock):
        window = DedupWindow(60, clock=clock)
        window.check_and_record("v1")
        clock.now += 61
        assert window.check_and_record("v1")
        assert window.last_accepted_at == 1061.0

    def test_boundary_is_accepted(self, clock):
        window = DedupWindow(60, clock=clock)
        window.check_and_record("v1")
        clock.now += 60
        assert window.check_and_record("v1")

    def test_different_tag_accepted(self, clock):
        window = DedupWindow(60, clock=clock)
        window.check_and_record("v1")
        clock.now += 1
        assert window.check_and_record("v2")
        assert window.last_tag == "v2"

    def test_empty_window_has_no_age(self, clock):
        assert DedupWindow(60, clock=clock).seconds_since_last() is None


class TestWebhookIngester:
    def test_accepts_published_release(self, ingester, dispatch):
        outcome = ingester.handle("POST", RELEASE_HEADERS, BODY)

        assert outcome.status is WebhookStatus.OK
        assert outcome.to_dict() == {"status": "ok", "version": "v1.0.0"}
        dispatch.assert_called_once_with("webhook v1.0.0")

    def test_future_is_passed_through(self, clock):
        future = MagicMock()
        ingester = WebhookIngester(
            MagicMock(return_value=future), dedup=DedupWindow(60, clock=clock)
        )
        assert ingester.handle("POST", RELEASE_HEADERS, BODY).future is future

    @pytest.mark.parametrize("method", ["GET", "PUT", "DELETE", "PATCH"])
    def test_non_post_rejected(self, ingester, dispatch, method):
        with pytest.raises(MethodNotAllowedError) as exc_info:
            ingester.handle(method, RELEASE_HEADERS, BODY)
        assert exc_info.value.status_code == 405
        dispatch.assert_not_called()

    def test_valid_signature(self, dispatch, clock):
        ingester = WebhookIngester(dispatch, SECRET, DedupWindow(60, clock=clock))
        outcome = ingester.handle("POST", _signed_headers(), BODY)
        assert outcome.status is WebhookStatus.OK

    def test_signature_header_is_case_insensitive(self, dispatch, clock):
        ingester = WebhookIngester(dispatch, SECRET, DedupWindow(60, clock=clock))
        headers = {k.lower(): v for k, v in _signed_headers().items()}
        assert ingester.handle("POST", headers, BODY).status is WebhookStatus.OK

    def test_tampered_body_unauthorized(self, dispatch, clock):
        ingester = WebhookIngester(dispatch, SECRET, DedupWindow(60, clock=clock))
        headers = _signed_headers()
        with pytest.raises(UnauthorizedError) as exc_info:
            ingester.handle("POST", headers, BODY.replace(b"v1.0.0", b"v6.6.6"))
        assert exc_info.value.status_code == 401
        dispatch.assert_not_called()

    def test_missing_signature_unauthorized(self, dispatch, clock):
        ingester = WebhookIngester(dispatch, SECRET, DedupWindow(60, clock=clock))
        with pytest.raises(UnauthorizedError):
            ingester.handle("POST", RELEASE_HEADERS, BODY)

    def test_signature_checked_before_event(self, dispatch, clock):
        ingester = WebhookIngester(dispatch, SECRET, DedupWindow(60, clock=clock))
        with pytest.raises(UnauthorizedError):
            ingester.handle("POST", {"X-GitHub-Event": "push"}, BODY)

    @pytest.mark.parametrize("headers", [{}, {"X-GitHub-Event": "push"}])
    def test_non_release_event_ignored(self, ingester, dispatch, headers):
        outcome = ingester.handle("POST", headers, b"not even json")
        assert outcome.to_dict() == {
            "status": "ignored",
            "reason": "not a release event",
        }
        dispatch.assert_not_called()

    @pytest.mark.parametrize("action", ["created", "edited", "deleted"])
    def test_other_actions_ignored(self, ingester, dispatch, action):
        outcome = ingester.handle("POST", RELEASE_HEADERS, _payload(action=action))
        assert outcome.status is WebhookStatus.IGNORED
        assert outcome.reason == f"action is {action}"
        dispatch.assert_not_called()

    @pytest.mark.parametrize("body", [b"{not json", b"[1, 2]", b"\xff\xfe"])
    def test_malformed_payload(self, ingester, dispatch, body):
        with pytest.raises(BadRequestError) as exc_info:
            ingester.handle("POST", RELEASE_HEADERS, body)
        assert exc_info.value.message == "Failed to parse payload"
        dispatch.assert_not_called()

    def test_published_without_tag(self, ingester, dispatch):
        with pytest.raises(BadRequestError):
            ingester.handle("POST", RELEASE_HEADERS, b'{"action": "published"}')
        dispatch.assert_not_called()

    def test_duplicate_within_window_skipped(self, ingester, dispatch, clock):
        ingester.handle("POST", RELEASE_HEADERS, BODY)
        clock.now += 30

        outcome = ingester.handle("POST", RELEASE_HEADERS, BODY)

        assert outcome.to_dict() == {
            "status": "skipped",
            "version": "v1.0.0",
            "reason": "duplicate request",
        }
        assert dispatch.call_count == 1

    def test_duplicate_after_window_dispatched(self, ingester, dispatch, clock):
        ingester.handle("POST", RELEASE_HEADERS, BODY)
        clock.now += 61

        outcome = ingester.handle("POST", RELEASE_HEADERS, BODY)

        assert outcome.status is WebhookStatus.OK
        assert dispatch.call_count == 2

    def test_new_tag_inside_window_dispatched(self, ingester, dispatch, clock):
        ingester.handle("POST", RELEASE_HEADERS, _payload(tag="v1.0.0"))
        clock.now += 5
        outcome = ingester.handle("POST", RELEASE_HEADERS, _payload(tag="v1.0.1"))

        assert outcome.version == "v1.0.1"
        assert dispatch.call_count == 2
