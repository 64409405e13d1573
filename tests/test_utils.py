import importlib.metadata
from unittest.mock import MagicMock

import pytest
import requests

from release_mirror import utils
from release_mirror.utils import (
    build_auth_headers,
    create_retry_session,
    get_app_version,
    get_user_agent,
    make_github_api_request,
)

pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def _reset_version_cache():
    utils._APP_VERSION_CACHE = None
    yield
    utils._APP_VERSION_CACHE = None


class TestAppVersion:
    def test_installed_version(self, mocker):
        mocker.patch("importlib.metadata.version", return_value="1.4.2")
        assert get_app_version() == "1.4.2"
        assert get_user_agent() == "release-mirror/1.4.2"

    def test_unknown_when_not_installed(self, mocker):
        mocker.patch(
            "importlib.metadata.version",
            side_effect=importlib.metadata.PackageNotFoundError("release-mirror"),
        )
        assert get_app_version() == "unknown"

    def test_version_is_cached(self, mocker):
        mock_version = mocker.patch("importlib.metadata.version", return_value="2.0.0")
        get_app_version()
        get_app_version()
        assert mock_version.call_count == 1


class TestBuildAuthHeaders:
    def test_token_scheme(self):
        assert build_auth_headers("abc") == {"Authorization": "token abc"}

    def test_bearer_scheme(self):
        assert build_auth_headers(" abc ", "Bearer") == {"Authorization": "Bearer abc"}

    @pytest.mark.parametrize("token", [None, "", "   "])
    def test_empty_token(self, token):
        assert build_auth_headers(token) == {}


class TestCreateRetrySession:
    def test_adapters_and_user_agent(self):
        session = create_retry_session(retries=5)
        try:
            adapter = session.get_adapter("https://api.github.com")
            assert adapter.max_retries.total == 5
            assert 503 in adapter.max_retries.status_forcelist
            assert session.headers["User-Agent"].startswith("release-mirror/")
        finally:
            session.close()


class TestMakeGithubApiRequest:
    def test_uses_given_session_and_token(self):
        session = MagicMock()
        response = MagicMock(status_code=200)
        session.get.return_value = response

        result = make_github_api_request(
            "https://api.github.com/repos/o/r/releases/latest",
            token="tok",
            session=session,
            timeout=5,
        )

        assert result is response
        _, kwargs = session.get.call_args
        assert kwargs["headers"]["Authorization"] == "token tok"
        assert kwargs["headers"]["Accept"] == "application/vnd.github+json"
        assert kwargs["timeout"] == 5
        session.close.assert_not_called()

    def test_no_authorization_without_token(self):
        session = MagicMock()
        make_github_api_request("https://example.com", session=session)
        _, kwargs = session.get.call_args
        assert "Authorization" not in kwargs["headers"]
        assert kwargs["timeout"] == 30

    def test_owned_session_is_closed(self, mocker):
        session = MagicMock()
        session.get.return_value = MagicMock(status_code=404)
        mocker.patch(
            "release_mirror.utils.create_retry_session", return_value=session
        )

        response = make_github_api_request("https://example.com")

        assert response.status_code == 404
        session.close.assert_called_once()

    def test_request_exception_propagates(self, mocker):
        session = MagicMock()
        session.get.side_effect = requests.ConnectionError("down")
        mocker.patch(
            "release_mirror.utils.create_retry_session", return_value=session
        )

        with pytest.raises(requests.ConnectionError):
            make_github_api_request("https://example.com")
        session.close.assert_called_once()
