# src/release_mirror/server.py
"""Flask application exposing the release mirror over HTTP."""

import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from flask import Flask, g, jsonify, request, send_file
from werkzeug.exceptions import HTTPException

from release_mirror.config import AppConfig
from release_mirror.constants import API_PREFIX, APP_NAME
from release_mirror.exceptions import (
    CacheError,
    NotFoundError,
    ValidationError,
    WebhookError,
)
from release_mirror.log_utils import logger
from release_mirror.mirror import (
    CacheStore,
    DomainsClient,
    DomainsError,
    DownloadService,
    GithubReleaseSource,
    RefreshCoordinator,
    Release,
    VersionState,
    WebhookIngester,
)
from release_mirror.utils import get_app_version

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}


@dataclass
class MirrorServices:
    """The wired components one application instance runs on."""

    config: AppConfig
    version_state: VersionState
    cache_store: CacheStore
    coordinator: RefreshCoordinator
    ingester: WebhookIngester
    download_service: DownloadService
    domains: DomainsClient


def build_services(config: AppConfig) -> MirrorServices:
    """Construct and wire all mirror components from configuration."""
    source = GithubReleaseSource(config.release_api_url, token=config.release.token)
    version_state = VersionState(source)
    cache_store = CacheStore(config.cache_dir)
    coordinator = RefreshCoordinator(
        version_state,
        cache_store,
        token=config.release.token,
        interval=config.refresh_interval,
    )
    ingester = WebhookIngester(coordinator.trigger, secret=config.release.webhook_secret)
    download_service = DownloadService(
        version_state, cache_store, token=config.release.token
    )
    domains = DomainsClient(config.domains.repo, token=config.domains.token)
    return MirrorServices(
        config=config,
        version_state=version_state,
        cache_store=cache_store,
        coordinator=coordinator,
        ingester=ingester,
        download_service=download_service,
        domains=domains,
    )


def _error(status_code: int, message: str):
    response = jsonify({"error": message})
    response.status_code = status_code
    return response


def _version_payload(release: Release, base_url: str) -> Dict[str, Any]:
    return {
        "version": release.tag_name,
        "release_notes": release.body,
        "published_at": release.published_at,
        "assets": [
            {
                "name": asset.name,
                "size": asset.size,
                "download_url": f"{base_url}{API_PREFIX}/download/{release.tag_name}/{asset.name}",
            }
            for asset in release.assets
        ],
    }


def _strip_version(value: str) -> str:
    return value.strip().removeprefix("v")


def is_update_available(latest_version: str, client_version: str) -> bool:
    """
    Compare versions the way clients have always been answered: as plain strings.

    A leading "v" is ignored. The comparison is lexical, so "9" sorts after "10".
    """
    latest = _strip_version(latest_version)
    client = _strip_version(client_version)
    return latest != client and latest > client


def create_app(services: MirrorServices) -> Flask:
    app = Flask(__name__)
    app.extensions["release_mirror"] = services
    base_url = services.config.server.base_url

    @app.before_request
    def _start_timer() -> Optional[Any]:
        g.request_started = time.perf_counter()
        if request.method == "OPTIONS":
            return app.response_class(status=200)
        return None

    @app.after_request
    def _cors_and_log(response):
        response.headers.update(CORS_HEADERS)
        started = g.get("request_started")
        elapsed = time.perf_counter() - started if started is not None else 0.0
        logger.info(
            f"{request.method} {request.path} {response.status_code} {elapsed * 1000:.1f}ms"
        )
        return response

    @app.errorhandler(ValidationError)
    def _validation_error(exc: ValidationError):
        return _error(400, exc.message)

    @app.errorhandler(NotFoundError)
    def _not_found_error(exc: NotFoundError):
        return _error(404, exc.message)

    @app.errorhandler(CacheError)
    def _cache_error(exc: CacheError):
        logger.error(f"Download failed: {exc}")
        return _error(500, "Failed to download file")

    @app.errorhandler(WebhookError)
    def _webhook_error(exc: WebhookError):
        return _error(exc.status_code, exc.message)

    @app.errorhandler(DomainsError)
    def _domains_error(exc: DomainsError):
        return _error(exc.status_code, exc.message)

    @app.errorhandler(HTTPException)
    def _http_error(exc: HTTPException):
        return _error(exc.code or 500, exc.description or exc.name)

    @app.get("/")
    def root():
        return jsonify({"app": APP_NAME, "version": get_app_version()})

    @app.get(f"{API_PREFIX}/version")
    def version():
        release = services.version_state.current()
        if release is None:
            return _error(503, "Version information is not available yet")
        return jsonify(_version_payload(release, base_url))

    @app.get(f"{API_PREFIX}/check-update")
    def check_update():
        client_version = request.args.get("version", "")
        if not client_version:
            return _error(400, "Missing version parameter")

        release = services.version_state.current()
        if release is None:
            return _error(503, "Version information is not available yet")

        return jsonify(
            {
                "update_available": is_update_available(
                    release.tag_name, client_version
                ),
                "latest_version": release.tag_name,
                "release_notes": release.body,
                "download_url": base_url,
            }
        )

    @app.get(f"{API_PREFIX}/download/")
    @app.get(f"{API_PREFIX}/download/<path:subpath>")
    def download(subpath: str = ""):
        tag, sep, asset_name = subpath.partition("/")
        if not sep or not tag or not asset_name:
            return _error(400, "Invalid download path")

        path = services.download_service.resolve(tag, asset_name)
        return send_file(path, as_attachment=True, download_name=asset_name)

    @app.route(
        f"{API_PREFIX}/webhook", methods=["GET", "POST", "PUT", "PATCH", "DELETE"]
    )
    def webhook():
        outcome = services.ingester.handle(
            request.method, request.headers, request.get_data(cache=False)
        )
        return jsonify(outcome.to_dict())

    @app.get(f"{API_PREFIX}/redirect/domains")
    def domains():
        return jsonify(services.domains.fetch())

    return app
