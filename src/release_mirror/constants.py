"""
Constants and configuration values for release-mirror.

This module contains all hardcoded values, URLs, timeouts, and other constants
used throughout the application.
"""

APP_NAME = "release-mirror"

# GitHub API URLs
GITHUB_API_BASE = "https://api.github.com/repos"
GITHUB_LATEST_RELEASE_PATH = "releases/latest"
GITHUB_CONTENTS_PATH = "contents"
GITHUB_ACCEPT_HEADER = "application/vnd.github+json"
GITHUB_API_VERSION = "2022-11-28"

# Network timeouts (in seconds)
METADATA_REQUEST_TIMEOUT = 30
DOWNLOAD_CONNECT_TIMEOUT = 30
DOWNLOAD_READ_TIMEOUT = 30 * 60

# Retry settings
DEFAULT_CONNECT_RETRIES = 3
DEFAULT_BACKOFF_FACTOR = 0.3
RETRY_STATUS_FORCELIST = (408, 429, 500, 502, 503, 504)

# Streaming copy buffer for asset downloads
DOWNLOAD_CHUNK_SIZE = 32 * 1024

# Cache layout
DEFAULT_CACHE_DIR = "github_cache"
TEMP_FILE_SUFFIX = ".tmp"

# Refresh scheduling
DEFAULT_REFRESH_INTERVAL_SECONDS = 5 * 60

# Webhook handling
WEBHOOK_DEDUP_WINDOW_SECONDS = 60
WEBHOOK_SIGNATURE_HEADER = "X-Hub-Signature-256"
WEBHOOK_EVENT_HEADER = "X-GitHub-Event"
WEBHOOK_SIGNATURE_PREFIX = "sha256="
WEBHOOK_RELEASE_EVENT = "release"
WEBHOOK_PUBLISHED_ACTION = "published"

# HTTP API
API_PREFIX = "/api/v1"
DOMAINS_FILE_NAME = "domains.json"

# Server defaults
DEFAULT_SERVER_HOST = "0.0.0.0"
DEFAULT_SERVER_PORT = 8080

# Configuration file lookup
CONFIG_FILE_NAME = "config.yaml"
CONFIG_PATH_ENV_VAR = "CONFIG_PATH"

# Logging configuration
LOGGER_NAME = "release_mirror"
LOG_FILE_NAME = "release-mirror.log"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
INFO_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
DEBUG_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s: %(message)s"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
LOG_FILE_BACKUP_COUNT = 5

# Environment variable names
LOG_LEVEL_ENV_VAR = "RELEASE_MIRROR_LOG_LEVEL"
