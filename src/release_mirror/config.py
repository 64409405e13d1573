# src/release_mirror/config.py
"""
YAML configuration loading for release-mirror.

The configuration is read once at startup into immutable dataclasses. Any
problem reading or validating the file raises a ConfigurationError, which the
CLI treats as fatal.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import yaml

from release_mirror.constants import (
    CONFIG_FILE_NAME,
    CONFIG_PATH_ENV_VAR,
    DEFAULT_CACHE_DIR,
    DEFAULT_REFRESH_INTERVAL_SECONDS,
    DEFAULT_SERVER_HOST,
    DEFAULT_SERVER_PORT,
    GITHUB_API_BASE,
    GITHUB_LATEST_RELEASE_PATH,
)
from release_mirror.exceptions import ConfigFileError, ConfigValidationError
from release_mirror.log_utils import logger


@dataclass(frozen=True)
class ServerConfig:
    host: str = DEFAULT_SERVER_HOST
    port: int = DEFAULT_SERVER_PORT
    base_url: str = ""


@dataclass(frozen=True)
class RepoConfig:
    """A GitHub repository plus the credentials used to read it."""

    repo: str = ""
    token: str = ""
    webhook_secret: str = ""


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    file: bool = False
    dir: str = ""


@dataclass(frozen=True)
class AppConfig:
    server: ServerConfig = field(default_factory=ServerConfig)
    release: RepoConfig = field(default_factory=RepoConfig)
    domains: RepoConfig = field(default_factory=RepoConfig)
    cache_dir: str = DEFAULT_CACHE_DIR
    refresh_interval: float = DEFAULT_REFRESH_INTERVAL_SECONDS
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def release_api_url(self) -> str:
        """GitHub API URL of the latest release of the tracked repository."""
        return f"{GITHUB_API_BASE}/{self.release.repo}/{GITHUB_LATEST_RELEASE_PATH}"


def get_config_path(explicit_path: Optional[str] = None) -> str:
    """
    Resolve the configuration file path.

    Preference order: the explicit argument, the CONFIG_PATH environment variable,
    then `config.yaml` in the working directory.
    """
    if explicit_path:
        return explicit_path
    return os.environ.get(CONFIG_PATH_ENV_VAR) or CONFIG_FILE_NAME


def _section(data: Mapping[str, Any], key: str) -> Dict[str, Any]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigValidationError(
            f"Configuration section '{key}' must be a mapping",
            details=f"got {type(value).__name__}",
        )
    return value


def _as_str(value: Any) -> str:
    return "" if value is None else str(value).strip()


def _as_int(section: str, key: str, value: Any, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise ConfigValidationError(
            f"Configuration value '{section}.{key}' must be an integer",
            details=repr(value),
        ) from None
    if parsed <= 0:
        raise ConfigValidationError(
            f"Configuration value '{section}.{key}' must be positive",
            details=repr(value),
        )
    return parsed


_TRUE_STRINGS = frozenset({"true", "yes", "y", "on", "1"})
_FALSE_STRINGS = frozenset({"false", "no", "n", "off", "0"})


def _as_bool(section: str, key: str, value: Any, default: bool) -> bool:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    text = str(value).strip().lower()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    raise ConfigValidationError(
        f"Configuration value '{section}.{key}' must be true or false",
        details=repr(value),
    )


def _repo_config(section: Mapping[str, Any]) -> RepoConfig:
    return RepoConfig(
        repo=_as_str(section.get("repo")),
        token=_as_str(section.get("token")),
        webhook_secret=_as_str(section.get("webhook_secret")),
    )


def parse_config(data: Optional[Mapping[str, Any]]) -> AppConfig:
    """
    Build an AppConfig from a parsed YAML mapping, applying defaults.

    The legacy top-level `github` section is accepted in place of `release`.

    Raises:
        ConfigValidationError: When a section has the wrong shape, a number is invalid,
            or no release repository is configured.
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigValidationError("Configuration root must be a mapping")

    server = _section(data, "server")
    release = _section(data, "release")
    if not release and "github" in data:
        logger.warning(
            "Configuration section 'github' is deprecated; rename it to 'release'"
        )
        release = _section(data, "github")
    domains = _section(data, "domains")
    cache = _section(data, "cache")
    refresh = _section(data, "refresh")
    logging_section = _section(data, "logging")

    release_config = _repo_config(release)
    if not release_config.repo or "/" not in release_config.repo:
        raise ConfigValidationError(
            "Configuration value 'release.repo' must be set as 'owner/name'",
            details=repr(release_config.repo),
        )

    return AppConfig(
        server=ServerConfig(
            host=_as_str(server.get("host")) or DEFAULT_SERVER_HOST,
            port=_as_int("server", "port", server.get("port"), DEFAULT_SERVER_PORT),
            base_url=_as_str(server.get("base_url")).rstrip("/"),
        ),
        release=release_config,
        domains=_repo_config(domains),
        cache_dir=_as_str(cache.get("dir")) or DEFAULT_CACHE_DIR,
        refresh_interval=_as_int(
            "refresh",
            "interval_seconds",
            refresh.get("interval_seconds"),
            DEFAULT_REFRESH_INTERVAL_SECONDS,
        ),
        logging=LoggingConfig(
            level=_as_str(logging_section.get("level")) or "INFO",
            file=_as_bool("logging", "file", logging_section.get("file"), False),
            dir=_as_str(logging_section.get("dir")),
        ),
    )


def load_config(path: Optional[str] = None) -> AppConfig:
    """
    Load and validate the release-mirror configuration YAML.

    Parameters:
        path (Optional[str]): Explicit file path; see get_config_path for the fallback order.

    Returns:
        AppConfig: The parsed configuration.

    Raises:
        ConfigFileError: When the file cannot be read or is not valid YAML.
        ConfigValidationError: When the contents are invalid.
    """
    config_path = get_config_path(path)
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigFileError(
            f"Failed to read configuration file {config_path}", details=str(e)
        ) from e
    except yaml.YAMLError as e:
        raise ConfigFileError(
            f"Failed to parse configuration file {config_path}", details=str(e)
        ) from e

    config = parse_config(data)
    logger.debug(f"Loaded configuration from {config_path}")
    return config
