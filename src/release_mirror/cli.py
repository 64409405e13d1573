# src/release_mirror/cli.py

import argparse
import sys
from pathlib import Path
from typing import List, Optional

import platformdirs

from release_mirror import log_utils
from release_mirror.config import AppConfig, load_config
from release_mirror.constants import APP_NAME
from release_mirror.exceptions import ConfigurationError
from release_mirror.server import build_services, create_app
from release_mirror.utils import get_app_version


def create_parser() -> argparse.ArgumentParser:
    """Build the command-line parser for the release-mirror server."""
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Mirror the latest GitHub release into a local cache and serve it over HTTP.",
    )
    parser.add_argument(
        "--config",
        help="Path to the YAML configuration file (default: $CONFIG_PATH or ./config.yaml)",
    )
    parser.add_argument("--host", help="Override server.host from the configuration")
    parser.add_argument(
        "--port", type=int, help="Override server.port from the configuration"
    )
    parser.add_argument(
        "--log-level",
        help="Log level (DEBUG, INFO, WARNING, ERROR); overrides logging.level",
    )
    parser.add_argument(
        "--no-initial-sync",
        action="store_true",
        help="Do not refresh and sync at startup; wait for the timer or a webhook",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {get_app_version()}"
    )
    return parser


def _configure_logging(config: AppConfig, level_override: Optional[str]) -> None:
    """
    Apply the configured log level and, when enabled, rotating file logging.

    A command-line level wins over the configuration file. Without an explicit
    `logging.dir`, log files go to the platform's user log directory.
    """
    level = level_override or config.logging.level
    log_utils.set_log_level(level)
    if config.logging.file:
        log_dir = config.logging.dir or platformdirs.user_log_dir(APP_NAME)
        log_utils.add_file_logging(Path(log_dir), level)


def main(argv: Optional[List[str]] = None) -> None:
    """
    Entry point for the `release-mirror` command.

    Loads configuration, prepares the cache root, starts the refresh coordinator
    and serves the HTTP API with a threaded server. Configuration problems and an
    unwritable cache root terminate the process with exit code 1.
    """
    args = create_parser().parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        log_utils.logger.error(f"Configuration error: {e}")
        sys.exit(1)

    _configure_logging(config, args.log_level)

    services = build_services(config)
    try:
        cache_root = services.cache_store.ensure_root()
    except OSError as e:
        log_utils.logger.error(
            f"Failed to create cache directory {config.cache_dir}: {e}"
        )
        sys.exit(1)
    log_utils.logger.info(f"Cache directory: {cache_root}")

    services.coordinator.start(run_initial=not args.no_initial_sync)

    app = create_app(services)
    host = args.host or config.server.host
    port = args.port or config.server.port
    log_utils.logger.info(f"Server starting: http://{host}:{port}")
    try:
        app.run(host=host, port=port, threaded=True)
    finally:
        services.coordinator.stop(wait=False)


if __name__ == "__main__":
    main()
