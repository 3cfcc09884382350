"""
Tixer tickets server launcher.

Parses command line flags, merges them over the loaded configuration,
initializes logging and serves the application with uvicorn. uvicorn handles
SIGINT and SIGTERM and drains in-flight requests for up to the configured
shutdown timeout.
"""

import argparse
import sys
from typing import Any, Dict, List, Optional

import uvicorn
from uvicorn.config import Config

from .config import TixerConfig, config_manager, validate_startup_config
from .core.enums import Environment
from .main import create_app
from .utils.logging_config import (
    ComponentLogger,
    get_log_directory,
    get_logger,
    initialize_logging,
)

# Flag destination -> dotted config key
FLAG_KEYS = {
    "env": "app.environment",
    "host": "server.host",
    "port": "server.port",
    "database_url": "database.url",
    "collection": "store.collection",
    "counter_id": "store.counter_id",
    "request_timeout": "server.request_timeout",
    "shutdown_timeout": "server.shutdown_timeout",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tixer-tickets", description="Serve the Tixer tickets API"
    )
    parser.add_argument(
        "--env",
        choices=[env.value for env in Environment],
        help="Application environment",
    )
    parser.add_argument("--host", help="Address to bind the API to")
    parser.add_argument("--port", type=int, help="Port to bind the API to")
    parser.add_argument("--database-url", help="SQLAlchemy database URL")
    parser.add_argument("--collection", help="Collection the tickets are stored in")
    parser.add_argument("--counter-id", help="Reserved ID of the ticket counter")
    parser.add_argument(
        "--request-timeout", type=float, help="Deadline in seconds for each store call"
    )
    parser.add_argument(
        "--shutdown-timeout", type=float, help="Seconds to drain requests on shutdown"
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def collect_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Return dotted config updates for every flag given on the command line."""
    updates = {
        key: getattr(args, dest)
        for dest, key in FLAG_KEYS.items()
        if getattr(args, dest) is not None
    }
    if args.debug:
        updates["server.debug"] = True
    return updates


def load_config(argv: Optional[List[str]] = None) -> TixerConfig:
    """Load configuration with command line flags applied on top."""
    args = build_parser().parse_args(argv)
    config_manager.load_config()
    return config_manager.update_config(collect_overrides(args))


def main(argv: Optional[List[str]] = None) -> int:
    config = load_config(argv)

    # Re-initialize with the final configuration
    ComponentLogger.reset()
    initialize_logging(
        log_dir=config.app.log_dir,
        debug=config.server.debug,
        json_format=not config.app.is_development,
    )
    logger = get_logger("main")
    if get_log_directory() is not None:
        logger.info(f"Writing logs to {get_log_directory()}")

    issues = validate_startup_config(report=logger.error)
    if issues:
        logger.error(f"Refusing to start with {len(issues)} configuration issue(s)")
        return 1

    app = create_app(config=config)

    server_config = Config(
        app=app,
        host=config.server.host,
        port=config.server.port,
        log_level="debug" if config.server.debug else "info",
        timeout_graceful_shutdown=int(config.server.shutdown_timeout),
        access_log=config.server.debug or config.app.is_development,
    )
    server = uvicorn.Server(server_config)

    logger.info(
        f"Starting {config.app.app_name} {config.app.version} "
        f"({config.app.environment}) on {config.server.host}:{config.server.port}"
    )
    server.run()
    logger.info("Server stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
