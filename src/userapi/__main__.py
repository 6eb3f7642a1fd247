"""
=============================================================================
COMMAND-LINE ENTRY POINT
=============================================================================

    python -m userapi
    python -m userapi --port 9100
    python -m userapi --uri mongodb://db:27017 --database users
    MONGO_URI=mongodb://db:27017 userapi --log-level DEBUG

Startup sequence:

    1. environment → ServerConfig, then CLI flags on top
    2. open_store(): connect + ping MongoDB        (fails → exit 1)
    3. create_app(): routes + access log
    4. run() until SIGINT/SIGTERM
    5. leave open_store(): client closed once

=============================================================================
"""

import argparse
import logging
import sys
from typing import Optional, Sequence

from . import __version__
from .config import ServerConfig
from .errors import StartupError
from .server import create_app, setup_logging
from .store import open_store, UserStore


logger = logging.getLogger("userapi")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="userapi",
        description="User resource HTTP service backed by MongoDB",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  userapi                                   # port 9000, local MongoDB
  userapi --port 9100                       # custom port
  userapi --uri mongodb://db:27017          # remote MongoDB
  userapi --database test --collection U    # other namespace
        """
    )

    parser.add_argument(
        "--host", "-H",
        help="Host to bind to (default: 0.0.0.0, env HTTP_HOST)"
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        help="Port to listen on (default: 9000, env HTTP_PORT)"
    )
    parser.add_argument(
        "--workers", "-w",
        type=int,
        help="Maximum worker threads (default: 16, env HTTP_WORKERS)"
    )
    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO, env HTTP_LOG_LEVEL)"
    )
    parser.add_argument(
        "--uri",
        help="MongoDB connection string (default: mongodb://127.0.0.1:27017, env MONGO_URI)"
    )
    parser.add_argument(
        "--database",
        help="Database name (default: Mongo_golang, env MONGO_DATABASE)"
    )
    parser.add_argument(
        "--collection",
        help="Collection name (default: User, env MONGO_COLLECTION)"
    )
    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"userapi {__version__}"
    )
    return parser


def load_config(argv: Optional[Sequence[str]] = None) -> ServerConfig:
    """
    Environment first, flags on top; only flags actually given override.

    Raises:
        ValueError: A value is malformed or fails validation.
    """
    args = build_parser().parse_args(argv)
    config = ServerConfig.from_env()

    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.workers is not None:
        config.max_workers = args.workers
        config.min_workers = min(config.min_workers, args.workers)
    if args.log_level is not None:
        config.log_level = args.log_level
    if args.uri is not None:
        config.mongo_uri = args.uri
    if args.database is not None:
        config.database = args.database
    if args.collection is not None:
        config.collection = args.collection

    config.validate()
    return config


def main(argv: Optional[Sequence[str]] = None) -> int:
    try:
        config = load_config(argv)
    except ValueError as e:
        setup_logging()
        logger.critical(f"Invalid configuration: {e}")
        return 1

    setup_logging(config.log_level)

    try:
        with open_store(config) as client:
            store = UserStore.from_client(
                client,
                config.database,
                config.collection,
                timeout=config.operation_timeout,
            )
            create_app(config, store).run()
    except StartupError as e:
        logger.critical(str(e))
        return 1
    except OSError as e:
        logger.critical(f"Server failed to start: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
