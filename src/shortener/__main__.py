"""
Command-line entry point.

    BASIC_AUTH=admin:s3cret python -m shortener
    BASIC_AUTH=admin:s3cret shortener --port 9000 --base-url https://sho.rt

Flags override the matching SHORTENER_* environment variables.
Credentials only come from BASIC_AUTH so they never show up in ``ps``.
"""

import argparse
import logging
import sys
from typing import Optional, Sequence

from . import __version__
from .config import ServerConfig, LOG_FORMATS
from .exceptions import ConfigError
from .server import ShortenerServer, LOG_FORMAT, LOG_DATE_FORMAT


logger = logging.getLogger("shortener")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shortener",
        description="In-memory URL shortener with HTTP Basic protected submissions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  BASIC_AUTH=user:pass python -m shortener                  # 127.0.0.1:8887
  BASIC_AUTH=user:pass python -m shortener --host 0.0.0.0   # all interfaces
  BASIC_AUTH=user:pass python -m shortener --log-format json
        """
    )

    parser.add_argument(
        "--host", "-H",
        help="Host to bind to (default: $SHORTENER_HOST or 127.0.0.1)"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        help="Port to listen on (default: $SHORTENER_PORT or 8887)"
    )

    parser.add_argument(
        "--workers", "-w",
        type=int,
        help="Maximum worker threads (default: $SHORTENER_WORKERS or 16)"
    )

    parser.add_argument(
        "--base-url",
        help="Public prefix for returned short links, e.g. https://sho.rt"
    )

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: $SHORTENER_LOG_LEVEL or INFO)"
    )

    parser.add_argument(
        "--log-format",
        choices=LOG_FORMATS,
        help="Access log format (default: $SHORTENER_LOG_FORMAT or text)"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"shortener {__version__}"
    )

    return parser


def load_config(args: argparse.Namespace) -> ServerConfig:
    """
    Environment first, then command-line overrides.

    Raises:
        ConfigError: If the result is unusable.
    """
    config = ServerConfig.from_env()

    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.workers is not None:
        config.max_workers = args.workers
        config.min_workers = min(config.min_workers, args.workers)
    if args.base_url is not None:
        config.base_url = args.base_url
    if args.log_level is not None:
        config.log_level = args.log_level
    if args.log_format is not None:
        config.log_format = args.log_format

    config.validate()
    return config


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args)
        server = ShortenerServer(config)
    except ConfigError as e:
        logging.basicConfig(format=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
        logger.error(f"Configuration error: {e}")
        return 1

    try:
        server.run()
    except OSError as e:
        logger.error(f"Server error: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
