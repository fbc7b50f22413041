"""tokenwarden entry point."""

import argparse
import logging
import sys
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version

from tokenwarden.config import ConfigError, get_settings
from tokenwarden.logging_setup import setup_logging

logger = logging.getLogger(__name__)


def _version() -> str:
    try:
        return get_version("tokenwarden")
    except PackageNotFoundError:
        from tokenwarden import __version__

        return __version__


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="tokenwarden",
        description="OAuth 2.0 authorization server with PKCE and refresh token rotation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  tokenwarden serve                      Start the server on 127.0.0.1:8000
  tokenwarden serve --host 0.0.0.0       Listen on all interfaces
  tokenwarden serve --dev                Auto-reload on code changes
  tokenwarden check-config               Validate settings and exit
""",
    )
    parser.add_argument("--version", "-v", action="version", version=f"%(prog)s {_version()}")

    sub = parser.add_subparsers(dest="command")
    serve = sub.add_parser("serve", help="Run the authorization server")
    serve.add_argument("--host", default="127.0.0.1", help="Host to bind (default: 127.0.0.1)")
    serve.add_argument("--port", "-p", type=int, default=8000, help="Port (default: 8000)")
    serve.add_argument("--dev", action="store_true", help="Enable auto-reload")
    sub.add_parser("check-config", help="Validate configuration and exit")

    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 1

    try:
        settings = get_settings()
    except ConfigError as e:
        setup_logging(level="ERROR")
        logger.critical("Refusing to start: %s", e)
        return 2

    setup_logging(level=settings.log_level, json_output=settings.json_logs)

    if args.command == "check-config":
        logger.info("Configuration OK (%s, issuer %s)", settings.environment, settings.issuer)
        return 0

    from tokenwarden.api.serve import run_api_server

    run_api_server(host=args.host, port=args.port, dev=args.dev)
    return 0


if __name__ == "__main__":
    sys.exit(main())
