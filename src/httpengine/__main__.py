"""
=============================================================================
HTTP SERVER CLI ENTRY POINT
=============================================================================

    # Run with defaults (127.0.0.1:4221, files in /tmp/)
    python -m httpengine

    # Custom port and files directory
    python -m httpengine --port 8080 --directory ./data

    # Listen on all interfaces (for containers)
    python -m httpengine --host 0.0.0.0

Every flag defaults to the matching HTTP_* environment variable (see
ServerConfig.from_env), so CLI arguments override the environment.

=============================================================================
"""

import argparse
import sys

from . import __version__
from .config import ServerConfig, LOG_LEVELS
from .handlers import create_router
from .server import HTTPServer


def build_parser(defaults: ServerConfig) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="httpengine",
        description="HTTP/1.1 server with persistent connections and prefix routing",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m httpengine                          # Run with defaults
  python -m httpengine --port 8080              # Custom port
  python -m httpengine --directory ./data       # Serve /files/ from ./data
  python -m httpengine --timeout 30             # Close idle clients after 30s
        """
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        default=defaults.host,
        help=f"Host to bind to (default: {defaults.host})"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=defaults.port,
        help=f"Port to listen on (default: {defaults.port})"
    )

    parser.add_argument(
        "--timeout",
        type=float,
        default=defaults.timeout,
        help="Per-connection socket timeout in seconds (default: none)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # REQUEST LIMITS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--max-body-size",
        type=int,
        default=defaults.max_body_size,
        help=f"Largest accepted request body in bytes (default: {defaults.max_body_size})"
    )

    # ─────────────────────────────────────────────────────────────────────
    # FEATURE ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--directory", "-d",
        default=defaults.directory,
        help=f"Directory served under /files/ (default: {defaults.directory})"
    )

    parser.add_argument(
        "--log-level", "-l",
        choices=LOG_LEVELS,
        default=defaults.log_level.upper(),
        help=f"Logging level (default: {defaults.log_level})"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"httpengine {__version__}"
    )

    return parser


def main(argv=None):
    """Parse arguments, build the route table and run the server."""
    try:
        defaults = ServerConfig.from_env()
    except ValueError as e:
        print(f"Error: invalid environment configuration: {e}", file=sys.stderr)
        sys.exit(2)

    args = build_parser(defaults).parse_args(argv)

    config = ServerConfig(
        host=args.host,
        port=args.port,
        timeout=args.timeout,
        max_body_size=args.max_body_size,
        directory=args.directory,
        log_level=args.log_level,
    )

    try:
        server = HTTPServer(create_router(config.directory), config)
        server.run()
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
