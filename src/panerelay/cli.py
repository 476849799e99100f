"""Command-line interface for panerelay.

Provides the main entry point for running the relay server and for
showing the token clients need to pair with it.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="panerelay",
        description="Remote control of tmux sessions over a WebSocket",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: ~/.config/panerelay/config.yaml)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser("serve", help="Run the WebSocket relay server")
    serve_parser.add_argument("--host", type=str, default=None, help="Listen address")
    serve_parser.add_argument("--port", type=int, default=None, help="Listen port")
    serve_parser.add_argument(
        "--socket", type=str, default=None,
        help="Alternate tmux socket path (tmux -S)",
    )

    subparsers.add_parser("token", help="Print the access token clients must send")

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the panerelay CLI."""
    args = parse_args(argv)

    if args.command is None:
        parse_args(["--help"])
        return

    from panerelay.config.settings import load_settings
    from panerelay.utils.logging import setup_logging

    settings = load_settings(args.config)

    if args.verbose:
        settings.logging.level = "DEBUG"

    setup_logging(settings.logging)

    server = settings.server
    token = server.token.get_secret_value()

    if args.command == "token":
        print(token)

    elif args.command == "serve":
        from panerelay.server.app import main as serve

        host = args.host or server.host
        port = args.port or server.port
        socket = args.socket or server.tmux_socket
        print(f"panerelay listening on ws://{host}:{port}")
        print(f"Token: {token}")
        logger.info("Starting relay server (tmux socket: %s)", socket or "default")
        serve(
            token=token,
            host=host,
            port=port,
            tmux_socket=socket,
            poll_interval=server.poll_interval,
        )


if __name__ == "__main__":
    main()
