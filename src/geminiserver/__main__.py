"""
=============================================================================
CLI ENTRY POINT
=============================================================================

    python -m geminiserver [options]
    geminiserver [options]

Without ``--root`` the server answers every request with a small built-in
welcome page; with it, the directory is served by StaticFileHandler.

=============================================================================
"""

import argparse
import sys

from . import __version__
from .config import ServerConfig
from .handlers import StaticFileHandler
from .protocol import GeminiRequest, GeminiResponse
from .server import GeminiServer


WELCOME_PAGE = """\
# It works!

This is {server_name}, a Gemini server written in Python.

Start it with --root to serve a directory:

```
python -m geminiserver --root ./capsule
```

## This request

* URL: {url}
* Path: {path}
"""


def make_welcome_handler(server_name: str):
    def welcome(request: GeminiRequest, response: GeminiResponse) -> None:
        if request.path != "/":
            response.not_found()
            return
        response.send(
            WELCOME_PAGE.format(server_name=server_name, url=request.url, path=request.path)
        )

    return welcome


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="geminiserver",
        description="Gemini protocol server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m geminiserver                          # Run with defaults (port 1965)
  python -m geminiserver --root ./capsule         # Serve a directory
  python -m geminiserver --host 0.0.0.0 --hostname example.org
  python -m geminiserver --certfile cert.pem --keyfile key.pem
        """,
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────
    parser.add_argument(
        "--host", "-H",
        default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1, use 0.0.0.0 for all interfaces)",
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        default=1965,
        help="Port to listen on (default: 1965)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=30.0,
        help="Seconds a client gets to finish the handshake and request (default: 30)",
    )

    # ─────────────────────────────────────────────────────────────────────
    # TLS ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────
    parser.add_argument("--certfile", default=None, help="TLS certificate (PEM)")
    parser.add_argument("--keyfile", default=None, help="TLS private key (PEM)")
    parser.add_argument(
        "--hostname",
        default="localhost",
        help="Server hostname, used for the ad-hoc certificate (default: localhost)",
    )

    # ─────────────────────────────────────────────────────────────────────
    # PERFORMANCE ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────
    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=4,
        help="Number of worker threads (default: 4, max will be 2x this)",
    )

    # ─────────────────────────────────────────────────────────────────────
    # CONTENT AND LOGGING
    # ─────────────────────────────────────────────────────────────────────
    parser.add_argument(
        "--root", "-r",
        default=None,
        help="Directory to serve (e.g., ./capsule)",
    )
    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default="text",
        help="Access log format (default: text)",
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"PyGemini {__version__}",
    )
    return parser


def main(argv=None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    config = ServerConfig(
        host=args.host,
        port=args.port,
        timeout=args.timeout,
        certfile=args.certfile,
        keyfile=args.keyfile,
        hostname=args.hostname,
        min_workers=args.workers,
        max_workers=args.workers * 2,
        static_dir=args.root,
        log_level=args.log_level,
        log_format=args.log_format,
    )

    try:
        config.validate()
        if config.static_dir:
            handler = StaticFileHandler(config.static_dir)
        else:
            handler = make_welcome_handler(config.server_name)
    except ValueError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    server = GeminiServer(config, handler)
    try:
        server.run()
    except OSError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
