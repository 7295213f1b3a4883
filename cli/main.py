"""Command line entry point: `python -m cli.main` or the `cloudcode-relay` script."""

import argparse
import sys

from rich.console import Console

from cli.menu import display_header, display_settings
from cli.server import ProxyServer


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Cloud Code Relay")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging to relay_debug.log")
    parser.add_argument("--bind", default=None, help="Bind address (overrides BIND_ADDRESS)")
    parser.add_argument("--port", type=int, default=None, help="Listening port (overrides PORT)")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    console = Console()

    server = ProxyServer(debug=args.debug, bind_address=args.bind, port=args.port)

    display_header(console)
    display_settings(console, server.bind_address, server.port, debug=args.debug)
    if args.debug:
        console.print(f"[yellow]Debug mode enabled - verbose logging will be written to {server.log_file}[/yellow]")

    try:
        server.run()
    except KeyboardInterrupt:
        server.stop()
        console.print("Goodbye!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
