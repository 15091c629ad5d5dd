"""prepr Language Server Main Entry Point

Command-line interface for the prepr language server.
"""

import sys
import argparse
import logging
from typing import List, Optional

from .server import SERVER_VERSION, prepr_server


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the language server."""
    parser = argparse.ArgumentParser(
        prog="prepr-language-server",
        description="prepr Language Server - Provides LSP support for #define macros",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  prepr-language-server                          # Start language server on stdio
  prepr-language-server --tcp                    # Start language server on TCP
  prepr-language-server --tcp --port 2087        # Start on specific TCP port
"""
    )

    parser.add_argument(
        "--tcp",
        action="store_true",
        help="Use TCP transport instead of stdio"
    )

    parser.add_argument(
        "--port",
        type=int,
        default=2087,
        help="Port number for TCP (default: 2087)"
    )

    parser.add_argument(
        "--host",
        default="localhost",
        help="Host address for TCP (default: localhost)"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"prepr Language Server v{SERVER_VERSION}"
    )

    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    try:
        if args.tcp:
            print(f"Starting prepr Language Server on TCP {args.host}:{args.port}",
                  file=sys.stderr)
            prepr_server.start_tcp(args.host, args.port)
        else:
            print("Starting prepr Language Server on stdio", file=sys.stderr)
            prepr_server.start_io()
        return 0

    except KeyboardInterrupt:
        print("\nServer interrupted by user", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
