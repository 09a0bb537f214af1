#!/usr/bin/env python3
"""azure-devops-mcp entry point.

Run:
  azure-devops-mcp                       # start server (stdio)
  python -m azure_devops_mcp --test      # list tools/resources then exit

Configuration comes from AZURE_DEVOPS_ORG_URL and AZURE_DEVOPS_PAT (see config.py).
"""

import argparse
import asyncio
import sys

from azure_devops_mcp import __version__
from azure_devops_mcp.errors import SafeError
from azure_devops_mcp.server import run_server, test_server


def parse_args(argv: list[str]) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(
        prog="azure-devops-mcp",
        description="MCP server for Azure DevOps pull request review.",
    )
    parser.add_argument(
        "--test",
        action="store_true",
        help="Run the built-in self test (tool & resource listing) then exit.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def main() -> None:
    """CLI dispatcher for the MCP server."""
    args = parse_args(sys.argv[1:])
    try:
        asyncio.run(test_server() if args.test else run_server())
    except KeyboardInterrupt:
        print("\nServer stopped by user", file=sys.stderr)
    except SafeError as exc:
        # Configuration and authentication failures are already logged; no traceback.
        print(f"azure-devops-mcp: {exc.message}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
