#!/usr/bin/env python3
"""
mite MCP server CLI entry point

    mite-mcp [--stdio | --http] [-p PORT] [-h HOST]

Runs on stdio by default; --http serves Streamable HTTP on HOST:PORT.
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional, Sequence

from dotenv import load_dotenv

from . import __version__
from .api_client import MiteApiClient
from .config import get_config_from_env
from .errors import ConfigurationError
from .mcp import McpCore, build_registry, run_http_server, run_stdio_server


logger = logging.getLogger("mite_mcp")

CONFIG_HELP = """
Please set the following environment variables:
  MITE_ACCOUNT_NAME: Your mite account name (required)
  MITE_API_KEY: Your mite API key (recommended)
  OR
  MITE_EMAIL: Your mite email
  MITE_PASSWORD: Your mite password"""


def build_parser() -> argparse.ArgumentParser:
    # -h is the host flag, so help is registered by hand
    parser = argparse.ArgumentParser(
        prog="mite-mcp",
        description="mite MCP server - Model Context Protocol server for mite time tracking",
        add_help=False,
    )
    parser.add_argument("--stdio", action="store_true", help="Run in stdio mode (default)")
    parser.add_argument("--http", action="store_true", help="Run in HTTP/Streamable mode")
    parser.add_argument("-p", "--port", type=int, default=3000, help="Port for HTTP server (default: 3000)")
    parser.add_argument("-h", "--host", default="localhost", help="Host for HTTP server (default: localhost)")
    parser.add_argument("--version", action="version", version=__version__)
    parser.add_argument("--help", action="help", help="Show this message and exit")
    return parser


async def serve(args: argparse.Namespace, core: McpCore, client: MiteApiClient) -> None:
    """Run the selected transport, closing the API client afterwards."""
    try:
        if args.http:
            await run_http_server(core, args.port, args.host)
        else:
            await run_stdio_server(core)
    finally:
        await client.aclose()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entry point. Returns the process exit code."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr
    )

    load_dotenv()

    try:
        config = get_config_from_env()
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        print(CONFIG_HELP, file=sys.stderr)
        return 1

    try:
        client = MiteApiClient(config)
        core = McpCore(build_registry(client))
        asyncio.run(serve(args, core, client))
    except KeyboardInterrupt:
        pass
    except Exception:
        logger.exception("Fatal error")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
