"""MCP server entry point for jmap-mcp."""

import asyncio
import sys

import structlog

from jmap_mcp.accounts.registry import build_registry
from jmap_mcp.config import configure_logging, get_settings_eager
from jmap_mcp.exceptions import JmapMcpError
from jmap_mcp.tools._app import create_server

logger = structlog.get_logger()

STARTUP_HINT = "Please check your JMAP_SESSION_URL and JMAP_BEARER_TOKEN environment variables."


async def run_server() -> int:
    """Initialize every account, then serve MCP over stdio until EOF.

    Returns:
        Process exit code.
    """
    try:
        settings = get_settings_eager()
        configure_logging(settings.log_level)
        registry = await build_registry(settings)
    except JmapMcpError as e:
        print(f"JMAP connection failed: {e}", file=sys.stderr)
        print(STARTUP_HINT, file=sys.stderr)
        return 1

    mcp = create_server(registry)
    logger.info("JMAP MCP server running on stdio", accounts=registry.names)
    try:
        await mcp.run_async(transport="stdio", show_banner=False)
    finally:
        await registry.aclose()
    return 0


def main() -> None:
    """Entry point for the MCP server."""
    sys.exit(asyncio.run(run_server()))


if __name__ == "__main__":
    main()
