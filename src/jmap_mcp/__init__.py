"""MCP server and compact CLI for JMAP email, with multi-account support."""

from jmap_mcp.accounts import (
    AccountCredential,
    AccountRegistry,
    AccountSession,
    build_registry,
    parse_credentials,
)
from jmap_mcp.config import Settings
from jmap_mcp.jmap import JmapAuthTransport, JmapClient, JmapSession

__version__ = "0.1.0"

__all__ = [
    "AccountCredential",
    "AccountRegistry",
    "AccountSession",
    "JmapAuthTransport",
    "JmapClient",
    "JmapSession",
    "Settings",
    "build_registry",
    "parse_credentials",
]
