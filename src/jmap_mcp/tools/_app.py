"""FastMCP application factory."""

import logging

from fastmcp import FastMCP

from jmap_mcp.accounts.registry import AccountRegistry
from jmap_mcp.tools import register_tools

logger = logging.getLogger(__name__)

SERVER_NAME = "jmap"

INSTRUCTIONS = """\
This is a JMAP (JSON Meta Application Protocol) MCP server for reading and \
managing email on JMAP-compliant servers (Stalwart, Cyrus IMAP, Fastmail, \
Apache James).

Configured accounts ({count}): {names}. Every tool accepts an optional \
`account` argument; without it the first account ({default}) is used. Call \
`list_accounts` to see which accounts are read-only and which can send.

Search and retrieval: search_emails, get_emails, get_threads, get_mailboxes, \
get_identities, get_inbox_summary.
{write_section}{submission_section}
Guidelines:
- List drafts with search_emails(has_keyword="$draft").
- Results are paginated; use `position` for large result sets.
- Dates use ISO 8601 (e.g. 2024-01-15T10:00:00Z).
"""

WRITE_SECTION = (
    "Email actions (writable accounts only): mark_emails, move_emails, "
    "delete_emails, create_draft, update_draft.\n"
)
SUBMISSION_SECTION = (
    "Sending (accounts with submission only): send_email, reply_to_email, send_draft.\n"
)


def build_instructions(registry: AccountRegistry) -> str:
    return INSTRUCTIONS.format(
        count=len(registry),
        names=", ".join(registry.names),
        default=registry.default.name,
        write_section=WRITE_SECTION if registry.any_write_access else "",
        submission_section=SUBMISSION_SECTION if registry.any_submission else "",
    )


def create_server(registry: AccountRegistry) -> FastMCP:
    """Create the MCP server with the tools the registry's accounts support."""
    mcp = FastMCP(name=SERVER_NAME, instructions=build_instructions(registry))
    registered = register_tools(mcp, registry)
    logger.info("Registered %d tools: %s", len(registered), ", ".join(registered))
    return mcp
