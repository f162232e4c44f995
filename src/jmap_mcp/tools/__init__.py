"""MCP tools, registered per account registry.

Tool categories are only exposed when at least one configured account can use
them: write tools need a writable account, sending tools need an account with
submission capability.
"""

from fastmcp import FastMCP

from jmap_mcp.accounts.registry import AccountRegistry
from jmap_mcp.tools.email import EmailTools
from jmap_mcp.tools.submission import DraftTools, SubmissionTools


def register_tools(mcp: FastMCP, registry: AccountRegistry) -> list[str]:
    """Register the tools the registry's accounts can serve.

    Returns:
        Names of the registered tools, in registration order.
    """
    email = EmailTools(registry)
    tools = [
        email.list_accounts,
        email.search_emails,
        email.get_mailboxes,
        email.get_emails,
        email.get_threads,
        email.get_identities,
        email.get_inbox_summary,
    ]

    if registry.any_write_access:
        drafts = DraftTools(registry)
        tools += [
            email.mark_emails,
            email.move_emails,
            email.delete_emails,
            drafts.create_draft,
            drafts.update_draft,
        ]

    if registry.any_submission:
        submission = SubmissionTools(registry)
        tools += [
            submission.send_email,
            submission.reply_to_email,
            submission.send_draft,
        ]

    for tool in tools:
        mcp.tool(tool)
    return [tool.__name__ for tool in tools]


__all__ = ["DraftTools", "EmailTools", "SubmissionTools", "register_tools"]
