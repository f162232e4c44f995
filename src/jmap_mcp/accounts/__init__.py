"""Account management: credentials, sessions and the account registry."""

from jmap_mcp.accounts.capabilities import AccountCapabilities, classify_capabilities
from jmap_mcp.accounts.credentials import AccountCredential, parse_credentials
from jmap_mcp.accounts.registry import AccountRegistry, AccountSummary, build_registry
from jmap_mcp.accounts.session import AccountSession, open_account_session

__all__ = [
    "AccountCapabilities",
    "AccountCredential",
    "AccountRegistry",
    "AccountSession",
    "AccountSummary",
    "build_registry",
    "classify_capabilities",
    "open_account_session",
    "parse_credentials",
]
