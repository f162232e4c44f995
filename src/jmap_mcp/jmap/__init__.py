"""JMAP protocol client, session models and the auth-adapting transport."""

from jmap_mcp.jmap.client import JmapClient
from jmap_mcp.jmap.models import (
    CORE_CAPABILITY,
    MAIL_CAPABILITY,
    SUBMISSION_CAPABILITY,
    JmapAccount,
    JmapSession,
)
from jmap_mcp.jmap.transport import JmapAuthTransport, repair_api_url

__all__ = [
    "CORE_CAPABILITY",
    "JmapAccount",
    "JmapAuthTransport",
    "JmapClient",
    "JmapSession",
    "MAIL_CAPABILITY",
    "SUBMISSION_CAPABILITY",
    "repair_api_url",
]
