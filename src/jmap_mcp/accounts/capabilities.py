"""Classification of an account's JMAP capabilities."""

from collections.abc import Collection
from dataclasses import dataclass

from jmap_mcp.jmap.models import MAIL_CAPABILITY, SUBMISSION_CAPABILITY, JmapAccount


@dataclass(frozen=True)
class AccountCapabilities:
    is_mail: bool
    is_read_only: bool
    has_submission: bool


def classify_capabilities(
    capabilities: Collection[str], account: JmapAccount
) -> AccountCapabilities:
    """Derive the capability flags for one account.

    Submission is only offered to writable accounts, whatever the server
    advertises.

    Args:
        capabilities: Capability URIs advertised in the session descriptor.
        account: The account entry from the session descriptor.
    """
    is_read_only = account.is_read_only
    return AccountCapabilities(
        is_mail=MAIL_CAPABILITY in capabilities,
        is_read_only=is_read_only,
        has_submission=SUBMISSION_CAPABILITY in capabilities and not is_read_only,
    )
