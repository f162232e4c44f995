"""Pydantic models for the JMAP session resource (RFC 8620, section 2)."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

CORE_CAPABILITY = "urn:ietf:params:jmap:core"
MAIL_CAPABILITY = "urn:ietf:params:jmap:mail"
SUBMISSION_CAPABILITY = "urn:ietf:params:jmap:submission"


class _WireModel(BaseModel):
    """Base for models parsed from camelCase JMAP JSON."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )


class JmapAccount(_WireModel):
    """An account entry from the session's ``accounts`` map.

    Attributes:
        name: User-friendly account name, usually an email address.
        is_personal: Whether the account belongs to the authenticated user.
        is_read_only: Whether the whole data set is read-only for this user.
        account_capabilities: Per-account capability objects keyed by URI.
    """

    name: str = ""
    is_personal: bool = True
    is_read_only: bool = False
    account_capabilities: dict[str, Any] = Field(default_factory=dict)


class JmapSession(_WireModel):
    """The session descriptor returned by the session endpoint."""

    capabilities: dict[str, Any]
    accounts: dict[str, JmapAccount]
    primary_accounts: dict[str, str] = Field(default_factory=dict)
    username: str = ""
    api_url: str
    download_url: str | None = None
    upload_url: str | None = None
    event_source_url: str | None = None
    state: str | None = None

    def has_capability(self, capability: str) -> bool:
        return capability in self.capabilities

    def using(self) -> list[str]:
        """Capabilities to declare in the ``using`` list of an API request."""
        return [
            capability
            for capability in (CORE_CAPABILITY, MAIL_CAPABILITY, SUBMISSION_CAPABILITY)
            if capability == CORE_CAPABILITY or self.has_capability(capability)
        ]
