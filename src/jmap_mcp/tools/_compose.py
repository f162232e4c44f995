"""Helpers shared by the draft and submission tools."""

import json
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, EmailStr

from jmap_mcp.accounts.session import AccountSession

DRAFT_KEYWORD = "$draft"


class Recipient(BaseModel):
    """An email recipient as accepted by the composing tools."""

    email: EmailStr
    name: str | None = None


def to_json(data: Any) -> str:
    return json.dumps(data, indent=2, default=str)


def utc_date(value: datetime) -> str:
    """Format a datetime as a JMAP UTCDate (naive values are taken as UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def addresses(recipients: list[Recipient] | None) -> list[dict[str, str]] | None:
    if recipients is None:
        return None
    return [r.model_dump(exclude_none=True) for r in recipients]


def body_values(text_body: str | None, html_body: str | None) -> dict[str, Any]:
    """Build the ``bodyValues``/``textBody``/``htmlBody`` part of an Email object."""
    values: dict[str, Any] = {}
    parts: dict[str, Any] = {}
    if text_body:
        values["text"] = {"value": text_body}
        parts["textBody"] = [{"partId": "text", "type": "text/plain"}]
    if html_body:
        values["html"] = {"value": html_body}
        parts["htmlBody"] = [{"partId": "html", "type": "text/html"}]
    return {"bodyValues": values, **parts}


def require_body(text_body: str | None, html_body: str | None) -> None:
    if not text_body and not html_body:
        raise ValueError("either text_body or html_body must be provided")


async def find_mailbox_id(session: AccountSession, role: str) -> str | None:
    result = await session.client.call(
        "Mailbox/query",
        {"accountId": session.account_id, "filter": {"role": role}},
    )
    ids = result.get("ids", [])
    return ids[0] if ids else None


async def identity_address(
    session: AccountSession, identity_id: str | None
) -> list[dict[str, str]] | None:
    """Resolve an identity id to a ``from`` address list, if given and known."""
    if not identity_id:
        return None
    result = await session.client.call(
        "Identity/get",
        {"accountId": session.account_id, "ids": [identity_id]},
    )
    identities = result.get("list", [])
    if not identities:
        return None
    identity = identities[0]
    return [{"name": identity.get("name", ""), "email": identity["email"]}]


async def create_draft_email(session: AccountSession, email: dict[str, Any]) -> str:
    """Store an Email in the Drafts mailbox with the ``$draft`` keyword.

    Returns:
        The server-assigned id of the new draft.
    """
    drafts_id = await find_mailbox_id(session, "drafts")
    if drafts_id is None:
        raise ValueError("drafts mailbox not found")

    draft = {
        "mailboxIds": {drafts_id: True},
        "keywords": {DRAFT_KEYWORD: True},
        **{key: value for key, value in email.items() if value is not None},
    }
    result = await session.client.call(
        "Email/set",
        {"accountId": session.account_id, "create": {"draft": draft}},
    )
    created = (result.get("created") or {}).get("draft")
    if not created:
        reason = (result.get("notCreated") or {}).get("draft", {})
        raise ValueError(f"failed to create draft: {reason.get('type', 'unknown error')}")
    return created["id"]


async def submit_email(
    session: AccountSession, email_id: str, identity_id: str | None
) -> str | None:
    """Submit an existing Email for delivery and return the submission id."""
    submission: dict[str, Any] = {"emailId": email_id}
    if identity_id:
        submission["identityId"] = identity_id
    result = await session.client.call(
        "EmailSubmission/set",
        {"accountId": session.account_id, "create": {"submission": submission}},
    )
    created = (result.get("created") or {}).get("submission")
    return created.get("id") if created else None
