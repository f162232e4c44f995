"""Draft and submission (sending) MCP tools."""

import logging
from typing import Any

from jmap_mcp.accounts.registry import AccountRegistry
from jmap_mcp.accounts.session import AccountSession
from jmap_mcp.exceptions import JmapMethodError
from jmap_mcp.tools._compose import (
    DRAFT_KEYWORD,
    Recipient,
    addresses,
    body_values,
    create_draft_email,
    identity_address,
    require_body,
    submit_email,
    to_json,
)
from jmap_mcp.tools._error_handler import handle_tool_errors

logger = logging.getLogger(__name__)

REPLY_PREFIX = "Re: "


def _reply_subject(original: str | None) -> str:
    subject = original or ""
    return subject if subject.startswith(REPLY_PREFIX) else f"{REPLY_PREFIX}{subject}"


class DraftTools:
    """Draft creation and editing; needs an account with write access."""

    def __init__(self, registry: AccountRegistry) -> None:
        self.registry = registry

    @handle_tool_errors
    async def create_draft(
        self,
        to: list[Recipient],
        subject: str,
        account: str | None = None,
        cc: list[Recipient] | None = None,
        bcc: list[Recipient] | None = None,
        text_body: str | None = None,
        html_body: str | None = None,
        identity_id: str | None = None,
    ) -> str:
        """Save an email as a draft without sending it.

        The draft can be changed with update_draft and sent with send_draft.
        Only works with accounts that have write access.

        Args:
            to: Recipients, each with 'email' and optional 'name'.
            subject: Email subject.
            account: Account name (defaults to the first configured account).
            cc: CC recipients.
            bcc: BCC recipients.
            text_body: Plain text body.
            html_body: HTML body.
            identity_id: Identity to send from (see get_identities).
        """
        require_body(text_body, html_body)
        session = self.registry.require_write(account)
        draft_id = await create_draft_email(
            session,
            {
                "from": await identity_address(session, identity_id),
                "to": addresses(to),
                "cc": addresses(cc),
                "bcc": addresses(bcc),
                "subject": subject,
                **body_values(text_body, html_body),
            },
        )
        return to_json({"draftId": draft_id, "created": True})

    @handle_tool_errors
    async def update_draft(
        self,
        draft_id: str,
        account: str | None = None,
        to: list[Recipient] | None = None,
        cc: list[Recipient] | None = None,
        bcc: list[Recipient] | None = None,
        subject: str | None = None,
        text_body: str | None = None,
        html_body: str | None = None,
    ) -> str:
        """Update an existing draft. Only the fields provided are changed.

        JMAP messages are immutable, so the draft is replaced by an edited
        copy; the response carries the new draft id. If the old draft cannot be
        removed, its id is reported under notDestroyed.
        Only works with accounts that have write access.

        Args:
            draft_id: Id of the draft to update.
            account: Account name (defaults to the first configured account).
            to: New recipients.
            cc: New CC recipients.
            bcc: New BCC recipients.
            subject: New subject.
            text_body: New plain text body.
            html_body: New HTML body.
        """
        session = self.registry.require_write(account)
        client = session.client

        found = await client.call(
            "Email/get",
            {
                "accountId": session.account_id,
                "ids": [draft_id],
                "properties": [
                    "keywords", "from", "to", "cc", "bcc", "replyTo", "subject",
                    "inReplyTo", "references", "textBody", "htmlBody", "bodyValues",
                ],
                "fetchAllBodyValues": True,
            },
        )
        if not found.get("list"):
            raise ValueError(f"draft not found: {draft_id}")
        current = found["list"][0]
        if not (current.get("keywords") or {}).get(DRAFT_KEYWORD):
            raise ValueError(f"email {draft_id} is not a draft")

        values = current.get("bodyValues") or {}
        text = text_body if text_body is not None else _part_value(current, "textBody", values)
        html = html_body if html_body is not None else _part_value(current, "htmlBody", values)
        require_body(text, html)

        replacement: dict[str, Any] = {
            "from": current.get("from"),
            "to": addresses(to) if to is not None else current.get("to"),
            "cc": addresses(cc) if cc is not None else current.get("cc"),
            "bcc": addresses(bcc) if bcc is not None else current.get("bcc"),
            "replyTo": current.get("replyTo"),
            "subject": subject if subject is not None else current.get("subject"),
            "inReplyTo": current.get("inReplyTo"),
            "references": current.get("references"),
            **body_values(text, html),
        }
        new_id = await create_draft_email(session, replacement)
        if await _destroy_email(session, draft_id):
            return to_json({"draftId": new_id, "replaced": draft_id, "updated": True})
        return to_json({"draftId": new_id, "notDestroyed": draft_id, "updated": True})


async def _destroy_email(session: AccountSession, email_id: str) -> bool:
    """Destroy one Email; a refusal is logged and reported as False."""
    try:
        result = await session.client.call(
            "Email/set", {"accountId": session.account_id, "destroy": [email_id]}
        )
    except JmapMethodError as e:
        logger.warning("Could not destroy email %s: %s", email_id, e)
        return False
    if email_id not in (result.get("destroyed") or []):
        logger.warning(
            "Could not destroy email %s: %s", email_id, result.get("notDestroyed")
        )
        return False
    return True


def _part_value(email: dict[str, Any], field: str, values: dict[str, Any]) -> str | None:
    parts = email.get(field) or []
    if not parts:
        return None
    part = values.get(parts[0].get("partId"), {})
    return part.get("value")


class SubmissionTools:
    """Sending tools; needs an account with submission capability."""

    def __init__(self, registry: AccountRegistry) -> None:
        self.registry = registry

    @handle_tool_errors
    async def send_email(
        self,
        to: list[Recipient],
        subject: str,
        account: str | None = None,
        cc: list[Recipient] | None = None,
        bcc: list[Recipient] | None = None,
        text_body: str | None = None,
        html_body: str | None = None,
        identity_id: str | None = None,
    ) -> str:
        """Compose and send a new email. Needs text_body or html_body (or both).

        Only works with accounts that have submission capability.

        Args:
            to: Recipients, each with 'email' and optional 'name'.
            subject: Email subject.
            account: Account name (defaults to the first configured account).
            cc: CC recipients.
            bcc: BCC recipients.
            text_body: Plain text body.
            html_body: HTML body.
            identity_id: Identity to send from (see get_identities).
        """
        require_body(text_body, html_body)
        session = self.registry.require_submission(account)
        email_id = await create_draft_email(
            session,
            {
                "from": await identity_address(session, identity_id),
                "to": addresses(to),
                "cc": addresses(cc),
                "bcc": addresses(bcc),
                "subject": subject,
                **body_values(text_body, html_body),
            },
        )
        submission_id = await submit_email(session, email_id, identity_id)
        return to_json(
            {"emailId": email_id, "submissionId": submission_id, "sent": bool(submission_id)}
        )

    @handle_tool_errors
    async def reply_to_email(
        self,
        email_id: str,
        account: str | None = None,
        reply_all: bool = False,
        subject: str | None = None,
        text_body: str | None = None,
        html_body: str | None = None,
        identity_id: str | None = None,
    ) -> str:
        """Reply to an email, to the sender only or to all recipients.

        Only works with accounts that have submission capability.

        Args:
            email_id: Id of the email to reply to.
            account: Account name (defaults to the first configured account).
            reply_all: Also copy the original To and CC recipients.
            subject: Reply subject (defaults to 'Re: ' + original subject).
            text_body: Plain text body.
            html_body: HTML body.
            identity_id: Identity to send from (see get_identities).
        """
        require_body(text_body, html_body)
        session = self.registry.require_submission(account)

        found = await session.client.call(
            "Email/get",
            {
                "accountId": session.account_id,
                "ids": [email_id],
                "properties": [
                    "id", "subject", "from", "to", "cc", "replyTo", "messageId", "references",
                ],
            },
        )
        if not found.get("list"):
            raise ValueError(f"original email not found: {email_id}")
        original = found["list"][0]

        to = original.get("replyTo") or original.get("from") or []
        cc: list[dict[str, Any]] = []
        if reply_all:
            cc = [*(original.get("to") or []), *(original.get("cc") or [])]

        message_ids = original.get("messageId") or []
        references = [*(original.get("references") or []), *message_ids]

        reply_id = await create_draft_email(
            session,
            {
                "from": await identity_address(session, identity_id),
                "to": to,
                "cc": cc or None,
                "subject": subject or _reply_subject(original.get("subject")),
                "inReplyTo": message_ids or None,
                "references": references or None,
                **body_values(text_body, html_body),
            },
        )
        submission_id = await submit_email(session, reply_id, identity_id)
        return to_json(
            {
                "emailId": reply_id,
                "submissionId": submission_id,
                "sent": bool(submission_id),
                "replyAll": reply_all,
            }
        )

    @handle_tool_errors
    async def send_draft(
        self, draft_id: str, account: str | None = None, identity_id: str | None = None
    ) -> str:
        """Send a previously saved draft.

        Only works with accounts that have submission capability.

        Args:
            draft_id: Id of the draft to send.
            account: Account name (defaults to the first configured account).
            identity_id: Identity to send from (see get_identities).
        """
        session = self.registry.require_submission(account)
        result = await session.client.call(
            "Email/set",
            {
                "accountId": session.account_id,
                "update": {draft_id: {f"keywords/{DRAFT_KEYWORD}": None}},
            },
        )
        if draft_id not in (result.get("updated") or {}):
            raise ValueError(f"failed to update draft status for {draft_id}")

        submission_id = await submit_email(session, draft_id, identity_id)
        return to_json(
            {"draftId": draft_id, "submissionId": submission_id, "sent": bool(submission_id)}
        )
