"""Email search, retrieval and mailbox MCP tools."""

from datetime import datetime
from typing import Any, Literal

from jmap_mcp.accounts.registry import AccountRegistry
from jmap_mcp.tools._compose import to_json, utc_date
from jmap_mcp.tools._error_handler import handle_tool_errors

SUMMARY_PROPERTIES = ["id", "from", "to", "subject", "preview", "receivedAt", "keywords"]

EmailProperty = Literal[
    "id",
    "blobId",
    "threadId",
    "mailboxIds",
    "keywords",
    "size",
    "receivedAt",
    "headers",
    "messageId",
    "inReplyTo",
    "references",
    "sender",
    "from",
    "to",
    "cc",
    "bcc",
    "replyTo",
    "subject",
    "sentAt",
    "bodyStructure",
    "bodyValues",
    "textBody",
    "htmlBody",
    "attachments",
    "hasAttachment",
    "preview",
]

NEWEST_FIRST = [{"property": "receivedAt", "isAscending": False}]


def _summarize(email: dict[str, Any]) -> dict[str, Any]:
    keywords = email.get("keywords") or {}
    senders = email.get("from") or []
    return {
        "id": email["id"],
        "from": senders[0]["email"] if senders else "unknown",
        "to": ", ".join(r["email"] for r in email.get("to") or []),
        "subject": email.get("subject") or "(no subject)",
        "preview": email.get("preview") or "",
        "receivedAt": email.get("receivedAt") or "",
        "isRead": bool(keywords.get("$seen")),
        "isFlagged": bool(keywords.get("$flagged")),
    }


def _has_more(result: dict[str, Any]) -> bool:
    return result.get("position", 0) + len(result.get("ids", [])) < (result.get("total") or 0)


def _check_range(name: str, value: int, low: int, high: int) -> None:
    if not low <= value <= high:
        raise ValueError(f"{name} must be between {low} and {high}")


class EmailTools:
    """Read-side tools plus the keyword/move/delete actions for one registry."""

    def __init__(self, registry: AccountRegistry) -> None:
        self.registry = registry

    @handle_tool_errors
    async def list_accounts(self) -> str:
        """List all configured email accounts and their capabilities.

        Use this first to understand which accounts are available and which
        of them can be written to or send email.
        """
        accounts = [
            {
                "name": a.name,
                "isReadOnly": a.is_read_only,
                "hasSubmission": a.has_submission,
            }
            for a in self.registry.list_all()
        ]
        return to_json({"accounts": accounts})

    @handle_tool_errors
    async def search_emails(
        self,
        account: str | None = None,
        query: str | None = None,
        from_address: str | None = None,
        to_address: str | None = None,
        subject: str | None = None,
        body: str | None = None,
        in_mailbox: str | None = None,
        has_keyword: str | None = None,
        not_keyword: str | None = None,
        all_in_thread_have_keyword: str | None = None,
        some_in_thread_have_keyword: str | None = None,
        before: datetime | None = None,
        after: datetime | None = None,
        limit: int = 50,
        position: int = 0,
        fetch_details: bool = False,
    ) -> str:
        """Search emails with filters. Results are paginated, newest first.

        Args:
            account: Account name (defaults to the first configured account).
            query: Text to find anywhere in the email.
            from_address: Sender address filter.
            to_address: Recipient address filter.
            subject: Text to find in the subject.
            body: Text to find in the body.
            in_mailbox: Mailbox id to search within.
            has_keyword: Keyword the email must have (e.g. '$seen', '$flagged').
            not_keyword: Keyword the email must not have (e.g. '$seen', '$draft').
            all_in_thread_have_keyword: Keyword every email in the thread must have.
            some_in_thread_have_keyword: Keyword at least one email in the thread has.
            before: Only emails received before this time (ISO 8601).
            after: Only emails received after this time (ISO 8601).
            limit: Maximum number of ids to return (1-100, default 50).
            position: Starting position for pagination (default 0).
            fetch_details: Also return sender, subject and preview per email.
        """
        _check_range("limit", limit, 1, 100)
        if position < 0:
            raise ValueError("position must be a non-negative integer")

        session = self.registry.resolve(account)
        conditions = {
            "text": query,
            "from": from_address,
            "to": to_address,
            "subject": subject,
            "body": body,
            "inMailbox": in_mailbox,
            "hasKeyword": has_keyword,
            "notKeyword": not_keyword,
            "allInThreadHaveKeyword": all_in_thread_have_keyword,
            "someInThreadHaveKeyword": some_in_thread_have_keyword,
            "before": utc_date(before) if before else None,
            "after": utc_date(after) if after else None,
        }
        arguments: dict[str, Any] = {
            "accountId": session.account_id,
            "limit": limit,
            "position": position,
            "sort": NEWEST_FIRST,
        }
        email_filter = {key: value for key, value in conditions.items() if value}
        if email_filter:
            arguments["filter"] = email_filter

        result = await session.client.call("Email/query", arguments)

        emails = None
        if fetch_details and result.get("ids"):
            details = await session.client.call(
                "Email/get",
                {
                    "accountId": session.account_id,
                    "ids": result["ids"],
                    "properties": SUMMARY_PROPERTIES,
                },
            )
            emails = [_summarize(e) for e in details.get("list", [])]

        return to_json(
            {
                "ids": result.get("ids", []),
                "emails": emails,
                "total": result.get("total"),
                "position": result.get("position", position),
                "hasMore": _has_more(result),
            }
        )

    @handle_tool_errors
    async def get_mailboxes(
        self,
        account: str | None = None,
        parent_id: str | None = None,
        limit: int = 100,
        position: int = 0,
    ) -> str:
        """List mailboxes (folders). Results are paginated.

        Args:
            account: Account name (defaults to the first configured account).
            parent_id: Only list children of this mailbox id.
            limit: Maximum number of mailboxes to return (1-200, default 100).
            position: Starting position for pagination (default 0).
        """
        _check_range("limit", limit, 1, 200)
        session = self.registry.resolve(account)
        arguments: dict[str, Any] = {
            "accountId": session.account_id,
            "limit": limit,
            "position": position,
            "sort": [{"property": "sortOrder", "isAscending": True}],
        }
        if parent_id:
            arguments["filter"] = {"parentId": parent_id}

        result = await session.client.call("Mailbox/query", arguments)
        mailboxes = await session.client.call(
            "Mailbox/get", {"accountId": session.account_id, "ids": result.get("ids", [])}
        )
        return to_json(
            {
                "mailboxes": mailboxes.get("list", []),
                "total": result.get("total"),
                "position": result.get("position", position),
                "hasMore": _has_more(result),
            }
        )

    @handle_tool_errors
    async def get_emails(
        self,
        ids: list[str],
        account: str | None = None,
        properties: list[EmailProperty] | None = None,
    ) -> str:
        """Get emails by id, including headers, body and attachments.

        Args:
            ids: Email ids to retrieve (1-50).
            account: Account name (defaults to the first configured account).
            properties: Email properties to return (default: all).
        """
        _check_range("number of ids", len(ids), 1, 50)
        session = self.registry.resolve(account)
        arguments: dict[str, Any] = {
            "accountId": session.account_id,
            "ids": ids,
            "fetchTextBodyValues": True,
        }
        if properties:
            arguments["properties"] = properties
        result = await session.client.call("Email/get", arguments)
        return to_json({"emails": result.get("list", []), "notFound": result.get("notFound", [])})

    @handle_tool_errors
    async def get_threads(self, ids: list[str], account: str | None = None) -> str:
        """Get conversation threads by id.

        Args:
            ids: Thread ids to retrieve (1-20).
            account: Account name (defaults to the first configured account).
        """
        _check_range("number of ids", len(ids), 1, 20)
        session = self.registry.resolve(account)
        result = await session.client.call(
            "Thread/get", {"accountId": session.account_id, "ids": ids}
        )
        return to_json({"threads": result.get("list", []), "notFound": result.get("notFound", [])})

    @handle_tool_errors
    async def get_identities(self, account: str | None = None) -> str:
        """List sender identities (addresses this account can send as).

        Args:
            account: Account name (defaults to the first configured account).
        """
        session = self.registry.resolve(account)
        result = await session.client.call("Identity/get", {"accountId": session.account_id})
        identities = [
            {
                "id": i["id"],
                "name": i.get("name"),
                "email": i.get("email"),
                "replyTo": i.get("replyTo"),
                "bcc": i.get("bcc"),
                "mayDelete": i.get("mayDelete"),
            }
            for i in result.get("list", [])
        ]
        return to_json({"identities": identities})

    @handle_tool_errors
    async def get_inbox_summary(self, account: str | None = None, limit: int = 5) -> str:
        """Summarize the inbox: unread and total counts plus recent unread previews.

        Args:
            account: Account name (defaults to the first configured account).
            limit: Number of recent unread emails to preview (1-20, default 5).
        """
        _check_range("limit", limit, 1, 20)
        session = self.registry.resolve(account)
        client = session.client

        found = await client.call(
            "Mailbox/query", {"accountId": session.account_id, "filter": {"role": "inbox"}}
        )
        if not found.get("ids"):
            raise ValueError("inbox mailbox not found")
        mailboxes = await client.call(
            "Mailbox/get", {"accountId": session.account_id, "ids": found["ids"][:1]}
        )
        if not mailboxes.get("list"):
            raise ValueError("inbox mailbox not found")
        inbox = mailboxes["list"][0]

        unread = await client.call(
            "Email/query",
            {
                "accountId": session.account_id,
                "filter": {"inMailbox": inbox["id"], "notKeyword": "$seen"},
                "limit": limit,
                "sort": NEWEST_FIRST,
            },
        )
        recent: list[dict[str, Any]] = []
        if unread.get("ids"):
            emails = await client.call(
                "Email/get",
                {
                    "accountId": session.account_id,
                    "ids": unread["ids"],
                    "properties": ["id", "from", "subject", "preview", "receivedAt"],
                },
            )
            recent = [
                {k: v for k, v in _summarize(e).items() if k not in ("to", "isRead", "isFlagged")}
                for e in emails.get("list", [])
            ]

        return to_json(
            {
                "mailbox": inbox.get("name"),
                "totalEmails": inbox.get("totalEmails"),
                "unreadEmails": inbox.get("unreadEmails"),
                "recentUnread": recent,
            }
        )

    @handle_tool_errors
    async def mark_emails(
        self,
        ids: list[str],
        account: str | None = None,
        seen: bool | None = None,
        flagged: bool | None = None,
    ) -> str:
        """Mark emails as read/unread and/or flagged/unflagged.

        Only works with accounts that have write access.

        Args:
            ids: Email ids to update (1-100).
            account: Account name (defaults to the first configured account).
            seen: True to mark read, False to mark unread.
            flagged: True to flag, False to unflag.
        """
        _check_range("number of ids", len(ids), 1, 100)
        if seen is None and flagged is None:
            raise ValueError("at least one of seen or flagged must be given")
        session = self.registry.require_write(account)

        patch: dict[str, Any] = {}
        if seen is not None:
            patch["keywords/$seen"] = True if seen else None
        if flagged is not None:
            patch["keywords/$flagged"] = True if flagged else None

        result = await session.client.call(
            "Email/set",
            {"accountId": session.account_id, "update": {i: patch for i in ids}},
        )
        return to_json({"updated": result.get("updated"), "notUpdated": result.get("notUpdated")})

    @handle_tool_errors
    async def move_emails(
        self, ids: list[str], mailbox_id: str, account: str | None = None
    ) -> str:
        """Move emails to a different mailbox.

        Only works with accounts that have write access.

        Args:
            ids: Email ids to move (1-100).
            mailbox_id: Target mailbox id.
            account: Account name (defaults to the first configured account).
        """
        _check_range("number of ids", len(ids), 1, 100)
        if not mailbox_id.strip():
            raise ValueError("mailbox_id must not be empty")
        session = self.registry.require_write(account)
        result = await session.client.call(
            "Email/set",
            {
                "accountId": session.account_id,
                "update": {i: {"mailboxIds": {mailbox_id: True}} for i in ids},
            },
        )
        return to_json({"updated": result.get("updated"), "notUpdated": result.get("notUpdated")})

    @handle_tool_errors
    async def delete_emails(self, ids: list[str], account: str | None = None) -> str:
        """Delete emails permanently. This cannot be undone.

        Only works with accounts that have write access.

        Args:
            ids: Email ids to delete (1-100).
            account: Account name (defaults to the first configured account).
        """
        _check_range("number of ids", len(ids), 1, 100)
        session = self.registry.require_write(account)
        result = await session.client.call(
            "Email/set", {"accountId": session.account_id, "destroy": ids}
        )
        return to_json(
            {"destroyed": result.get("destroyed"), "notDestroyed": result.get("notDestroyed")}
        )
