"""jmapper: compact JMAP email CLI for token-constrained agents."""

import argparse
import asyncio
import sys
from collections.abc import Sequence
from typing import Any

import httpx

from jmap_mcp.accounts.credentials import AccountCredential
from jmap_mcp.accounts.session import AccountSession, open_account_session
from jmap_mcp.config import Settings, configure_logging, get_settings_eager
from jmap_mcp.exceptions import AccountNotFoundError, JmapMcpError, PermissionDeniedError
from jmap_mcp.tools._compose import body_values, create_draft_email, find_mailbox_id, submit_email

LIST_PROPERTIES = ["id", "from", "subject", "receivedAt", "keywords"]
NEWEST_FIRST = [{"property": "receivedAt", "isAscending": False}]
MARK_ACTIONS = {
    "read": ("$seen", True),
    "unread": ("$seen", None),
    "flag": ("$flagged", True),
    "unflag": ("$flagged", None),
}

EPILOG = """\
environment:
  JMAP_SESSION_URL    JMAP server URL (required)
  JMAP_BEARER_TOKEN   single account: user@example.com:password
  JMAP_BEARER_TOKENS  multi-account: one user:pass per line

examples:
  jmapper inbox
  jmapper unread 10
  jmapper -a noc@ search invoice
  echo "Thanks!" | jmapper send user@example.com Re: Hello
"""


def format_email(email: dict[str, Any]) -> str:
    """One line per email: flags, id, date, sender, subject."""
    keywords = email.get("keywords") or {}
    flags = ("" if keywords.get("$seen") else "*") + ("!" if keywords.get("$flagged") else "")
    senders = email.get("from") or []
    sender = (senders[0].get("email") if senders else None) or "?"
    subject = email.get("subject") or "(no subject)"
    date = (email.get("receivedAt") or "")[:10]
    return f"{flags:<2} {email['id'][:12]} {date} {sender[:40]:<25} {subject[:60]}"


def select_credential(
    credentials: Sequence[AccountCredential], name: str | None
) -> AccountCredential:
    """Pick an account by exact name, then by unique prefix; default is the first."""
    if not name:
        return credentials[0]
    for credential in credentials:
        if credential.name == name:
            return credential
    matches = [c for c in credentials if c.name.startswith(name)]
    if len(matches) == 1:
        return matches[0]
    raise AccountNotFoundError(name, [c.name for c in credentials])


async def _list_emails(
    session: AccountSession, email_filter: dict[str, Any], limit: int
) -> tuple[int, list[dict[str, Any]]]:
    client = session.client
    result = await client.call(
        "Email/query",
        {
            "accountId": session.account_id,
            "filter": email_filter,
            "limit": limit,
            "sort": NEWEST_FIRST,
            "calculateTotal": True,
        },
    )
    if not result.get("ids"):
        return result.get("total") or 0, []
    emails = await client.call(
        "Email/get",
        {"accountId": session.account_id, "ids": result["ids"], "properties": LIST_PROPERTIES},
    )
    return result.get("total") or 0, emails.get("list", [])


def _require(session: AccountSession, capability: str) -> None:
    allowed = session.has_submission if capability == "submission" else not session.is_read_only
    if not allowed:
        raise PermissionDeniedError(session.name, capability)


def _print_emails(header: str, emails: list[dict[str, Any]], empty: str) -> None:
    print(header)
    if not emails:
        print(empty)
    for email in emails:
        print(format_email(email))


async def cmd_inbox(session: AccountSession, args: argparse.Namespace) -> None:
    inbox_id = await find_mailbox_id(session, "inbox")
    if inbox_id is None:
        raise ValueError("inbox mailbox not found")
    details = await session.client.call(
        "Mailbox/get", {"accountId": session.account_id, "ids": [inbox_id]}
    )
    if not details.get("list"):
        raise ValueError("inbox mailbox not found")
    inbox = details["list"][0]
    _, emails = await _list_emails(session, {"inMailbox": inbox_id}, args.limit)
    header = f"inbox {inbox.get('unreadEmails')}/{inbox.get('totalEmails')} unread"
    _print_emails(header, emails, "(empty)")


async def cmd_unread(session: AccountSession, args: argparse.Namespace) -> None:
    total, emails = await _list_emails(session, {"notKeyword": "$seen"}, args.limit)
    _print_emails(f"{total} unread", emails, "(none)")


async def cmd_search(session: AccountSession, args: argparse.Namespace) -> None:
    query = " ".join(args.query)
    total, emails = await _list_emails(session, {"text": query}, args.limit)
    _print_emails(f"{total} results", emails, "(none)")


async def cmd_from(session: AccountSession, args: argparse.Namespace) -> None:
    total, emails = await _list_emails(session, {"from": args.address}, args.limit)
    _print_emails(f"{total} from {args.address}", emails, "(none)")


async def cmd_read(session: AccountSession, args: argparse.Namespace) -> None:
    result = await session.client.call(
        "Email/get",
        {
            "accountId": session.account_id,
            "ids": [args.email_id],
            "properties": ["id", "from", "to", "subject", "receivedAt", "textBody", "bodyValues"],
            "fetchTextBodyValues": True,
        },
    )
    if not result.get("list"):
        print("Email not found")
        return
    email = result["list"][0]
    print(f"From: {', '.join(a['email'] for a in email.get('from') or [])}")
    print(f"To: {', '.join(a['email'] for a in email.get('to') or [])}")
    print(f"Date: {email.get('receivedAt')}")
    print(f"Subject: {email.get('subject')}\n")
    text_parts = email.get("textBody") or []
    if text_parts:
        body = (email.get("bodyValues") or {}).get(text_parts[0].get("partId"), {})
        if body.get("value"):
            print(body["value"])


async def cmd_mark(session: AccountSession, args: argparse.Namespace) -> None:
    _require(session, "write")
    keyword, value = MARK_ACTIONS[args.action]
    result = await session.client.call(
        "Email/set",
        {
            "accountId": session.account_id,
            "update": {args.email_id: {f"keywords/{keyword}": value}},
        },
    )
    if args.email_id not in (result.get("updated") or {}):
        raise ValueError(f"could not mark {args.email_id}")
    print(f"Marked {args.email_id} as {args.action}")


async def cmd_ids(session: AccountSession, args: argparse.Namespace) -> None:
    result = await session.client.call("Identity/get", {"accountId": session.account_id})
    for identity in result.get("list", []):
        name = f" ({identity['name']})" if identity.get("name") else ""
        print(f"{identity['id'][:12]:<12} {identity['email']}{name}")


async def cmd_reply(session: AccountSession, args: argparse.Namespace) -> None:
    _require(session, "submission")
    body = " ".join(args.body)
    if not body.strip():
        raise ValueError("reply body is empty")
    found = await session.client.call(
        "Email/get",
        {
            "accountId": session.account_id,
            "ids": [args.email_id],
            "properties": ["id", "from", "subject", "replyTo", "messageId", "references"],
        },
    )
    if not found.get("list"):
        raise ValueError("Email not found")
    original = found["list"][0]
    recipient = (original.get("replyTo") or original.get("from") or [None])[0]
    if recipient is None:
        raise ValueError("original email has no sender to reply to")
    subject = original.get("subject") or ""
    if not subject.startswith("Re: "):
        subject = f"Re: {subject}"
    message_ids = original.get("messageId") or []

    draft_id = await create_draft_email(
        session,
        {
            "to": [recipient],
            "subject": subject,
            "inReplyTo": message_ids or None,
            "references": [*(original.get("references") or []), *message_ids] or None,
            **body_values(body, None),
        },
    )
    await submit_email(session, draft_id, None)
    print(f"Replied to {recipient['email']}")


async def cmd_send(session: AccountSession, args: argparse.Namespace) -> None:
    _require(session, "submission")
    body = sys.stdin.read()
    if not body.strip():
        raise ValueError("Body is empty (pipe text to stdin)")
    draft_id = await create_draft_email(
        session,
        {
            "to": [{"email": args.to}],
            "subject": " ".join(args.subject),
            **body_values(body, None),
        },
    )
    await submit_email(session, draft_id, None)
    print(f"Sent to {args.to}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="jmapper",
        description="Compact JMAP email CLI",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-a", "--account", help="Account to use (name or unique prefix)")
    subparsers = parser.add_subparsers(dest="command", metavar="command")

    subparsers.add_parser("accounts", help="List configured accounts")

    inbox = subparsers.add_parser("inbox", help="Inbox summary")
    inbox.add_argument("limit", nargs="?", type=int, default=5)
    inbox.set_defaults(handler=cmd_inbox)

    unread = subparsers.add_parser("unread", help="Unread emails")
    unread.add_argument("limit", nargs="?", type=int, default=10)
    unread.set_defaults(handler=cmd_unread)

    search = subparsers.add_parser("search", help="Full-text search")
    search.add_argument("query", nargs="+")
    search.add_argument("-n", "--limit", type=int, default=20)
    search.set_defaults(handler=cmd_search)

    sender = subparsers.add_parser("from", help="Emails from an address")
    sender.add_argument("address")
    sender.add_argument("limit", nargs="?", type=int, default=10)
    sender.set_defaults(handler=cmd_from)

    read = subparsers.add_parser("read", help="Read an email body")
    read.add_argument("email_id")
    read.set_defaults(handler=cmd_read)

    mark = subparsers.add_parser("mark", help="Mark an email")
    mark.add_argument("email_id")
    mark.add_argument("action", choices=list(MARK_ACTIONS))
    mark.set_defaults(handler=cmd_mark)

    ids = subparsers.add_parser("ids", help="List sender identities")
    ids.set_defaults(handler=cmd_ids)

    reply = subparsers.add_parser("reply", help="Quick reply")
    reply.add_argument("email_id")
    reply.add_argument("body", nargs="+")
    reply.set_defaults(handler=cmd_reply)

    send = subparsers.add_parser("send", help="Send an email (body from stdin)")
    send.add_argument("to")
    send.add_argument("subject", nargs="+")
    send.set_defaults(handler=cmd_send)

    return parser


async def _run(settings: Settings, args: argparse.Namespace) -> None:
    credentials = settings.get_credentials()
    if args.command == "accounts":
        print("Configured accounts:")
        for credential in credentials:
            print(f"  {credential.name}")
        return

    credential = select_credential(credentials, args.account)
    session = await open_account_session(
        credential, settings.require_session_url(), timeout=settings.request_timeout
    )
    try:
        await args.handler(session, args)
    finally:
        await session.client.aclose()


def main(argv: Sequence[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    try:
        settings = get_settings_eager()
        configure_logging(settings.log_level)
        asyncio.run(_run(settings, args))
    except (JmapMcpError, httpx.HTTPError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
