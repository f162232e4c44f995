"""Tests for the email search, retrieval and action tools."""

import json
from datetime import datetime, timezone

import pytest

from jmap_mcp.tools.email import EmailTools


@pytest.mark.asyncio
class TestListAccounts:
    async def test_lists_capabilities(self, mixed_registry) -> None:
        """Test that every account is listed with its flags."""
        registry, _ = mixed_registry

        result = json.loads(await EmailTools(registry).list_accounts())

        assert result == {
            "accounts": [
                {"name": "alice", "isReadOnly": False, "hasSubmission": True},
                {"name": "bob", "isReadOnly": True, "hasSubmission": False},
            ]
        }


@pytest.mark.asyncio
class TestSearchEmails:
    async def test_builds_filter(self, registry, fake_server) -> None:
        """Test that only given filters are sent, dates as UTC."""
        fake_server.results["Email/query"] = {"ids": ["e1"], "total": 1, "position": 0}

        result = json.loads(
            await EmailTools(registry).search_emails(
                query="invoice",
                from_address="boss@x.io",
                after=datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc),
            )
        )

        (args,) = fake_server.calls_to("Email/query")
        assert args["accountId"] == "A1"
        assert args["filter"] == {
            "text": "invoice",
            "from": "boss@x.io",
            "after": "2024-01-15T10:00:00Z",
        }
        assert args["sort"] == [{"property": "receivedAt", "isAscending": False}]
        assert result["ids"] == ["e1"]
        assert result["emails"] is None
        assert result["hasMore"] is False

    async def test_no_filter(self, registry, fake_server) -> None:
        """Test that a search without filters omits the filter argument."""
        await EmailTools(registry).search_emails()

        (args,) = fake_server.calls_to("Email/query")
        assert "filter" not in args

    async def test_pagination(self, registry, fake_server) -> None:
        """Test that hasMore reflects the remaining results."""
        fake_server.results["Email/query"] = {"ids": ["e3", "e4"], "total": 10, "position": 2}

        result = json.loads(await EmailTools(registry).search_emails(limit=2, position=2))

        assert result["position"] == 2
        assert result["hasMore"] is True

    async def test_fetch_details(self, registry, fake_server) -> None:
        """Test that details are summarized when requested."""
        fake_server.results["Email/query"] = {"ids": ["e1"], "total": 1}
        fake_server.results["Email/get"] = {
            "list": [
                {
                    "id": "e1",
                    "from": [{"email": "a@x.io"}],
                    "to": [{"email": "me@x.io"}],
                    "subject": "Hi",
                    "preview": "Hello",
                    "receivedAt": "2024-01-01T00:00:00Z",
                    "keywords": {"$seen": True},
                }
            ]
        }

        result = json.loads(await EmailTools(registry).search_emails(fetch_details=True))

        assert result["emails"] == [
            {
                "id": "e1",
                "from": "a@x.io",
                "to": "me@x.io",
                "subject": "Hi",
                "preview": "Hello",
                "receivedAt": "2024-01-01T00:00:00Z",
                "isRead": True,
                "isFlagged": False,
            }
        ]

    async def test_limit_out_of_range(self, registry, fake_server) -> None:
        """Test that an invalid limit is reported without a server call."""
        result = await EmailTools(registry).search_emails(limit=500)

        assert result == "Invalid input: limit must be between 1 and 100"
        assert fake_server.calls == []

    async def test_unknown_account(self, registry) -> None:
        """Test that an unknown account is reported as text."""
        result = await EmailTools(registry).search_emails(account="nobody")

        assert result.startswith("Account not found:")
        assert "alice" in result

    async def test_routes_to_named_account(self, mixed_registry) -> None:
        """Test that the account argument picks the account id."""
        registry, server = mixed_registry

        await EmailTools(registry).search_emails(account="bob")

        assert server.calls_to("Email/query")[0]["accountId"] == "B1"

    async def test_server_error(self, registry, fake_server) -> None:
        """Test that method errors come back as text."""
        fake_server.errors["Email/query"] = "unsupportedFilter"

        result = await EmailTools(registry).search_emails(query="x")

        assert result == "Email server error: Email/query failed: unsupportedFilter"


@pytest.mark.asyncio
class TestReadTools:
    async def test_get_mailboxes(self, registry, fake_server) -> None:
        """Test mailbox listing with a parent filter."""
        fake_server.results["Mailbox/query"] = {"ids": ["m1"], "total": 1, "position": 0}
        fake_server.results["Mailbox/get"] = {"list": [{"id": "m1", "name": "Inbox"}]}

        result = json.loads(await EmailTools(registry).get_mailboxes(parent_id="root"))

        assert fake_server.calls_to("Mailbox/query")[0]["filter"] == {"parentId": "root"}
        assert result["mailboxes"] == [{"id": "m1", "name": "Inbox"}]
        assert result["hasMore"] is False

    async def test_get_emails(self, registry, fake_server) -> None:
        """Test retrieval by id with selected properties."""
        fake_server.results["Email/get"] = {"list": [{"id": "e1"}], "notFound": ["e2"]}

        result = json.loads(
            await EmailTools(registry).get_emails(["e1", "e2"], properties=["id", "subject"])
        )

        (args,) = fake_server.calls_to("Email/get")
        assert args["properties"] == ["id", "subject"]
        assert args["fetchTextBodyValues"] is True
        assert result == {"emails": [{"id": "e1"}], "notFound": ["e2"]}

    async def test_get_emails_requires_ids(self, registry) -> None:
        """Test that an empty id list is rejected."""
        result = await EmailTools(registry).get_emails([])

        assert result.startswith("Invalid input:")

    async def test_get_threads(self, registry, fake_server) -> None:
        """Test thread retrieval."""
        fake_server.results["Thread/get"] = {"list": [{"id": "t1", "emailIds": ["e1"]}]}

        result = json.loads(await EmailTools(registry).get_threads(["t1"]))

        assert result["threads"] == [{"id": "t1", "emailIds": ["e1"]}]

    async def test_get_identities(self, registry, fake_server) -> None:
        """Test identity listing."""
        fake_server.results["Identity/get"] = {
            "list": [{"id": "i1", "name": "Alice", "email": "alice@x.io", "mayDelete": False}]
        }

        result = json.loads(await EmailTools(registry).get_identities())

        assert result["identities"][0]["email"] == "alice@x.io"
        assert result["identities"][0]["name"] == "Alice"

    async def test_inbox_summary(self, registry, fake_server) -> None:
        """Test inbox counts and recent unread previews."""
        fake_server.results["Mailbox/query"] = {"ids": ["inbox"]}
        fake_server.results["Mailbox/get"] = {
            "list": [{"id": "inbox", "name": "Inbox", "totalEmails": 7, "unreadEmails": 2}]
        }
        fake_server.results["Email/query"] = {"ids": ["e1"]}
        fake_server.results["Email/get"] = {
            "list": [{"id": "e1", "from": [{"email": "a@x.io"}], "subject": "Hi"}]
        }

        result = json.loads(await EmailTools(registry).get_inbox_summary(limit=3))

        query = fake_server.calls_to("Email/query")[0]
        assert query["filter"] == {"inMailbox": "inbox", "notKeyword": "$seen"}
        assert query["limit"] == 3
        assert result["totalEmails"] == 7
        assert result["unreadEmails"] == 2
        assert result["recentUnread"] == [
            {"id": "e1", "from": "a@x.io", "subject": "Hi", "preview": "", "receivedAt": ""}
        ]

    async def test_inbox_missing(self, registry) -> None:
        """Test the message when the server has no inbox role."""
        result = await EmailTools(registry).get_inbox_summary()

        assert result == "Invalid input: inbox mailbox not found"

    async def test_inbox_details_missing(self, registry, fake_server) -> None:
        """Test the message when the inbox id resolves to no mailbox."""
        fake_server.results["Mailbox/query"] = {"ids": ["inbox"]}
        fake_server.results["Mailbox/get"] = {"list": [], "notFound": ["inbox"]}

        result = await EmailTools(registry).get_inbox_summary()

        assert result == "Invalid input: inbox mailbox not found"
        assert fake_server.calls_to("Email/query") == []


@pytest.mark.asyncio
class TestActionTools:
    async def test_mark_seen_and_unflag(self, registry, fake_server) -> None:
        """Test keyword patches for read and unflag."""
        fake_server.results["Email/set"] = {"updated": {"e1": None}}

        result = json.loads(
            await EmailTools(registry).mark_emails(["e1"], seen=True, flagged=False)
        )

        (args,) = fake_server.calls_to("Email/set")
        assert args["update"] == {"e1": {"keywords/$seen": True, "keywords/$flagged": None}}
        assert result["updated"] == {"e1": None}

    async def test_mark_needs_a_change(self, registry) -> None:
        """Test that mark_emails without seen or flagged is rejected."""
        result = await EmailTools(registry).mark_emails(["e1"])

        assert result.startswith("Invalid input:")

    async def test_move(self, registry, fake_server) -> None:
        """Test that move replaces the mailbox set."""
        await EmailTools(registry).move_emails(["e1", "e2"], "archive")

        (args,) = fake_server.calls_to("Email/set")
        assert args["update"] == {
            "e1": {"mailboxIds": {"archive": True}},
            "e2": {"mailboxIds": {"archive": True}},
        }

    async def test_delete(self, registry, fake_server) -> None:
        """Test that delete destroys the given ids."""
        fake_server.results["Email/set"] = {"destroyed": ["e1"]}

        result = json.loads(await EmailTools(registry).delete_emails(["e1"]))

        assert fake_server.calls_to("Email/set")[0]["destroy"] == ["e1"]
        assert result["destroyed"] == ["e1"]

    @pytest.mark.parametrize("action", ["mark", "move", "delete"])
    async def test_read_only_account_denied(self, mixed_registry, action) -> None:
        """Test that actions on a read-only account are refused before any call."""
        registry, server = mixed_registry
        tools = EmailTools(registry)
        calls = {
            "mark": lambda: tools.mark_emails(["e1"], account="bob", seen=True),
            "move": lambda: tools.move_emails(["e1"], "m1", account="bob"),
            "delete": lambda: tools.delete_emails(["e1"], account="bob"),
        }

        result = await calls[action]()

        assert result == "Permission denied: account 'bob' does not have write access"
        assert server.calls == []
