"""Tests for MCP server protocol flow and startup."""

import json
import os
from collections.abc import AsyncIterator
from dataclasses import replace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import pytest_asyncio
from fastmcp import Client

from jmap_mcp.accounts.registry import AccountRegistry
from jmap_mcp.server import run_server
from jmap_mcp.tools._app import build_instructions, create_server


@pytest_asyncio.fixture
async def client(registry) -> AsyncIterator[Client]:
    async with Client(create_server(registry)) as c:
        yield c


@pytest.mark.asyncio
class TestToolDiscovery:
    async def test_lists_all_tools(self, client: Client) -> None:
        tools = await client.list_tools()
        assert {t.name for t in tools} == {
            "list_accounts",
            "search_emails",
            "get_mailboxes",
            "get_emails",
            "get_threads",
            "get_identities",
            "get_inbox_summary",
            "mark_emails",
            "move_emails",
            "delete_emails",
            "create_draft",
            "update_draft",
            "send_email",
            "reply_to_email",
            "send_draft",
        }

    async def test_each_tool_has_description(self, client: Client) -> None:
        tools = await client.list_tools()
        for tool in tools:
            assert tool.description, f"{tool.name} has no description"

    async def test_account_parameter_is_optional(self, client: Client) -> None:
        tools = {t.name: t for t in await client.list_tools()}
        schema = tools["search_emails"].inputSchema
        assert "account" in schema["properties"]
        assert "account" not in schema.get("required", [])
        assert "self" not in schema["properties"]

    async def test_read_only_server_hides_actions(self, registry) -> None:
        read_only = AccountRegistry(
            [replace(registry.default, is_read_only=True, has_submission=False)]
        )
        async with Client(create_server(read_only)) as c:
            names = {t.name for t in await c.list_tools()}

        assert "search_emails" in names
        assert "delete_emails" not in names
        assert "send_email" not in names


@pytest.mark.asyncio
class TestToolCalls:
    async def test_list_accounts(self, client: Client) -> None:
        result = await client.call_tool("list_accounts", {})
        assert json.loads(result.data)["accounts"][0]["name"] == "alice"

    async def test_search_emails(self, client: Client, fake_server) -> None:
        fake_server.results["Email/query"] = {"ids": ["e1", "e2"], "total": 2}

        result = await client.call_tool("search_emails", {"query": "invoice", "limit": 10})

        assert json.loads(result.data)["ids"] == ["e1", "e2"]
        assert fake_server.calls_to("Email/query")[0]["filter"] == {"text": "invoice"}

    async def test_unknown_account_is_text(self, client: Client) -> None:
        result = await client.call_tool("get_identities", {"account": "nobody"})
        assert result.data.startswith("Account not found:")


class TestInstructions:
    def test_names_accounts_and_sections(self) -> None:
        registry = MagicMock(
            names=["alice", "bob"], any_write_access=True, any_submission=False
        )
        registry.__len__.return_value = 2
        registry.default.name = "alice"

        text = build_instructions(registry)

        assert "Configured accounts (2): alice, bob" in text
        assert "mark_emails" in text
        assert "send_email" not in text


@pytest.mark.asyncio
class TestRunServer:
    async def test_config_error_exits_with_hint(self, tmp_path, monkeypatch, capsys) -> None:
        monkeypatch.chdir(tmp_path)
        with patch.dict(os.environ, {"XDG_CONFIG_HOME": str(tmp_path)}, clear=True):
            code = await run_server()

        assert code == 1
        err = capsys.readouterr().err
        assert "JMAP connection failed: missing required environment variable" in err
        assert "JMAP_SESSION_URL" in err

    async def test_serves_then_closes_registry(self, tmp_path, monkeypatch) -> None:
        monkeypatch.chdir(tmp_path)
        registry = MagicMock(names=["alice"])
        registry.aclose = AsyncMock()
        mcp = MagicMock()
        mcp.run_async = AsyncMock()

        with (
            patch.dict(os.environ, {"XDG_CONFIG_HOME": str(tmp_path)}, clear=True),
            patch("jmap_mcp.server.build_registry", AsyncMock(return_value=registry)),
            patch("jmap_mcp.server.create_server", return_value=mcp),
        ):
            code = await run_server()

        assert code == 0
        mcp.run_async.assert_awaited_once_with(transport="stdio", show_banner=False)
        registry.aclose.assert_awaited_once()
