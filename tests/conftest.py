"""Shared fixtures: an in-process fake JMAP server behind httpx.MockTransport."""

import json
from collections.abc import AsyncIterator, Callable
from typing import Any

import httpx
import pytest
import pytest_asyncio

from jmap_mcp.accounts.credentials import AccountCredential
from jmap_mcp.accounts.registry import AccountRegistry
from jmap_mcp.accounts.session import open_account_session
from jmap_mcp.jmap.models import CORE_CAPABILITY, MAIL_CAPABILITY, SUBMISSION_CAPABILITY
from jmap_mcp.jmap.transport import basic_auth_header

SESSION_URL = "https://mail.example.com/.well-known/jmap"
API_URL = "https://mail.example.com/jmap/api/"

MethodResult = dict[str, Any] | Callable[[dict[str, Any]], dict[str, Any]]


def make_session(
    account_id: str = "A1",
    *,
    read_only: bool = False,
    submission: bool = True,
    mail: bool = True,
    primary: str | None = None,
    api_url: str = API_URL,
    extra_accounts: dict[str, dict[str, Any]] | None = None,
) -> dict[str, Any]:
    """Build a session descriptor in JMAP wire format."""
    capabilities: dict[str, Any] = {CORE_CAPABILITY: {"maxCallsInRequest": 16}}
    if mail:
        capabilities[MAIL_CAPABILITY] = {}
    if submission:
        capabilities[SUBMISSION_CAPABILITY] = {}
    accounts = {
        account_id: {
            "name": f"{account_id}@example.com",
            "isPersonal": True,
            "isReadOnly": read_only,
            "accountCapabilities": dict.fromkeys(capabilities, {}),
        },
        **(extra_accounts or {}),
    }
    return {
        "capabilities": capabilities,
        "accounts": accounts,
        "primaryAccounts": {MAIL_CAPABILITY: primary or account_id},
        "username": f"{account_id}@example.com",
        "apiUrl": api_url,
        "downloadUrl": "https://mail.example.com/jmap/download/{accountId}/{blobId}/{name}",
        "uploadUrl": "https://mail.example.com/jmap/upload/{accountId}/",
        "eventSourceUrl": "https://mail.example.com/jmap/eventsource/",
        "state": "s1",
    }


class FakeJmapServer:
    """Request handler for ``httpx.MockTransport`` that speaks a little JMAP.

    Sessions can be chosen per ``Authorization`` header so several accounts
    can share one endpoint. Method results are looked up by method name.
    """

    def __init__(
        self,
        session: dict[str, Any] | None = None,
        *,
        sessions_by_auth: dict[str, dict[str, Any]] | None = None,
        results: dict[str, MethodResult] | None = None,
        errors: dict[str, str] | None = None,
    ) -> None:
        self.session = session or make_session()
        self.sessions_by_auth = sessions_by_auth or {}
        self.results = results or {}
        self.errors = errors or {}
        self.requests: list[httpx.Request] = []
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def calls_to(self, method: str) -> list[dict[str, Any]]:
        return [args for name, args in self.calls if name == method]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        if request.method == "GET" and url == SESSION_URL:
            auth = request.headers.get("Authorization", "")
            return httpx.Response(200, json=self.sessions_by_auth.get(auth, self.session))
        if request.method == "POST" and url.startswith(API_URL):
            body = json.loads(request.content)
            responses = []
            for name, arguments, call_id in body["methodCalls"]:
                self.calls.append((name, arguments))
                if name in self.errors:
                    responses.append(["error", {"type": self.errors[name]}, call_id])
                    continue
                result = self.results.get(name, {})
                if callable(result):
                    result = result(arguments)
                responses.append([name, result, call_id])
            return httpx.Response(200, json={"methodResponses": responses, "sessionState": "s1"})
        return httpx.Response(404, json={"type": "about:blank", "status": 404})


@pytest.fixture
def fake_server() -> FakeJmapServer:
    return FakeJmapServer()


async def open_session(
    server: FakeJmapServer, name: str = "alice", secret: str | None = None
):
    credential = AccountCredential(name=name, secret=secret or f"{name}:pw")
    return await open_account_session(credential, SESSION_URL, transport=server.transport())


@pytest_asyncio.fixture
async def registry(fake_server: FakeJmapServer) -> AsyncIterator[AccountRegistry]:
    """Registry with one writable account, ``alice``, backed by ``fake_server``."""
    reg = AccountRegistry([await open_session(fake_server)])
    yield reg
    await reg.aclose()


@pytest_asyncio.fixture
async def mixed_registry() -> AsyncIterator[tuple[AccountRegistry, FakeJmapServer]]:
    """Registry with ``alice`` (read-write, submission) and ``bob`` (read-only)."""
    server = FakeJmapServer(
        sessions_by_auth={
            basic_auth_header("alice", "pw"): make_session("A1"),
            basic_auth_header("bob", "pw"): make_session("B1", read_only=True),
        }
    )
    reg = AccountRegistry([await open_session(server, "alice"), await open_session(server, "bob")])
    yield reg, server
    await reg.aclose()


@pytest.fixture
def session_url() -> str:
    return SESSION_URL


@pytest.fixture
def session_payload() -> Callable[..., dict[str, Any]]:
    """Factory for session descriptors, see ``make_session``."""
    return make_session


@pytest.fixture
def jmap_server() -> Callable[..., FakeJmapServer]:
    """Factory for fake servers with custom sessions or method results."""
    return FakeJmapServer


@pytest.fixture
def account_session():
    """Factory that opens an ``AccountSession`` against a fake server."""
    return open_session
