"""Async JMAP client on top of httpx."""

import logging
from types import TracebackType
from typing import Any

import httpx

from jmap_mcp.exceptions import JmapMethodError
from jmap_mcp.jmap.models import MAIL_CAPABILITY, JmapSession

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0

# (method name, arguments, call id)
MethodCall = tuple[str, dict[str, Any], str]


class JmapClient:
    """Client for one JMAP session.

    The client always authenticates with a Bearer token. Accounts that need a
    different scheme get it from the transport (see ``JmapAuthTransport``).

    Args:
        session_url: URL of the JMAP session resource.
        bearer_token: Token sent in the ``Authorization`` header.
        transport: Optional httpx transport; defaults to httpx's own.
        timeout: Request timeout in seconds.
    """

    def __init__(
        self,
        session_url: str,
        bearer_token: str,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.session_url = session_url
        self._http = httpx.AsyncClient(
            transport=transport,
            timeout=timeout,
            headers={
                "Authorization": f"Bearer {bearer_token}",
                "Accept": "application/json",
            },
        )
        self._session: JmapSession | None = None

    async def __aenter__(self) -> "JmapClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def get_session(self) -> JmapSession:
        """Fetch the session descriptor, cached after the first success.

        Raises:
            httpx.HTTPError: On transport failures or non-2xx responses.
            ValueError: If the body is not JSON or not a valid session.
        """
        if self._session is None:
            response = await self._http.get(self.session_url)
            response.raise_for_status()
            self._session = JmapSession.model_validate(response.json())
            logger.debug(
                "Fetched JMAP session (username=%s, api_url=%s)",
                self._session.username,
                self._session.api_url,
            )
        return self._session

    async def get_primary_account(self, capability: str = MAIL_CAPABILITY) -> str:
        """Return the account id the server designates primary for a capability.

        Raises:
            LookupError: If the server names no primary account for it.
        """
        session = await self.get_session()
        account_id = session.primary_accounts.get(capability)
        if not account_id:
            raise LookupError(f"server reports no primary account for {capability}")
        return account_id

    async def request(self, method_calls: list[MethodCall]) -> list[dict[str, Any]]:
        """Send a batch of method calls and return their response arguments.

        Responses are returned in call order. A method-level ``error`` response
        raises ``JmapMethodError`` for the first failing call.
        """
        session = await self.get_session()
        payload = {
            "using": session.using(),
            "methodCalls": [list(call) for call in method_calls],
        }
        response = await self._http.post(session.api_url, json=payload)
        response.raise_for_status()
        body = response.json()

        results: list[dict[str, Any]] = []
        for name, arguments, call_id in body.get("methodResponses", []):
            if name == "error":
                method = next((m for m, _, cid in method_calls if cid == call_id), call_id)
                raise JmapMethodError(
                    method, arguments.get("type", "unknown"), arguments.get("description")
                )
            results.append(arguments)
        return results

    async def call(self, method: str, arguments: dict[str, Any]) -> dict[str, Any]:
        """Invoke a single JMAP method and return its response arguments."""
        results = await self.request([(method, arguments, "c0")])
        if not results:
            raise JmapMethodError(method, "emptyResponse")
        return results[0]
