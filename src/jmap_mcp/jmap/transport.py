"""Per-account HTTP transport that adapts authentication for JMAP servers.

Some deployments put a ``username:password`` pair into the bearer token slot.
The JMAP client only knows how to send ``Authorization: Bearer``, so this
transport rewrites the header to HTTP Basic for requests aimed at the JMAP
server. It also repairs session descriptors whose ``apiUrl`` points at the
plain-HTTP backend port instead of the public HTTPS endpoint.

Each account owns its own transport instance, so credentials never leak
between accounts.
"""

import base64
import json
import logging
from urllib.parse import urlsplit, urlunsplit

import httpx

logger = logging.getLogger(__name__)

JMAP_URL_KEYWORD = "jmap"
SESSION_URL_MARKERS = ("session", ".well-known/jmap")
INSECURE_SCHEME = "http"
SECURE_SCHEME = "https"
BACKEND_PORT = 8080

# Headers that describe the original body encoding and go stale on rewrite
_STALE_BODY_HEADERS = ("content-length", "content-encoding", "transfer-encoding")


def split_basic_credentials(secret: str) -> tuple[str, str] | None:
    """Split ``username:password`` on the first colon.

    Returns:
        ``(username, password)``, or None for an opaque bearer token.
    """
    if ":" not in secret:
        return None
    username, password = secret.split(":", 1)
    return username, password


def basic_auth_header(username: str, password: str) -> str:
    token = base64.b64encode(f"{username}:{password}".encode()).decode("ascii")
    return f"Basic {token}"


def repair_api_url(api_url: str) -> str:
    """Point a backend ``http://host:8080`` API URL at the public HTTPS endpoint.

    Only the scheme and port of the URL itself are considered; path and query
    are never rewritten. Any other URL is returned as-is.
    """
    parts = urlsplit(api_url)
    try:
        port = parts.port
    except ValueError:
        return api_url
    if parts.scheme != INSECURE_SCHEME or port != BACKEND_PORT:
        return api_url
    netloc = parts.netloc.rsplit(":", 1)[0]
    return urlunsplit((SECURE_SCHEME, netloc, parts.path, parts.query, parts.fragment))


class JmapAuthTransport(httpx.AsyncBaseTransport):
    """Transport wrapper that rewrites auth and repairs session responses.

    Only requests whose URL contains ``jmap`` or the session endpoint's
    hostname are touched. Everything else is forwarded untouched to the
    wrapped transport.

    Args:
        session_url: The configured JMAP session endpoint.
        secret: The stored credential. A ``username:password`` value enables
            Basic auth rewriting; an opaque token is sent as a Bearer token.
        transport: Transport that performs the actual I/O.
    """

    def __init__(
        self,
        session_url: str,
        secret: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._hostname = urlsplit(session_url).hostname or ""
        self._transport = transport or httpx.AsyncHTTPTransport()
        basic = split_basic_credentials(secret)
        self._authorization = basic_auth_header(*basic) if basic else None

    @property
    def uses_basic_auth(self) -> bool:
        return self._authorization is not None

    def matches(self, url: str) -> bool:
        """Whether a request URL is aimed at the configured JMAP server."""
        return JMAP_URL_KEYWORD in url or bool(self._hostname and self._hostname in url)

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if not self.matches(url):
            return await self._transport.handle_async_request(request)

        if self._authorization and "Authorization" in request.headers:
            request.headers["Authorization"] = self._authorization

        response = await self._transport.handle_async_request(request)

        if any(marker in url for marker in SESSION_URL_MARKERS):
            return await self._repair_session_response(response)
        return response

    async def _repair_session_response(self, response: httpx.Response) -> httpx.Response:
        body = await response.aread()
        try:
            data = json.loads(body)
        except ValueError:
            return response

        if not isinstance(data, dict):
            return response
        api_url = data.get("apiUrl")
        if not isinstance(api_url, str):
            return response

        repaired = repair_api_url(api_url)
        if repaired == api_url:
            return response

        logger.debug("Rewrote session apiUrl %s -> %s", api_url, repaired)
        data["apiUrl"] = repaired
        headers = [
            (name, value)
            for name, value in response.headers.multi_items()
            if name.lower() not in _STALE_BODY_HEADERS
        ]
        return httpx.Response(
            status_code=response.status_code,
            headers=headers,
            content=json.dumps(data).encode(),
            extensions=response.extensions,
        )

    async def aclose(self) -> None:
        await self._transport.aclose()
