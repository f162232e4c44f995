"""Opening one authenticated JMAP session per configured account."""

from dataclasses import dataclass

import httpx
import structlog
from pydantic import ValidationError

from jmap_mcp.accounts.capabilities import classify_capabilities
from jmap_mcp.accounts.credentials import AccountCredential
from jmap_mcp.exceptions import CapabilityError, ConnectivityError
from jmap_mcp.jmap.client import DEFAULT_TIMEOUT, JmapClient
from jmap_mcp.jmap.models import JmapSession
from jmap_mcp.jmap.transport import JmapAuthTransport, split_basic_credentials

logger = structlog.get_logger()


@dataclass(frozen=True)
class AccountSession:
    """A live, capability-annotated session for one account.

    Attributes:
        name: Configured account name.
        client: JMAP client owning this account's HTTP transport.
        account_id: Server-side id of the mail data set in use.
        is_read_only: Whether the server reports the account as read-only.
        has_submission: Whether sending is available for this account.
    """

    name: str
    client: JmapClient
    account_id: str
    is_read_only: bool
    has_submission: bool

    @property
    def mode(self) -> str:
        return "read-only" if self.is_read_only else "read-write"


def create_client(
    credential: AccountCredential,
    session_url: str,
    transport: httpx.AsyncBaseTransport | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> JmapClient:
    """Build a JMAP client whose transport adapts this account's credential.

    For ``username:password`` secrets the client is handed the password as its
    nominal bearer token; the transport replaces it with Basic auth.
    """
    secret = credential.secret.get_secret_value()
    basic = split_basic_credentials(secret)
    bearer_token = basic[1] if basic else secret
    auth_transport = JmapAuthTransport(session_url, secret, transport=transport)
    return JmapClient(session_url, bearer_token, transport=auth_transport, timeout=timeout)


async def _resolve_session(
    credential: AccountCredential, client: JmapClient
) -> tuple[str, JmapSession]:
    try:
        account_id = credential.account_id or await client.get_primary_account()
        session = await client.get_session()
    except httpx.HTTPStatusError as e:
        raise ConnectivityError(
            credential.name, f"session request failed with HTTP {e.response.status_code}"
        ) from e
    except httpx.HTTPError as e:
        raise ConnectivityError(credential.name, f"cannot reach session endpoint: {e}") from e
    except ValidationError as e:
        raise ConnectivityError(credential.name, "malformed session descriptor") from e
    except ValueError as e:
        raise ConnectivityError(credential.name, f"invalid session response: {e}") from e
    except LookupError as e:
        raise ConnectivityError(credential.name, str(e)) from e

    if account_id not in session.accounts:
        raise ConnectivityError(
            credential.name, f"account id '{account_id}' is not in the session's account list"
        )
    return account_id, session


async def open_account_session(
    credential: AccountCredential,
    session_url: str,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> AccountSession:
    """Open and classify the JMAP session for one account.

    Args:
        credential: The parsed account credential.
        session_url: JMAP session endpoint.
        transport: Transport that performs the I/O; httpx's default if None.
        timeout: Request timeout in seconds.

    Raises:
        ConnectivityError: If the session cannot be fetched or is inconsistent.
        CapabilityError: If the server does not offer JMAP mail.
    """
    client = create_client(credential, session_url, transport=transport, timeout=timeout)
    try:
        account_id, session = await _resolve_session(credential, client)
        flags = classify_capabilities(
            session.capabilities.keys(), session.accounts[account_id]
        )
        if not flags.is_mail:
            raise CapabilityError(credential.name)
    except Exception:
        await client.aclose()
        raise

    account_session = AccountSession(
        name=credential.name,
        client=client,
        account_id=account_id,
        is_read_only=flags.is_read_only,
        has_submission=flags.has_submission,
    )
    logger.info(
        "Initialized account",
        account=credential.name,
        mode=account_session.mode,
        submission=flags.has_submission,
    )
    return account_session
