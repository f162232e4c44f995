"""Registry of initialized account sessions."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING

import httpx
import structlog

from jmap_mcp.accounts.session import AccountSession, open_account_session
from jmap_mcp.exceptions import AccountNotFoundError, ConfigError, PermissionDeniedError

if TYPE_CHECKING:
    from jmap_mcp.config import Settings

logger = structlog.get_logger()


@dataclass(frozen=True)
class AccountSummary:
    name: str
    is_read_only: bool
    has_submission: bool


class AccountRegistry:
    """Ordered, read-only mapping of account names to sessions.

    The first session is the default account. The registry is built once at
    startup and handed to every tool handler.
    """

    def __init__(self, sessions: Iterable[AccountSession]) -> None:
        ordered = list(sessions)
        _check_unique_names(s.name for s in ordered)
        by_name = {s.name: s for s in ordered}
        if not by_name:
            raise ConfigError("no accounts configured")
        self._sessions = MappingProxyType(by_name)

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self) -> Iterator[AccountSession]:
        return iter(self._sessions.values())

    @property
    def names(self) -> list[str]:
        return list(self._sessions)

    @property
    def default(self) -> AccountSession:
        return next(iter(self._sessions.values()))

    @property
    def any_write_access(self) -> bool:
        return any(not s.is_read_only for s in self)

    @property
    def any_submission(self) -> bool:
        return any(s.has_submission for s in self)

    def resolve(self, name: str | None = None) -> AccountSession:
        """Look up an account by exact name, or return the default account.

        Raises:
            AccountNotFoundError: If ``name`` is not configured.
        """
        if not name:
            return self.default
        session = self._sessions.get(name)
        if session is None:
            raise AccountNotFoundError(name, self.names)
        return session

    def require_write(self, name: str | None = None) -> AccountSession:
        session = self.resolve(name)
        if session.is_read_only:
            raise PermissionDeniedError(session.name, "write")
        return session

    def require_submission(self, name: str | None = None) -> AccountSession:
        session = self.resolve(name)
        if not session.has_submission:
            raise PermissionDeniedError(session.name, "submission")
        return session

    def list_all(self) -> list[AccountSummary]:
        return [
            AccountSummary(
                name=s.name,
                is_read_only=s.is_read_only,
                has_submission=s.has_submission,
            )
            for s in self
        ]

    async def aclose(self) -> None:
        for session in self:
            await session.client.aclose()


def _check_unique_names(names: Iterable[str]) -> None:
    seen: set[str] = set()
    for name in names:
        if name in seen:
            raise ConfigError(f"duplicate account name: {name}")
        seen.add(name)


async def build_registry(
    settings: Settings,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AccountRegistry:
    """Initialize every configured account, in order, and register it.

    Accounts are opened one at a time. The first failure closes the sessions
    opened so far and propagates; there is no partially available registry.

    Args:
        settings: Loaded application settings.
        transport: Transport for all accounts' I/O; each account gets its own
            httpx transport when None.

    Raises:
        ConfigError: If the configuration is missing or malformed, or an account
            name is configured twice.
        ConnectivityError: If a session cannot be established.
        CapabilityError: If an account lacks JMAP mail.
    """
    session_url = settings.require_session_url()
    credentials = settings.get_credentials()
    _check_unique_names([c.name for c in credentials])

    sessions: list[AccountSession] = []
    try:
        for credential in credentials:
            sessions.append(
                await open_account_session(
                    credential,
                    session_url,
                    transport=transport,
                    timeout=settings.request_timeout,
                )
            )
    except Exception:
        for session in sessions:
            await session.client.aclose()
        raise

    registry = AccountRegistry(sessions)
    logger.info(
        "Account registry ready",
        accounts=registry.names,
        write_access=registry.any_write_access,
        submission=registry.any_submission,
    )
    return registry
