"""Parsing of ``name:secret`` account credentials from configuration text."""

import logging
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field, SecretStr

from jmap_mcp.exceptions import ConfigError, CredentialFormatError

logger = logging.getLogger(__name__)

DEFAULT_ACCOUNT_NAME = "default"


class AccountCredential(BaseModel):
    """A configured account before any network contact.

    Attributes:
        name: Account name used to address the account from tools.
        secret: Either ``username:password`` or an opaque bearer token.
        account_id: Explicit JMAP account id; skips primary account discovery.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    secret: SecretStr
    account_id: str | None = None


def _parse_multi(blob: str) -> list[tuple[str, str]]:
    entries = [line.strip() for line in blob.split("\n")]
    parsed = []
    for entry in entries:
        if not entry:
            continue
        name, sep, _ = entry.partition(":")
        if not sep:
            raise CredentialFormatError(entry)
        if not name:
            raise ConfigError("account name cannot be empty")
        parsed.append((name, entry))
    return parsed


def _parse_single(token: str) -> tuple[str, str]:
    name, sep, _ = token.partition(":")
    if not sep:
        return DEFAULT_ACCOUNT_NAME, token
    if not name:
        raise ConfigError("account name cannot be empty")
    return name, token


def parse_credentials(
    bearer_tokens: str | None,
    bearer_token: str | None,
    account_id: str | None = None,
    account_ids: Mapping[str, str] | None = None,
) -> list[AccountCredential]:
    """Build the ordered account list from configuration text.

    The multi-account form takes precedence; the single-account form is only
    consulted when it is absent or blank.

    Args:
        bearer_tokens: Newline-separated ``name:secret`` entries.
        bearer_token: A single ``name:secret`` pair or opaque token.
        account_id: Account id override for the first account.
        account_ids: Per-account id overrides keyed by account name.

    Returns:
        Credentials in configuration order. The first one is the default.

    Raises:
        CredentialFormatError: If a multi-account entry has no ``:``.
        ConfigError: If nothing is configured or a name is empty.
    """
    if bearer_tokens and bearer_tokens.strip():
        pairs = _parse_multi(bearer_tokens)
    elif bearer_token and bearer_token.strip():
        pairs = [_parse_single(bearer_token.strip())]
    else:
        raise ConfigError(
            "missing required environment variables: JMAP_BEARER_TOKEN or JMAP_BEARER_TOKENS"
        )

    overrides = dict(account_ids or {})
    credentials: list[AccountCredential] = []
    for index, (name, secret) in enumerate(pairs):
        override = overrides.get(name) or (account_id if index == 0 else None)
        credentials.append(
            AccountCredential(name=name, secret=SecretStr(secret), account_id=override)
        )

    unknown = set(overrides) - {name for name, _ in pairs}
    if unknown:
        logger.warning("Ignoring account id overrides for unknown accounts: %s", sorted(unknown))

    return credentials
