"""Custom exceptions for jmap-mcp."""


class JmapMcpError(Exception):
    """Base exception for jmap-mcp."""


class ConfigError(JmapMcpError):
    """Raised when there is a configuration error."""


class CredentialFormatError(ConfigError):
    """Raised when a credential entry is not in ``name:secret`` form.

    Only a short preview of the entry is kept so the full secret never ends
    up in logs or tracebacks.
    """

    PREVIEW_LENGTH = 20

    def __init__(self, entry: str) -> None:
        self.preview = entry[: self.PREVIEW_LENGTH]
        super().__init__(f'invalid token format, expected "username:password", got: {self.preview}')


class ConnectivityError(JmapMcpError):
    """Raised when a JMAP session cannot be established."""

    def __init__(self, account: str, reason: str) -> None:
        self.account = account
        self.reason = reason
        super().__init__(f"account '{account}': {reason}")


class CapabilityError(JmapMcpError):
    """Raised when an account lacks the mandatory mail capability."""

    def __init__(self, account: str) -> None:
        self.account = account
        super().__init__(f"account '{account}' does not support jmap mail capabilities")


class AccountNotFoundError(JmapMcpError, LookupError):
    """Raised when a requested account is not configured."""

    def __init__(self, account: str, available: list[str]) -> None:
        self.account = account
        self.available = available
        super().__init__(
            f"account '{account}' not found. available accounts: {', '.join(available)}"
        )


class PermissionDeniedError(JmapMcpError):
    """Raised when an operation is not permitted for an account."""

    def __init__(self, account: str, capability: str) -> None:
        self.account = account
        self.capability = capability
        super().__init__(f"account '{account}' does not have {capability} access")


class JmapMethodError(JmapMcpError):
    """Raised when the server answers a method call with an ``error`` response."""

    def __init__(self, method: str, error_type: str, description: str | None = None) -> None:
        self.method = method
        self.error_type = error_type
        self.description = description
        message = f"{method} failed: {error_type}"
        if description:
            message += f" ({description})"
        super().__init__(message)
