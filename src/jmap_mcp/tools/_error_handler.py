"""Common error handling for MCP tools."""

import logging
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any

import httpx

from jmap_mcp.exceptions import (
    AccountNotFoundError,
    ConfigError,
    JmapMethodError,
    PermissionDeniedError,
)

logger = logging.getLogger(__name__)


def handle_tool_errors(
    func: Callable[..., Awaitable[str]],
) -> Callable[..., Awaitable[str]]:
    """Wrap an async MCP tool so per-call failures come back as text."""

    @wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> str:
        try:
            return await func(*args, **kwargs)
        except PermissionDeniedError as e:
            return f"Permission denied: {e}"
        except AccountNotFoundError as e:
            return f"Account not found: {e}"
        except ConfigError as e:
            return f"Configuration error: {e}"
        except JmapMethodError as e:
            return f"Email server error: {e}"
        except httpx.HTTPStatusError as e:
            return f"Email server returned HTTP {e.response.status_code}"
        except httpx.TimeoutException:
            return "Connection timed out. The email server did not respond."
        except httpx.HTTPError as e:
            return f"Could not reach email server: {e}"
        except ValueError as e:
            return f"Invalid input: {e}"
        except Exception:
            logger.exception("Unexpected error in tool %s", func.__name__)
            return "An unexpected error occurred. Check the server logs for details."

    return wrapper
