"""Configuration settings for jmap-mcp using pydantic-settings."""

import logging
import os
import sys
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

import structlog
import yaml
from pydantic import SecretStr, ValidationError, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from jmap_mcp.accounts.credentials import AccountCredential, parse_credentials
from jmap_mcp.exceptions import ConfigError
from jmap_mcp.jmap.client import DEFAULT_TIMEOUT


class YamlConfigSettingsSource(PydanticBaseSettingsSource):
    """Settings source that loads configuration from a YAML file.

    Looks for config file in the following order:
    1. JMAP_CONFIG_FILE environment variable
    2. ./jmap-mcp.yaml (current directory)
    3. $XDG_CONFIG_HOME/jmap-mcp/config.yaml (defaults to ~/.config)
    """

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        """Get field value from YAML config."""
        yaml_data = self._load_yaml_config()
        field_value = yaml_data.get(field_name)
        return field_value, field_name, False

    def __call__(self) -> dict[str, Any]:
        """Return all settings from YAML config."""
        return self._load_yaml_config()

    def _load_yaml_config(self) -> dict[str, Any]:
        """Load and cache YAML config file."""
        if not hasattr(self, "_yaml_data"):
            self._yaml_data = self._read_yaml_file()
        return self._yaml_data

    def _read_yaml_file(self) -> dict[str, Any]:
        xdg_config = os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config")
        config_paths = [
            os.environ.get("JMAP_CONFIG_FILE"),
            Path.cwd() / "jmap-mcp.yaml",
            Path(xdg_config) / "jmap-mcp" / "config.yaml",
        ]

        for path in config_paths:
            if not path:
                continue
            path_obj = Path(path)
            if not path_obj.exists():
                continue
            try:
                with open(path_obj) as f:
                    data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                mark = getattr(e, "problem_mark", None)
                location = f" at line {mark.line + 1}" if mark else ""
                raise ConfigError(
                    f"Configuration error in {path_obj}{location}: invalid YAML syntax"
                ) from e
            except OSError as e:
                raise ConfigError(f"Cannot read config file {path_obj}: {e}") from e
            if data is None:
                return {}
            if not isinstance(data, dict):
                raise ConfigError(f"Configuration error in {path_obj}: expected a mapping")
            return data

        return {}


class Settings(BaseSettings):
    """Application settings loaded from environment variables with JMAP_ prefix.

    Single account:
        JMAP_SESSION_URL=https://mail.example.com/.well-known/jmap
        JMAP_BEARER_TOKEN=alice@example.com:password

    Multiple accounts, one ``name:secret`` per line:
        JMAP_BEARER_TOKENS="alice@example.com:pw1
        bob@example.com:pw2"

    The same keys may be set in a YAML config file; environment wins.
    """

    model_config = SettingsConfigDict(env_prefix="JMAP_")

    session_url: str | None = None
    bearer_token: SecretStr | None = None
    bearer_tokens: SecretStr | None = None

    # Explicit account id overrides; skips primary account discovery
    account_id: str | None = None
    account_ids: dict[str, str] = {}

    request_timeout: float = DEFAULT_TIMEOUT
    log_level: str = "WARNING"

    @field_validator("session_url")
    @classmethod
    def _validate_session_url(cls, v: str | None) -> str | None:
        if v is None:
            return v
        parts = urlsplit(v)
        if parts.scheme not in ("http", "https") or not parts.hostname:
            raise ValueError("session_url must be an http(s) URL")
        return v

    @field_validator("request_timeout")
    @classmethod
    def _validate_request_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("request_timeout must be positive")
        return v

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown log level: {v}")
        return level

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings sources to include YAML config."""
        return (
            init_settings,
            env_settings,
            YamlConfigSettingsSource(settings_cls),
            dotenv_settings,
            file_secret_settings,
        )

    def require_session_url(self) -> str:
        if not self.session_url:
            raise ConfigError("missing required environment variable: JMAP_SESSION_URL")
        return self.session_url

    def get_credentials(self) -> list[AccountCredential]:
        """Parse the configured accounts in configuration order.

        Raises:
            ConfigError: If no credentials are configured or an entry is malformed.
        """
        return parse_credentials(
            self.bearer_tokens.get_secret_value() if self.bearer_tokens else None,
            self.bearer_token.get_secret_value() if self.bearer_token else None,
            account_id=self.account_id,
            account_ids=self.account_ids,
        )


def _describe_validation_error(error: ValidationError) -> str:
    """Convert a pydantic ValidationError into a one-line message."""
    errors = error.errors()
    if not errors:
        return "Unknown validation error"
    err = errors[0]
    loc = ".".join(str(part) for part in err.get("loc", ()))
    msg = err.get("msg", "")
    if loc:
        return f"Invalid value for '{loc}': {msg}"
    return msg


def get_settings_eager() -> Settings:
    """Load settings with eager validation at startup.

    Raises:
        ConfigError: If configuration is invalid, with a user-friendly message.
    """
    try:
        return Settings()
    except ValidationError as e:
        raise ConfigError(_describe_validation_error(e)) from e


def configure_logging(level: str = "WARNING") -> None:
    """Send stdlib and structlog output to stderr.

    stdout is reserved for the MCP stdio channel and CLI output.
    """
    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level)),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )
