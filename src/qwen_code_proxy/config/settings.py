"""Settings configuration for the Qwen proxy server."""

import contextlib
import os
import tomllib
from pathlib import Path
from typing import Any

import orjson
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .oauth import OAuthSettings
from .provider import ProviderSettings
from .security import SecuritySettings
from .server import ServerSettings
from .store import StoreSettings


__all__ = [
    "CONFIG_FILE_ENV",
    "CONFIG_OVERRIDES_ENV",
    "ConfigurationError",
    "Settings",
    "get_settings",
]

CONFIG_FILE_ENV = "QWEN_PROXY_CONFIG_FILE"
CONFIG_OVERRIDES_ENV = "QWEN_PROXY_CONFIG_OVERRIDES"


class ConfigurationError(Exception):
    """Raised when configuration loading or validation fails."""


class Settings(BaseSettings):
    """
    Configuration settings for the Qwen proxy.

    Settings are loaded from environment variables (prefix ``QWEN_PROXY_``,
    nested sections separated by ``__``), a ``.env`` file, and an optional TOML
    file. Values from the TOML file and from CLI overrides take precedence over
    the environment.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="QWEN_PROXY_",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__",
    )

    server: ServerSettings = Field(default_factory=ServerSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    provider: ProviderSettings = Field(default_factory=ProviderSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)

    @property
    def server_url(self) -> str:
        """Get the complete server URL."""
        return f"http://{self.server.host}:{self.server.port}"

    def model_dump_safe(self) -> dict[str, Any]:
        """Dump settings with secrets masked."""
        data = self.model_dump(mode="json")
        security = data.get("security", {})
        if security.get("api_keys"):
            security["api_keys"] = "***"
        if security.get("admin_secret"):
            security["admin_secret"] = "***"
        return data

    @classmethod
    def load_toml_config(cls, toml_path: Path) -> dict[str, Any]:
        """Load configuration from a TOML file.

        Raises:
            ConfigurationError: If the TOML file is invalid or cannot be read
        """
        try:
            with toml_path.open("rb") as f:
                return tomllib.load(f)
        except OSError as e:
            raise ConfigurationError(f"Cannot read config file {toml_path}: {e}") from e
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"Invalid TOML in {toml_path}: {e}") from e

    @classmethod
    def from_config(
        cls, config_path: Path | str | None = None, **overrides: Any
    ) -> "Settings":
        """Build settings from an optional TOML file plus explicit overrides.

        Values from the TOML file are passed as init kwargs, so they override
        environment variables for the keys they set.
        """
        file_data: dict[str, Any] = {}
        if config_path is None:
            env_path = os.environ.get(CONFIG_FILE_ENV)
            config_path = Path(env_path) if env_path else None
        if config_path is not None:
            file_data = cls.load_toml_config(Path(config_path).expanduser())

        for section, values in overrides.items():
            if isinstance(values, dict):
                file_data.setdefault(section, {}).update(values)
            else:
                file_data[section] = values

        return cls(**file_data)


def get_settings(config_path: Path | str | None = None) -> Settings:
    """Get a settings instance with configuration file support.

    CLI overrides are read from the ``QWEN_PROXY_CONFIG_OVERRIDES`` environment
    variable (JSON object) so that a uvicorn app factory sees the same values
    the ``serve`` command was given.
    """
    cli_overrides: dict[str, Any] = {}
    overrides_json = os.environ.get(CONFIG_OVERRIDES_ENV)
    if overrides_json:
        with contextlib.suppress(orjson.JSONDecodeError):
            cli_overrides = orjson.loads(overrides_json)

    try:
        return Settings.from_config(config_path=config_path, **cli_overrides)
    except ValueError as e:
        raise ConfigurationError(f"Configuration error: {e}") from e
