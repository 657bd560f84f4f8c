"""Configuration module for the Qwen proxy."""

from .oauth import OAuthSettings
from .provider import ProviderSettings
from .security import SecuritySettings
from .server import ServerSettings
from .settings import ConfigurationError, Settings, get_settings
from .store import StoreSettings


__all__ = [
    "ConfigurationError",
    "OAuthSettings",
    "ProviderSettings",
    "SecuritySettings",
    "ServerSettings",
    "Settings",
    "StoreSettings",
    "get_settings",
]
