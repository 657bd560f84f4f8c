"""Credential storage backends."""

from qwen_code_proxy.config.settings import ConfigurationError
from qwen_code_proxy.config.store import StoreSettings

from .base import KeyValueStore
from .credentials import CredentialStore
from .file import FileKeyValueStore
from .memory import MemoryKeyValueStore
from .models import AccountCredential, FailedAccountSet


def build_key_value_store(settings: StoreSettings) -> KeyValueStore:
    """Create the backend selected by ``settings.backend``."""
    if settings.backend == "memory":
        return MemoryKeyValueStore()
    if settings.backend == "redis":
        if not settings.redis_url:
            raise ConfigurationError("store.redis_url is required for the redis backend")
        from .redis import RedisKeyValueStore

        return RedisKeyValueStore.from_url(settings.redis_url)
    return FileKeyValueStore(settings.resolved_path)


def build_credential_store(settings: StoreSettings) -> CredentialStore:
    return CredentialStore(build_key_value_store(settings))


__all__ = [
    "AccountCredential",
    "CredentialStore",
    "FailedAccountSet",
    "FileKeyValueStore",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "build_credential_store",
    "build_key_value_store",
]
