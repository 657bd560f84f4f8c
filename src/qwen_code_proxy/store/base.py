"""Abstract base class for key-value storage."""

from abc import ABC, abstractmethod


class KeyValueStore(ABC):
    """Abstract interface for the shared key-value store.

    Implementations provide no locking. Concurrent writers to the same key
    race and the last writer wins.
    """

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Load a value.

        Returns:
            Stored string, or None if the key does not exist

        """

    @abstractmethod
    async def put(self, key: str, value: str) -> None:
        """Store a value, overwriting any previous one."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a key.

        Returns:
            True if the key existed, False otherwise

        """

    @abstractmethod
    async def list_keys(self, prefix: str = "") -> list[str]:
        """List keys starting with ``prefix`` in the backend's natural order."""

    async def close(self) -> None:  # noqa: B027
        """Release backend resources."""

    @abstractmethod
    def get_location(self) -> str:
        """Get a human-readable description of where data is stored."""
