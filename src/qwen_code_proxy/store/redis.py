"""Redis-backed key-value store for multi-instance deployments."""

from typing import Any

from redis.asyncio import from_url as redis_from_url

from .base import KeyValueStore


class RedisKeyValueStore(KeyValueStore):
    """Shared store on top of a ``redis.asyncio`` client.

    Plain GET/SET/DEL with no transactions, so instances never coordinate.
    """

    def __init__(self, redis_client: Any, url: str = "") -> None:
        self._redis = redis_client
        self._url = url

    @classmethod
    def from_url(cls, redis_url: str) -> "RedisKeyValueStore":
        client = redis_from_url(redis_url, decode_responses=True)
        return cls(redis_client=client, url=redis_url)

    async def get(self, key: str) -> str | None:
        value = await self._redis.get(key)
        if value is None:
            return None
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return str(value)

    async def put(self, key: str, value: str) -> None:
        await self._redis.set(key, value)

    async def delete(self, key: str) -> bool:
        return bool(await self._redis.delete(key))

    async def list_keys(self, prefix: str = "") -> list[str]:
        keys: list[str] = []
        async for key in self._redis.scan_iter(match=f"{prefix}*"):
            keys.append(key.decode("utf-8") if isinstance(key, bytes) else key)
        return keys

    async def close(self) -> None:
        await self._redis.aclose()

    def get_location(self) -> str:
        return self._url or "redis"
