"""Redis token store, for tokens shared between worker processes."""

from __future__ import annotations

from typing import Any


class RedisTokenStore:
    """Async Redis-backed token store."""

    def __init__(
        self,
        client: Any,  # redis.asyncio.Redis
        *,
        prefix: str = "carequery",
    ) -> None:
        self._client = client
        self._prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}:session:{key}"

    async def get(self, key: str) -> str | None:
        """Get the stored value for key."""
        data = await self._client.get(self._key(key))
        if data is None:
            return None
        if isinstance(data, bytes):
            return data.decode()
        return str(data)

    async def set(self, key: str, value: str) -> None:
        """Store a value under key. Tokens do not expire in the store."""
        await self._client.set(self._key(key), value)

    async def delete(self, key: str) -> None:
        """Remove key."""
        await self._client.delete(self._key(key))

    async def disconnect(self) -> None:
        """Close the Redis connection."""
        await self._client.aclose()
