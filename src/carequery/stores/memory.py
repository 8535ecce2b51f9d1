"""In-memory token store."""

import asyncio


class MemoryTokenStore:
    """Async in-memory key-value store, the default token home."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> str | None:
        """Get the stored value for key."""
        async with self._lock:
            return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        """Store a value under key."""
        async with self._lock:
            self._data[key] = value

    async def delete(self, key: str) -> None:
        """Remove key."""
        async with self._lock:
            self._data.pop(key, None)

    async def disconnect(self) -> None:
        """Disconnect from the storage backend (no-op for memory)."""
        pass
