"""Base protocol for token storage backends."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class TokenStore(Protocol):
    """Async key-value store holding the bearer token."""

    async def get(self, key: str) -> str | None:
        """Get the stored value for key."""
        ...

    async def set(self, key: str, value: str) -> None:
        """Store a value under key."""
        ...

    async def delete(self, key: str) -> None:
        """Remove key."""
        ...

    async def disconnect(self) -> None:
        """Release backend resources."""
        ...
