"""Token stores for carequery sessions."""

from contextlib import suppress

from carequery.stores.base import TokenStore
from carequery.stores.memory import MemoryTokenStore

# Optional stores - only available when dependencies are installed
with suppress(ImportError):
    from carequery.stores.redis import RedisTokenStore

__all__ = [
    "MemoryTokenStore",
    "RedisTokenStore",
    "TokenStore",
]
