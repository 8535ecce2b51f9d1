"""carequery - client-side data synchronization for the care dashboard API."""

from contextlib import suppress

from carequery.cache import ResourceCache
from carequery.context import SyncContext, create_context

# Duration parsing
from carequery.duration import parse_duration, parse_stale_after
from carequery.errors import HttpError, NetworkError, TransportError, Unauthorized
from carequery.hooks import (
    BoundMutation,
    QueryHandle,
    ResourceHooks,
    create_resource_hooks,
    crud_mutations,
)
from carequery.keys import define_keys, is_key_prefix, make_key
from carequery.mutations import MutationCoordinator, MutationDescriptor
from carequery.session import On401, SessionPolicy, SessionState

# Token stores
from carequery.stores import MemoryTokenStore, TokenStore
from carequery.transport import AuthenticatedTransport

# Core types
from carequery.types import (
    ABSENT,
    CacheEntry,
    CacheStatus,
    Duration,
    QueryKey,
    QueryState,
)

# Optional stores - only available when dependencies are installed
with suppress(ImportError):
    from carequery.stores import RedisTokenStore

__version__ = "0.1.0"

__all__ = [
    "ABSENT",
    "AuthenticatedTransport",
    "BoundMutation",
    "CacheEntry",
    "CacheStatus",
    "Duration",
    "HttpError",
    "MemoryTokenStore",
    "MutationCoordinator",
    "MutationDescriptor",
    "NetworkError",
    "On401",
    "QueryHandle",
    "QueryKey",
    "QueryState",
    "RedisTokenStore",
    "ResourceCache",
    "ResourceHooks",
    "SessionPolicy",
    "SessionState",
    "SyncContext",
    "TokenStore",
    "TransportError",
    "Unauthorized",
    "create_context",
    "create_resource_hooks",
    "crud_mutations",
    "define_keys",
    "is_key_prefix",
    "make_key",
    "parse_duration",
    "parse_stale_after",
]
