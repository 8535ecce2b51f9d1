"""Core types for carequery."""

from dataclasses import dataclass, field
from enum import Enum
from typing import (
    TYPE_CHECKING,
    Any,
    Generic,
    NewType,
    TypeVar,
)

T = TypeVar("T")

Primitive = str | int | float | bool | None

# Branded key type - compile-time enforcement only
if TYPE_CHECKING:
    QueryKey = NewType("QueryKey", tuple[Primitive, ...])
else:
    QueryKey = tuple


class CacheStatus(str, Enum):
    """Lifecycle of a cache entry."""

    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


# Marker for "no value yet"; distinct from a cached None
ABSENT: Any = object()


@dataclass(slots=True)
class CacheEntry(Generic[T]):
    """A cached value with metadata. Owned by ResourceCache."""

    key: QueryKey
    value: T = ABSENT
    status: CacheStatus = CacheStatus.IDLE
    last_fetched_at: int | None = None  # Unix timestamp ms
    stale_after: int | None = None  # ms; None means manual invalidation only
    error: BaseException | None = None
    invalidated: bool = False
    generation: int = 0  # bumped by every invalidate()
    revision: int = 0  # changes on every authoritative write, unique per cache
    epoch: int = 0  # a pending fetch started in an older epoch is not stored
    in_flight: Any = field(default=None, repr=False)  # asyncio.Future while loading

    @property
    def has_value(self) -> bool:
        return self.value is not ABSENT


@dataclass(frozen=True, slots=True)
class QueryState(Generic[T]):
    """Read-only view of an entry, handed to UI bindings."""

    key: QueryKey
    data: T | None
    status: CacheStatus
    error: BaseException | None
    is_stale: bool
    last_fetched_at: int | None

    @property
    def is_loading(self) -> bool:
        return self.status is CacheStatus.LOADING

    @property
    def is_error(self) -> bool:
        return self.status is CacheStatus.ERROR


# Duration type alias
Duration = str | int  # "30s", "5m", "2h", "1d" or milliseconds

JSON = Any
