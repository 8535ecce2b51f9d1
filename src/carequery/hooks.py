"""ResourceHooks - generic per-resource bindings over a SyncContext.

Provides:
- QueryHandle: read accessor for one QueryKey (fetch, state, subscribe)
- BoundMutation: a MutationDescriptor bound to a context
- ResourceHooks: collection handle, item handles and named mutations
- create_resource_hooks(): factory used by every resource module
- crud_mutations(): the create/update/delete descriptors most resources share
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from carequery.cache import KeyLike, Listener
from carequery.keys import as_key
from carequery.mutations import MutationDescriptor
from carequery.session import On401
from carequery.types import JSON, Duration, Primitive, QueryKey, QueryState

if TYPE_CHECKING:
    from carequery.context import SyncContext

T = TypeVar("T")

_DEFAULT: Any = object()


class QueryHandle(Generic[T]):
    """Read accessor for a single QueryKey."""

    __slots__ = ("_ctx", "_on401", "_params", "_stale_after", "key", "url")

    def __init__(
        self,
        ctx: SyncContext,
        key: QueryKey,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        on401: On401 | str | None = None,
        stale_after: Duration | None = _DEFAULT,
    ) -> None:
        self._ctx = ctx
        self.key = key
        self.url = url
        self._params = params
        self._on401 = on401
        self._stale_after = stale_after

    async def _fetch(self) -> T:
        return await self._ctx.transport.get(
            self.url, params=self._params, on401=self._on401
        )

    async def fetch(self, *, background: bool = False) -> T:
        """Cached read; fetches when missing or stale."""
        if self._stale_after is _DEFAULT:
            return await self._ctx.cache.get_or_fetch(
                self.key, self._fetch, background=background
            )
        return await self._ctx.cache.get_or_fetch(
            self.key, self._fetch, stale_after=self._stale_after, background=background
        )

    async def refetch(self) -> T:
        return await self._ctx.cache.refetch(self.key, self._fetch)

    def read(self) -> QueryState[T]:
        """Current value, loading flag and error, without fetching."""
        return self._ctx.cache.state(self.key)

    @property
    def data(self) -> T | None:
        return self.read().data

    @property
    def is_loading(self) -> bool:
        return self.read().is_loading

    @property
    def error(self) -> BaseException | None:
        return self.read().error

    def invalidate(self) -> int:
        return self._ctx.cache.invalidate(self.key)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self._ctx.cache.subscribe(self.key, listener)

    def __repr__(self) -> str:
        return f"QueryHandle({self.key!r} -> {self.url})"


class BoundMutation:
    """A mutation descriptor bound to a context."""

    __slots__ = ("_ctx", "descriptor")

    def __init__(self, ctx: SyncContext, descriptor: MutationDescriptor) -> None:
        self._ctx = ctx
        self.descriptor = descriptor

    async def __call__(self, payload: Any = None) -> JSON:
        return await self._ctx.coordinator.mutate(self.descriptor, payload)

    @property
    def is_pending(self) -> bool:
        return self._ctx.coordinator.is_pending(self.descriptor.name)


class ResourceHooks(Generic[T]):
    """Bindings for one resource type.

    Usage:
        hooks = create_resource_hooks(ctx, ("planItems",), url="/api/plan-items",
                                      mutations=crud_mutations(...))
        items = await hooks.fetch()
        await hooks.create({"title": "Walk"})
        hooks.read().is_loading
    """

    def __init__(
        self,
        ctx: SyncContext,
        key: QueryKey,
        url: str,
        *,
        item_url: str | None = None,
        mutations: dict[str, MutationDescriptor] | None = None,
        on401: On401 | str | None = None,
        stale_after: Duration | None = _DEFAULT,
    ) -> None:
        self._ctx = ctx
        self.key = key
        self.url = url
        self._item_url = item_url
        self._on401 = on401
        self._stale_after = stale_after
        self.collection: QueryHandle[T] = self.view()
        self.mutations = {
            name: BoundMutation(ctx, descriptor)
            for name, descriptor in (mutations or {}).items()
        }

    def view(
        self,
        *suffix: Primitive,
        url: str | None = None,
        params: dict[str, Any] | None = None,
    ) -> QueryHandle[Any]:
        """Handle for key + suffix, e.g. a filtered listing."""
        return QueryHandle(
            self._ctx,
            as_key((*self.key, *suffix)),
            url or self.url,
            params=params,
            on401=self._on401,
            stale_after=self._stale_after,
        )

    def item(self, item_id: Primitive) -> QueryHandle[Any]:
        """Handle for a single member, keyed under the collection key."""
        if self._item_url is None:
            raise TypeError(f"{self.key!r} has no item endpoint")
        return self.view(item_id, url=self._item_url.format(id=item_id))

    async def fetch(self, *, background: bool = False) -> T:
        return await self.collection.fetch(background=background)

    async def refetch(self) -> T:
        return await self.collection.refetch()

    def read(self) -> QueryState[T]:
        return self.collection.read()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self.collection.subscribe(listener)

    def invalidate(self) -> int:
        """Invalidate the collection and every item and view under it."""
        return self._ctx.cache.invalidate(self.key)

    async def mutate(self, name: str, payload: Any = None) -> JSON:
        return await self.mutation(name)(payload)

    def mutation(self, name: str) -> BoundMutation:
        try:
            return self.mutations[name]
        except KeyError:
            raise AttributeError(f"{self.key!r} has no mutation {name!r}") from None

    def __getattr__(self, name: str) -> BoundMutation:
        if name.startswith("_") or "mutations" not in self.__dict__:
            raise AttributeError(name)
        return self.mutation(name)


def create_resource_hooks(
    ctx: SyncContext,
    key: KeyLike,
    *,
    url: str,
    item_url: str | None = None,
    mutations: dict[str, MutationDescriptor] | None = None,
    on401: On401 | str | None = None,
    stale_after: Duration | None = _DEFAULT,
) -> ResourceHooks[Any]:
    """Build the bindings for one resource type."""
    return ResourceHooks(
        ctx,
        as_key(key),
        url,
        item_url=item_url,
        mutations=mutations,
        on401=on401,
        stale_after=stale_after,
    )


def _without_id(payload: dict[str, Any]) -> dict[str, Any]:
    # {"id": ..., "data": {...}} wraps the fields; a plain "data" field does not.
    if payload.keys() == {"id", "data"} and isinstance(payload["data"], dict):
        return dict(payload["data"])
    return {k: v for k, v in payload.items() if k != "id"}


def crud_mutations(
    label: str,
    url: str,
    invalidates: Sequence[KeyLike],
    *,
    update_method: str = "PUT",
) -> dict[str, MutationDescriptor]:
    """Create/update/delete descriptors for a REST collection at url.

    create takes the new record, update takes ``{"id": ..., **fields}``
    (or ``{"id": ..., "data": {...}}``), delete takes the id.
    """
    return {
        "create": MutationDescriptor(
            name=f"create {label}",
            method="POST",
            url=url,
            invalidates=invalidates,
        ),
        "update": MutationDescriptor(
            name=f"update {label}",
            method=update_method,
            url=lambda p: f"{url}/{p['id']}",
            body=_without_id,
            invalidates=invalidates,
        ),
        "delete": MutationDescriptor(
            name=f"delete {label}",
            method="DELETE",
            url=lambda item_id: f"{url}/{item_id}",
            body=lambda _: None,
            invalidates=invalidates,
        ),
    }


__all__ = [
    "BoundMutation",
    "QueryHandle",
    "ResourceHooks",
    "create_resource_hooks",
    "crud_mutations",
]
