"""ResourceCache - in-memory query cache keyed by QueryKey.

Provides:
- get_or_fetch(): cached read with in-flight de-duplication and
  stale-while-revalidate
- invalidate(): mark entries stale by key or key prefix, without fetching
- set_optimistic(), rollback(): latency-hiding writes used by mutations
- set_data(), evict(), clear(): escape hatches
- subscribe(): change notifications per key prefix
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, TypeVar, cast

from carequery.duration import parse_stale_after
from carequery.keys import as_key, is_key_prefix, serialize_key
from carequery.types import (
    ABSENT,
    CacheEntry,
    CacheStatus,
    Duration,
    Primitive,
    QueryKey,
    QueryState,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

KeyLike = QueryKey | Iterable[Primitive] | str
Listener = Callable[[QueryState[Any]], None]

_UNSET: Any = object()


def _now() -> int:
    return int(time.time() * 1000)


def _consume_exception(future: asyncio.Future[Any]) -> None:
    # The error is recorded on the entry; keep asyncio from reporting it twice.
    if not future.cancelled():
        future.exception()


class ResourceCache:
    """Single-event-loop cache of API resources.

    Every write to an entry goes through this class. For a given key at most
    one fetch is outstanding; late callers join the pending future.
    """

    def __init__(self, *, default_stale_after: Duration | None = None) -> None:
        self._default_stale_after = parse_stale_after(default_stale_after)
        self._entries: dict[QueryKey, CacheEntry[Any]] = {}
        self._listeners: list[tuple[QueryKey, Listener]] = []
        self._background_tasks: set[asyncio.Task[None]] = set()
        self._revisions = itertools.count(1)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get_or_fetch(
        self,
        key: KeyLike,
        fetcher: Callable[[], Awaitable[T]],
        *,
        stale_after: Duration | None = _UNSET,
        background: bool = False,
    ) -> T:
        """Return the cached value for key, fetching it if missing or stale.

        Args:
            key: QueryKey of the resource
            fetcher: Coroutine function producing the authoritative value
            stale_after: Freshness window for this entry (default: cache default)
            background: Return a stale value immediately and refresh it in a
                background task instead of waiting

        Returns:
            Cached or fresh value. Fetch failures propagate to every caller
            sharing the request; the previous value stays in the entry.
        """
        entry = self._entry(as_key(key))
        if stale_after is not _UNSET:
            entry.stale_after = parse_stale_after(stale_after)

        if entry.in_flight is not None:
            logger.debug("Joining in-flight fetch for %s", serialize_key(entry.key))
            return cast(T, await asyncio.shield(entry.in_flight))

        if entry.status is CacheStatus.SUCCESS:
            if not self._is_stale(entry):
                logger.debug("Cache hit for %s", serialize_key(entry.key))
                return cast(T, entry.value)
            if background:
                logger.debug("Serving stale %s, refreshing", serialize_key(entry.key))
                self._start_fetch(entry, fetcher)
                return cast(T, entry.value)

        logger.debug("Cache miss for %s", serialize_key(entry.key))
        future = self._start_fetch(entry, fetcher)
        return cast(T, await asyncio.shield(future))

    async def refetch(self, key: KeyLike, fetcher: Callable[[], Awaitable[T]]) -> T:
        """Fetch key now regardless of freshness (joins a pending fetch)."""
        entry = self._entry(as_key(key))
        future = entry.in_flight or self._start_fetch(entry, fetcher)
        return cast(T, await asyncio.shield(future))

    def peek(self, key: KeyLike) -> QueryState[Any] | None:
        """Current state of key without fetching, or None if never accessed."""
        entry = self._entries.get(as_key(key))
        if entry is None:
            return None
        return self._state(entry)

    def state(self, key: KeyLike) -> QueryState[Any]:
        """Current state of key; an idle, empty state if never accessed."""
        key = as_key(key)
        return self.peek(key) or QueryState(
            key=key,
            data=None,
            status=CacheStatus.IDLE,
            error=None,
            is_stale=True,
            last_fetched_at=None,
        )

    def keys(self) -> list[QueryKey]:
        return list(self._entries)

    def revision(self, key: KeyLike) -> int | None:
        """Token that changes whenever key is fetched, set, invalidated or
        evicted. None if the key has no entry."""
        entry = self._entries.get(as_key(key))
        return entry.revision if entry is not None else None

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def invalidate(self, key_or_prefix: KeyLike) -> int:
        """Mark every entry equal to or under key_or_prefix as stale.

        Performs no fetch; the next get_or_fetch() on an affected key does.
        Returns the number of entries affected.
        """
        prefix = as_key(key_or_prefix)
        count = 0
        for entry in self._matching(prefix):
            entry.invalidated = True
            entry.generation += 1
            entry.revision = next(self._revisions)
            count += 1
            self._notify(entry)
        logger.debug("Invalidated %d entries under %s", count, serialize_key(prefix))
        return count

    def set_optimistic(self, key: KeyLike, updater: Callable[[Any], Any]) -> Any:
        """Replace the value with updater(current) without touching status."""
        entry = self._entry(as_key(key))
        current = entry.value if entry.has_value else None
        entry.value = updater(current)
        self._notify(entry)
        return entry.value

    def rollback(self, key: KeyLike, previous: Any) -> None:
        """Restore a value captured before an optimistic update.

        ``previous`` may be ABSENT, restoring an entry that had no value.
        """
        entry = self._entry(as_key(key))
        entry.value = previous
        self._notify(entry)

    def snapshot(self, key: KeyLike) -> Any:
        """Current raw value of key, ABSENT if there is none."""
        entry = self._entries.get(as_key(key))
        return entry.value if entry is not None else ABSENT

    def set_data(self, key: KeyLike, value: Any) -> None:
        """Store an authoritative value obtained outside get_or_fetch().

        A fetch already pending for key still resolves for its callers but
        does not overwrite this value.
        """
        entry = self._entry(as_key(key))
        entry.value = value
        entry.status = CacheStatus.SUCCESS
        entry.error = None
        entry.invalidated = False
        entry.last_fetched_at = _now()
        entry.revision = next(self._revisions)
        entry.epoch += 1
        self._notify(entry)

    def evict(self, key_or_prefix: KeyLike) -> int:
        """Drop entries equal to or under key_or_prefix.

        An entry whose fetch is still pending is emptied rather than removed,
        so later readers join that fetch instead of starting another. Its
        result reaches the waiting callers but is not stored.
        """
        prefix = as_key(key_or_prefix)
        dropped = self._matching(prefix)
        for entry in dropped:
            self._drop(entry)
        logger.debug("Evicted %d entries under %s", len(dropped), serialize_key(prefix))
        return len(dropped)

    def clear(self) -> None:
        """Drop every entry, as evict(()) does."""
        for entry in list(self._entries.values()):
            self._drop(entry)

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def subscribe(self, key_or_prefix: KeyLike, listener: Listener) -> Callable[[], None]:
        """Call listener with the new state whenever a matching entry changes.

        Returns a function that removes the subscription.
        """
        item = (as_key(key_or_prefix), listener)
        self._listeners.append(item)

        def unsubscribe() -> None:
            if item in self._listeners:
                self._listeners.remove(item)

        return unsubscribe

    async def wait_idle(self) -> None:
        """Wait for every pending fetch, including background refreshes."""
        while self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _entry(self, key: QueryKey) -> CacheEntry[Any]:
        entry = self._entries.get(key)
        if entry is None:
            entry = CacheEntry(key=key, stale_after=self._default_stale_after)
            self._entries[key] = entry
        return entry

    def _matching(self, prefix: QueryKey) -> list[CacheEntry[Any]]:
        return [e for k, e in self._entries.items() if is_key_prefix(prefix, k)]

    def _is_stale(self, entry: CacheEntry[Any]) -> bool:
        """Explicitly invalidated, or older than its freshness window."""
        if entry.invalidated or entry.last_fetched_at is None:
            return True
        if entry.stale_after is None:
            return False
        return _now() - entry.last_fetched_at > entry.stale_after

    def _state(self, entry: CacheEntry[Any]) -> QueryState[Any]:
        return QueryState(
            key=entry.key,
            data=entry.value if entry.has_value else None,
            status=entry.status,
            error=entry.error,
            is_stale=self._is_stale(entry),
            last_fetched_at=entry.last_fetched_at,
        )

    def _drop(self, entry: CacheEntry[Any]) -> None:
        entry.value = ABSENT
        entry.error = None
        entry.last_fetched_at = None
        entry.invalidated = False
        entry.revision = next(self._revisions)
        if entry.in_flight is None:
            entry.status = CacheStatus.IDLE
            del self._entries[entry.key]
        else:
            # Keep the pending future so readers still share one request.
            entry.epoch += 1
        self._notify(entry)

    def _start_fetch(
        self,
        entry: CacheEntry[Any],
        fetcher: Callable[[], Awaitable[Any]],
    ) -> asyncio.Future[Any]:
        """Register the single in-flight request for entry and run it as a task.

        The fetch runs in its own task so a caller that stops waiting does not
        cancel it; the result is stored either way.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future[Any] = loop.create_future()
        future.add_done_callback(_consume_exception)
        previous_status = entry.status
        entry.in_flight = future
        entry.status = CacheStatus.LOADING
        self._notify(entry)

        task = asyncio.create_task(
            self._run_fetch(entry, fetcher, future, previous_status, entry.generation, entry.epoch)
        )
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        return future

    async def _run_fetch(
        self,
        entry: CacheEntry[Any],
        fetcher: Callable[[], Awaitable[Any]],
        future: asyncio.Future[Any],
        previous_status: CacheStatus,
        generation: int,
        epoch: int,
    ) -> None:
        try:
            value = await fetcher()
        except asyncio.CancelledError:
            entry.in_flight = None
            self._settle_without_value(entry, epoch, previous_status)
            future.cancel()
            self._notify(entry)
            raise
        except Exception as e:
            logger.debug("Fetch failed for %s: %s", serialize_key(entry.key), e)
            entry.in_flight = None
            if entry.epoch == epoch:
                entry.status = CacheStatus.ERROR
                entry.error = e
            else:
                self._settle_without_value(entry, epoch, previous_status)
            future.set_exception(e)
        else:
            entry.in_flight = None
            if entry.epoch == epoch:
                entry.value = value
                entry.status = CacheStatus.SUCCESS
                entry.error = None
                entry.last_fetched_at = _now()
                entry.revision = next(self._revisions)
                # An invalidation that raced this fetch keeps the entry stale.
                entry.invalidated = entry.generation != generation
            else:
                logger.debug("Discarding superseded fetch for %s", serialize_key(entry.key))
                self._settle_without_value(entry, epoch, previous_status)
            future.set_result(value)
        self._notify(entry)

    def _settle_without_value(
        self,
        entry: CacheEntry[Any],
        epoch: int,
        previous_status: CacheStatus,
    ) -> None:
        """Leave LOADING without storing anything from the fetch."""
        if entry.epoch == epoch:
            entry.status = previous_status
        elif entry.status is CacheStatus.LOADING:
            entry.status = CacheStatus.SUCCESS if entry.has_value else CacheStatus.IDLE

    def _notify(self, entry: CacheEntry[Any]) -> None:
        if not self._listeners:
            return
        state = self._state(entry)
        for prefix, listener in list(self._listeners):
            if is_key_prefix(prefix, entry.key):
                try:
                    listener(state)
                except Exception:
                    logger.exception("Cache listener failed for %s", serialize_key(entry.key))


__all__ = ["ResourceCache"]
