"""Mutations: a write plus the cache keys it affects."""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from carequery.cache import KeyLike, ResourceCache
from carequery.errors import TransportError
from carequery.keys import as_key, serialize_key
from carequery.transport import AuthenticatedTransport
from carequery.types import ABSENT, JSON, QueryKey

logger = logging.getLogger(__name__)

Patcher = Callable[[QueryKey, Any, Any], Any]


@dataclass(frozen=True, slots=True)
class MutationDescriptor:
    """Declares one write and its effect on the cache.

    ``url`` and ``invalidates`` may be callables of the mutation payload.
    ``body`` maps the payload to the JSON request body (default: the payload
    itself). ``files`` maps it to a multipart upload, with ``body`` then
    supplying the form fields. ``optimistic(key, current, payload)`` returns the patched
    value for a declared key; ``rollback(key, snapshot, payload)`` returns the
    value to restore when the write fails (default: the snapshot).
    """

    name: str
    method: str
    url: str | Callable[[Any], str]
    invalidates: Sequence[KeyLike] | Callable[[Any], Sequence[KeyLike]] = ()
    body: Callable[[Any], Any] | None = None
    files: Callable[[Any], dict[str, Any]] | None = None
    optimistic: Patcher | None = None
    rollback: Patcher | None = None
    parse_json: bool = True

    def url_for(self, payload: Any) -> str:
        return self.url(payload) if callable(self.url) else self.url

    def keys_for(self, payload: Any) -> list[QueryKey]:
        keys = self.invalidates(payload) if callable(self.invalidates) else self.invalidates
        return [as_key(k) for k in keys]

    def body_for(self, payload: Any) -> Any:
        if self.body is not None:
            return self.body(payload)
        return None if self.files is not None else payload


@dataclass(slots=True)
class _Snapshot:
    """Value of a key just before this mutation patched it."""

    value: Any
    revision: int | None  # cache revision when taken
    patch_no: int  # this mutation's patch in the per-key sequence
    alone: bool  # no other optimistic mutation on the key was pending


class MutationCoordinator:
    """Runs writes through the transport and reconciles the cache afterwards.

    Invalidation happens only after the call settles. An optimistic patch is
    always either confirmed (by invalidating, so the next read fetches server
    truth) or undone before mutate() returns. A snapshot is restored only
    when nothing else wrote the key since it was taken; otherwise the key is
    invalidated, since the snapshot may hold another write's patch or predate
    newer server data.
    """

    def __init__(self, transport: AuthenticatedTransport, cache: ResourceCache) -> None:
        self._transport = transport
        self._cache = cache
        self._pending: Counter[str] = Counter()
        self._optimistic_pending: Counter[QueryKey] = Counter()
        self._patches: Counter[QueryKey] = Counter()

    def is_pending(self, name: str) -> bool:
        return self._pending[name] > 0

    async def mutate(self, descriptor: MutationDescriptor, payload: Any = None) -> JSON:
        """Execute descriptor with payload.

        Returns:
            The decoded response body.

        Raises:
            TransportError: the write failed; optimistic patches were undone.
        """
        keys = descriptor.keys_for(payload)
        snapshots: dict[QueryKey, _Snapshot] = {}
        if descriptor.optimistic is not None:
            self._apply_optimistic(descriptor, descriptor.optimistic, keys, payload, snapshots)

        self._pending[descriptor.name] += 1
        try:
            result = await self._transport.send(
                descriptor.method,
                descriptor.url_for(payload),
                descriptor.body_for(payload),
                files=descriptor.files(payload) if descriptor.files is not None else None,
                parse_json=descriptor.parse_json,
                strict=True,
            )
        except BaseException as e:
            self._rollback(descriptor, snapshots, payload)
            if isinstance(e, TransportError):
                logger.warning("Failed to %s: %s", descriptor.name, e)
            raise
        finally:
            self._pending[descriptor.name] -= 1

        self._release(snapshots)
        for key in keys:
            self._cache.invalidate(key)
        logger.debug("%s succeeded, invalidated %d keys", descriptor.name, len(keys))
        return result

    def _apply_optimistic(
        self,
        descriptor: MutationDescriptor,
        patcher: Patcher,
        keys: list[QueryKey],
        payload: Any,
        snapshots: dict[QueryKey, _Snapshot],
    ) -> None:
        try:
            for key in keys:
                value = self._cache.snapshot(key)
                if value is ABSENT:
                    continue
                revision = self._cache.revision(key)
                self._cache.set_optimistic(
                    key, lambda current, k=key: patcher(k, current, payload)
                )
                self._patches[key] += 1
                snapshots[key] = _Snapshot(
                    value=value,
                    revision=revision,
                    patch_no=self._patches[key],
                    alone=self._optimistic_pending[key] == 0,
                )
                self._optimistic_pending[key] += 1
        except Exception:
            self._rollback(descriptor, snapshots, payload)
            raise

    def _release(self, snapshots: dict[QueryKey, _Snapshot]) -> None:
        for key in snapshots:
            self._optimistic_pending[key] -= 1
            if self._optimistic_pending[key] <= 0:
                del self._optimistic_pending[key]

    def _rollback(
        self,
        descriptor: MutationDescriptor,
        snapshots: dict[QueryKey, _Snapshot],
        payload: Any,
    ) -> None:
        self._release(snapshots)
        for key, snapshot in snapshots.items():
            untouched = (
                snapshot.alone
                and self._optimistic_pending[key] == 0
                and self._patches[key] == snapshot.patch_no
                and self._cache.revision(key) == snapshot.revision
            )
            if not untouched:
                logger.debug("%s changed since the patch, invalidating", serialize_key(key))
                self._cache.invalidate(key)
                continue
            restored = snapshot.value
            if descriptor.rollback is not None:
                restored = descriptor.rollback(key, snapshot.value, payload)
            self._cache.rollback(key, restored)


__all__ = ["MutationCoordinator", "MutationDescriptor"]
