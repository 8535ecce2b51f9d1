"""SyncContext - the explicitly constructed home of the sync layer.

One context is created at application start-up and handed to every
resource binding. Tests build an independent context per case.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from types import TracebackType

import httpx

from carequery.cache import ResourceCache
from carequery.mutations import MutationCoordinator
from carequery.session import On401, SessionPolicy, SessionState
from carequery.stores.base import TokenStore
from carequery.stores.memory import MemoryTokenStore
from carequery.transport import AuthenticatedTransport
from carequery.types import Duration

logger = logging.getLogger(__name__)


class SyncContext:
    """Session, transport, cache and mutation coordinator for one client."""

    def __init__(
        self,
        *,
        session: SessionState,
        transport: AuthenticatedTransport,
        cache: ResourceCache,
    ) -> None:
        self.session = session
        self.transport = transport
        self.cache = cache
        self.coordinator = MutationCoordinator(transport, cache)

    @property
    def policy(self) -> SessionPolicy:
        return self.session.policy

    async def login(self, token: str) -> None:
        """Establish a new bearer token; every cached entry becomes stale."""
        await self.session.set_token(token)
        self.cache.invalidate(())
        logger.info("Session established")

    async def logout(self) -> None:
        """Forget the token and everything fetched with it."""
        await self.session.clear_token()
        self.cache.clear()
        logger.info("Session cleared")

    async def is_authenticated(self) -> bool:
        return await self.session.get_token() is not None

    async def aclose(self) -> None:
        """Wait for pending fetches, then close the HTTP client and store."""
        await self.cache.wait_idle()
        await self.transport.aclose()
        await self.session.store.disconnect()

    async def __aenter__(self) -> SyncContext:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()


def create_context(
    *,
    base_url: str = "",
    token_store: TokenStore | None = None,
    token_key: str = "auth_token",
    on401: On401 | str = On401.REDIRECT_TO_LOGIN,
    login_path: str = "/auth",
    navigate: Callable[[str], None] | None = None,
    default_stale_after: Duration | None = None,
    timeout: float = 30.0,
    client: httpx.AsyncClient | None = None,
) -> SyncContext:
    """Create a sync context.

    Args:
        base_url: Root of the JSON API
        token_store: Where the bearer token lives (default: in memory)
        token_key: Store key of the token
        on401: Default behaviour on 401 (returnEmpty, throwError, redirectToLogin)
        login_path: Navigation target for redirectToLogin
        navigate: Callable performing the navigation
        default_stale_after: Freshness window for entries (default: never stale
            until invalidated)
        timeout: HTTP timeout in seconds
        client: Pre-built httpx.AsyncClient (base_url and timeout are then ignored)

    Returns:
        SyncContext wiring session, transport, cache and mutations together
    """
    if timeout <= 0:
        raise ValueError("timeout must be positive")

    policy = SessionPolicy(on401, login_path=login_path, navigate=navigate)
    session = SessionState(
        token_store if token_store is not None else MemoryTokenStore(),
        policy,
        token_key=token_key,
    )
    transport = AuthenticatedTransport(
        session, base_url=base_url, timeout=timeout, client=client
    )
    cache = ResourceCache(default_stale_after=default_stale_after)
    return SyncContext(session=session, transport=transport, cache=cache)


__all__ = ["SyncContext", "create_context"]
