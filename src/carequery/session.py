"""Session state and the process-wide policy for 401 responses."""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum

from carequery.errors import Unauthorized
from carequery.stores.base import TokenStore

logger = logging.getLogger(__name__)


class On401(str, Enum):
    """What a caller observes when the server answers 401."""

    RETURN_EMPTY = "returnEmpty"
    THROW_ERROR = "throwError"
    REDIRECT_TO_LOGIN = "redirectToLogin"

    @classmethod
    def parse(cls, value: On401 | str) -> On401:
        if isinstance(value, On401):
            return value
        aliases = {
            "returnNull": cls.RETURN_EMPTY,
            "throw": cls.THROW_ERROR,
            "redirect": cls.REDIRECT_TO_LOGIN,
        }
        if value in aliases:
            return aliases[value]
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"Invalid on401 behaviour: {value!r}") from None


def _no_navigation(path: str) -> None:
    logger.info("Login required; no navigator configured for %s", path)


class SessionPolicy:
    """Centralized decision for authentication failures.

    A redirect fires at most once per session: concurrent requests that all
    observe the same expired token produce a single navigation. The latch
    re-arms when a new token is established.
    """

    def __init__(
        self,
        behavior: On401 | str = On401.REDIRECT_TO_LOGIN,
        *,
        login_path: str = "/auth",
        navigate: Callable[[str], None] | None = None,
    ) -> None:
        self.behavior = On401.parse(behavior)
        self.login_path = login_path
        self._navigate = navigate or _no_navigation
        self._redirected = False

    @property
    def redirected(self) -> bool:
        return self._redirected

    def rearm(self) -> None:
        self._redirected = False

    def handle_unauthorized(
        self,
        error: Unauthorized,
        *,
        behavior: On401 | str | None = None,
    ) -> None:
        """Apply the configured behaviour. Returns None or raises ``error``."""
        effective = On401.parse(behavior) if behavior is not None else self.behavior
        logger.warning("Unauthorized response (%s)", effective.value)

        if effective is On401.THROW_ERROR:
            raise error
        if effective is On401.REDIRECT_TO_LOGIN and not self._redirected:
            self._redirected = True
            logger.info("Session expired, redirecting to %s", self.login_path)
            self._navigate(self.login_path)
        return None


class SessionState:
    """Holds the bearer token (via a TokenStore) and the 401 policy.

    Only login() and logout() write the token; every request reads it.
    """

    def __init__(
        self,
        store: TokenStore,
        policy: SessionPolicy,
        *,
        token_key: str = "auth_token",
    ) -> None:
        self.store = store
        self.policy = policy
        self.token_key = token_key

    async def get_token(self) -> str | None:
        return await self.store.get(self.token_key)

    async def set_token(self, token: str) -> None:
        await self.store.set(self.token_key, token)
        self.policy.rearm()

    async def clear_token(self) -> None:
        await self.store.delete(self.token_key)


__all__ = ["On401", "SessionPolicy", "SessionState"]
