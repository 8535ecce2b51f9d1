"""Authenticated HTTP transport for the JSON API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from carequery.errors import HttpError, NetworkError, Unauthorized
from carequery.session import On401, SessionState
from carequery.types import JSON

logger = logging.getLogger(__name__)


class AuthenticatedTransport:
    """Async transport attaching the session's bearer token to every call.

    Cookies set by the backend are kept in the client's jar and sent with
    every request alongside the token. This component never touches the cache.
    """

    def __init__(
        self,
        session: SessionState,
        *,
        base_url: str = "",
        timeout: float = 30.0,
        cookies: dict[str, str] | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._session = session
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            headers={"Accept": "application/json"},
            cookies=cookies,
            timeout=timeout,
        )

    @property
    def session(self) -> SessionState:
        return self._session

    async def send(
        self,
        method: str,
        url: str,
        body: Any = None,
        *,
        params: dict[str, Any] | None = None,
        files: dict[str, Any] | None = None,
        parse_json: bool = True,
        on401: On401 | str | None = None,
        strict: bool = False,
    ) -> JSON:
        """Perform one request and return its decoded JSON body.

        Raises NetworkError when no response was obtained, HttpError for
        non-2xx statuses. A 401 is handed to the session policy, which either
        raises Unauthorized or lets the call resolve to None. With
        ``strict=True`` the Unauthorized error is raised after the policy's
        side effect regardless of behaviour.
        """
        headers: dict[str, str] = {}
        token = await self._session.get_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"

        request_kwargs: dict[str, Any] = {"headers": headers}
        if params:
            request_kwargs["params"] = {k: v for k, v in params.items() if v is not None}
        if files is not None:
            request_kwargs["files"] = files
            if body is not None:
                request_kwargs["data"] = body
        elif body is not None:
            request_kwargs["json"] = body

        logger.debug("%s %s", method, url)
        try:
            response = await self._client.request(method, url, **request_kwargs)
        except httpx.TransportError as e:
            logger.debug("Network failure on %s %s: %s", method, url, e)
            raise NetworkError(str(e) or type(e).__name__) from e

        if response.status_code == 401:
            error = Unauthorized()
            self._session.policy.handle_unauthorized(error, behavior=on401)
            if strict:
                raise error
            return None

        if not response.is_success:
            message = response.text or response.reason_phrase
            raise HttpError(response.status_code, message)

        if not parse_json:
            return response
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise HttpError(response.status_code, "Invalid JSON response") from e

    async def get(self, url: str, **kwargs: Any) -> JSON:
        return await self.send("GET", url, **kwargs)

    async def aclose(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()


__all__ = ["AuthenticatedTransport"]
