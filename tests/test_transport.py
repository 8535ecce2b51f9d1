"""Tests for AuthenticatedTransport using mocked HTTP responses."""

import json

import httpx
import pytest

from carequery import (
    AuthenticatedTransport,
    HttpError,
    MemoryTokenStore,
    NetworkError,
    On401,
    SessionPolicy,
    SessionState,
    SyncContext,
    Unauthorized,
)

BASE_URL = "https://api.test.dev"


class TestAuthorization:
    """Tests for token and cookie handling."""

    async def test_attaches_bearer_token(self, ctx: SyncContext, api) -> None:
        await ctx.login("secret-token")
        route = api.get("/api/plan-items").mock(
            return_value=httpx.Response(200, json=[])
        )

        await ctx.transport.get("/api/plan-items")
        request = route.calls[0].request
        assert request.headers["Authorization"] == "Bearer secret-token"

    async def test_omits_header_without_token(self, ctx: SyncContext, api) -> None:
        route = api.get("/api/plan-items").mock(
            return_value=httpx.Response(200, json=[])
        )

        await ctx.transport.get("/api/plan-items")
        assert "Authorization" not in route.calls[0].request.headers

    async def test_token_read_on_every_request(
        self, ctx: SyncContext, token_store: MemoryTokenStore, api
    ) -> None:
        route = api.get("/api/user").mock(return_value=httpx.Response(200, json={}))

        await token_store.set("auth_token", "first")
        await ctx.transport.get("/api/user")
        await token_store.set("auth_token", "second")
        await ctx.transport.get("/api/user")

        assert route.calls[0].request.headers["Authorization"] == "Bearer first"
        assert route.calls[1].request.headers["Authorization"] == "Bearer second"

    async def test_sends_session_cookies(self, api) -> None:
        session = SessionState(MemoryTokenStore({"auth_token": "t"}), SessionPolicy())
        transport = AuthenticatedTransport(
            session, base_url=BASE_URL, cookies={"connect.sid": "abc"}
        )
        route = api.get("/api/user").mock(return_value=httpx.Response(200, json={}))

        await transport.get("/api/user")
        request = route.calls[0].request
        assert "connect.sid=abc" in request.headers["Cookie"]
        assert request.headers["Authorization"] == "Bearer t"
        await transport.aclose()


class TestResponses:
    """Tests for response decoding."""

    async def test_returns_json(self, ctx: SyncContext, api) -> None:
        api.get("/api/documents").mock(
            return_value=httpx.Response(200, json=[{"id": 1}])
        )
        assert await ctx.transport.get("/api/documents") == [{"id": 1}]

    async def test_sends_json_body(self, ctx: SyncContext, api) -> None:
        route = api.post("/api/journal-logs").mock(
            return_value=httpx.Response(201, json={"id": 9})
        )

        result = await ctx.transport.send("POST", "/api/journal-logs", {"mood": "ok"})
        assert result == {"id": 9}
        assert json.loads(route.calls[0].request.content) == {"mood": "ok"}

    async def test_empty_body_returns_none(self, ctx: SyncContext, api) -> None:
        api.delete("/api/diet-logs/3").mock(return_value=httpx.Response(204))
        assert await ctx.transport.send("DELETE", "/api/diet-logs/3") is None

    async def test_parse_json_opt_out(self, ctx: SyncContext, api) -> None:
        api.get("/api/documents/1/raw").mock(
            return_value=httpx.Response(200, text="%PDF")
        )
        response = await ctx.transport.get("/api/documents/1/raw", parse_json=False)
        assert isinstance(response, httpx.Response)
        assert response.text == "%PDF"

    async def test_invalid_json(self, ctx: SyncContext, api) -> None:
        api.get("/api/user").mock(return_value=httpx.Response(200, text="<html>"))
        with pytest.raises(HttpError, match="Invalid JSON response"):
            await ctx.transport.get("/api/user")

    async def test_query_params_skip_none(self, ctx: SyncContext, api) -> None:
        route = api.get("/api/resources").mock(return_value=httpx.Response(200, json=[]))

        await ctx.transport.get(
            "/api/resources", params={"category": "diet", "search": None}
        )
        assert route.calls[0].request.url.params == httpx.QueryParams(
            {"category": "diet"}
        )


class TestErrors:
    """Tests for failure normalization."""

    async def test_http_error_uses_body_text(self, ctx: SyncContext, api) -> None:
        api.get("/api/treatments").mock(
            return_value=httpx.Response(500, text="database unavailable")
        )

        with pytest.raises(HttpError) as excinfo:
            await ctx.transport.get("/api/treatments")
        assert excinfo.value.status == 500
        assert excinfo.value.message == "database unavailable"
        assert str(excinfo.value) == "500: database unavailable"

    async def test_http_error_falls_back_to_reason(self, ctx: SyncContext, api) -> None:
        api.get("/api/treatments").mock(return_value=httpx.Response(404))

        with pytest.raises(HttpError) as excinfo:
            await ctx.transport.get("/api/treatments")
        assert excinfo.value.message == "Not Found"

    async def test_network_error(self, ctx: SyncContext, api) -> None:
        api.get("/api/treatments").mock(side_effect=httpx.ConnectError)

        with pytest.raises(NetworkError) as excinfo:
            await ctx.transport.get("/api/treatments")
        assert isinstance(excinfo.value.__cause__, httpx.ConnectError)

    async def test_timeout_is_network_error(self, ctx: SyncContext, api) -> None:
        api.get("/api/treatments").mock(side_effect=httpx.ReadTimeout)

        with pytest.raises(NetworkError):
            await ctx.transport.get("/api/treatments")


class TestUnauthorized:
    """Tests for 401 handling."""

    async def test_redirect_returns_none_and_navigates(
        self, ctx: SyncContext, navigations: list[str], api
    ) -> None:
        route = api.get("/api/plan-items").mock(return_value=httpx.Response(401))

        assert await ctx.transport.get("/api/plan-items") is None
        assert navigations == ["/auth"]
        assert route.call_count == 1

    async def test_throw_raises(self, ctx: SyncContext, navigations: list[str], api) -> None:
        api.get("/api/plan-items").mock(return_value=httpx.Response(401))

        with pytest.raises(Unauthorized) as excinfo:
            await ctx.transport.get("/api/plan-items", on401=On401.THROW_ERROR)
        assert excinfo.value.status == 401
        assert navigations == []

    async def test_return_empty_is_silent(
        self, ctx: SyncContext, navigations: list[str], api
    ) -> None:
        api.get("/api/trials/saved").mock(return_value=httpx.Response(401))

        assert await ctx.transport.get("/api/trials/saved", on401="returnNull") is None
        assert navigations == []

    async def test_strict_raises_after_redirect(
        self, ctx: SyncContext, navigations: list[str], api
    ) -> None:
        api.post("/api/plan-items").mock(return_value=httpx.Response(401))

        with pytest.raises(Unauthorized):
            await ctx.transport.send("POST", "/api/plan-items", {}, strict=True)
        assert navigations == ["/auth"]

    async def test_401_is_never_retried(self, ctx: SyncContext, api) -> None:
        route = api.get("/api/user").mock(
            side_effect=[httpx.Response(401), httpx.Response(200, json={})]
        )

        assert await ctx.transport.get("/api/user") is None
        assert route.call_count == 1
