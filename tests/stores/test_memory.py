"""Tests for the memory token store."""

from carequery import MemoryTokenStore, TokenStore


class TestMemoryTokenStore:
    """Tests for MemoryTokenStore."""

    async def test_get_missing_returns_none(self, token_store: MemoryTokenStore) -> None:
        assert await token_store.get("auth_token") is None

    async def test_set_get_delete(self, token_store: MemoryTokenStore) -> None:
        await token_store.set("auth_token", "abc")
        assert await token_store.get("auth_token") == "abc"

        await token_store.delete("auth_token")
        assert await token_store.get("auth_token") is None

    async def test_delete_missing_is_noop(self, token_store: MemoryTokenStore) -> None:
        await token_store.delete("auth_token")

    async def test_initial_values(self) -> None:
        store = MemoryTokenStore({"auth_token": "seeded"})
        assert await store.get("auth_token") == "seeded"
        await store.disconnect()

    def test_satisfies_protocol(self, token_store: MemoryTokenStore) -> None:
        assert isinstance(token_store, TokenStore)
