"""Shared pytest fixtures."""

import pytest
import respx

from carequery import MemoryTokenStore, ResourceCache, SyncContext, create_context

BASE_URL = "https://api.test.dev"


@pytest.fixture
def token_store() -> MemoryTokenStore:
    """Create a fresh token store for each test."""
    return MemoryTokenStore()


@pytest.fixture
def navigations() -> list[str]:
    """Record navigation targets instead of leaving the page."""
    return []


@pytest.fixture
async def ctx(token_store: MemoryTokenStore, navigations: list[str]) -> SyncContext:
    """Create an isolated sync context pointed at the mocked API."""
    context = create_context(
        base_url=BASE_URL,
        token_store=token_store,
        navigate=navigations.append,
    )
    yield context
    await context.aclose()


@pytest.fixture
def cache() -> ResourceCache:
    """Create a fresh ResourceCache for each test."""
    return ResourceCache()


@pytest.fixture
def api():
    """Mock the HTTP API."""
    with respx.mock(base_url=BASE_URL, assert_all_called=False) as mock:
        yield mock
