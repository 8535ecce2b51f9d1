"""Tests for package exports."""


def test_core_exports_available() -> None:
    """Test that the sync-layer components are importable from the package."""
    from carequery import (
        AuthenticatedTransport,
        MutationCoordinator,
        MutationDescriptor,
        ResourceCache,
        SessionPolicy,
        SyncContext,
        create_context,
        create_resource_hooks,
    )

    # Just verify they're importable
    assert AuthenticatedTransport is not None
    assert MutationCoordinator is not None
    assert MutationDescriptor is not None
    assert ResourceCache is not None
    assert SessionPolicy is not None
    assert SyncContext is not None
    assert create_context is not None
    assert create_resource_hooks is not None


def test_error_hierarchy() -> None:
    from carequery import HttpError, NetworkError, TransportError, Unauthorized

    assert issubclass(NetworkError, TransportError)
    assert issubclass(HttpError, TransportError)
    assert issubclass(Unauthorized, HttpError)
    assert Unauthorized().status == 401
