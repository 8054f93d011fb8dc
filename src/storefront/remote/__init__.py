"""Remote cart store factory.

Provides get_remote_store() / set_remote_store() to swap implementations:
- InMemoryRemoteCartStore for development and testing
- an HTTP/database-backed adapter in production
"""

from storefront.remote.fake_adapter import InMemoryRemoteCartStore
from storefront.remote.port import RemoteCartStore, RemoteStoreError

_current_store: RemoteCartStore | None = None


def get_remote_store() -> RemoteCartStore:
    """Return the current remote cart store. Defaults to InMemoryRemoteCartStore."""
    global _current_store
    if _current_store is None:
        _current_store = InMemoryRemoteCartStore()
    return _current_store


def set_remote_store(store: RemoteCartStore) -> None:
    """Override the active remote cart store (useful for tests)."""
    global _current_store
    _current_store = store


def reset_remote_store() -> None:
    """Reset to default store."""
    global _current_store
    _current_store = None


__all__ = [
    "InMemoryRemoteCartStore",
    "RemoteCartStore",
    "RemoteStoreError",
    "get_remote_store",
    "reset_remote_store",
    "set_remote_store",
]
