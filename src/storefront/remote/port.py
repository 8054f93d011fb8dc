"""Remote cart store port (abstract interface).

The remote store is the authoritative, server-held replica of a cart, keyed
by the authenticated identity's session token. Adapters raise
RemoteStoreError for any failed call; the sync reconciler is the only caller
and decides how failures degrade.
"""

from abc import ABC, abstractmethod

from storefront.cart.cart import CartLine
from storefront.shared.errors import StorefrontError


class RemoteStoreError(StorefrontError):
    """A call to the remote cart store failed."""


class RemoteCartStore(ABC):
    """Abstract persistence collaborator for authoritative carts."""

    @abstractmethod
    async def get_cart(self, session_token: str) -> list[CartLine]:
        """Fetch every line of the identity's cart."""
        ...

    @abstractmethod
    async def upsert_line(self, session_token: str, line: CartLine) -> None:
        """Insert or replace one line (quantity is replaced, not added)."""
        ...

    @abstractmethod
    async def remove_line(self, session_token: str, product_id: str, variant_key: str | None) -> None:
        """Remove one line. Removing an absent line succeeds."""
        ...

    @abstractmethod
    async def clear(self, session_token: str) -> None:
        """Remove every line."""
        ...
