"""Identity collaborator interface and test adapter."""

from storefront.identity.fake_adapter import FakeIdentityProvider
from storefront.identity.port import ANONYMOUS, IdentityListener, IdentityProvider, IdentitySnapshot

__all__ = [
    "ANONYMOUS",
    "FakeIdentityProvider",
    "IdentityListener",
    "IdentityProvider",
    "IdentitySnapshot",
]
