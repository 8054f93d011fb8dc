"""Catalog port (abstract interface).

The catalog collaborator owns product prices, stock counts and coupon
definitions. The cart engine only ever reads snapshots from it.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass

from storefront.cart.cart import LineKey
from storefront.coupons.coupon import CouponDefinition
from storefront.shared.errors import StorefrontError
from storefront.shared.money import Money


class CatalogError(StorefrontError):
    """A catalog lookup failed."""


@dataclass(frozen=True)
class ProductQuote:
    """Current price and stock of one product variant."""

    unit_price: Money
    stock: int


class Catalog(ABC):
    """Abstract catalog collaborator."""

    @abstractmethod
    async def quote(self, product_id: str, variant_key: str | None = None) -> ProductQuote:
        """Return the current price and stock of a product variant."""
        ...

    @abstractmethod
    async def stock_levels(self, keys: Iterable[LineKey]) -> dict[LineKey, int]:
        """Return a fresh stock count per key. Unknown products report 0."""
        ...

    @abstractmethod
    async def coupon_catalog(self) -> dict[str, CouponDefinition]:
        """Return every coupon definition keyed by normalized code."""
        ...
