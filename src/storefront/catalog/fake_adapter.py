"""In-memory catalog for development and testing."""

from collections.abc import Iterable

from storefront.cart.cart import LineKey
from storefront.catalog.port import Catalog, CatalogError, ProductQuote
from storefront.coupons.coupon import CouponDefinition
from storefront.shared.money import Money


class InMemoryCatalog(Catalog):
    def __init__(self) -> None:
        self.products: dict[LineKey, ProductQuote] = {}
        self.coupons: dict[str, CouponDefinition] = {}
        self.calls: list[dict] = []

    def set_product(self, product_id: str, unit_price: Money, stock: int, variant_key: str | None = None) -> None:
        self.products[LineKey(product_id, variant_key)] = ProductQuote(unit_price=unit_price, stock=stock)

    def set_stock(self, product_id: str, stock: int, variant_key: str | None = None) -> None:
        key = LineKey(product_id, variant_key)
        quote = self.products.get(key)
        if quote is None:
            raise CatalogError({"product_id": [f"Unknown product {key}"]})
        self.products[key] = ProductQuote(unit_price=quote.unit_price, stock=stock)

    def add_coupon(self, definition: CouponDefinition) -> None:
        self.coupons[definition.code] = definition

    async def quote(self, product_id: str, variant_key: str | None = None) -> ProductQuote:
        key = LineKey(product_id, variant_key)
        self.calls.append({"method": "quote", "key": key})
        quote = self.products.get(key)
        if quote is None:
            raise CatalogError({"product_id": [f"Unknown product {key}"]})
        return quote

    async def stock_levels(self, keys: Iterable[LineKey]) -> dict[LineKey, int]:
        keys = list(keys)
        self.calls.append({"method": "stock_levels", "keys": keys})
        return {key: (self.products[key].stock if key in self.products else 0) for key in keys}

    async def coupon_catalog(self) -> dict[str, CouponDefinition]:
        self.calls.append({"method": "coupon_catalog"})
        return dict(self.coupons)
