"""Catalog factory.

Provides get_catalog() / set_catalog() to swap the catalog collaborator.
"""

from storefront.catalog.fake_adapter import InMemoryCatalog
from storefront.catalog.port import Catalog, CatalogError, ProductQuote

_current_catalog: Catalog | None = None


def get_catalog() -> Catalog:
    """Return the current catalog. Defaults to InMemoryCatalog."""
    global _current_catalog
    if _current_catalog is None:
        _current_catalog = InMemoryCatalog()
    return _current_catalog


def set_catalog(catalog: Catalog) -> None:
    """Override the active catalog (useful for tests)."""
    global _current_catalog
    _current_catalog = catalog


def reset_catalog() -> None:
    """Reset to default catalog."""
    global _current_catalog
    _current_catalog = None


__all__ = [
    "Catalog",
    "CatalogError",
    "InMemoryCatalog",
    "ProductQuote",
    "get_catalog",
    "reset_catalog",
    "set_catalog",
]
