from pathlib import Path

import pytest
from storefront.catalog import InMemoryCatalog, reset_catalog
from storefront.config import CartEngineConfig
from storefront.coupons.coupon import CouponDefinition, CouponKind
from storefront.identity import FakeIdentityProvider
from storefront.remote import InMemoryRemoteCartStore, reset_remote_store
from storefront.shared.money import Money
from storefront.sync.reconciler import SyncReconciler


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = Path(item.fspath)

        if "/domain/" in str(test_path):
            item.add_marker(pytest.mark.domain)
        elif "/application/" in str(test_path):
            item.add_marker(pytest.mark.application)


@pytest.fixture(autouse=True)
def run_around_tests():
    """Fixture to reset the collaborator factories after every test"""
    yield

    reset_remote_store()
    reset_catalog()


@pytest.fixture
def config():
    return CartEngineConfig()


@pytest.fixture
def store():
    return InMemoryRemoteCartStore()


@pytest.fixture
def catalog():
    catalog = InMemoryCatalog()
    catalog.set_product("tee", Money.from_display("25.00"), stock=20, variant_key="size=M")
    catalog.set_product("mug", Money.from_display("12.50"), stock=20)
    catalog.set_product("cap", Money.from_display("17.50"), stock=20)
    catalog.add_coupon(
        CouponDefinition(
            code="SAVE10",
            kind=CouponKind.PERCENTAGE,
            percentage=10,
            minimum_subtotal=Money.from_display("40.00"),
        )
    )
    catalog.add_coupon(CouponDefinition(code="FREESHIP", kind=CouponKind.FREE_SHIPPING))
    catalog.add_coupon(CouponDefinition(code="WELCOME15", kind=CouponKind.BOTH, percentage=15))
    return catalog


@pytest.fixture
def identity():
    return FakeIdentityProvider()


@pytest.fixture
def make_reconciler(config, store, catalog):
    def factory(**overrides):
        kwargs = {
            "config": config,
            "store": store,
            "catalog": catalog,
            "coupons": catalog.coupons,
        }
        kwargs.update(overrides)
        return SyncReconciler(**kwargs)

    return factory


@pytest.fixture
def reconciler(make_reconciler):
    return make_reconciler()
