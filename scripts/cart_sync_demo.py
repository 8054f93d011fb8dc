"""Demo: a guest cart that survives login, with pricing and checkout validation.

Walks one cart session through the full lifecycle using the in-memory
collaborators:
    1. Guest adds two products and applies SAVE10
    2. Customer logs in; the remote cart already holds one product
    3. Replicas merge (remote wins on conflict, local-only lines are written)
    4. Customer removes a line, the coupon drops below its minimum and is removed
    5. Stock changes while browsing; the checkout gate validates against it

Usage:
    python scripts/cart_sync_demo.py
    python scripts/cart_sync_demo.py --fail-writes    # remote store rejects writes
    python scripts/cart_sync_demo.py --stock 0        # stock sells out before checkout
"""

import argparse
import asyncio
import sys

# Add src/ to path so we can import the engine
sys.path.insert(0, "src")

from storefront.cart.cart import CartLine  # noqa: E402
from storefront.catalog import InMemoryCatalog  # noqa: E402
from storefront.checkout.gate import CheckoutBlocked, CheckoutGate  # noqa: E402
from storefront.config import CartEngineConfig  # noqa: E402
from storefront.coupons.coupon import CouponDefinition, CouponKind  # noqa: E402
from storefront.identity import FakeIdentityProvider  # noqa: E402
from storefront.remote import InMemoryRemoteCartStore  # noqa: E402
from storefront.shared.money import Money  # noqa: E402
from storefront.sync.intents import AddQuantity, ApplyCoupon, RemoveCoupon, RemoveLine  # noqa: E402
from storefront.sync.reconciler import SyncReconciler  # noqa: E402
from storefront.utils.logging import configure_logging  # noqa: E402


def _print_pricing(label, pricing):
    totals = pricing.to_display()
    print(f"\n{label}")
    for name, value in totals.items():
        print(f"  {name:<16} {value:>10}")


async def run(fail_writes: bool, stock: int) -> int:
    catalog = InMemoryCatalog()
    catalog.set_product("tee", Money.from_display("25.00"), stock=20, variant_key="size=M")
    catalog.set_product("mug", Money.from_display("12.50"), stock=20)
    catalog.set_product("cap", Money.from_display("17.50"), stock=20)
    catalog.add_coupon(
        CouponDefinition(
            code="SAVE10",
            kind=CouponKind.PERCENTAGE,
            percentage=10,
            minimum_subtotal=Money.from_display("60.00"),
        )
    )

    store = InMemoryRemoteCartStore()
    store.seed(
        "token-demo",
        [CartLine(product_id="cap", quantity=1, unit_price=Money.from_display("17.50"), stock_snapshot=20)],
    )
    if fail_writes:
        store.configure(should_succeed=False)

    reconciler = SyncReconciler(config=CartEngineConfig(), store=store, catalog=catalog)
    reconciler.events.subscribe(lambda event: print(f"  event: {type(event).__name__} {event.model_dump()}"))
    await reconciler.refresh_coupons()

    for product_id, variant_key in (("tee", "size=M"), ("mug", None)):
        quote = await catalog.quote(product_id, variant_key)
        reconciler.mutate(
            AddQuantity(
                product_id=product_id,
                variant_key=variant_key,
                delta=2,
                unit_price=quote.unit_price,
                stock_snapshot=quote.stock,
            )
        )
    _print_pricing("Guest cart with SAVE10", reconciler.mutate(ApplyCoupon(code="save10")))

    identity = FakeIdentityProvider()
    await reconciler.bind_identity(identity)
    await identity.login("token-demo")
    await reconciler.drain()
    print(f"\nStatus after login: {reconciler.status.value}, lines: {reconciler.local}")
    _print_pricing("Merged cart", reconciler.pricing)

    _print_pricing("After removing the tee", reconciler.mutate(RemoveLine(product_id="tee", variant_key="size=M")))
    if reconciler.coupon is not None and not reconciler.coupon.validated:
        _print_pricing("After dropping the inactive coupon", reconciler.mutate(RemoveCoupon()))
    await reconciler.drain()

    for product_id, variant_key in (("tee", "size=M"), ("mug", None), ("cap", None)):
        catalog.set_stock(product_id, stock, variant_key)

    try:
        await CheckoutGate(catalog=catalog).validate(reconciler.local, reconciler.coupon)
    except CheckoutBlocked as exc:
        print(f"\nCheckout blocked: {exc}")
        return 1

    print("\nCheckout may proceed")
    return 0


def main():
    parser = argparse.ArgumentParser(description="Walk a cart session through guest → login → checkout")
    parser.add_argument("--fail-writes", action="store_true", help="Make the remote cart store reject every call")
    parser.add_argument("--stock", type=int, default=20, help="Stock level of every product at checkout (default: 20)")
    args = parser.parse_args()

    configure_logging(log_dir=None)
    sys.exit(asyncio.run(run(args.fail_writes, args.stock)))


if __name__ == "__main__":
    main()
