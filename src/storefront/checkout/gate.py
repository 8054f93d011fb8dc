"""Checkout gate — last validation of a cart immediately before order placement.

The gate never trusts data held by the cart: it re-validates the coupon
against a fresh coupon catalog and re-checks every line against freshly
fetched stock (not the line's ``stock_snapshot``). It fails closed: any single
violation blocks the whole checkout with the complete list of violations, and
quantities are never clamped.
"""

from dataclasses import dataclass
from enum import Enum

import structlog

from storefront.cart.cart import CartState, LineKey
from storefront.catalog import Catalog, get_catalog
from storefront.coupons.coupon import CouponDescriptor, CouponError
from storefront.coupons.engine import CouponEngine
from storefront.shared.errors import StorefrontError

logger = structlog.get_logger(__name__)


class ViolationReason(Enum):
    EMPTY_CART = "EmptyCart"
    INSUFFICIENT_STOCK = "InsufficientStock"
    COUPON_INVALID = "CouponInvalid"


@dataclass(frozen=True)
class CheckoutViolation:
    reason: ViolationReason
    message: str
    key: LineKey | None = None
    requested: int | None = None
    available: int | None = None
    coupon_code: str | None = None


class CheckoutBlocked(StorefrontError):
    """Checkout cannot proceed. The cart is left intact for correction."""

    def __init__(self, violations: list[CheckoutViolation]):
        self.violations = tuple(violations)
        super().__init__({"checkout": [violation.message for violation in self.violations]})

    @property
    def blocked_lines(self) -> tuple[LineKey, ...]:
        return tuple(v.key for v in self.violations if v.key is not None)


class CheckoutGate:
    def __init__(self, catalog: Catalog | None = None, coupon_engine: CouponEngine | None = None):
        self._catalog = catalog or get_catalog()
        self._coupon_engine = coupon_engine or CouponEngine()

    async def validate(self, cart: CartState, coupon: CouponDescriptor | None) -> None:
        """Raise CheckoutBlocked listing every violation; return None when checkout may proceed."""
        violations: list[CheckoutViolation] = []

        if len(cart) == 0:
            violations.append(CheckoutViolation(reason=ViolationReason.EMPTY_CART, message="Cart is empty"))

        if coupon is not None:
            coupons = await self._catalog.coupon_catalog()
            try:
                self._coupon_engine.validate(coupon.code, cart.subtotal(), coupons)
            except CouponError as exc:
                violations.append(
                    CheckoutViolation(
                        reason=ViolationReason.COUPON_INVALID,
                        message=exc.messages["coupon_code"][0],
                        coupon_code=coupon.code,
                    )
                )

        stock = await self._catalog.stock_levels(cart.keys())
        for line in sorted(cart.lines(), key=lambda line: (line.product_id, line.variant_key or "")):
            available = stock.get(line.key, 0)
            if available < line.quantity:
                violations.append(
                    CheckoutViolation(
                        reason=ViolationReason.INSUFFICIENT_STOCK,
                        message=f"Only {available} of {line.key} available, {line.quantity} requested",
                        key=line.key,
                        requested=line.quantity,
                        available=available,
                    )
                )

        if violations:
            logger.warning(
                "Checkout blocked",
                violations=len(violations),
                blocked_lines=[str(v.key) for v in violations if v.key is not None],
            )
            raise CheckoutBlocked(violations)

        logger.info("Checkout validated", line_count=len(cart), item_count=cart.item_count())
