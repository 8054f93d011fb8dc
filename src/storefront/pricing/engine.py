"""Pricing engine — the single place order totals are derived.

``compute`` is pure and deterministic: the same cart, coupon and policies
always produce an equal snapshot. The order of operations is fixed because
discounting before or after tax changes the result:

    1. subtotal = Σ unit_price × quantity
    2. shipping = 0 if subtotal ≥ free threshold or the coupon grants free shipping, else flat fee
    3. discount = subtotal × coupon percentage   (never applied to shipping)
    4. tax      = (subtotal − discount) × tax rate   (post-discount, pre-shipping)
    5. total    = subtotal + shipping + tax − discount
"""

from pydantic import BaseModel, ConfigDict

from storefront.cart.cart import CartState
from storefront.coupons.coupon import CouponDescriptor
from storefront.pricing.policies import ShippingPolicy, TaxPolicy
from storefront.shared.money import Money


class PricingSnapshot(BaseModel):
    """All five totals of a cart, computed together. Never mutated in place."""

    model_config = ConfigDict(frozen=True)

    subtotal: Money
    shipping_cost: Money
    discount_amount: Money
    tax_amount: Money
    total: Money

    @property
    def currency(self) -> str:
        return self.total.currency

    def to_display(self) -> dict[str, str]:
        return {
            "subtotal": self.subtotal.to_display(),
            "shipping_cost": self.shipping_cost.to_display(),
            "discount_amount": self.discount_amount.to_display(),
            "tax_amount": self.tax_amount.to_display(),
            "total": self.total.to_display(),
        }


class PricingEngine:
    @staticmethod
    def compute(
        cart: CartState,
        coupon: CouponDescriptor | None,
        shipping_policy: ShippingPolicy,
        tax_policy: TaxPolicy,
    ) -> PricingSnapshot:
        subtotal = cart.subtotal()
        zero = Money.zero(subtotal.currency)

        free_shipping = subtotal >= shipping_policy.free_threshold or (
            coupon is not None and coupon.grants_free_shipping
        )
        shipping_cost = zero if free_shipping else zero.add(shipping_policy.flat_fee)

        discount_amount = zero if coupon is None else subtotal.apply_percentage(coupon.discount_percentage)

        tax_amount = subtotal.subtract(discount_amount).apply_percentage(tax_policy.rate)

        total = subtotal.add(shipping_cost).add(tax_amount).subtract(discount_amount)

        return PricingSnapshot(
            subtotal=subtotal,
            shipping_cost=shipping_cost,
            discount_amount=discount_amount,
            tax_amount=tax_amount,
            total=total,
        )


compute = PricingEngine.compute
