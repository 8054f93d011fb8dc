"""Coupon engine — validates coupon codes against a cart subtotal.

Validation rules, applied in order:
    1. unknown code                       → CouponNotFound
    2. minimum subtotal not met           → CouponMinimumNotMet
    3. expired or usage limit exhausted   → CouponExpired
    4. otherwise                          → CouponDescriptor

Eligibility depends on the subtotal, so a held coupon is re-validated on every
subtotal change. A coupon that stops qualifying is demoted (kept, inactive)
and reported through a CouponDeactivated event, never silently dropped.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime

import structlog

from storefront.coupons.coupon import (
    CouponDefinition,
    CouponDescriptor,
    CouponError,
    CouponExpired,
    CouponMinimumNotMet,
    CouponNotFound,
    normalize_code,
)
from storefront.shared.events import CouponDeactivated, CouponReactivated
from storefront.shared.money import Money

logger = structlog.get_logger(__name__)

CouponCatalog = Mapping[str, CouponDefinition]


@dataclass(frozen=True)
class CouponRevalidation:
    """Result of re-validating a held coupon: the descriptor to keep, plus an event if eligibility flipped."""

    descriptor: CouponDescriptor
    event: CouponDeactivated | CouponReactivated | None = None


class CouponEngine:
    def __init__(self, clock: Callable[[], datetime] | None = None):
        self._clock = clock or (lambda: datetime.now(UTC))

    def validate(self, code: str, subtotal: Money, catalog: CouponCatalog) -> CouponDescriptor:
        normalized = normalize_code(code)

        definition = catalog.get(normalized)
        if definition is None:
            raise CouponNotFound(normalized)

        if not definition.meets_minimum(subtotal):
            raise CouponMinimumNotMet(normalized, definition.minimum_subtotal)

        if definition.is_expired(self._clock()):
            raise CouponExpired(normalized)

        if definition.is_exhausted():
            raise CouponExpired(normalized, "Coupon usage limit reached")

        return CouponDescriptor.from_definition(definition)

    def revalidate(
        self,
        descriptor: CouponDescriptor,
        subtotal: Money,
        catalog: CouponCatalog,
    ) -> CouponRevalidation:
        try:
            fresh = self.validate(descriptor.code, subtotal, catalog)
        except CouponError as exc:
            if not descriptor.validated:
                return CouponRevalidation(descriptor)

            reason = exc.messages["coupon_code"][0]
            logger.info(
                "Coupon deactivated",
                coupon_code=descriptor.code,
                reason=reason,
                subtotal=subtotal.to_display(),
            )
            return CouponRevalidation(
                descriptor.deactivated(),
                CouponDeactivated(code=descriptor.code, reason=reason, subtotal=subtotal.amount),
            )

        if descriptor.validated:
            return CouponRevalidation(fresh)

        logger.info("Coupon reactivated", coupon_code=descriptor.code, subtotal=subtotal.to_display())
        return CouponRevalidation(fresh, CouponReactivated(code=descriptor.code, subtotal=subtotal.amount))
