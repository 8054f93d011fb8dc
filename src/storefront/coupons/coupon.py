"""Coupon definitions (catalog records), coupon descriptors and coupon errors."""

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from storefront.shared.errors import StorefrontError
from storefront.shared.money import Money


class CouponKind(Enum):
    PERCENTAGE = "Percentage"
    FREE_SHIPPING = "FreeShipping"
    BOTH = "Both"


def normalize_code(code: str) -> str:
    return code.strip().upper()


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------
class CouponError(StorefrontError):
    """A coupon could not be applied. Recoverable; the cart is unaffected."""

    def __init__(self, code: str, message: str):
        self.code = code
        super().__init__({"coupon_code": [message]})


class CouponNotFound(CouponError):
    def __init__(self, code: str):
        super().__init__(code, f"Unknown coupon code {code}")


class CouponMinimumNotMet(CouponError):
    def __init__(self, code: str, minimum: Money):
        self.minimum = minimum
        super().__init__(code, f"Minimum order value of {minimum.to_display()} required for coupon {code}")


class CouponExpired(CouponError):
    def __init__(self, code: str, reason: str = "Coupon has expired"):
        super().__init__(code, reason)


# ---------------------------------------------------------------------------
# Catalog record
# ---------------------------------------------------------------------------
class CouponDefinition(BaseModel):
    """A coupon as published by the catalog collaborator. Read-only snapshot."""

    model_config = ConfigDict(frozen=True)

    code: str = Field(min_length=3, max_length=20, pattern=r"^[A-Z0-9]+$")
    kind: CouponKind
    percentage: int = Field(default=0, ge=0, le=100)
    minimum_subtotal: Money | None = None
    expires_at: datetime | None = None
    usage_limit: int | None = Field(default=None, ge=1)
    times_used: int = Field(default=0, ge=0)

    @field_validator("code", mode="before")
    @classmethod
    def code_is_normalized(cls, value):
        return normalize_code(value) if isinstance(value, str) else value

    @model_validator(mode="after")
    def percentage_matches_kind(self):
        if self.kind is CouponKind.FREE_SHIPPING and self.percentage:
            raise ValueError("Free-shipping coupons carry no percentage")
        if self.kind is not CouponKind.FREE_SHIPPING and not 1 <= self.percentage <= 100:
            raise ValueError("Percentage coupons must discount between 1% and 100%")
        return self

    def is_expired(self, as_of: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at <= (as_of or datetime.now(UTC))

    def is_exhausted(self) -> bool:
        return self.usage_limit is not None and self.times_used >= self.usage_limit

    def meets_minimum(self, subtotal: Money) -> bool:
        return self.minimum_subtotal is None or subtotal >= self.minimum_subtotal


# ---------------------------------------------------------------------------
# Descriptor held by the client
# ---------------------------------------------------------------------------
class CouponDescriptor(BaseModel):
    """A coupon as held by a cart session after validation.

    ``validated=False`` marks a demoted coupon: it stays visible to the UI but
    contributes neither a discount nor free shipping.
    """

    model_config = ConfigDict(frozen=True)

    code: str
    kind: CouponKind
    percentage: int = Field(default=0, ge=0, le=100)
    minimum_subtotal: Money | None = None
    validated: bool = True

    @property
    def grants_free_shipping(self) -> bool:
        return self.validated and self.kind in (CouponKind.FREE_SHIPPING, CouponKind.BOTH)

    @property
    def discount_percentage(self) -> int:
        if not self.validated or self.kind is CouponKind.FREE_SHIPPING:
            return 0
        return self.percentage

    def deactivated(self) -> "CouponDescriptor":
        return self.model_copy(update={"validated": False})

    def reactivated(self) -> "CouponDescriptor":
        return self.model_copy(update={"validated": True})

    @classmethod
    def from_definition(cls, definition: CouponDefinition) -> "CouponDescriptor":
        return cls(
            code=definition.code,
            kind=definition.kind,
            percentage=definition.percentage,
            minimum_subtotal=definition.minimum_subtotal,
            validated=True,
        )
