"""Shipping and tax policies consumed by the pricing engine."""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from storefront.shared.money import Money, to_percentage


class ShippingPolicy(BaseModel):
    """Flat-fee shipping, waived at or above ``free_threshold``."""

    model_config = ConfigDict(frozen=True)

    free_threshold: Money
    flat_fee: Money

    @model_validator(mode="after")
    def amounts_share_currency(self):
        if self.free_threshold.currency != self.flat_fee.currency:
            raise ValueError("Shipping threshold and fee must share a currency")
        return self


class TaxPolicy(BaseModel):
    """Percentage tax applied to the post-discount, pre-shipping amount."""

    model_config = ConfigDict(frozen=True)

    rate: Decimal

    @field_validator("rate", mode="before")
    @classmethod
    def rate_is_a_percentage(cls, value):
        try:
            return to_percentage(value)
        except TypeError as exc:
            raise ValueError(str(exc)) from exc
