"""Cart engine configuration.

Defaults mirror the storefront's published policy: free shipping from 50.00,
a 9.99 flat fee below that, 8% tax, at most 10 units per line, and at most 10
units of a line pushed to the remote cart during a merge. Every field can be
overridden through a ``STOREFRONT_<FIELD>`` environment variable.
"""

import os
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from storefront.pricing.policies import ShippingPolicy, TaxPolicy
from storefront.shared.money import VALID_CURRENCIES, Money

ENV_PREFIX = "STOREFRONT_"


class CartEngineConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_lines: int = Field(default=50, ge=1)
    max_line_quantity: int = Field(default=10, ge=1)
    max_sync_quantity: int = Field(default=10, ge=1)
    write_timeout_seconds: float = Field(default=5.0, gt=0)
    park_cart_on_logout: bool = False

    currency: str = "USD"
    free_shipping_threshold: int = Field(default=5000, ge=0)  # minor units
    flat_shipping_fee: int = Field(default=999, ge=0)  # minor units
    tax_rate: Decimal = Decimal(8)  # percent

    @field_validator("currency")
    @classmethod
    def currency_must_be_supported(cls, value: str) -> str:
        if value not in VALID_CURRENCIES:
            raise ValueError(f"Unsupported currency: {value}")
        return value

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "CartEngineConfig":
        """Build a config from ``STOREFRONT_*`` variables, falling back to defaults."""
        environ = os.environ if environ is None else environ
        overrides = {}
        for name in cls.model_fields:
            value = environ.get(f"{ENV_PREFIX}{name.upper()}")
            if value is not None:
                overrides[name] = value
        return cls.model_validate(overrides)

    def shipping_policy(self) -> ShippingPolicy:
        return ShippingPolicy(
            free_threshold=Money(amount=self.free_shipping_threshold, currency=self.currency),
            flat_fee=Money(amount=self.flat_shipping_fee, currency=self.currency),
        )

    def tax_policy(self) -> TaxPolicy:
        return TaxPolicy(rate=self.tax_rate)
