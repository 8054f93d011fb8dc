"""Mutation intents — the only way the UI layer changes a cart.

Every intent is handed to ``SyncReconciler.mutate``; nothing else touches the
cart replicas directly.
"""

from pydantic import BaseModel, ConfigDict, Field

from storefront.shared.money import Money


class MutationIntent(BaseModel):
    model_config = ConfigDict(frozen=True)


class UpsertLine(MutationIntent):
    """Set a line's quantity (replacement, not accumulation). Quantity 0 removes the line."""

    product_id: str = Field(min_length=1)
    variant_key: str | None = None
    quantity: int = Field(ge=0)
    unit_price: Money
    stock_snapshot: int = Field(ge=0)


class AddQuantity(MutationIntent):
    """Add ``delta`` units to a line ("add N more"). A negative delta takes units away."""

    product_id: str = Field(min_length=1)
    variant_key: str | None = None
    delta: int
    unit_price: Money
    stock_snapshot: int = Field(ge=0)


class RemoveLine(MutationIntent):
    product_id: str = Field(min_length=1)
    variant_key: str | None = None


class ClearCart(MutationIntent):
    pass


class ApplyCoupon(MutationIntent):
    code: str = Field(min_length=1, max_length=100)


class RemoveCoupon(MutationIntent):
    """Drop the held coupon; also acknowledges a deactivated one."""
