"""Side-channel events emitted by the cart engine to the UI layer.

Anything that changes a displayed total without a direct user action (a
coupon losing eligibility, a remote write failing) is announced through one
of these events so the UI can explain the new state.
"""

from datetime import UTC, datetime
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field


class BaseEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    __version__: ClassVar[str] = "v1"

    occurred_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class CouponApplied(BaseEvent):
    """A coupon passed validation and is now held by the cart session."""

    code: str


class CouponDeactivated(BaseEvent):
    """A held coupon no longer qualifies; its discount is forced to zero.

    The descriptor stays visible (inactive) until the user removes or
    re-applies it.
    """

    code: str
    reason: str
    subtotal: int  # minor units at the time of deactivation


class CouponReactivated(BaseEvent):
    """An inactive coupon qualifies again after a subtotal change."""

    code: str
    subtotal: int


class CouponRemoved(BaseEvent):
    code: str


class SyncWriteFailed(BaseEvent):
    """A remote write failed or timed out; the local value is kept and marked pending.

    ``product_id`` is None for whole-cart operations (clear).
    """

    operation: str
    product_id: str | None = None
    variant_key: str | None = None
    reason: str


class SyncWriteRecovered(BaseEvent):
    """A previously failed key was written successfully; its pending flag is cleared."""

    operation: str
    product_id: str | None = None
    variant_key: str | None = None


class CartMerged(BaseEvent):
    """The local replica was reconciled with the remote replica at identity establishment."""

    lines_written: int
    lines_failed: int
    lines_skipped: int
    line_count: int
