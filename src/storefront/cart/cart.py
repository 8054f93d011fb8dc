"""Cart state — the in-memory representation of a shopping cart and its invariants.

A cart is an unordered collection of lines keyed by ``(product_id, variant_key)``.
Upserting a line *replaces* its quantity; callers that want "add N more"
compute ``current + delta`` first (the sync reconciler does this for them).

Invariants:
    - at most one line per ``(product_id, variant_key)``
    - a stored line always has quantity >= 1 (upserting 0 removes the line)
    - the number of lines never exceeds ``max_lines``
    - every line is priced in the cart's currency
"""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field

from storefront.shared.errors import CartLimitExceeded
from storefront.shared.money import CurrencyMismatch, Money

DEFAULT_MAX_LINES = 50


@dataclass(frozen=True)
class LineKey:
    """Identity of a cart line: a product plus its optional variant composite."""

    product_id: str
    variant_key: str | None = None

    def __str__(self) -> str:
        return self.product_id if self.variant_key is None else f"{self.product_id}[{self.variant_key}]"


def make_variant_key(**attributes: str | None) -> str | None:
    """Build a stable variant composite from attributes such as size and color.

    ``make_variant_key(size="m", color="Red")`` → ``"color=RED|size=M"``.
    Returns None when no attribute is set.
    """
    parts = [f"{name}={str(value).strip().upper()}" for name, value in sorted(attributes.items()) if value]
    return "|".join(parts) or None


class CartLine(BaseModel):
    """One product + variant + quantity entry in a cart."""

    model_config = ConfigDict(frozen=True)

    product_id: str = Field(min_length=1)
    variant_key: str | None = None
    quantity: int = Field(ge=1, strict=True)
    unit_price: Money
    stock_snapshot: int = Field(ge=0)

    @property
    def key(self) -> LineKey:
        return LineKey(self.product_id, self.variant_key)

    def line_total(self) -> Money:
        return self.unit_price.multiply(self.quantity)


class LineView:
    """Lazy, restartable view over a cart's lines. Order carries no meaning."""

    def __init__(self, lines: dict[LineKey, CartLine]):
        self._lines = lines

    def __iter__(self) -> Iterator[CartLine]:
        yield from self._lines.values()

    def __len__(self) -> int:
        return len(self._lines)


class CartState:
    """Unordered, key-unique collection of cart lines."""

    def __init__(
        self,
        lines: Iterable[CartLine] = (),
        max_lines: int = DEFAULT_MAX_LINES,
        currency: str = "USD",
    ):
        if max_lines < 1:
            raise ValueError(f"max_lines must be at least 1, got {max_lines}")
        self.max_lines = max_lines
        self.currency = currency
        self._lines: dict[LineKey, CartLine] = {}
        for line in lines:
            self.put_line(line)

    # -------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------
    def upsert_line(
        self,
        product_id: str,
        variant_key: str | None,
        quantity: int,
        unit_price: Money,
        stock_snapshot: int,
    ) -> CartLine | None:
        """Insert or replace the line for ``(product_id, variant_key)``.

        Last write wins: the quantity is replaced, never accumulated. A
        quantity <= 0 removes the line. Returns the stored line, or None if
        the line was removed.
        """
        if quantity <= 0:
            self.remove_line(product_id, variant_key)
            return None

        line = CartLine(
            product_id=product_id,
            variant_key=variant_key,
            quantity=quantity,
            unit_price=unit_price,
            stock_snapshot=stock_snapshot,
        )
        return self.put_line(line)

    def put_line(self, line: CartLine) -> CartLine:
        """Store an already-built line, replacing any line with the same key."""
        if line.unit_price.currency != self.currency:
            raise CurrencyMismatch(
                {"unit_price": [f"Line priced in {line.unit_price.currency}, cart is in {self.currency}"]}
            )
        if line.key not in self._lines and len(self._lines) >= self.max_lines:
            raise CartLimitExceeded({"lines": [f"Cart cannot hold more than {self.max_lines} lines"]})
        self._lines[line.key] = line
        return line

    def remove_line(self, product_id: str, variant_key: str | None = None) -> None:
        """Remove a line. Removing an absent line is a no-op."""
        self._lines.pop(LineKey(product_id, variant_key), None)

    def clear(self) -> None:
        self._lines.clear()

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def lines(self) -> LineView:
        return LineView(self._lines)

    def get(self, product_id: str, variant_key: str | None = None) -> CartLine | None:
        return self._lines.get(LineKey(product_id, variant_key))

    def keys(self) -> frozenset[LineKey]:
        return frozenset(self._lines)

    def item_count(self) -> int:
        """Total number of units across all lines."""
        return sum(line.quantity for line in self._lines.values())

    def subtotal(self) -> Money:
        total = Money.zero(self.currency)
        for line in self._lines.values():
            total = total.add(line.line_total())
        return total

    def copy(self) -> "CartState":
        return CartState(self._lines.values(), max_lines=self.max_lines, currency=self.currency)

    def __len__(self) -> int:
        return len(self._lines)

    def __contains__(self, key: object) -> bool:
        return key in self._lines

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CartState):
            return NotImplemented
        return self.currency == other.currency and self._lines == other._lines

    __hash__ = None  # mutable

    def __repr__(self) -> str:
        body = ", ".join(f"{key}: {line.quantity}" for key, line in self._lines.items())
        return f"CartState({{{body}}})"


# ---------------------------------------------------------------------------
# Replica merge
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class MergePlan:
    """Outcome of merging a local replica into a remote one.

    ``result`` is the new local replica, ``writes`` the lines that must be
    pushed to the remote store, ``skipped`` the local-only lines that did not
    fit within the line limit.
    """

    result: CartState
    writes: tuple[CartLine, ...]
    skipped: tuple[CartLine, ...] = ()


def merge_replicas(local: CartState, remote: CartState, max_sync_quantity: int) -> MergePlan:
    """Merge ``local`` into ``remote``; the remote line wins on conflict.

    Local lines absent remotely are carried over with their quantity capped
    at ``max_sync_quantity`` and scheduled as remote writes. Running the merge
    again against a remote replica that already holds those writes yields the
    same result and no writes.
    """
    if max_sync_quantity < 1:
        raise ValueError(f"max_sync_quantity must be at least 1, got {max_sync_quantity}")
    if local.currency != remote.currency:
        raise CurrencyMismatch({"currency": [f"Cannot merge a {local.currency} cart into {remote.currency}"]})

    result = CartState(
        remote.lines(),
        max_lines=max(local.max_lines, len(remote)),
        currency=remote.currency,
    )
    writes: list[CartLine] = []
    skipped: list[CartLine] = []

    for line in local.lines():
        if line.key in remote:
            continue
        if len(result) >= local.max_lines:
            skipped.append(line)
            continue
        capped = line
        if line.quantity > max_sync_quantity:
            capped = line.model_copy(update={"quantity": max_sync_quantity})
        result.put_line(capped)
        writes.append(capped)

    return MergePlan(result=result, writes=tuple(writes), skipped=tuple(skipped))
