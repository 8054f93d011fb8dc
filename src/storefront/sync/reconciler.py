"""Sync reconciler — keeps the local and remote cart replicas convergent.

One reconciler exists per cart session. It owns both replicas and is the only
component allowed to replace a cart wholesale (merge); everything else asks
for line-level changes through ``mutate``.

State Machine:
    LocalOnly → Merging → Synced ⇄ PendingWrite
    any state → Detached (terminal, logout)
    Merging → LocalOnly (the remote cart could not be fetched)
    Merging → Merging (a newer identity arrived during the fetch; the older merge is dropped)

Local mutations are applied synchronously (optimistic update) and a fresh
pricing snapshot is returned immediately. Once an identity is established,
each mutation also schedules a remote write through a per-key queue, so the
remote replica always ends on the last local intent for that key. Remote
failures never raise to the caller: the key is flagged pending, a
SyncWriteFailed event is published, and the local value stays authoritative
for display.

Merge policy: when a key exists in both replicas, the remote line wins. The
remote is built by the customer across devices and carries no revision
timestamps, so a stale device must not overwrite it.
"""

import asyncio
import sys
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from uuid import uuid4

import structlog

from storefront.cart.cart import CartLine, CartState, LineKey, LineView, MergePlan, merge_replicas
from storefront.catalog import Catalog, get_catalog
from storefront.config import CartEngineConfig
from storefront.coupons.coupon import CouponDefinition, CouponDescriptor
from storefront.coupons.engine import CouponEngine
from storefront.identity.port import IdentityProvider, IdentitySnapshot
from storefront.pricing.engine import PricingEngine, PricingSnapshot
from storefront.remote import RemoteCartStore, RemoteStoreError, get_remote_store
from storefront.shared.errors import InsufficientStock, InvalidTransition, LineQuantityExceeded
from storefront.shared.events import (
    CartMerged,
    CouponApplied,
    CouponRemoved,
    SyncWriteFailed,
    SyncWriteRecovered,
)
from storefront.sync.channel import EventChannel
from storefront.sync.intents import (
    AddQuantity,
    ApplyCoupon,
    ClearCart,
    MutationIntent,
    RemoveCoupon,
    RemoveLine,
    UpsertLine,
)
from storefront.sync.queue import KeyedMutationQueue

logger = structlog.get_logger(__name__)

# The mirror of the remote store is bounded by the remote, not locally
_UNBOUNDED = sys.maxsize


class SyncStatus(Enum):
    LOCAL_ONLY = "LocalOnly"
    MERGING = "Merging"
    SYNCED = "Synced"
    PENDING_WRITE = "PendingWrite"
    DETACHED = "Detached"


_VALID_TRANSITIONS = {
    SyncStatus.LOCAL_ONLY: {SyncStatus.MERGING, SyncStatus.DETACHED},
    SyncStatus.MERGING: {
        SyncStatus.SYNCED,
        SyncStatus.PENDING_WRITE,
        SyncStatus.MERGING,  # A newer identity took over the merge
        SyncStatus.LOCAL_ONLY,  # Remote cart fetch failed
        SyncStatus.DETACHED,
    },
    SyncStatus.SYNCED: {SyncStatus.PENDING_WRITE, SyncStatus.MERGING, SyncStatus.DETACHED},
    SyncStatus.PENDING_WRITE: {SyncStatus.SYNCED, SyncStatus.MERGING, SyncStatus.DETACHED},
    SyncStatus.DETACHED: set(),  # Terminal
}


@dataclass
class Replica:
    cart: CartState
    revision: int = 0

    def bump(self) -> None:
        self.revision += 1


@dataclass
class ReplicaPair:
    local: Replica
    remote: Replica


class SyncReconciler:
    def __init__(
        self,
        config: CartEngineConfig | None = None,
        store: RemoteCartStore | None = None,
        catalog: Catalog | None = None,
        coupons: Mapping[str, CouponDefinition] | None = None,
        coupon_engine: CouponEngine | None = None,
        channel: EventChannel | None = None,
        local: CartState | None = None,
    ):
        self.config = config or CartEngineConfig()
        self.events = channel or EventChannel()
        self.session_id = uuid4().hex[:12]

        self._store = store or get_remote_store()
        self._catalog = catalog or get_catalog()
        self._coupon_engine = coupon_engine or CouponEngine()
        self._coupons: dict[str, CouponDefinition] = dict(coupons or {})
        self._shipping_policy = self.config.shipping_policy()
        self._tax_policy = self.config.tax_policy()

        if local is None:
            local = CartState(max_lines=self.config.max_lines, currency=self.config.currency)
        self._replicas = ReplicaPair(
            local=Replica(local.copy()),
            remote=Replica(CartState(max_lines=_UNBOUNDED, currency=self.config.currency)),
        )

        self._status = SyncStatus.LOCAL_ONLY
        self._session_token: str | None = None
        self._writes_enabled = False
        self._queue = KeyedMutationQueue()
        self._pending: dict[LineKey | None, str] = {}  # key (None = whole cart) → operation
        self._unsubscribe_identity: Callable[[], None] | None = None
        self._merge_generation = 0

        self._coupon: CouponDescriptor | None = None
        self._pricing = PricingEngine.compute(
            self._replicas.local.cart, None, self._shipping_policy, self._tax_policy
        )
        self._log = logger.bind(cart_session=self.session_id)

    # -------------------------------------------------------------------
    # Read-only views
    # -------------------------------------------------------------------
    @property
    def status(self) -> SyncStatus:
        return self._status

    @property
    def local(self) -> CartState:
        """A copy of the local replica, the source of truth for display."""
        return self._replicas.local.cart.copy()

    @property
    def replicas(self) -> ReplicaPair:
        return self._replicas

    @property
    def pricing(self) -> PricingSnapshot:
        return self._pricing

    @property
    def coupon(self) -> CouponDescriptor | None:
        return self._coupon

    @property
    def pending_keys(self) -> frozenset[LineKey | None]:
        return frozenset(self._pending)

    @property
    def session_token(self) -> str | None:
        return self._session_token

    def lines(self) -> LineView:
        return self._replicas.local.cart.lines()

    # -------------------------------------------------------------------
    # State machine
    # -------------------------------------------------------------------
    def _transition(self, target: SyncStatus) -> None:
        if target not in _VALID_TRANSITIONS[self._status]:
            raise InvalidTransition({"status": [f"Cannot move from {self._status.value} to {target.value}"]})
        self._log.debug("Sync status changed", previous=self._status.value, current=target.value)
        self._status = target

    def _settle_status(self) -> None:
        """Move between Synced and PendingWrite to match the pending flags."""
        if self._status not in (SyncStatus.SYNCED, SyncStatus.PENDING_WRITE):
            return
        target = SyncStatus.PENDING_WRITE if self._pending else SyncStatus.SYNCED
        if target is not self._status:
            self._transition(target)

    def _ensure_attached(self) -> None:
        if self._status is SyncStatus.DETACHED:
            raise InvalidTransition({"status": ["Cart session is detached"]})

    # -------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------
    def mutate(self, intent: MutationIntent) -> PricingSnapshot:
        """Apply an intent to the local replica and schedule its remote write.

        Returns the fresh pricing snapshot. Cart and coupon errors (line limit, per-line
        maximum, quoted stock, invalid coupon) raise before anything changes.
        """
        self._ensure_attached()

        if isinstance(intent, UpsertLine):
            self._apply_line(
                intent.product_id, intent.variant_key, intent.quantity, intent.unit_price, intent.stock_snapshot
            )
        elif isinstance(intent, AddQuantity):
            current = self._replicas.local.cart.get(intent.product_id, intent.variant_key)
            quantity = (current.quantity if current else 0) + intent.delta
            self._apply_line(
                intent.product_id, intent.variant_key, quantity, intent.unit_price, intent.stock_snapshot
            )
        elif isinstance(intent, RemoveLine):
            self._apply_line(intent.product_id, intent.variant_key, 0, None, None)
        elif isinstance(intent, ClearCart):
            self._apply_clear()
        elif isinstance(intent, ApplyCoupon):
            self._apply_coupon(intent.code)
        elif isinstance(intent, RemoveCoupon):
            self._remove_coupon()
        else:
            raise TypeError(f"Unsupported mutation intent: {type(intent).__name__}")

        return self._pricing

    def _apply_line(self, product_id, variant_key, quantity, unit_price, stock_snapshot) -> None:
        local = self._replicas.local
        if quantity <= 0:
            local.cart.remove_line(product_id, variant_key)
        else:
            self._check_quantity(LineKey(product_id, variant_key), quantity, stock_snapshot)
            local.cart.upsert_line(product_id, variant_key, quantity, unit_price, stock_snapshot)
        local.bump()
        self._refresh_pricing()

        if self._writes_enabled:
            key = LineKey(product_id, variant_key)
            self._schedule_line_write(key, local.cart.get(product_id, variant_key))

    def _check_quantity(self, key: LineKey, quantity: int, stock_snapshot: int) -> None:
        """Reject growing a line past its quoted stock or the per-line maximum. Reductions always pass."""
        current = self._replicas.local.cart.get(key.product_id, key.variant_key)
        if current is not None and quantity <= current.quantity:
            return
        if quantity > self.config.max_line_quantity:
            raise LineQuantityExceeded(
                {"quantity": [f"Quantity cannot exceed {self.config.max_line_quantity} per item"]}
            )
        if quantity > stock_snapshot:
            raise InsufficientStock({"quantity": [f"Only {stock_snapshot} of {key} available in stock"]})

    def _apply_clear(self) -> None:
        local = self._replicas.local
        local.cart.clear()
        local.bump()
        if self._coupon is not None:
            self.events.publish(CouponRemoved(code=self._coupon.code))
            self._coupon = None
        self._refresh_pricing()

        if self._writes_enabled:
            self._schedule_clear()

    def _apply_coupon(self, code: str) -> None:
        descriptor = self._coupon_engine.validate(code, self._replicas.local.cart.subtotal(), self._coupons)
        self._coupon = descriptor
        self._log.info("Coupon applied", coupon_code=descriptor.code)
        self.events.publish(CouponApplied(code=descriptor.code))
        self._refresh_pricing()

    def _remove_coupon(self) -> None:
        if self._coupon is None:
            return
        self.events.publish(CouponRemoved(code=self._coupon.code))
        self._coupon = None
        self._refresh_pricing()

    def _refresh_pricing(self, revalidate: bool = False) -> None:
        """Recompute pricing, re-validating the held coupon whenever the subtotal moved."""
        cart = self._replicas.local.cart
        subtotal = cart.subtotal()
        if self._coupon is not None and (revalidate or subtotal != self._pricing.subtotal):
            outcome = self._coupon_engine.revalidate(self._coupon, subtotal, self._coupons)
            self._coupon = outcome.descriptor
            if outcome.event is not None:
                self.events.publish(outcome.event)
        self._pricing = PricingEngine.compute(cart, self._coupon, self._shipping_policy, self._tax_policy)

    async def refresh_coupons(self) -> None:
        """Pull a fresh coupon catalog snapshot and re-validate the held coupon against it."""
        self._coupons = await self._catalog.coupon_catalog()
        self._refresh_pricing(revalidate=True)

    # -------------------------------------------------------------------
    # Remote writes
    # -------------------------------------------------------------------
    def _schedule_line_write(self, key: LineKey, line: CartLine | None) -> asyncio.Task:
        token = self._session_token
        if line is None:
            operation = "remove_line"

            def call() -> Awaitable[None]:
                return self._store.remove_line(token, key.product_id, key.variant_key)
        else:
            operation = "upsert_line"

            def call() -> Awaitable[None]:
                return self._store.upsert_line(token, line)

        return self._queue.submit(key, lambda: self._write(token, key, operation, call, line))

    def _schedule_clear(self) -> asyncio.Task:
        token = self._session_token
        return self._queue.submit_barrier(
            lambda: self._write(token, None, "clear", lambda: self._store.clear(token), None)
        )

    async def _write(
        self,
        token: str,
        key: LineKey | None,
        operation: str,
        call: Callable[[], Awaitable[None]],
        line: CartLine | None,
    ) -> bool:
        try:
            await asyncio.wait_for(call(), timeout=self.config.write_timeout_seconds)
        except TimeoutError:
            self._record_failure(token, key, operation, "Remote write timed out")
            return False
        except RemoteStoreError as exc:
            self._record_failure(token, key, operation, str(exc))
            return False

        self._record_success(token, key, operation, line)
        return True

    def _record_success(self, token: str, key: LineKey | None, operation: str, line: CartLine | None) -> None:
        if token != self._session_token:
            self._log.debug("Remote write resolved for a previous identity", operation=operation)
            return

        remote = self._replicas.remote
        if key is None:
            remote.cart.clear()
            # Pending removals are settled by the clear
            local_keys = self._replicas.local.cart.keys()
            for pending_key in [k for k in self._pending if k is not None and k not in local_keys]:
                del self._pending[pending_key]
        elif line is None:
            remote.cart.remove_line(key.product_id, key.variant_key)
        else:
            remote.cart.put_line(line)
        remote.bump()

        if self._pending.pop(key, None) is not None:
            self._log.info(
                "Pending cart write cleared",
                operation=operation,
                product_id=key.product_id if key else None,
                variant_key=key.variant_key if key else None,
            )
            self.events.publish(
                SyncWriteRecovered(
                    operation=operation,
                    product_id=key.product_id if key else None,
                    variant_key=key.variant_key if key else None,
                )
            )
        self._settle_status()

    def _record_failure(self, token: str, key: LineKey | None, operation: str, reason: str) -> None:
        self._log.warning(
            "Remote cart write failed",
            operation=operation,
            product_id=key.product_id if key else None,
            variant_key=key.variant_key if key else None,
            reason=reason,
        )
        if token != self._session_token:
            return

        self._pending[key] = operation
        self.events.publish(
            SyncWriteFailed(
                operation=operation,
                product_id=key.product_id if key else None,
                variant_key=key.variant_key if key else None,
                reason=reason,
            )
        )
        self._settle_status()

    def retry(self) -> list[asyncio.Task]:
        """Re-issue writes for every pending key from the current local replica."""
        if not self._writes_enabled or not self._pending:
            return []

        self._log.info("Retrying pending cart writes", pending=len(self._pending))
        local = self._replicas.local.cart
        if None in self._pending:
            # A failed clear leaves unknown remote lines behind: clear again, then push every local line
            tasks = [self._schedule_clear()]
            tasks.extend(self._schedule_line_write(line.key, line) for line in local.lines())
            return tasks

        return [
            self._schedule_line_write(key, local.get(key.product_id, key.variant_key)) for key in list(self._pending)
        ]

    async def drain(self) -> None:
        """Wait for every in-flight remote write to resolve."""
        await self._queue.drain()

    # -------------------------------------------------------------------
    # Identity transitions
    # -------------------------------------------------------------------
    async def establish_identity(self, session_token: str) -> MergePlan | None:
        """Merge the local replica with the identity's remote cart.

        Local lines absent remotely are written (capped at max_sync_quantity);
        keys present in both keep the remote line. Per-line write failures are
        logged and flagged pending, never fatal. Returns the merge plan, or
        None when the remote cart could not be fetched (the session falls
        back to LocalOnly) or a newer identity took over the merge.
        """
        self._ensure_attached()
        self._transition(SyncStatus.MERGING)
        self._merge_generation += 1
        generation = self._merge_generation
        self._session_token = session_token
        self._writes_enabled = False
        self._pending.clear()
        self._log.info("Merging cart replicas")

        try:
            fetched = await asyncio.wait_for(
                self._store.get_cart(session_token), timeout=self.config.write_timeout_seconds
            )
        except (TimeoutError, RemoteStoreError) as exc:
            reason = "Remote cart fetch timed out" if isinstance(exc, TimeoutError) else str(exc)
            self._log.warning("Remote cart fetch failed", reason=reason)
            if self._is_current_merge(generation):
                self.events.publish(SyncWriteFailed(operation="get_cart", reason=reason))
                self._session_token = None
                self._transition(SyncStatus.LOCAL_ONLY)
            return None

        if not self._is_current_merge(generation):
            # Logged out, or another identity arrived while the fetch was in flight
            self._log.info("Superseded cart merge abandoned")
            return None

        remote = CartState(fetched, max_lines=_UNBOUNDED, currency=self.config.currency)
        self._replicas.remote.cart = remote
        self._replicas.remote.bump()

        plan = merge_replicas(self._replicas.local.cart, remote, self.config.max_sync_quantity)
        self._replicas.local.cart = plan.result
        self._replicas.local.bump()
        for line in plan.skipped:
            self._log.warning(
                "Local cart line dropped during merge: line limit reached",
                product_id=line.product_id,
                variant_key=line.variant_key,
            )

        self._writes_enabled = True
        self._refresh_pricing()

        results = await asyncio.gather(*(self._schedule_line_write(line.key, line) for line in plan.writes))
        failed = sum(1 for ok in results if not ok)

        self._log.info(
            "Cart merge complete",
            lines_written=len(plan.writes) - failed,
            lines_failed=failed,
            lines_skipped=len(plan.skipped),
        )
        self.events.publish(
            CartMerged(
                lines_written=len(plan.writes) - failed,
                lines_failed=failed,
                lines_skipped=len(plan.skipped),
                line_count=len(self._replicas.local.cart),
            )
        )

        if self._is_current_merge(generation):
            self._transition(SyncStatus.PENDING_WRITE if self._pending else SyncStatus.SYNCED)
        return plan

    def _is_current_merge(self, generation: int) -> bool:
        return self._status is SyncStatus.MERGING and generation == self._merge_generation

    def logout(self) -> CartState | None:
        """Detach the session. In-flight writes still resolve against the old identity.

        Returns the parked local replica when ``park_cart_on_logout`` is set,
        so a follow-up guest session can start from it.
        """
        self._ensure_attached()
        parked = self._replicas.local.cart.copy() if self.config.park_cart_on_logout else None

        self._transition(SyncStatus.DETACHED)
        self._writes_enabled = False
        self._session_token = None
        self._coupon = None
        self._replicas.local.cart = CartState(max_lines=self.config.max_lines, currency=self.config.currency)
        self._replicas.local.bump()
        self._refresh_pricing()

        if self._unsubscribe_identity is not None:
            self._unsubscribe_identity()
            self._unsubscribe_identity = None

        self._log.info("Cart session detached", parked=parked is not None)
        return parked

    async def on_identity_changed(self, identity: IdentitySnapshot) -> None:
        if self._status is SyncStatus.DETACHED:
            return
        if identity.is_authenticated:
            if self._status is SyncStatus.LOCAL_ONLY or identity.session_token != self._session_token:
                await self.establish_identity(identity.session_token)
        elif self._status is not SyncStatus.LOCAL_ONLY:
            self.logout()

    async def bind_identity(self, provider: IdentityProvider) -> None:
        """Follow the provider's identity transitions, starting with its current identity."""
        self._unsubscribe_identity = provider.subscribe(self.on_identity_changed)
        await self.on_identity_changed(provider.current())
