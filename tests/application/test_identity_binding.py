"""Tests for driving a cart session from identity transitions."""

import asyncio

import pytest
from storefront.cart.cart import CartLine, LineKey
from storefront.identity import ANONYMOUS, FakeIdentityProvider, IdentitySnapshot
from storefront.shared.events import CartMerged
from storefront.shared.money import Money
from storefront.sync.intents import UpsertLine
from storefront.sync.reconciler import SyncStatus


def upsert(product_id, quantity):
    return UpsertLine(
        product_id=product_id,
        quantity=quantity,
        unit_price=Money.from_display("10.00"),
        stock_snapshot=20,
    )


def remote_line(product_id, quantity):
    return CartLine(
        product_id=product_id,
        quantity=quantity,
        unit_price=Money.from_display("10.00"),
        stock_snapshot=20,
    )


class TestFakeIdentityProvider:
    def test_starts_anonymous(self):
        assert FakeIdentityProvider().current() == ANONYMOUS

    @pytest.mark.asyncio
    async def test_listeners_notified_in_order(self):
        provider = FakeIdentityProvider()
        seen = []

        async def first(identity):
            seen.append(("first", identity.session_token))

        async def second(identity):
            seen.append(("second", identity.session_token))

        provider.subscribe(first)
        provider.subscribe(second)
        await provider.login("abc")

        assert seen == [("first", "abc"), ("second", "abc")]
        assert provider.current() == IdentitySnapshot(is_authenticated=True, session_token="abc")

    @pytest.mark.asyncio
    async def test_unsubscribe(self):
        provider = FakeIdentityProvider()
        seen = []

        async def listener(identity):
            seen.append(identity)

        unsubscribe = provider.subscribe(listener)
        unsubscribe()
        await provider.login("abc")

        assert seen == []


class TestBindIdentity:
    @pytest.mark.asyncio
    async def test_anonymous_identity_stays_local(self, reconciler, identity, store):
        await reconciler.bind_identity(identity)
        reconciler.mutate(upsert("mug", 1))

        assert reconciler.status is SyncStatus.LOCAL_ONLY
        assert store.calls == []

    @pytest.mark.asyncio
    async def test_login_triggers_merge(self, reconciler, identity, store):
        store.seed("tok", [remote_line("P1", 2)])
        await reconciler.bind_identity(identity)
        reconciler.mutate(upsert("P3", 1))

        await identity.login("tok")

        assert reconciler.status is SyncStatus.SYNCED
        assert reconciler.local.keys() == {LineKey("P1"), LineKey("P3")}
        assert set(store.lines_for("tok")) == {LineKey("P1"), LineKey("P3")}

    @pytest.mark.asyncio
    async def test_already_authenticated_merges_on_bind(self, reconciler, identity, store):
        await identity.login("tok")
        reconciler.mutate(upsert("mug", 1))

        await reconciler.bind_identity(identity)

        assert reconciler.status is SyncStatus.SYNCED
        assert LineKey("mug") in store.lines_for("tok")

    @pytest.mark.asyncio
    async def test_logout_detaches_and_unsubscribes(self, reconciler, identity, store):
        await reconciler.bind_identity(identity)
        await identity.login("tok")
        reconciler.mutate(upsert("mug", 1))
        await reconciler.drain()

        await identity.logout()

        assert reconciler.status is SyncStatus.DETACHED
        assert len(reconciler.local) == 0

        await identity.login("other")
        assert [call["session_token"] for call in store.calls if call["method"] == "get_cart"] == ["tok"]

    @pytest.mark.asyncio
    async def test_switching_identity_merges_new_remote(self, reconciler, identity, store):
        store.seed("alice", [remote_line("A", 1)])
        store.seed("bob", [remote_line("B", 1)])
        await reconciler.bind_identity(identity)

        await identity.login("alice")
        await identity.login("bob")

        assert reconciler.session_token == "bob"
        assert reconciler.local.keys() == {LineKey("A"), LineKey("B")}
        assert LineKey("A") in store.lines_for("bob")

    @pytest.mark.asyncio
    async def test_repeated_login_event_does_not_remerge(self, reconciler, identity, store):
        await reconciler.bind_identity(identity)
        await identity.login("tok")

        await reconciler.on_identity_changed(IdentitySnapshot(is_authenticated=True, session_token="tok"))

        assert len([call for call in store.calls if call["method"] == "get_cart"]) == 1

    @pytest.mark.asyncio
    async def test_anonymous_event_while_local_only_is_ignored(self, reconciler):
        await reconciler.on_identity_changed(ANONYMOUS)

        assert reconciler.status is SyncStatus.LOCAL_ONLY

    @pytest.mark.asyncio
    async def test_login_during_slow_fetch_merges_newest_identity(self, reconciler, identity, store):
        store.seed("token-a", [remote_line("A", 1)])
        store.seed("token-b", [remote_line("B", 1)])
        await reconciler.bind_identity(identity)
        reconciler.mutate(upsert("mug", 1))
        store.configure(latency=0.05)

        first_login = asyncio.create_task(identity.login("token-a"))
        await asyncio.sleep(0)
        assert reconciler.status is SyncStatus.MERGING
        await identity.login("token-b")
        await first_login
        await reconciler.drain()

        assert reconciler.session_token == "token-b"
        assert reconciler.status is SyncStatus.SYNCED
        assert reconciler.local.keys() == {LineKey("B"), LineKey("mug")}
        assert {call["session_token"] for call in store.writes()} == {"token-b"}
        assert set(store.lines_for("token-a")) == {LineKey("A")}
        [merged] = reconciler.events.of_type(CartMerged)
        assert merged.line_count == 2

    @pytest.mark.asyncio
    async def test_logout_during_fetch_drops_merge(self, reconciler, identity, store):
        store.seed("tok", [remote_line("P1", 1)])
        await reconciler.bind_identity(identity)
        reconciler.mutate(upsert("mug", 1))
        store.configure(latency=0.05)

        login = asyncio.create_task(identity.login("tok"))
        await asyncio.sleep(0)
        await identity.logout()
        await login

        assert reconciler.status is SyncStatus.DETACHED
        assert len(reconciler.local) == 0
        assert store.writes() == []
        assert reconciler.events.of_type(CartMerged) == []
