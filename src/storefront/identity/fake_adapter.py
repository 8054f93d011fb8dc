"""Scriptable identity provider for development and testing."""

from collections.abc import Callable

from storefront.identity.port import ANONYMOUS, IdentityListener, IdentityProvider, IdentitySnapshot


class FakeIdentityProvider(IdentityProvider):
    def __init__(self) -> None:
        self._identity = ANONYMOUS
        self._listeners: list[IdentityListener] = []

    def current(self) -> IdentitySnapshot:
        return self._identity

    def subscribe(self, listener: IdentityListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def login(self, session_token: str) -> None:
        await self._transition(IdentitySnapshot(is_authenticated=True, session_token=session_token))

    async def logout(self) -> None:
        await self._transition(ANONYMOUS)

    async def _transition(self, identity: IdentitySnapshot) -> None:
        self._identity = identity
        for listener in list(self._listeners):
            await listener(identity)
