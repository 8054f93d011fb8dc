"""In-memory remote cart store for development and testing.

Behaves like the real persistence collaborator without any network calls and
can be configured at runtime to fail, fail for specific lines, or respond
slowly, so every sync failure path can be exercised deterministically.
"""

import asyncio

from storefront.cart.cart import CartLine, LineKey
from storefront.remote.port import RemoteCartStore, RemoteStoreError


class InMemoryRemoteCartStore(RemoteCartStore):
    """Configurable fake remote cart store."""

    def __init__(self) -> None:
        self.carts: dict[str, dict[LineKey, CartLine]] = {}
        self.should_succeed: bool = True
        self.failure_reason: str = "Remote cart store unavailable"
        self.failing_keys: set[LineKey] = set()
        self.latency: float = 0.0
        self.calls: list[dict] = []

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str = "Remote cart store unavailable",
        failing_keys: set[LineKey] | None = None,
        latency: float = 0.0,
    ) -> None:
        """Configure store behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.failing_keys = set(failing_keys or ())
        self.latency = latency

    def seed(self, session_token: str, lines: list[CartLine]) -> None:
        self.carts[session_token] = {line.key: line for line in lines}

    def lines_for(self, session_token: str) -> dict[LineKey, CartLine]:
        return dict(self.carts.get(session_token, {}))

    def writes(self) -> list[dict]:
        return [call for call in self.calls if call["method"] != "get_cart"]

    async def _respond(self, key: LineKey | None = None) -> None:
        if self.latency:
            await asyncio.sleep(self.latency)
        if not self.should_succeed or (key is not None and key in self.failing_keys):
            raise RemoteStoreError({"remote": [self.failure_reason]})

    async def get_cart(self, session_token: str) -> list[CartLine]:
        self.calls.append({"method": "get_cart", "session_token": session_token})
        await self._respond()
        return list(self.carts.get(session_token, {}).values())

    async def upsert_line(self, session_token: str, line: CartLine) -> None:
        self.calls.append(
            {
                "method": "upsert_line",
                "session_token": session_token,
                "product_id": line.product_id,
                "variant_key": line.variant_key,
                "quantity": line.quantity,
            }
        )
        await self._respond(line.key)
        self.carts.setdefault(session_token, {})[line.key] = line

    async def remove_line(self, session_token: str, product_id: str, variant_key: str | None) -> None:
        key = LineKey(product_id, variant_key)
        self.calls.append(
            {
                "method": "remove_line",
                "session_token": session_token,
                "product_id": product_id,
                "variant_key": variant_key,
            }
        )
        await self._respond(key)
        self.carts.get(session_token, {}).pop(key, None)

    async def clear(self, session_token: str) -> None:
        self.calls.append({"method": "clear", "session_token": session_token})
        await self._respond()
        self.carts[session_token] = {}
