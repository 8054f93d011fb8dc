"""Identity port (abstract interface).

Authentication and token issuance live outside the cart engine. The engine
only observes the current identity and reacts to its transitions.
"""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass


@dataclass(frozen=True)
class IdentitySnapshot:
    is_authenticated: bool
    session_token: str | None = None


ANONYMOUS = IdentitySnapshot(is_authenticated=False)

IdentityListener = Callable[[IdentitySnapshot], Awaitable[None]]


class IdentityProvider(ABC):
    """Abstract identity collaborator."""

    @abstractmethod
    def current(self) -> IdentitySnapshot:
        """Return the identity as of now."""
        ...

    @abstractmethod
    def subscribe(self, listener: IdentityListener) -> Callable[[], None]:
        """Register a listener for identity transitions. Returns an unsubscribe callable."""
        ...
