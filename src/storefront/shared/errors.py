"""Error taxonomy shared by every component of the cart engine.

Errors carry a field-keyed ``messages`` payload so callers (and the UI layer)
can render them the same way regardless of which component raised them.
"""


class StorefrontError(Exception):
    """Base class for all cart engine errors."""

    def __init__(self, messages: dict[str, list[str]] | str):
        if isinstance(messages, str):
            messages = {"_entity": [messages]}
        self.messages = messages
        super().__init__(messages)

    def __str__(self) -> str:
        return "; ".join(f"{field}: {', '.join(msgs)}" for field, msgs in self.messages.items())


class InvalidTransition(StorefrontError):
    """An operation was attempted in a state that does not allow it."""


class CartLimitExceeded(StorefrontError):
    """Adding a new line would push the cart past its configured line limit."""


class InsufficientStock(StorefrontError):
    """The requested quantity of a line exceeds the stock it was quoted with."""


class LineQuantityExceeded(StorefrontError):
    """The requested quantity of a line exceeds the per-line maximum."""
