"""Subscription channel for side-channel events (coupon deactivation, sync failures)."""

from collections.abc import Callable

from storefront.shared.events import BaseEvent

EventListener = Callable[[BaseEvent], None]


class EventChannel:
    """Delivers events to subscribers in publication order and keeps a history."""

    def __init__(self) -> None:
        self._listeners: list[EventListener] = []
        self.history: list[BaseEvent] = []

    def subscribe(self, listener: EventListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def publish(self, event: BaseEvent) -> None:
        self.history.append(event)
        for listener in list(self._listeners):
            listener(event)

    def of_type(self, event_type: type[BaseEvent]) -> list[BaseEvent]:
        return [event for event in self.history if isinstance(event, event_type)]
