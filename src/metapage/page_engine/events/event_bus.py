"""
In-memory Event Bus for runtime events.
Provides a simple publish/subscribe mechanism.
"""

import logging
from typing import Callable, Dict, List, Type

from metapage.page_engine.events.domain_events import DomainEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[DomainEvent], None]


class EventBus:
    """One bus per runtime; subscribers to `DomainEvent` receive everything."""

    def __init__(self) -> None:
        self._subscribers: Dict[Type[DomainEvent], List[EventHandler]] = {}

    def subscribe(self, event_type: Type[DomainEvent], handler: EventHandler) -> Callable[[], None]:
        """
        Subscribes a handler function to a specific event type.
        Args:
            event_type: The type of the DomainEvent to subscribe to.
            handler: A callable that takes a DomainEvent instance as its argument.
        Returns:
            A callable that removes the subscription.
        """
        self._subscribers.setdefault(event_type, []).append(handler)
        logger.debug(
            f"Subscribed handler {getattr(handler, '__name__', handler)} to {event_type.__name__}"
        )
        return lambda: self.unsubscribe(event_type, handler)

    def unsubscribe(self, event_type: Type[DomainEvent], handler: EventHandler) -> None:
        handlers = self._subscribers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def publish(self, event: DomainEvent) -> None:
        """
        Publishes an event to all subscribed handlers.
        Args:
            event: The DomainEvent instance to publish.
        """
        logger.debug(f"Publishing event: {event.event_type} (ID: {event.event_id})")

        handlers_for_exact_type = list(self._subscribers.get(type(event), []))
        for handler in handlers_for_exact_type:
            self._call(handler, event)

        # Generic listeners
        if type(event) is not DomainEvent:
            for handler in list(self._subscribers.get(DomainEvent, [])):
                if handler not in handlers_for_exact_type:
                    self._call(handler, event)

    @staticmethod
    def _call(handler: EventHandler, event: DomainEvent) -> None:
        try:
            handler(event)
        except Exception as e:
            logger.error(
                f"Event handler {getattr(handler, '__name__', handler)} "
                f"for {type(event).__name__} failed: {e}",
                exc_info=True,
            )
