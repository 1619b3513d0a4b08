# services/events.py
import logging
from typing import Callable, Dict, List, Type

from pymongo.database import Database

from domain.events import OrderEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[Database, OrderEvent], None]


class EventPublisher:
    """In-process publisher for order events.

    ``publish`` is called only after the order write has been acknowledged.
    A failing handler is logged and skipped; it never reaches the caller.
    """

    def __init__(self):
        self._handlers: Dict[Type[OrderEvent], List[EventHandler]] = {}

    def subscribe(self, event_type: Type[OrderEvent], handler: EventHandler) -> None:
        handlers = self._handlers.setdefault(event_type, [])
        if handler not in handlers:
            handlers.append(handler)
            logger.debug(f"Subscribed {handler.__name__} to {event_type.__name__}")

    def unsubscribe(self, event_type: Type[OrderEvent], handler: EventHandler) -> None:
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def publish(self, db: Database, event: OrderEvent) -> int:
        """Run every handler subscribed to the event's type.

        Returns:
            int: Number of handlers that completed without raising.
        """
        delivered = 0
        for event_type, handlers in self._handlers.items():
            if not isinstance(event, event_type):
                continue
            for handler in list(handlers):
                try:
                    handler(db, event)
                    delivered += 1
                except Exception as e:
                    logger.error(f"Handler {handler.__name__} failed for {event.event_type} "
                                 f"on order {event.order_id}: {str(e)}", exc_info=True)
        logger.debug(f"Published {event.event_type} for order {event.order_id} to {delivered} handler(s)")
        return delivered


publisher = EventPublisher()
