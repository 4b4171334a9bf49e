"""
In-process event bus.

Publishing is fire-and-forget: handlers run synchronously on the publishing
thread, and a failing handler is logged without affecting the publisher or
the other handlers.
"""

import threading
from typing import Any, Callable, Dict, List, Protocol, Type

from trade_ingest.utils.logging_config import get_logger

logger = get_logger("event_bus")

Handler = Callable[[Any], None]


class Publisher(Protocol):
    """Anything fetch tasks can publish events to."""

    def publish(self, event: Any) -> None:
        ...


class EventBus:
    """
    Type-routed publish/subscribe.

    A handler subscribed to a type receives events of that type and of its
    subclasses.

    Usage:
        bus = EventBus()
        bus.subscribe(Trade, saver.on_trade)
        bus.subscribe(MarketDataError, lambda e: alerts.append(e))
        bus.publish(trade)
    """

    def __init__(self):
        self._handlers: Dict[Type, List[Handler]] = {}
        self._lock = threading.Lock()
        self._published = 0
        self._handler_errors = 0

    def subscribe(self, event_type: Type, handler: Handler) -> None:
        with self._lock:
            self._handlers.setdefault(event_type, []).append(handler)

    def unsubscribe(self, event_type: Type, handler: Handler) -> bool:
        """Remove a handler. Returns False if it was not subscribed."""
        with self._lock:
            handlers = self._handlers.get(event_type, [])
            if handler not in handlers:
                return False
            handlers.remove(handler)
            return True

    def publish(self, event: Any) -> None:
        with self._lock:
            targets = [
                handler
                for event_type, handlers in self._handlers.items()
                if isinstance(event, event_type)
                for handler in handlers
            ]
            self._published += 1

        for handler in targets:
            try:
                handler(event)
            except Exception as e:
                with self._lock:
                    self._handler_errors += 1
                logger.error(f"Handler {getattr(handler, '__name__', handler)!r} failed for {event}: {e}")

    def get_stats(self) -> dict:
        with self._lock:
            return {
                "published": self._published,
                "handler_errors": self._handler_errors,
                "subscriptions": sum(len(h) for h in self._handlers.values()),
            }
