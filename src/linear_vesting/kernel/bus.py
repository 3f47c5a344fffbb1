"""
In-process notification bus

Publishes committed ledger events (grant created, tokens claimed, admin
changed, ...) to subscribers. Publishing happens after commit, so a
subscriber never sees an event that was rolled back.
"""

from collections import defaultdict
from typing import Callable

from linear_vesting.kernel.events import Event
from linear_vesting.kernel.logging import get_logger

logger = get_logger(__name__)

EventHandler = Callable[[Event], None]

ALL_EVENTS = "*"


class NotificationBus:
    """
    Simple synchronous pub/sub for ledger events

    Handlers run in subscription order on the publishing thread. A failing
    handler is logged and skipped; it cannot undo a committed operation.
    """

    def __init__(self) -> None:
        self._handlers: defaultdict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """
        Register a handler for one event type, or ALL_EVENTS for every event
        """
        self._handlers[event_type].append(handler)
        logger.debug(
            "Event handler registered",
            event_type=event_type,
            total_handlers=len(self._handlers[event_type]),
        )

    def publish_event(self, event: Event) -> None:
        handlers = self._handlers.get(event.event_type, []) + self._handlers.get(
            ALL_EVENTS, []
        )

        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(
                    "Event handler failed",
                    event_type=event.event_type,
                    event_id=event.event_id,
                    error=str(e),
                    exc_info=True,
                )

    def publish_events(self, events: list[Event]) -> None:
        for event in events:
            self.publish_event(event)
