from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

ROOM_CHANGED = "room.changed"
CONFLICT_DETECTED = "conflict.detected"
RESOLUTION_SUMMARY = "conflict.resolution_summary"
TIMETABLE_GENERATED = "timetable.generated"
TIMETABLE_PUBLISHED = "timetable.published"

EventHandler = Callable[[str, dict[str, Any]], None]


class EventPublisher:
    """Hands domain events to whatever messaging layer subscribed to them.

    Delivery is best effort: a failing handler is logged and the remaining
    handlers still run.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, name: str, handler: EventHandler) -> None:
        self._handlers[name].append(handler)

    def unsubscribe(self, name: str, handler: EventHandler) -> None:
        handlers = self._handlers.get(name)
        if handlers and handler in handlers:
            handlers.remove(handler)

    def clear(self) -> None:
        self._handlers.clear()

    def publish(self, name: str, payload: dict[str, Any]) -> None:
        handlers = list(self._handlers.get(name, ()))
        logger.debug("Publishing %s to %d handler(s)", name, len(handlers))
        for handler in handlers:
            try:
                handler(name, payload)
            except Exception:
                logger.exception("Event handler for %s failed", name)


event_publisher = EventPublisher()
