"""EventBus and event types for session state notifications."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Kinds of session state changes observers can subscribe to."""

    STATUS_CHANGED = "status_changed"
    LOCATION_CHANGED = "location_changed"
    ENTRIES_REPLACED = "entries_replaced"
    SELECTION_CHANGED = "selection_changed"
    ENTRY_RENAMED = "entry_renamed"
    HISTORY_CHANGED = "history_changed"
    BACKEND_CHANGED = "backend_changed"


@dataclass(frozen=True, slots=True)
class SessionEvent:
    """Immutable record of a session state change.

    Attributes:
        event_type: The kind of change.
        path: Current location after the change, when relevant.
        old_path: Previous location (location changes) or old name (renames).
        value: Event-specific payload: the new status, the backend name,
            the new entry name, or the number of listed entries.
    """

    event_type: EventType
    path: str | None = None
    old_path: str | None = None
    value: Any = None


Handler = Callable[[SessionEvent], Any]


class EventBus:
    """Dispatches session events to subscribed handlers.

    Handlers for one event type run synchronously in subscription order.
    A handler that raises is logged and skipped; the emitting session
    never sees the exception.
    """

    def __init__(self) -> None:
        self._subscriptions: defaultdict[EventType, list[Handler]] = defaultdict(list)

    def register(self, event_type: EventType, handler: Handler) -> None:
        """Subscribe *handler* to *event_type*.  Subscribing twice delivers twice."""
        self._subscriptions[event_type].append(handler)

    def unregister(self, event_type: EventType, handler: Handler) -> bool:
        """Drop one subscription of *handler*; ``False`` if it had none."""
        subscribed = self._subscriptions.get(event_type, [])
        if handler not in subscribed:
            return False
        subscribed.remove(handler)
        return True

    def handlers_for(self, event_type: EventType) -> tuple[Handler, ...]:
        return tuple(self._subscriptions.get(event_type, ()))

    def emit(self, event: SessionEvent) -> None:
        for handler in self.handlers_for(event.event_type):
            try:
                handler(event)
            except Exception:
                logger.warning(
                    "Handler %r failed for %s on %s",
                    handler,
                    event.event_type.value,
                    event.path,
                    exc_info=True,
                )

    @property
    def handler_count(self) -> int:
        return sum(map(len, self._subscriptions.values()))

    def clear(self, event_type: EventType | None = None) -> None:
        """Drop every subscription, or only those for *event_type*."""
        if event_type is None:
            self._subscriptions.clear()
        else:
            self._subscriptions.pop(event_type, None)
