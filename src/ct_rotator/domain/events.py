"""Lightweight event bus for pipeline progress notifications.

The load and finalize operations publish events so that a surrounding shell
(CLI or GUI) can report progress without the core depending on it.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Callable


def _now() -> datetime:
    """Return current UTC timestamp."""
    return datetime.now(UTC).replace(tzinfo=None)


# Pipeline event types
VOLUME_LOADED = "volume.loaded"
VOLUME_ROTATED = "volume.rotated"
SLICE_WRITTEN = "slice.written"
SERIES_WRITTEN = "series.written"


@dataclass(frozen=True)
class Event:
    """An immutable pipeline event.

    Attributes
    ----------
    type:
        A string identifier for the event category, e.g. ``"volume.loaded"``.
    payload:
        Arbitrary data associated with the event.
    timestamp:
        UTC time at which the event was created.
    """

    type: str
    payload: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=_now)


# Type alias for subscriber callbacks.
EventHandler = Callable[[Event], None]


class EventBus:
    """A synchronous, in-process publish/subscribe event bus.

    Example
    -------
    >>> bus = EventBus()
    >>> log: list[Event] = []
    >>> bus.subscribe("volume.loaded", log.append)
    >>> bus.publish(Event(type="volume.loaded", payload={"slices": 3}))
    >>> len(log)
    1
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """Register *handler* to be called when *event_type* is published."""
        with self._lock:
            self._handlers[event_type].append(handler)

    def publish(
        self,
        event: Event | str,
        payload: dict[str, Any] | None = None,
    ) -> None:
        """Dispatch an event to all registered handlers for its type.

        Accepts either a pre-built :class:`Event` object or an event-type
        string with an optional payload dict.  Handlers run synchronously in
        registration order; an exception from a handler propagates and the
        remaining handlers are not called.
        """
        if isinstance(event, str):
            event = Event(type=event, payload=payload or {})
        with self._lock:
            handlers = list(self._handlers.get(event.type, []))
        for handler in handlers:
            handler(event)
