"""Inline pub/sub EventBus for observing turns without owning their state."""

from __future__ import annotations

import inspect
import logging
from collections import deque
from typing import Any, Callable

from streamchat.types import ChatEvent, EventType

_logger = logging.getLogger(__name__)

WILDCARD = "*"

# Sync or async callable taking a ChatEvent
Handler = Callable[[ChatEvent], Any]


class EventBus:
    """Delivers turn events to observers, in order, before the turn moves on.

    Observers subscribe to one ``EventType`` (the enum or its string value)
    or to ``"*"`` for everything.  For each emitted event the type-specific
    observers run first, then the wildcard ones, each in subscription order
    and each awaited before the next.  An observer that raises is logged and
    skipped; the turn never sees the exception.
    """

    def __init__(self, max_history: int = 200) -> None:
        # None holds the wildcard observers
        self._observers: dict[EventType | None, list[Handler]] = {}
        self._history: deque[ChatEvent] = deque(maxlen=max_history)
        self.handler_errors = 0

    def subscribe(self, event_type: EventType | str, handler: Handler) -> Callable[[], None]:
        """Register *handler*; returns a callable that removes it again."""
        slot = _resolve(event_type)
        self._observers.setdefault(slot, []).append(handler)
        return lambda: self._remove(slot, handler)

    def on(self, event_type: EventType | str, handler: Handler) -> EventBus:
        self.subscribe(event_type, handler)
        return self

    def unsubscribe(self, event_type: EventType | str, handler: Handler) -> None:
        self._remove(_resolve(event_type), handler)

    async def emit(self, event: ChatEvent) -> None:
        self._history.append(event)
        observers = [
            *self._observers.get(event.type, ()),
            *self._observers.get(None, ()),
        ]
        for observer in observers:
            await self._notify(observer, event)

    @property
    def history(self) -> list[ChatEvent]:
        """Most recent events, oldest first."""
        return list(self._history)

    def clear(self) -> None:
        self._observers.clear()
        self._history.clear()

    def _remove(self, slot: EventType | None, handler: Handler) -> None:
        observers = self._observers.get(slot)
        if observers and handler in observers:
            observers.remove(handler)

    async def _notify(self, observer: Handler, event: ChatEvent) -> None:
        try:
            outcome = observer(event)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:
            self.handler_errors += 1
            _logger.exception(
                "Observer %s failed on %s",
                getattr(observer, "__qualname__", observer),
                event.type.value,
            )


def _resolve(event_type: EventType | str) -> EventType | None:
    if isinstance(event_type, EventType):
        return event_type
    if event_type == WILDCARD:
        return None
    try:
        return EventType(event_type)
    except ValueError:
        raise ValueError(f"Unknown event type: {event_type!r}") from None
