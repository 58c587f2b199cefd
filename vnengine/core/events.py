"""
Typed event bus connecting the playback engine to the host.

Event types are Enum members, so publishers and subscribers share names
without magic strings. The sequencer publishes NarrativeEvent, the audio
manager publishes AudioEvent.

Usage:
    bus.subscribe(NarrativeEvent.ENTRY_PRESENTED, on_entry_presented)
    bus.publish(NarrativeEvent.ENTRY_PRESENTED, entry=entry, index=3)
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable, Union
from weakref import WeakMethod, ref

logger = logging.getLogger(__name__)


class NarrativeEvent(Enum):
    """Published by the playback sequencer."""
    SCENE_STARTED = auto()
    SCENE_COMPLETED = auto()
    SCENE_STOPPED = auto()
    ENTRY_PRESENTED = auto()
    CHOICE_RESOLVED = auto()


class AudioEvent(Enum):
    """Published by the audio manager."""
    BGM_STARTED = auto()
    BGM_STOPPED = auto()
    CUE_PLAYED = auto()
    CUE_FAILED = auto()


@dataclass
class Event:
    """
    One published event.

    Handlers read payload values with event["key"] or event.get("key").
    A handler may call consume() to keep lower priority handlers from
    seeing the event.
    """
    type: Enum
    data: dict[str, Any] = field(default_factory=dict)
    consumed: bool = False

    def consume(self) -> None:
        self.consumed = True

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def __getitem__(self, key: str) -> Any:
        return self.data[key]


EventHandler = Callable[[Event], None]
_HandlerRef = Union[EventHandler, ref, WeakMethod]


@dataclass(eq=False)
class _Subscription:
    target: _HandlerRef
    priority: int
    one_shot: bool

    def resolve(self) -> EventHandler | None:
        """The live handler, or None once a weakly held owner is gone."""
        if isinstance(self.target, (ref, WeakMethod)):
            return self.target()
        return self.target


class EventBus:
    """
    Publish/subscribe hub.

    Features:
    - Enum keyed event types
    - Priority ordering, first subscribed first among equal priorities
    - Weakly held handlers by default, dropped when their owner is collected
    - One-shot handlers
    - Consumption stops propagation to lower priorities
    - Events published from inside a handler wait until the current
      dispatch finishes, so every handler sees events in publish order
    """

    def __init__(self):
        self._subscriptions: dict[Enum, list[_Subscription]] = {}
        self._pending: deque[Event] = deque()
        self._dispatching = False

    def subscribe(
        self,
        event_type: Enum,
        handler: EventHandler,
        priority: int = 0,
        one_shot: bool = False,
        weak: bool = True,
    ) -> None:
        """
        Register handler for event_type.

        Args:
            event_type: Enum member to listen for
            handler: Callable taking the Event
            priority: Higher runs earlier (default 0)
            one_shot: Drop the handler after its first call
            weak: Hold the handler weakly. Pass False for lambdas and
                  closures that nothing else keeps alive.
        """
        if not weak:
            target: _HandlerRef = handler
        elif hasattr(handler, '__self__'):
            target = WeakMethod(handler)
        else:
            target = ref(handler)

        subs = self._subscriptions.setdefault(event_type, [])
        position = next(
            (i for i, sub in enumerate(subs) if priority > sub.priority),
            len(subs),
        )
        subs.insert(position, _Subscription(target, priority, one_shot))

    def unsubscribe(self, event_type: Enum, handler: EventHandler) -> None:
        subs = self._subscriptions.get(event_type)
        if subs:
            subs[:] = [sub for sub in subs if sub.resolve() != handler]

    def publish(self, event_type: Enum, **data: Any) -> Event:
        """
        Publish an event built from keyword payload.

        Returns:
            The Event, so callers can check whether it was consumed
        """
        event = Event(type=event_type, data=data)
        self.publish_event(event)
        return event

    def publish_event(self, event: Event) -> None:
        self._pending.append(event)
        if self._dispatching:
            return

        self._dispatching = True
        try:
            while self._pending:
                self._dispatch(self._pending.popleft())
        finally:
            self._dispatching = False

    def has_subscribers(self, event_type: Enum) -> bool:
        return bool(self._subscriptions.get(event_type))

    def clear(self, event_type: Enum | None = None) -> None:
        """Drop the handlers for event_type, or every handler when None."""
        if event_type is None:
            self._subscriptions.clear()
        else:
            self._subscriptions.pop(event_type, None)

    def _dispatch(self, event: Event) -> None:
        subs = self._subscriptions.get(event.type)
        if not subs:
            return

        finished: list[_Subscription] = []

        # Snapshot; handlers may subscribe or unsubscribe mid-dispatch
        for sub in list(subs):
            handler = sub.resolve()
            if handler is None:
                finished.append(sub)
                continue

            try:
                handler(event)
            except Exception:
                logger.exception(f"Error in handler for {event.type}")

            if sub.one_shot:
                finished.append(sub)
            if event.consumed:
                break

        for sub in finished:
            if sub in subs:
                subs.remove(sub)
