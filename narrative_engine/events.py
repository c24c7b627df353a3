"""Typed event bus between the engine and its observers.

Listeners subscribe per event type and get back an unsubscribe handle.
Emission is synchronous; a listener that raises is logged and skipped, the
remaining listeners still run and the emitting dispatch carries on.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any, Literal

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

GameEventType = Literal[
    "phase_changed",
    "scene_changed",
    "dialog_started",
    "dialog_advanced",
    "dialog_ended",
    "choice_made",
    "item_added",
    "item_removed",
    "memory_added",
    "achievement_unlocked",
    "flag_changed",
    "save_created",
    "save_loaded",
    "save_updated",
    "error",
]


class GameEvent(BaseModel):
    type: GameEventType
    payload: dict[str, Any] = Field(default_factory=dict)
    timestamp: float  # epoch milliseconds, non-decreasing per bus


GameEventListener = Callable[[GameEvent], None]


class EventBus:
    def __init__(self, debug: bool = False) -> None:
        self._listeners: dict[str, list[GameEventListener]] = {}
        self._last_ts = 0.0
        self._debug = debug

    def on(self, event_type: GameEventType, listener: GameEventListener) -> Callable[[], None]:
        """Register `listener`; the returned callable unregisters it."""
        listeners = self._listeners.setdefault(event_type, [])
        if listener not in listeners:
            listeners.append(listener)
        return lambda: self.off(event_type, listener)

    def off(self, event_type: GameEventType, listener: GameEventListener) -> None:
        listeners = self._listeners.get(event_type)
        if listeners and listener in listeners:
            listeners.remove(listener)

    def clear(self) -> None:
        self._listeners.clear()

    def listener_count(self, event_type: GameEventType) -> int:
        return len(self._listeners.get(event_type, []))

    def _timestamp(self) -> float:
        self._last_ts = max(time.time() * 1000, self._last_ts)
        return self._last_ts

    def emit(self, event_type: GameEventType, payload: dict[str, Any] | None = None) -> GameEvent:
        event = GameEvent(type=event_type, payload=payload or {}, timestamp=self._timestamp())
        if self._debug:
            logger.debug("event %s %r", event_type, event.payload)

        # Copy: a listener may unsubscribe itself while we iterate
        for listener in list(self._listeners.get(event_type, [])):
            try:
                listener(event)
            except Exception:
                logger.exception("Error in event listener for %s", event_type)
        return event
