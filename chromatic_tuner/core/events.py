"""Publish/subscribe plumbing between the tuner service and its displays."""

import threading
from enum import Enum, auto
from typing import Any, Callable, Dict, List, Optional

from ..logger import get_logger
from ..note_types import ErrorKind, TunerReading, TunerState

logger = get_logger(__name__)


class TunerEventType(Enum):
    READING = auto()
    STATE_CHANGED = auto()
    ERROR = auto()


class EventEmitter:
    """Synchronous event emitter.

    Listeners run on the emitting thread (the tick thread for readings), so
    registration is guarded by a lock and emit() iterates over a snapshot.
    """

    def __init__(self):
        self._listeners: Dict[Any, List[Callable]] = {}
        self._lock = threading.Lock()

    def on(self, event_type: Any, callback: Callable) -> None:
        """Register a callback for an event type; registering twice has no effect."""
        with self._lock:
            listeners = self._listeners.setdefault(event_type, [])
            if callback not in listeners:
                listeners.append(callback)
                logger.debug(f"Added listener for event {event_type}")

    def off(self, event_type: Any, callback: Callable) -> None:
        with self._lock:
            listeners = self._listeners.get(event_type, [])
            if callback in listeners:
                listeners.remove(callback)

    def listener_count(self, event_type: Any) -> int:
        with self._lock:
            return len(self._listeners.get(event_type, ()))

    def emit(self, event_type: Any, *args, **kwargs) -> None:
        """Call every listener for event_type.

        A listener that raises is logged and skipped; the rest still run.
        """
        with self._lock:
            listeners = list(self._listeners.get(event_type, ()))
        for callback in listeners:
            try:
                callback(*args, **kwargs)
            except Exception as e:
                logger.error(f"Error in event listener for {event_type}: {e}")

    def clear(self) -> None:
        with self._lock:
            self._listeners = {}
        logger.debug("Cleared all event listeners")


class TunerEvents:
    """Reading, state-change and capture-error events for one tuner."""

    def __init__(self):
        self._emitter = EventEmitter()
        self._last_state: Optional[TunerState] = None

    def on_reading(self, callback: Callable[[TunerReading], None]) -> None:
        """Called with every reading, once per tick."""
        self._emitter.on(TunerEventType.READING, callback)

    def on_state_change(self, callback: Callable[[TunerState, TunerState], None]) -> None:
        """Called with (previous, current) when the reading's state differs from the last one."""
        self._emitter.on(TunerEventType.STATE_CHANGED, callback)

    def on_error(self, callback: Callable[[ErrorKind], None]) -> None:
        self._emitter.on(TunerEventType.ERROR, callback)

    def emit_reading(self, reading: TunerReading) -> None:
        previous, self._last_state = self._last_state, reading.state
        if previous is not None and previous is not reading.state:
            self._emitter.emit(TunerEventType.STATE_CHANGED, previous, reading.state)
        self._emitter.emit(TunerEventType.READING, reading)

    def emit_error(self, kind: ErrorKind) -> None:
        self._emitter.emit(TunerEventType.ERROR, kind)

    def clear(self) -> None:
        """Remove all listeners and forget the last state."""
        self._emitter.clear()
        self._last_state = None
