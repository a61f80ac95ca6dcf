"""
Event emission to display collaborators.

The core never depends on how events are delivered: it only calls emit().
Delivery is fire-and-forget, a subscriber that raises is logged and skipped
so that the operation which emitted the event is never failed by it.
"""

import threading
from typing import Any, Callable, Dict, List

from avatarslots.log_utils import logger

EventCallback = Callable[[str, Dict[str, Any]], Any]


class EventBus:
    """Minimal synchronous publish/subscribe hub keyed by event name."""

    def __init__(self) -> None:
        self._subscribers: Dict[str, List[EventCallback]] = {}
        self._lock = threading.Lock()

    def subscribe(self, event: str, callback: EventCallback) -> None:
        with self._lock:
            callbacks = self._subscribers.setdefault(event, [])
            if callback not in callbacks:
                callbacks.append(callback)

    def unsubscribe(self, event: str, callback: EventCallback) -> None:
        with self._lock:
            callbacks = self._subscribers.get(event, [])
            if callback in callbacks:
                callbacks.remove(callback)

    def emit(self, event: str, payload: Dict[str, Any]) -> None:
        """
        Deliver `payload` to every subscriber of `event`.

        Subscribers are called outside the lock, in subscription order. Any
        exception they raise is logged at warning level and swallowed.
        """
        with self._lock:
            callbacks = list(self._subscribers.get(event, []))

        logger.debug(f"Emitting {event}: {payload}")
        for callback in callbacks:
            try:
                callback(event, dict(payload))
            except Exception as e:  # noqa: BLE001 - emission is fire-and-forget
                logger.warning(f"Event subscriber for {event} failed: {e}")
