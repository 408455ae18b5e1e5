"""
In-process bus for user-activity and runtime signals.

The embedding application forwards pointer/key/scroll/touch events and
connectivity/visibility notifications here; the session timer listens for
the interaction subset.
"""

from __future__ import annotations

from collections.abc import Callable

from loginguard.core import get_logger

logger = get_logger(__name__)

ActivityListener = Callable[[str], None]

INTERACTION_EVENTS = frozenset(
    {"mousedown", "mousemove", "keypress", "scroll", "touchstart", "click"}
)
RUNTIME_EVENTS = frozenset({"online", "offline", "visibilitychange"})
KNOWN_EVENTS = INTERACTION_EVENTS | RUNTIME_EVENTS


def is_interaction(event_type: str) -> bool:
    return event_type in INTERACTION_EVENTS


class ActivityBus:
    """Fan-out of activity signals to registered listeners."""

    def __init__(self) -> None:
        self._listeners: list[ActivityListener] = []

    def add_listener(self, listener: ActivityListener) -> None:
        """Register ``listener``; registering the same callable twice is a no-op."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: ActivityListener) -> bool:
        """Remove ``listener``; returns False if it was not registered."""
        try:
            self._listeners.remove(listener)
        except ValueError:
            return False
        return True

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def emit(self, event_type: str) -> None:
        """
        Deliver ``event_type`` to every listener.

        Raises:
            ValueError: If the event type is not a known activity signal.
        """
        if event_type not in KNOWN_EVENTS:
            raise ValueError(f"Unknown activity event: {event_type}")
        for listener in list(self._listeners):
            try:
                listener(event_type)
            except Exception:
                logger.error(
                    "Activity listener failed",
                    data={"event": event_type},
                    exc_info=True,
                )
