"""
"rebase" event records and listener registration shared by the markup and
CSS rebasers.
"""

from __future__ import annotations

from typing import Callable, Dict, List, NamedTuple


REBASE_EVENT = "rebase"

RebaseEventListener = Callable[[str, str], None]


class RebaseEvent(NamedTuple):
    rebased_path: str
    resolved_path: str


class EventSource:
    """Push-based observer: listeners are called in registration order."""

    EVENTS = (REBASE_EVENT,)

    def __init__(self):
        self._listeners: Dict[str, List[RebaseEventListener]] = {name: [] for name in self.EVENTS}

    def on(self, event: str, listener: RebaseEventListener):
        """
        Add a listener to the end of the listener list for an event.

        Args:
            event: Event name, only "rebase" is supported
            listener: Called with (rebased_path, resolved_path)

        Returns:
            self, so calls can be chained
        """
        if event not in self._listeners:
            raise ValueError(f"Unknown event: {event!r}")
        self._listeners[event].append(listener)
        return self

    def emit(self, event: str, *args) -> None:
        for listener in list(self._listeners[event]):
            listener(*args)

