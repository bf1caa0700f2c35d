"""Per-run lifecycle event stream."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable
from enum import Enum
from typing import Any

Listener = Callable[..., Any]


class LifecycleEvent(str, Enum):
    """Events emitted while a rebuild runs."""

    START = "start"
    MODULE_FOUND = "module-found"
    MODULE_DONE = "module-done"
    MODULE_SKIP = "module-skip"


class Lifecycle:
    """Minimal synchronous event emitter.

    Listeners run inline, in registration order, on the emitting task. A
    listener that raises propagates into the rebuild.
    """

    def __init__(self) -> None:
        self._listeners: dict[LifecycleEvent, list[Listener]] = defaultdict(list)

    def on(self, event: LifecycleEvent | str, listener: Listener) -> Listener:
        """Subscribe *listener* to *event*; returns the listener for later ``off``."""
        self._listeners[LifecycleEvent(event)].append(listener)
        return listener

    def once(self, event: LifecycleEvent | str, listener: Listener) -> Listener:
        """Subscribe *listener* for the next occurrence of *event* only."""
        kind = LifecycleEvent(event)

        def _wrapper(*args: Any) -> Any:
            self.off(kind, _wrapper)
            return listener(*args)

        return self.on(kind, _wrapper)

    def off(self, event: LifecycleEvent | str, listener: Listener) -> None:
        listeners = self._listeners[LifecycleEvent(event)]
        if listener in listeners:
            listeners.remove(listener)

    def emit(self, event: LifecycleEvent | str, *args: Any) -> None:
        for listener in list(self._listeners[LifecycleEvent(event)]):
            listener(*args)

    def listener_count(self, event: LifecycleEvent | str) -> int:
        return len(self._listeners[LifecycleEvent(event)])
