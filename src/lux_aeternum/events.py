"""Minimal listener registry used by the dispatcher and sync services."""

from __future__ import annotations

import inspect
from collections import defaultdict
from typing import Any, Callable

from lux_aeternum.logging import get_logger
from lux_aeternum.models import event_key

Listener = Callable[..., Any]

_LOGGER = get_logger("lux.events")


class EventEmitter:
    """Named-event pub/sub with sync or async listeners.

    Listeners run in registration order and are awaited one after another;
    a failing listener is logged and does not stop the others.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = defaultdict(list)

    def on(self, event: str, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for ``event`` and return an unsubscribe callable."""
        self._listeners[event_key(event)].append(listener)
        return lambda: self.off(event, listener)

    def off(self, event: str, listener: Listener) -> None:
        listeners = self._listeners.get(event_key(event))
        if listeners and listener in listeners:
            listeners.remove(listener)

    def listener_count(self, event: str | None = None) -> int:
        if event is None:
            return sum(len(v) for v in self._listeners.values())
        return len(self._listeners.get(event_key(event), ()))

    def remove_all_listeners(self) -> None:
        self._listeners.clear()

    async def emit(self, event: str, *args: Any) -> None:
        for listener in list(self._listeners.get(event_key(event), ())):
            try:
                result = listener(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                _LOGGER.exception("Listener for %s failed", event)
