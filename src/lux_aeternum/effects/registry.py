"""Registry mapping event types to prioritized lighting effects."""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from enum import Enum

from lux_aeternum.logging import get_logger
from lux_aeternum.models import Effect, GameEvent, event_key

_LOGGER = get_logger("lux.effects.registry")


@dataclass(frozen=True)
class EffectHandle:
    """Opaque token identifying one registered effect."""

    event_type: str
    token: int


@dataclass(frozen=True)
class _Entry:
    handle: EffectHandle
    effect: Effect


class EffectRegistry:
    """Ordered effects per event type, highest priority first.

    Effects with equal priority keep their registration order. Positional
    removal addresses the current sorted list; prefer the handle returned by
    :meth:`add_effect`, which stays valid across later additions.

    Example:
        ```python
        registry = EffectRegistry()
        handle = registry.add_effect(
            Effect("match:victory", LightCommand.set_color("#FFFF00"), priority=10)
        )
        effect = registry.select("match:victory", GameEvent("match:victory"))
        registry.remove(handle)
        ```
    """

    def __init__(self) -> None:
        self._entries: dict[str, list[_Entry]] = {}
        self._tokens = itertools.count(1)

    def add_effect(self, effect: Effect) -> EffectHandle:
        event_type = event_key(effect.event_type)
        handle = EffectHandle(event_type, next(self._tokens))
        entries = self._entries.setdefault(event_type, [])
        entries.append(_Entry(handle, effect))
        # list.sort is stable, so equal priorities keep insertion order.
        entries.sort(key=lambda entry: entry.effect.priority or 0, reverse=True)
        _LOGGER.debug(
            "Added effect for event: %s",
            event_type,
            extra={"priority": effect.priority, "token": handle.token},
        )
        return handle

    def remove_effect(self, event_type: str | Enum, index: int) -> Effect | None:
        """Remove the effect at sorted position ``index``; out of range is a no-op."""
        entries = self._entries.get(event_key(event_type))
        if not entries or not 0 <= index < len(entries):
            return None
        entry = entries.pop(index)
        _LOGGER.debug("Removed effect for event: %s at index %d", entry.handle.event_type, index)
        return entry.effect

    def remove(self, handle: EffectHandle) -> bool:
        entries = self._entries.get(handle.event_type, [])
        for index, entry in enumerate(entries):
            if entry.handle == handle:
                del entries[index]
                return True
        return False

    def effects_for(self, event_type: str | Enum) -> list[Effect]:
        return [entry.effect for entry in self._entries.get(event_key(event_type), ())]

    def select(self, event_type: str | Enum, event: GameEvent) -> Effect | None:
        """Return the first effect, in priority order, whose condition accepts ``event``."""
        for entry in self._entries.get(event_key(event_type), ()):
            if entry.effect.matches(event):
                return entry.effect
        return None

    @property
    def event_types(self) -> list[str]:
        return [event_type for event_type, entries in self._entries.items() if entries]

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._entries.values())

    def __repr__(self) -> str:
        return f"EffectRegistry(event_types={len(self.event_types)}, effects={len(self)})"
