"""Apply registered effects to devices and restore their prior state."""

from __future__ import annotations

import asyncio
import os
from typing import Any, Iterable

from lux_aeternum.effects.registry import EffectHandle, EffectRegistry
from lux_aeternum.effects.timers import TimerQueue
from lux_aeternum.events import EventEmitter
from lux_aeternum.logging import get_logger
from lux_aeternum.manager import LightManager
from lux_aeternum.models import (
    Device,
    Effect,
    GameEvent,
    GameEventType,
    LightCommand,
    SavedState,
    event_key,
)

DEFAULT_BASE_URL = "https://api.gamedin.network"

DEFAULT_EFFECTS: tuple[Effect, ...] = (
    Effect(
        GameEventType.PLAYER_JOIN.value,
        LightCommand.set_color("#00FF00"),
        priority=1,
        duration=2000,
        restore_previous_state=True,
    ),
    Effect(
        GameEventType.MATCH_VICTORY.value,
        LightCommand.set_color("#FFFF00"),
        priority=10,
        duration=5000,
    ),
    Effect(
        GameEventType.MATCH_DEFEAT.value,
        LightCommand.set_color("#FF0000"),
        priority=10,
        duration=5000,
    ),
    Effect(
        GameEventType.PLAYER_LEVEL_UP.value,
        LightCommand.set_color("#9400D3"),  # violet
        priority=5,
        duration=3000,
    ),
)

_LOGGER = get_logger("lux.effects.dispatcher")


class EffectDispatcher(EventEmitter):
    """Map game events to timed, prioritized, reversible light commands.

    For each event every device known to the manager gets the first
    matching effect for the event type. Restorable effects snapshot the
    device's color and brightness the first time they touch it; the
    snapshot survives replacement by later effects until a restoration
    timer fires, so the state from before the first effect comes back.

    Events are handled one at a time. Each handled event is re-emitted
    under its own type once its commands have been issued, and
    ``effect:applied`` / ``effect:restored`` are emitted per device.

    Example:
        ```python
        dispatcher = EffectDispatcher(manager)
        await dispatcher.initialize()
        await dispatcher.handle_event({"type": "match:victory", "playerId": "p1"})
        await dispatcher.dispose()
        ```
    """

    def __init__(
        self,
        manager: LightManager,
        *,
        registry: EffectRegistry | None = None,
        timers: TimerQueue | None = None,
        api_key: str | None = None,
        base_url: str = DEFAULT_BASE_URL,
        enable_default_effects: bool = True,
        default_effects: Iterable[Effect] = DEFAULT_EFFECTS,
    ) -> None:
        super().__init__()
        self.manager = manager
        self.registry = registry if registry is not None else EffectRegistry()
        self.timers = timers if timers is not None else TimerQueue()
        self.api_key = api_key or os.environ.get("GAMEDIN_API_KEY", "")
        self.base_url = base_url
        self._saved: dict[str, SavedState] = {}
        self._generations: dict[str, int] = {}
        self._lock = asyncio.Lock()

        if enable_default_effects:
            effects = list(default_effects)
            for effect in effects:
                self.add_effect(effect)
            _LOGGER.info("Registered %d default effects", len(effects))

    def add_effect(self, effect: Effect) -> EffectHandle:
        return self.registry.add_effect(effect)

    def remove_effect(self, event_type: str, index: int) -> Effect | None:
        return self.registry.remove_effect(event_type, index)

    def remove(self, handle: EffectHandle) -> bool:
        return self.registry.remove(handle)

    def is_active(self, device_id: str) -> bool:
        """True while a restoration is pending for ``device_id``."""
        return self.timers.pending(device_id)

    def saved_state(self, device_id: str) -> SavedState | None:
        return self._saved.get(device_id)

    async def initialize(self) -> None:
        _LOGGER.info("Initializing effect dispatcher...")
        await self.manager.initialize()
        self.timers.start()
        _LOGGER.info("Effect dispatcher initialized")

    async def handle_event(self, event: GameEvent | dict[str, Any]) -> None:
        if isinstance(event, dict):
            event = GameEvent.from_dict(event)
        event_type = event_key(event.type)

        applied: list[tuple[str, Effect]] = []
        async with self._lock:
            _LOGGER.debug("Processing event: %s", event_type, extra={"player_id": event.player_id})
            if not self.registry.effects_for(event_type):
                _LOGGER.debug("No effects registered for event type: %s", event_type)
            else:
                devices = await self.manager.get_devices()
                for device in devices:
                    effect = await self._apply(device, event_type, event)
                    if effect is not None:
                        applied.append((device.id, effect))

        # Listeners may dispatch further events, so nothing is emitted under the lock.
        for device_id, effect in applied:
            await self.emit("effect:applied", device_id, effect, event)
        await self.emit(event_type, event)

    async def _apply(self, device: Device, event_type: str, event: GameEvent) -> Effect | None:
        """Apply the selected effect to ``device``; return it if the command went through."""
        try:
            effect = self.registry.select(event_type, event)
        except Exception:
            _LOGGER.exception("Effect condition failed for device %s", device.id)
            return None
        if effect is None:
            _LOGGER.debug("No matching effects for device: %s", device.id)
            return None

        if effect.restore_previous_state and device.id not in self._saved:
            self._saved[device.id] = SavedState(color=device.color, brightness=device.brightness)

        # Replacing an active effect keeps the original snapshot. A restore
        # already popped from the queue sees a newer generation and backs off.
        generation = self._generations.get(device.id, 0) + 1
        self._generations[device.id] = generation
        self.timers.cancel(device.id)

        succeeded = True
        try:
            await self.manager.execute_command(effect.command.for_device(device.id))
        except Exception as exc:
            succeeded = False
            _LOGGER.error(
                "Failed to apply effect to device %s: %s",
                device.id,
                exc,
                extra={"device_id": device.id, "event_type": event_type},
            )

        if effect.duration and effect.duration > 0 and effect.restore_previous_state:
            self.timers.schedule(
                device.id, effect.duration, self._restore_callback(device.id, generation)
            )
        return effect if succeeded else None

    def _restore_callback(self, device_id: str, generation: int):
        async def restore() -> None:
            async with self._lock:
                if self._generations.get(device_id) != generation:
                    _LOGGER.debug("Skipping superseded restore for device: %s", device_id)
                    return
                state = await self._restore(device_id)
            if state is not None:
                await self.emit("effect:restored", device_id, state)

        return restore

    async def _restore(self, device_id: str) -> SavedState | None:
        """Reissue each recorded field on its own; return the state if all of them landed."""
        state = self._saved.pop(device_id, None)
        if state is None:
            return None

        restored = True
        if state.color is not None:
            try:
                await self.manager.set_color(device_id, state.color)
            except Exception as exc:
                restored = False
                _LOGGER.error(
                    "Failed to restore color for device %s: %s",
                    device_id,
                    exc,
                    extra={"device_id": device_id, "color": state.color},
                )
        if state.brightness is not None:
            try:
                await self.manager.set_brightness(device_id, state.brightness)
            except Exception as exc:
                restored = False
                _LOGGER.error(
                    "Failed to restore brightness for device %s: %s",
                    device_id,
                    exc,
                    extra={"device_id": device_id, "brightness": state.brightness},
                )

        if not restored:
            return None
        _LOGGER.debug("Restored previous state for device: %s", device_id)
        return state

    async def dispose(self) -> None:
        await self.timers.stop()
        self.timers.clear()
        self._saved.clear()
        self._generations.clear()
        self.remove_all_listeners()
        _LOGGER.info("Effect dispatcher disposed")
