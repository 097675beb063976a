"""Keep the local lights in step with the ecosystem profile and game lifecycle."""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import replace
from typing import Any

from lux_aeternum.divina import DivinaL3Adapter
from lux_aeternum.effects import EffectDispatcher
from lux_aeternum.events import EventEmitter
from lux_aeternum.logging import get_logger
from lux_aeternum.manager import LightManager
from lux_aeternum.models import GameEvent, GameEventType, event_key
from lux_aeternum.profile import (
    AmbientLighting,
    EmotionalState,
    EnvironmentProfile,
    default_profile,
    from_divina_profile,
)

DEFAULT_SYNC_INTERVAL = 30.0  # seconds

_LOGGER = get_logger("lux.sync")

GAME_LIGHTING = AmbientLighting(
    color="#1E90FF",  # dodger blue
    brightness=80,
    effect="breathing",
    effect_speed=60,
)
GAME_MOOD = EmotionalState(primary="focused", intensity=80)

LIFECYCLE_EVENTS = (
    GameEventType.PLAYER_JOIN,
    GameEventType.PLAYER_LEAVE,
    GameEventType.MATCH_START,
    GameEventType.MATCH_END,
    GameEventType.MATCH_VICTORY,
    GameEventType.MATCH_DEFEAT,
)


class ProfileSyncService(EventEmitter):
    """Periodic profile sync plus reactions to match lifecycle events.

    Every ``interval`` seconds the current ecosystem profile is fetched and
    broadcast to all devices. A tick that arrives while a sync is still in
    progress is skipped, not queued.

    Match events received from the dispatcher swap in a game profile,
    restore the synced profile, or flash a short temporary effect that
    reverts on its own timer. Each handled event is re-emitted as
    ``game:<type>``.

    Emits ``profile:applied``, ``profile:updated`` and ``room:updated``.
    """

    def __init__(
        self,
        divina: DivinaL3Adapter,
        dispatcher: EffectDispatcher,
        manager: LightManager | None = None,
        *,
        interval: float = DEFAULT_SYNC_INTERVAL,
    ) -> None:
        super().__init__()
        self.divina = divina
        self.dispatcher = dispatcher
        self.manager = manager if manager is not None else dispatcher.manager
        self.interval = interval
        self.active_profile: EnvironmentProfile | None = None
        self.synced_profile: EnvironmentProfile | None = None
        self.is_syncing = False
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._revert_task: asyncio.Task[None] | None = None
        self._revert_to: EnvironmentProfile | None = None
        self._unsubscribe = [
            divina.on("profile:updated", self._handle_divina_profile),
            divina.on("room:updated", self._handle_room),
        ]
        for event_type in LIFECYCLE_EVENTS:
            self._unsubscribe.append(dispatcher.on(event_type, self.handle_game_event))

    async def initialize(self) -> None:
        _LOGGER.info("Initializing profile sync service...")
        await asyncio.gather(self.divina.initialize(), self.dispatcher.initialize())
        self.start_sync(self.interval)
        _LOGGER.info("Profile sync service initialized")

    def start_sync(self, interval: float | None = None) -> None:
        if self._task:
            self._task.cancel()
        if interval is not None:
            self.interval = interval
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run())
        _LOGGER.info("Started syncing every %ss", self.interval)

    async def stop_sync(self) -> None:
        self._stop_event.set()
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            _LOGGER.info("Stopped syncing")
        self._task = None

    async def _run(self) -> None:
        while not self._stop_event.is_set():
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval)
            if self._stop_event.is_set():
                break
            await self.sync_all()

    async def sync_all(self) -> bool:
        """Run one sync pass. Returns False when a pass was already running."""
        if self.is_syncing:
            _LOGGER.debug("Sync already in progress")
            return False

        self.is_syncing = True
        _LOGGER.debug("Starting sync...")
        try:
            payload = await self.divina.fetch_current_profile()
            if payload is None:
                _LOGGER.debug("No current profile in Divina-L3")
            else:
                profile = from_divina_profile(payload)
                self.synced_profile = profile
                await self.apply_profile(profile)
            _LOGGER.debug("Sync completed")
        except Exception as exc:
            _LOGGER.error("Sync failed: %s", exc)
        finally:
            self.is_syncing = False
        return True

    async def apply_profile(self, profile: EnvironmentProfile) -> None:
        """Broadcast the profile's color and brightness to every device."""
        _LOGGER.info("Applying profile: %s", profile.name)
        lighting = profile.lighting
        for device in await self.manager.get_devices():
            try:
                if lighting.color:
                    await self.manager.set_color(device.id, lighting.color)
                if lighting.brightness is not None:
                    await self.manager.set_brightness(device.id, lighting.brightness)
            except Exception as exc:
                _LOGGER.error("Failed to apply profile to device %s: %s", device.id, exc)

        self.active_profile = profile
        await self.emit("profile:applied", profile)

    async def apply_game_profile(self, name: str = "in_game") -> None:
        _LOGGER.info("Applying game profile: %s", name)
        base = self.active_profile or default_profile()
        await self.apply_profile(
            replace(base, name=f"Game: {name}", lighting=GAME_LIGHTING, mood=GAME_MOOD)
        )

    async def apply_temporary_effect(
        self,
        *,
        color: str | None = None,
        brightness: int | None = None,
        effect: str | None = None,
        duration: int = 5000,
    ) -> None:
        """Overlay lighting on the active profile and revert after ``duration`` ms.

        A new temporary effect replaces a pending revert but still reverts
        to the profile that was active before the first one.
        """
        if self._revert_task and not self._revert_task.done():
            self._revert_task.cancel()
            original = self._revert_to
        else:
            original = self.active_profile
        if original is None:
            _LOGGER.debug("No active profile; skipping temporary effect")
            return

        changes: dict[str, Any] = {"color": color, "brightness": brightness, "effect": effect}
        overlay = original.with_lighting(**{k: v for k, v in changes.items() if v is not None})
        await self.apply_profile(overlay)

        self._revert_to = original
        self._revert_task = asyncio.create_task(self._revert_after(original, duration / 1000))

    async def _revert_after(self, profile: EnvironmentProfile, delay: float) -> None:
        await asyncio.sleep(delay)
        self._revert_to = None
        await self.apply_profile(profile)

    async def handle_game_event(self, event: GameEvent) -> None:
        event_type = event_key(event.type)
        _LOGGER.debug("Game event received: %s", event_type)
        try:
            if event_type == GameEventType.MATCH_START.value:
                await self.apply_game_profile("in_game")
            elif event_type == GameEventType.MATCH_END.value:
                if self.synced_profile is not None:
                    await self.apply_profile(self.synced_profile)
                else:
                    await self.sync_all()
            elif event_type == GameEventType.MATCH_VICTORY.value:
                await self.apply_temporary_effect(color="#FFFF00", effect="pulse", duration=5000)
            elif event_type == GameEventType.MATCH_DEFEAT.value:
                await self.apply_temporary_effect(color="#FF0000", effect="flicker", duration=3000)
        except Exception as exc:
            _LOGGER.error("Failed to handle game event %s: %s", event_type, exc)

        await self.emit(f"game:{event_type}", event)

    async def _handle_divina_profile(self, payload: dict[str, Any]) -> None:
        try:
            profile = from_divina_profile(payload)
        except Exception as exc:
            _LOGGER.error("Failed to process Divina-L3 profile update: %s", exc)
            return
        # The Divina adapter has already pushed this lighting to every device.
        self.synced_profile = profile
        self.active_profile = profile
        await self.emit("profile:applied", profile)
        await self.emit("profile:updated", profile)
        _LOGGER.info("Updated active profile", extra={"profile_id": profile.id})

    async def _handle_room(self, room: dict[str, Any]) -> None:
        _LOGGER.debug("Room updated", extra={"room_id": room.get("id")})
        await self.emit("room:updated", room)

    async def dispose(self) -> None:
        _LOGGER.info("Disposing profile sync service...")
        await self.stop_sync()
        if self._revert_task:
            self._revert_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._revert_task
        self._revert_task = None
        self._revert_to = None
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe.clear()
        self.remove_all_listeners()

