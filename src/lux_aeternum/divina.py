"""Client for the Divina-L3 ecosystem: REST profile lookups plus a realtime feed."""

from __future__ import annotations

import asyncio
import contextlib
import json
import os
from typing import Any

import httpx
import websockets

from lux_aeternum.events import EventEmitter
from lux_aeternum.exceptions import AdapterError, NotInitialized, UnsupportedCommand
from lux_aeternum.logging import get_logger
from lux_aeternum.manager import LightManager
from lux_aeternum.models import CommandType, Device, LightCommand, LightEvent

DEFAULT_BASE_URL = "https://api.divina-l3.com/v1"
MAX_RECONNECT_DELAY_MS = 30_000

_LOGGER = get_logger("lux.divina")


def reconnect_delay(attempt: int) -> float:
    """Seconds to wait before reconnect ``attempt`` (0-based): 1s doubling, capped at 30s."""
    return min(1000 * 2**attempt, MAX_RECONNECT_DELAY_MS) / 1000


def realtime_url(base_url: str) -> str:
    if base_url.startswith("http"):
        base_url = "ws" + base_url[len("http"):]
    return base_url.rstrip("/") + "/realtime"


class DivinaL3Adapter(EventEmitter):
    """Bridge between the Divina-L3 ecosystem and the local light manager.

    Profile pushes arriving over the realtime websocket are applied to every
    device the manager knows about, then re-emitted as ``profile:updated``.
    Room, device and ritual messages are cached or re-emitted as
    ``room:updated``, ``device:updated`` and ``ritual:updated``.

    The ecosystem owns no lights itself: :meth:`get_devices` is always empty
    and :meth:`execute_command` forwards to the manager.
    """

    def __init__(
        self,
        manager: LightManager,
        *,
        auth_token: str | None = None,
        base_url: str = DEFAULT_BASE_URL,
        enable_realtime_sync: bool = True,
        reconnect_attempts: int = 5,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__()
        self.manager = manager
        self.auth_token = auth_token or os.environ.get("DIVINA_L3_AUTH_TOKEN", "")
        self.base_url = base_url
        self.enable_realtime_sync = enable_realtime_sync
        self.max_reconnect_attempts = reconnect_attempts
        self.initialized = False
        self.profiles: dict[str, dict[str, Any]] = {}
        self.rooms: dict[str, dict[str, Any]] = {}
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={
                "Authorization": f"Bearer {self.auth_token}",
                "Content-Type": "application/json",
            },
            transport=transport,
        )
        self._ws_task: asyncio.Task[None] | None = None
        self._reconnect_attempts = 0

    @property
    def ws_url(self) -> str:
        return realtime_url(self.base_url)

    @property
    def connected(self) -> bool:
        return self._ws_task is not None and not self._ws_task.done()

    async def initialize(self) -> None:
        if self.initialized:
            _LOGGER.warning("Adapter already initialized")
            return

        _LOGGER.info("Initializing Divina-L3 adapter...")
        await self.manager.initialize()
        if self.enable_realtime_sync and self._ws_task is None:
            self._ws_task = asyncio.create_task(self._ws_loop())
        self.initialized = True
        _LOGGER.info("Divina-L3 adapter initialized")

    async def fetch_current_profile(self) -> dict[str, Any] | None:
        """Return the user's current profile document, or None if none is set."""
        try:
            resp = await self._client.get("/profiles/current")
            if resp.status_code == 404:
                return None
            resp.raise_for_status()
            return resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise AdapterError(f"Failed to fetch current profile: {exc}") from exc

    async def _ws_loop(self) -> None:
        while True:
            try:
                async with websockets.connect(
                    self.ws_url,
                    ping_interval=20,
                    ping_timeout=10,
                ) as websocket:
                    _LOGGER.info("Connected to Divina-L3 websocket")
                    self._reconnect_attempts = 0
                    await websocket.send(json.dumps({"type": "auth", "token": self.auth_token}))
                    async for message in websocket:
                        await self.handle_message(message)
                _LOGGER.warning("Divina-L3 websocket connection closed")
            except (OSError, websockets.WebSocketException) as exc:
                _LOGGER.error("Divina-L3 websocket error: %s", exc)

            if self._reconnect_attempts >= self.max_reconnect_attempts:
                _LOGGER.error("Max reconnection attempts reached. Giving up.")
                return
            delay = reconnect_delay(self._reconnect_attempts)
            self._reconnect_attempts += 1
            _LOGGER.info(
                "Attempting to reconnect in %.0fms (attempt %d/%d)",
                delay * 1000,
                self._reconnect_attempts,
                self.max_reconnect_attempts,
            )
            await asyncio.sleep(delay)

    async def handle_message(self, message: str | bytes | dict[str, Any]) -> None:
        """Dispatch one realtime message by its ``type``.

        Messages either carry their document under ``data`` or are the
        document themselves.
        """
        if isinstance(message, dict):
            payload = message
        else:
            try:
                payload = json.loads(message)
            except ValueError as exc:
                _LOGGER.error("Error processing websocket message: %s", exc)
                return
        if not isinstance(payload, dict):
            _LOGGER.warning("Ignoring non-object websocket message")
            return

        kind = payload.get("type")
        data = payload.get("data", payload)
        _LOGGER.debug("Received websocket message", extra={"type": kind, "action": payload.get("action")})
        if kind == "profile":
            await self._handle_profile(data)
        elif kind == "room":
            self.rooms[str(data.get("id"))] = data
            _LOGGER.info("Updating room", extra={"room_id": data.get("id")})
            await self.emit("room:updated", data)
        elif kind == "device":
            await self.emit("device:updated", data)
        elif kind == "ritual":
            await self.emit("ritual:updated", data)
        else:
            _LOGGER.warning("Unknown message type received: %s", kind)

    async def _handle_profile(self, profile: dict[str, Any]) -> None:
        _LOGGER.info("Updating profile", extra={"profile_id": profile.get("id")})
        self.profiles[str(profile.get("id"))] = profile

        lighting = (profile.get("ambience") or {}).get("lighting") or {}
        if lighting:
            for device in await self.manager.get_devices():
                for command in _lighting_commands(device.id, lighting):
                    try:
                        await self.manager.execute_command(command)
                    except UnsupportedCommand:
                        _LOGGER.debug("Device %s does not support %s", device.id, command.type.value)
                    except Exception as exc:
                        _LOGGER.error("Failed to update device %s: %s", device.id, exc)

        await self.emit("profile:updated", profile)

    async def get_devices(self) -> list[Device]:
        return []

    async def get_device(self, device_id: str) -> Device | None:
        return None

    async def execute_command(self, command: LightCommand) -> None:
        if not self.initialized:
            raise NotInitialized("Adapter not initialized")
        await self.manager.execute_command(command)
        _LOGGER.debug("Command executed", extra={"device_id": command.device_id, "command": command.type.value})

    async def handle_event(self, event: LightEvent) -> None:
        _LOGGER.debug("Handling light event: %s", event.type)
        await self.emit("event", event)

    async def dispose(self) -> None:
        _LOGGER.info("Disposing Divina-L3 adapter...")
        if self._ws_task:
            self._ws_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._ws_task
        self._ws_task = None
        await self._client.aclose()
        self.initialized = False


def _lighting_commands(device_id: str, lighting: dict[str, Any]) -> list[LightCommand]:
    commands = []
    if lighting.get("color"):
        commands.append(LightCommand.set_color(lighting["color"], device_id))
    if lighting.get("brightness") is not None:
        commands.append(LightCommand.set_brightness(lighting["brightness"], device_id))
    if lighting.get("effect"):
        commands.append(LightCommand(CommandType.CUSTOM, device_id, {"effect": lighting["effect"]}))
    return commands
