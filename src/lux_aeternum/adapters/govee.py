"""Async adapter for the Govee developer REST API (v1)."""

from __future__ import annotations

from typing import Any

import httpx

from lux_aeternum.adapters.base import (
    AdapterConfig,
    BaseLightAdapter,
    require_brightness,
    require_color,
)
from lux_aeternum.colors import hex_to_rgb, rgb_to_hex
from lux_aeternum.exceptions import (
    AdapterError,
    CommandExecutionFailed,
    CommandSendFailed,
    DeviceFetchFailed,
    InitializationFailed,
    InvalidParameter,
    UnsupportedCommand,
)
from lux_aeternum.models import CommandType, Device, LightCommand

DEFAULT_BASE_URL = "https://developer-api.govee.com/v1"


class GoveeAdapter(BaseLightAdapter):
    """Adapter for Govee cloud-controlled lights.

    Example:
        ```python
        async with GoveeAdapter(api_key) as govee:
            await govee.initialize()
            for device in await govee.get_devices():
                print(device.name, device.color)
        ```
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 5.0,
        instance_id: str = "",
        debug: bool = False,
        refresh_after_command: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(
            AdapterConfig(
                type="govee",
                instance_id=instance_id,
                debug=debug,
                timeout=timeout,
                options={"base_url": base_url, "api_key": api_key},
            )
        )
        self.refresh_after_command = refresh_after_command
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={"Govee-API-Key": api_key, "Content-Type": "application/json"},
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def initialize(self) -> None:
        if self.initialized:
            self.logger.warning("Adapter already initialized")
            return

        self.logger.info("Initializing Govee adapter...")
        try:
            devices = await self.get_devices()
        except AdapterError as exc:
            self.logger.error("Failed to initialize Govee adapter: %s", exc)
            raise InitializationFailed(f"Failed to initialize Govee adapter: {exc}") from exc

        self.logger.info("Connected to Govee API, found %d devices", len(devices))
        self.initialized = True

    async def get_devices(self) -> list[Device]:
        self.logger.debug("Fetching Govee devices...")
        try:
            payload = await self._request("GET", "/devices")
        except (httpx.HTTPError, ValueError) as exc:
            self.logger.error("Failed to fetch Govee devices: %s", exc)
            raise DeviceFetchFailed(f"Failed to fetch Govee devices: {exc}") from exc

        if payload.get("code") != 200:
            message = payload.get("message", "unknown error")
            raise DeviceFetchFailed(
                f"Failed to fetch Govee devices: {message}",
                {"code": payload.get("code")},
            )

        raw_devices = (payload.get("data") or {}).get("devices") or []
        devices = [self._map_device(info) for info in raw_devices]
        for device in devices:
            self.devices[device.id] = device
        return devices

    async def get_device(self, device_id: str) -> Device | None:
        self.validate_initialized()
        if device_id in self.devices:
            return self.devices[device_id]
        await self.get_devices()
        return self.devices.get(device_id)

    async def execute_command(self, command: LightCommand) -> None:
        self.validate_initialized()
        self.validate_device_id(command.device_id)
        device = self.devices[command.device_id]

        try:
            if command.type == CommandType.TURN_ON:
                await self._send(device, "turn", "on")
                self._update_device(device.id, is_on=True)
            elif command.type == CommandType.TURN_OFF:
                await self._send(device, "turn", "off")
                self._update_device(device.id, is_on=False)
            elif command.type == CommandType.SET_COLOR:
                color = require_color(command)
                r, g, b = hex_to_rgb(color)
                await self._send(device, "color", {"r": r, "g": g, "b": b})
                self._update_device(device.id, color=color)
            elif command.type == CommandType.SET_BRIGHTNESS:
                brightness = require_brightness(command)
                await self._send(device, "brightness", brightness)
                self._update_device(device.id, brightness=brightness)
            else:
                self.logger.warning("Unsupported command type: %s", command.type.value)
                raise UnsupportedCommand(
                    f"Unsupported command type: {command.type.value}",
                    {"device_id": device.id},
                )
        except (InvalidParameter, UnsupportedCommand):
            raise
        except (AdapterError, httpx.HTTPError) as exc:
            self.logger.error(
                "Failed to execute command %s on %s: %s", command.type.value, device.id, exc
            )
            raise CommandExecutionFailed(
                f"Failed to execute command {command.type.value}: {exc}",
                {"device_id": device.id},
            ) from exc

        if self.refresh_after_command:
            await self._refresh_state(self.devices[device.id])

    async def _send(self, device: Device, name: str, value: Any) -> None:
        self.logger.info("Sending %s=%r to %s (%s)", name, value, device.name, device.id)
        try:
            payload = await self._request(
                "PUT",
                "/devices/control",
                json={
                    "device": device.address,
                    "model": device.model,
                    "cmd": {"name": name, "value": value},
                },
            )
        except httpx.HTTPError as exc:
            raise CommandSendFailed(
                f"Failed to send command to device: {exc}",
                {"device_id": device.id, "command": name},
            ) from exc

        if payload.get("code") != 200:
            raise CommandSendFailed(
                f"Failed to send command to device: {payload.get('message', 'unknown error')}",
                {"device_id": device.id, "command": name, "code": payload.get("code")},
            )

    async def _refresh_state(self, device: Device) -> None:
        try:
            payload = await self._request(
                "GET",
                "/devices/state",
                params={"device": device.address, "model": device.model},
            )
        except (httpx.HTTPError, ValueError) as exc:
            self.logger.warning("Failed to refresh state for device %s: %s", device.id, exc)
            return

        if payload.get("code") != 200:
            return
        props = _merge_properties((payload.get("data") or {}).get("properties"))
        updates: dict[str, Any] = {}
        if "powerState" in props:
            updates["is_on"] = props["powerState"] == "on"
        if "brightness" in props:
            updates["brightness"] = props["brightness"]
        if isinstance(props.get("color"), dict):
            updates["color"] = _color_from_api(props["color"])
        if "online" in props:
            updates["is_reachable"] = bool(props["online"])
        if updates:
            self._update_device(device.id, **updates)

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict:
        if self.config.debug:
            self.logger.debug("Request: %s %s", method, path, extra={"body": kwargs.get("json")})
        resp = await self._client.request(method, path, **kwargs)
        if self.config.debug:
            self.logger.debug("Response: %s %s", resp.status_code, path)
        resp.raise_for_status()
        return resp.json()

    @staticmethod
    def _map_device(info: dict) -> Device:
        props = _merge_properties(info.get("properties"))
        color = props.get("color")
        return Device(
            id=info["device"],
            name=info.get("deviceName", info["device"]),
            type="light",
            brand="govee",
            model=info.get("model", ""),
            address=info["device"],
            is_on=props.get("powerState") == "on",
            brightness=props.get("brightness"),
            color=_color_from_api(color) if isinstance(color, dict) else None,
            is_reachable=bool(props.get("online", True)),
            metadata={
                "controllable": info.get("controllable", False),
                "retrievable": info.get("retrievable", False),
                "support_cmds": list(info.get("supportCmds") or []),
                "version": info.get("version", "1.0"),
            },
        )


def _merge_properties(props: Any) -> dict:
    """Govee returns properties either as an object or a list of one-key objects."""
    if isinstance(props, dict):
        return props
    merged: dict = {}
    for item in props or []:
        if isinstance(item, dict):
            merged.update(item)
    return merged


def _color_from_api(color: dict) -> str:
    return rgb_to_hex(color.get("r", 0), color.get("g", 0), color.get("b", 0))

