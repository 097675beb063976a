"""Async adapter for the Philips Hue bridge (local v1 API)."""

from __future__ import annotations

from typing import Any

import httpx

from lux_aeternum.adapters.base import (
    AdapterConfig,
    BaseLightAdapter,
    require_brightness,
    require_color,
)
from lux_aeternum.colors import ct_to_hex, hex_to_rgb, rgb_to_xy, xy_bri_to_hex
from lux_aeternum.exceptions import (
    AdapterError,
    CommandExecutionFailed,
    CommandSendFailed,
    DeviceFetchFailed,
    InitializationFailed,
    LinkButtonNotPressed,
    NotAuthenticated,
    UnsupportedCommand,
)
from lux_aeternum.models import CommandType, Device, LightCommand

HUE_MAX_BRI = 254


class PhilipsHueAdapter(BaseLightAdapter):
    """Adapter for lights paired with a Philips Hue bridge.

    A bridge ``username`` (application key) is required for anything beyond
    reading the public bridge config. Obtain one with :meth:`create_user`
    after pressing the bridge's link button.
    """

    def __init__(
        self,
        bridge_ip: str,
        *,
        username: str | None = None,
        use_https: bool = False,
        port: int | None = None,
        timeout: float = 5.0,
        instance_id: str = "",
        debug: bool = False,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(
            AdapterConfig(
                type="philips-hue",
                instance_id=instance_id or bridge_ip,
                debug=debug,
                timeout=timeout,
                options={"bridge_ip": bridge_ip, "username": username},
            )
        )
        self.bridge_ip = bridge_ip
        self.username = username
        scheme = "https" if use_https else "http"
        port = port or (443 if use_https else 80)
        suffix = "" if port in (80, 443) else f":{port}"
        self.base_url = f"{scheme}://{bridge_ip}{suffix}"
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    @property
    def authenticated(self) -> bool:
        return bool(self.username)

    async def close(self) -> None:
        await self._client.aclose()

    async def initialize(self) -> None:
        if self.initialized:
            self.logger.warning("Adapter already initialized")
            return

        self.logger.info("Initializing Philips Hue adapter...")
        try:
            bridge = await self.get_bridge_config()
            self.logger.debug(
                "Bridge config retrieved",
                extra={"bridge": bridge.get("name"), "api_version": bridge.get("apiversion")},
            )
            if self.username:
                # get_devices requires the initialized flag.
                self.initialized = True
                devices = await self.get_devices()
                self.logger.info("Connected to Hue bridge, found %d devices", len(devices))
            else:
                self.logger.warning(
                    "Connected to bridge but not authenticated. Call create_user() to authenticate."
                )
        except AdapterError as exc:
            self.initialized = False
            self.logger.error("Failed to initialize Philips Hue adapter: %s", exc)
            raise InitializationFailed(
                f"Failed to initialize Philips Hue adapter: {exc}",
                {"authenticated": self.authenticated},
            ) from exc

        self.initialized = True

    async def create_user(self, device_type: str = "lux-aeternum#app") -> str:
        """Register an application key; the bridge link button must be pressed first."""
        self.logger.info("Creating user on Hue bridge, press the link button...")
        try:
            resp = await self._client.post("/api", json={"devicetype": device_type})
            resp.raise_for_status()
            result = resp.json()[0]
        except (httpx.HTTPError, ValueError, IndexError, KeyError) as exc:
            raise AdapterError(f"Failed to create user on Hue bridge: {exc}") from exc

        if "success" in result:
            self.username = result["success"]["username"]
            self.config.options["username"] = self.username
            self.logger.info("Created user on Hue bridge")
            return self.username

        error = result.get("error") or {}
        if error.get("type") == 101:
            raise LinkButtonNotPressed(
                "Link button not pressed. Press the link button on the Hue bridge and try again.",
                {"error": error},
            )
        raise AdapterError(
            f"Failed to create user: {error.get('description', 'unexpected response')}",
            {"error": error},
        )

    async def get_bridge_config(self) -> dict:
        try:
            resp = await self._client.get("/api/config")
            resp.raise_for_status()
            return resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise AdapterError(f"Failed to get bridge configuration: {exc}") from exc

    async def get_devices(self) -> list[Device]:
        self.validate_initialized()
        self._require_username()
        try:
            resp = await self._client.get(f"/api/{self.username}/lights")
            resp.raise_for_status()
            lights = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            self.logger.error("Failed to get devices from Hue bridge: %s", exc)
            raise DeviceFetchFailed(f"Failed to get devices from Hue bridge: {exc}") from exc

        devices = []
        for light_id, info in lights.items():
            device = self._map_device(light_id, info)
            self.devices[device.id] = device
            devices.append(device)
        return devices

    async def get_device(self, device_id: str) -> Device | None:
        self.validate_initialized()
        self._require_username()
        if device_id in self.devices:
            return self.devices[device_id]

        try:
            resp = await self._client.get(f"/api/{self.username}/lights/{device_id}")
            if resp.status_code == 404:
                return None
            resp.raise_for_status()
            info = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            self.logger.error("Failed to get device %s from Hue bridge: %s", device_id, exc)
            raise DeviceFetchFailed(
                f"Failed to get device {device_id} from Hue bridge: {exc}",
                {"device_id": device_id},
            ) from exc

        # The v1 API answers unknown lights with an error list, not a 404.
        if not isinstance(info, dict) or "state" not in info:
            return None
        device = self._map_device(device_id, info)
        self.devices[device.id] = device
        return device

    async def execute_command(self, command: LightCommand) -> None:
        self.validate_initialized()
        self.validate_device_id(command.device_id)
        self._require_username()

        state = self._translate(command)
        try:
            await self._set_light_state(command.device_id, state)
        except AdapterError as exc:
            self.logger.error("Failed to execute command %s: %s", command.type.value, exc)
            raise CommandExecutionFailed(
                f"Failed to execute command {command.type.value}: {exc}",
                {"device_id": command.device_id},
            ) from exc

        updates: dict[str, Any] = {}
        if "on" in state:
            updates["is_on"] = state["on"]
        if "bri" in state:
            updates["brightness"] = round(state["bri"] / HUE_MAX_BRI * 100)
        if "xy" in state:
            updates["color"] = require_color(command)
        self._update_device(command.device_id, **updates)

    def _translate(self, command: LightCommand) -> dict[str, Any]:
        if command.type == CommandType.TURN_ON:
            return {"on": True}
        if command.type == CommandType.TURN_OFF:
            return {"on": False}
        if command.type == CommandType.SET_COLOR:
            r, g, b = hex_to_rgb(require_color(command))
            return {"on": True, "xy": list(rgb_to_xy(r, g, b))}
        if command.type == CommandType.SET_BRIGHTNESS:
            percent = require_brightness(command)
            bri = max(0, min(HUE_MAX_BRI, round(percent / 100 * HUE_MAX_BRI)))
            return {"on": percent > 0, "bri": bri}
        if command.type == CommandType.CUSTOM and command.params.get("effect") in ("none", "colorloop"):
            return {"effect": command.params["effect"]}
        self.logger.warning("Unsupported command type: %s", command.type.value)
        raise UnsupportedCommand(f"Unsupported command type: {command.type.value}")

    async def _set_light_state(self, device_id: str, state: dict[str, Any]) -> None:
        try:
            resp = await self._client.put(f"/api/{self.username}/lights/{device_id}/state", json=state)
            resp.raise_for_status()
            results = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise CommandSendFailed(f"Failed to set light state: {exc}", {"device_id": device_id}) from exc

        errors = [item["error"] for item in results if isinstance(item, dict) and "error" in item]
        if errors:
            raise CommandSendFailed(
                f"Failed to set light state: {errors[0].get('description', 'bridge error')}",
                {"device_id": device_id, "errors": errors},
            )
        self.logger.debug("Light state updated", extra={"device_id": device_id, "state": state})

    def _require_username(self) -> None:
        if not self.username:
            raise NotAuthenticated("Not authenticated. Call create_user() first.")

    @staticmethod
    def _map_device(light_id: str, info: dict) -> Device:
        state = info.get("state") or {}
        bri = state.get("bri")
        color = None
        if state.get("xy"):
            x, y = state["xy"]
            color = xy_bri_to_hex(x, y, bri or HUE_MAX_BRI)
        elif state.get("ct"):
            color = ct_to_hex(state["ct"])

        return Device(
            id=light_id,
            name=info.get("name", light_id),
            type="light",
            brand="philips",
            model=info.get("modelid", ""),
            address=info.get("uniqueid", ""),
            is_on=bool(state.get("on", False)),
            brightness=round(bri / HUE_MAX_BRI * 100) if bri else None,
            color=color,
            is_reachable=bool(state.get("reachable", False)),
            metadata={
                "manufacturer": info.get("manufacturername"),
                "sw_version": info.get("swversion"),
                "hue_type": info.get("type"),
            },
        )

