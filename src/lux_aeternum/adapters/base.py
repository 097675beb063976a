"""Uniform device-adapter contract implemented per vendor."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Any

from lux_aeternum.colors import normalize_hex
from lux_aeternum.exceptions import DeviceNotFound, InvalidParameter, NotInitialized
from lux_aeternum.logging import get_logger, redact_mapping
from lux_aeternum.models import Device, LightCommand, LightEvent


@dataclass
class AdapterConfig:
    """Settings common to every adapter."""

    type: str
    instance_id: str = ""
    debug: bool = False
    timeout: float = 5.0  # seconds, per vendor HTTP call
    options: dict[str, Any] = field(default_factory=dict)


class BaseLightAdapter(ABC):
    """Base class for vendor adapters.

    Subclasses own a device cache keyed by vendor device ID. The cache is
    only mutated by :meth:`get_devices` refreshes and by command execution.
    """

    def __init__(self, config: AdapterConfig) -> None:
        self.config = config
        self.logger = get_logger(f"lux.adapter.{config.type}")
        self.devices: dict[str, Device] = {}
        self.initialized = False

    async def __aenter__(self) -> BaseLightAdapter:
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    @property
    def type(self) -> str:
        return self.config.type

    @abstractmethod
    async def initialize(self) -> None:
        """Check connectivity and populate the device cache."""

    @abstractmethod
    async def get_devices(self) -> list[Device]:
        """Refresh and return every device known to the vendor."""

    @abstractmethod
    async def get_device(self, device_id: str) -> Device | None:
        """Return a device, or None if the vendor does not know it."""

    @abstractmethod
    async def execute_command(self, command: LightCommand) -> None:
        """Translate and send a generic command to the vendor."""

    async def handle_event(self, event: LightEvent) -> None:
        self.logger.debug("Received event: %s", event.type)

    async def close(self) -> None:
        pass

    def get_config(self) -> AdapterConfig:
        return replace(self.config, options=dict(self.config.options))

    def update_config(self, **changes: Any) -> None:
        self.config = replace(self.config, **changes)
        self.logger.info(
            "Configuration updated",
            extra={"changes": redact_mapping(changes)},
        )

    def has_device(self, device_id: str) -> bool:
        return device_id in self.devices

    def validate_initialized(self) -> None:
        if not self.initialized:
            raise NotInitialized("Adapter not initialized. Call initialize() first.")

    def validate_device_id(self, device_id: str) -> None:
        if device_id not in self.devices:
            raise DeviceNotFound(
                f"Device with ID {device_id!r} not found",
                {"device_id": device_id},
            )

    def _update_device(self, device_id: str, **updates: Any) -> None:
        device = self.devices.get(device_id)
        if device is not None:
            self.devices[device_id] = replace(device, **updates)


def require_color(command: LightCommand) -> str:
    """Return the command's color as ``#RRGGBB`` or raise InvalidParameter."""
    color = command.params.get("color")
    if not color:
        raise InvalidParameter("Color parameter is required for setColor command")
    try:
        return normalize_hex(str(color))
    except ValueError as exc:
        raise InvalidParameter(str(exc)) from exc


def require_brightness(command: LightCommand) -> int:
    """Return the command's brightness clamped to 0-100."""
    value = command.params.get("brightness")
    if value is None:
        raise InvalidParameter("Brightness parameter is required for setBrightness command")
    try:
        return max(0, min(100, int(value)))
    except (TypeError, ValueError) as exc:
        raise InvalidParameter(f"Invalid brightness: {value!r}") from exc
